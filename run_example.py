"""
Simple Example: Running the Terminal Crowd Simulation
No user input required - runs with preset values
Writes an HTML snapshot for each terminal
"""

import logging
import sys

from apm_trains import FleetSimulation
from terminal_config import ConfigManager, get_baseline_config
from terminal_simulation import TerminalSimulation
from terminal_visualizer import save_snapshot


def print_statistics(stats):
    print(f"\n👥 POPULATION ({stats['site_id']}):")
    print(f"   Total: {stats['total_people']} (target {stats['target_count']}, "
          f"base {stats['base_population']})")
    for status, count in stats['status_counts'].items():
        print(f"   {status.capitalize()}: {count}")

    print(f"\n🔁 REGULATION:")
    print(f"   Frames: {stats['frames']}")
    print(f"   Target updates: {stats['target_updates']}")
    print(f"   Count adjustments: {stats['count_adjustments']}")
    print(f"   Spawned: {stats['spawned']} | Removed: {stats['removed']}")

    print(f"\n🗺️  BUSIEST ZONES:")
    busiest = sorted(stats['zone_counts'].items(), key=lambda item: -item[1])[:5]
    for zone_id, count in busiest:
        print(f"   {zone_id}: {count}")


def main(duration_s: float = 30.0):
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

    print("\n" + "=" * 70)
    print(" TERMINAL CROWD SIMULATION - SIMPLE EXAMPLE ".center(70))
    print("=" * 70)

    config = get_baseline_config()
    ConfigManager.print_config_summary(config)

    results = {}
    for site_id in ('standard', 'T2'):
        with TerminalSimulation(site_id, config) as sim:
            print(f"\n🏃 Running {site_id} for {duration_s:.0f}s of simulated time...")
            sim.advance(duration_s * 1000)

            stats = sim.get_statistics()
            cells = sim.heatmap()
            print_statistics(stats)
            hot = sum(1 for c in cells if c.band == 'hot')
            print(f"\n🔥 HEATMAP: {len(cells)} cells ({hot} hot)")

            save_snapshot(sim, f'terminal_{site_id.lower()}_snapshot.html')
            results[site_id] = stats

    print("\n" + "=" * 70)
    print(" APM FLEET ".center(70))
    print("=" * 70)

    fleet = FleetSimulation(config.fleet, random_seed=config.random_seed)
    fleet.advance(duration_s * 1000)
    kpis = fleet.kpis()
    print(f"\n🚝 KPIs after {fleet.updates} updates:")
    print(f"   Average headway: {kpis['average_headway']} min")
    print(f"   Vehicles in service: {kpis['vehicles_in_service']}")
    print(f"   On-time performance: {kpis['on_time_performance']}%")
    print(f"   Average load: {kpis['average_load']}%")
    for vehicle in fleet.snapshot():
        print(f"   {vehicle.id} {vehicle.direction.value:8s} @ {vehicle.position:5.1f} "
              f"-> {vehicle.next_stop} in {vehicle.eta}")
    fleet.close()

    print("\n✨ Simulation complete!\n")
    return results, kpis


if __name__ == '__main__':
    duration = float(sys.argv[1]) if len(sys.argv) > 1 else 30.0
    main(duration)
