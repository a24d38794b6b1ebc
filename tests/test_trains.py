#!/usr/bin/env python3
"""
APM vehicle simulator tests.

Loop geometry, fleet spacing, derived fields, KPIs and the
scheduled fleet runner.
"""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

import numpy as np
import pytest

from apm_trains import (SEGMENTS, STATIONS, Direction, FleetSimulation, Vehicle,
                        VehicleStatus, calculate_kpis, cyclic_distance,
                        generate_initial_vehicles, load_band, load_percentage,
                        next_stop, segment_for_position, station_at_position,
                        station_waiting_data, update_vehicles)
from terminal_config import FleetConfig


def _vehicle(vehicle_id, position, direction, passengers=100):
    return Vehicle(id=vehicle_id, position=position, direction=direction,
                   passengers=passengers, capacity=200, status=VehicleStatus.ON_TIME)


def _gaps(positions):
    ordered = sorted(positions)
    return [cyclic_distance(a, b) for a, b in zip(ordered, ordered[1:] + ordered[:1])]


def test_cyclic_distance():
    print("\n[Test 1] Cyclic distance wraps through zero")
    assert cyclic_distance(1, 99) == pytest.approx(2)
    assert cyclic_distance(99, 1) == pytest.approx(2)
    assert cyclic_distance(10, 60) == 50
    assert cyclic_distance(25, 25) == 0
    assert cyclic_distance(-5, 5) == pytest.approx(10)
    assert cyclic_distance(105, 5) == pytest.approx(0)
    print("  ✓ Symmetric and wrap-aware")


def test_segments():
    print("\n[Test 2] Eleven segments close the loop")
    assert len(SEGMENTS) == 11
    assert SEGMENTS[0].name == 'TBI-T3'
    assert SEGMENTS[-1].name == 'T4-TBI'
    assert segment_for_position(10).id == 'S1'
    assert segment_for_position(98).id == 'S11'
    assert segment_for_position(2).id == 'S11'
    assert segment_for_position(50).name == 'PARK-T9'
    print(f"  ✓ {[s.id for s in SEGMENTS]}")


def test_station_at_position():
    assert station_at_position(23.5).id == 'T2'
    assert station_at_position(40) is None
    assert station_at_position(0).id == 'T4'  # 3.09 away across the wrap
    assert station_at_position(37) is None  # exactly 5 from T1 is not within
    assert station_at_position(40, tolerance=6).id == 'PARK'


def test_next_stop():
    print("\n[Test 3] Next stop follows the direction of travel")
    assert next_stop(30, Direction.CLOCKWISE).id == 'T1'
    assert next_stop(30, Direction.COUNTER_CLOCKWISE).id == 'T2'
    assert next_stop(98, Direction.CLOCKWISE).id == 'TBI'
    assert next_stop(2, Direction.COUNTER_CLOCKWISE).id == 'T4'
    assert next_stop(23, Direction.CLOCKWISE).id == 'T1'  # already at T2
    print("  ✓ Wraps in both directions")


def test_initial_fleet():
    print("\n[Test 4] Eight vehicles, four per direction, evenly spaced")
    vehicles = generate_initial_vehicles(np.random.RandomState(0))
    assert [v.id for v in vehicles] == [f'TRAIN-{i:03d}' for i in range(1, 9)]
    for direction in Direction:
        group = [v for v in vehicles if v.direction == direction]
        assert len(group) == 4
        assert [v.position for v in group] == [0, 25, 50, 75]
    for vehicle in vehicles:
        assert 0 <= vehicle.passengers < vehicle.capacity
        assert vehicle.segment_id
        assert vehicle.next_stop
        assert vehicle.eta >= 1
    print("  ✓ Positions 0/25/50/75 in both directions")


def test_first_update():
    vehicles = update_vehicles(generate_initial_vehicles(np.random.RandomState(0)),
                               np.random.RandomState(1))
    by_id = {v.id: v for v in vehicles}
    assert by_id['TRAIN-001'].position == pytest.approx(0.2)
    assert by_id['TRAIN-005'].position == pytest.approx(99.8)
    assert by_id['TRAIN-005'].segment_id == 'S11'
    assert by_id['TRAIN-001'].eta in (23, 24)  # (5 - 0.2) / 0.2, floored
    assert by_id['TRAIN-001'].next_stop == 'TBI'


def test_spacing_holds_over_time():
    print("\n[Test 5] Gaps stay above the minimum over 300 updates")
    fleet = FleetConfig()
    rng = np.random.RandomState(2)
    vehicles = generate_initial_vehicles(rng, fleet)
    for _ in range(300):
        vehicles = update_vehicles(vehicles, rng, fleet)
        for direction in Direction:
            positions = [v.position for v in vehicles if v.direction == direction]
            assert min(_gaps(positions)) >= 20 - 1e-6
        for vehicle in vehicles:
            assert 0 <= vehicle.position < 100
            assert 0 <= vehicle.passengers <= vehicle.capacity
    print(f"  ✓ Minimum gap {min(_gaps([v.position for v in vehicles[:4]])):.2f}")


def test_minimum_gap_push():
    print("\n[Test 6] Crowded vehicles are pushed to the minimum gap")
    rng = np.random.RandomState(0)
    clockwise = [_vehicle(f'CW-{i}', p, Direction.CLOCKWISE) for i, p in enumerate([0, 5, 50, 75])]
    by_id = {v.id: v for v in update_vehicles(clockwise, rng)}
    assert by_id['CW-1'].position == pytest.approx(20)

    counter = [_vehicle(f'CCW-{i}', p, Direction.COUNTER_CLOCKWISE)
               for i, p in enumerate([75, 50, 25, 22])]
    by_id = {v.id: v for v in update_vehicles(counter, rng)}
    assert by_id['CCW-3'].position == pytest.approx(5)
    print("  ✓ Pushed to 20 (clockwise) and 5 (counter-clockwise)")


def test_kpis():
    print("\n[Test 7] KPI strip")
    vehicles = [
        _vehicle('A', 0, Direction.CLOCKWISE, passengers=50),
        _vehicle('B', 50, Direction.CLOCKWISE, passengers=150),
    ]
    vehicles.append(Vehicle(id='C', position=10, direction=Direction.COUNTER_CLOCKWISE,
                            passengers=100, capacity=200, status=VehicleStatus.DELAYED))
    kpis = calculate_kpis(vehicles)
    assert kpis['vehicles_in_service'] == 3
    assert kpis['average_headway'] == 20.0
    assert kpis['on_time_performance'] == 66.7
    assert kpis['average_load'] == 50.0

    fleet = generate_initial_vehicles(np.random.RandomState(0))
    assert calculate_kpis(fleet)['average_headway'] == 7.5
    assert calculate_kpis([]) == {'average_headway': 0, 'vehicles_in_service': 0,
                                  'on_time_performance': 0, 'average_load': 0}
    print(f"  ✓ {kpis}")


def test_load_bands():
    assert load_band(49.9) == 'green'
    assert load_band(50) == 'amber'
    assert load_band(79.9) == 'amber'
    assert load_band(80) == 'red'
    empty = Vehicle(id='X', position=0, direction=Direction.CLOCKWISE, passengers=5,
                    capacity=0, status=VehicleStatus.ON_TIME)
    assert load_percentage(empty) == 0


def test_station_waiting_counts():
    print("\n[Test 8] Synthesized station waiting counts")
    rng = np.random.RandomState(0)
    for _ in range(200):
        t2 = station_waiting_data('T2', rng)
        assert 49 <= t2.waiting_count <= 74
        unknown = station_waiting_data('T99', rng)
        assert 24 <= unknown.waiting_count <= 36
    assert t2.camera_feed_status == 'offline'
    assert t2.station_id == 'T2'
    print("  ✓ Baseline +/- 20%")


def test_fleet_simulation_schedule():
    print("\n[Test 9] Fleet updates every two seconds of simulated time")
    sim = FleetSimulation(random_seed=3)
    assert sim.is_playing
    sim.advance(10000)
    assert sim.updates == 5

    sim.pause()
    assert not sim.is_playing
    before = sim.snapshot()
    sim.advance(4000)
    assert sim.updates == 5
    assert sim.snapshot() == before

    sim.play()
    sim.advance(2000)
    assert sim.updates == 6
    assert len(sim.station_waiting()) == len(STATIONS)
    assert sim.kpis()['vehicles_in_service'] == 8

    sim.close()
    with pytest.raises(RuntimeError):
        sim.advance(1000)
    with pytest.raises(RuntimeError):
        sim.play()
    print("  ✓ 5 updates in 10s, paused holds, closed rejects")


if __name__ == "__main__":
    print("=" * 70)
    print("APM VEHICLE TESTS")
    print("=" * 70)
    test_cyclic_distance()
    test_segments()
    test_station_at_position()
    test_next_stop()
    test_initial_fleet()
    test_first_update()
    test_spacing_holds_over_time()
    test_minimum_gap_push()
    test_kpis()
    test_load_bands()
    test_station_waiting_counts()
    test_fleet_simulation_schedule()
    print("\n✓ All APM vehicle tests PASSED\n")
