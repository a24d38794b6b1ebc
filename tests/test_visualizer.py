#!/usr/bin/env python3
"""
Visualizer tests.

Builds figures without opening a browser and checks their structure.
"""

import os
import sys
import tempfile
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from apm_trains import FleetSimulation
from terminal_simulation import TerminalSimulation
from terminal_visualizer import TerminalVisualizer, create_fleet_figure, save_snapshot


def test_snapshot_figure():
    print("\n[Test 1] Snapshot figure: density trace plus one trace per status")
    with TerminalSimulation('T2') as sim:
        sim.advance(500)
        fig = TerminalVisualizer(sim).create_snapshot_figure()
        assert len(fig.data) == 4
        assert len(fig.layout.shapes) == len(sim.context.zones)
        total = sum(len(trace.x) for trace in fig.data[1:])
        assert total == len(sim.snapshot())
        print(f"  ✓ {len(fig.data)} traces, {len(fig.layout.shapes)} zone shapes")


def test_animation_restores_pause():
    print("\n[Test 2] Animation frames and playback state")
    with TerminalSimulation('standard', playing=False) as sim:
        fig = TerminalVisualizer(sim).create_animation(num_frames=3, frame_ms=160)
        assert len(fig.frames) == 3
        assert not sim.is_playing
        assert sim.get_statistics()['frames'] == 20
        print(f"  ✓ {len(fig.frames)} frames, simulation paused again")


def test_fleet_figure():
    sim = FleetSimulation(random_seed=1)
    sim.advance(4000)
    fig = create_fleet_figure(sim.snapshot())
    assert len(fig.data) == 4
    assert len(fig.data[3].x) == 8
    sim.close()


def test_save_snapshot():
    with TerminalSimulation('standard') as sim:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'snapshot.html')
            save_snapshot(sim, path)
            assert os.path.getsize(path) > 0


if __name__ == "__main__":
    print("=" * 70)
    print("VISUALIZER TESTS")
    print("=" * 70)
    test_snapshot_figure()
    test_animation_restores_pause()
    test_fleet_figure()
    test_save_snapshot()
    print("\n✓ All visualizer tests PASSED\n")
