#!/usr/bin/env python3
"""
Floor plan tests.

Checks that layouts are deterministic, that unknown sites fall back to the
standard terminal and that zone geometry helpers never leave a zone.
"""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

import numpy as np

from terminal_config import SimulationConfig
from terminal_crowd import SiteContext
from terminal_floorplan import (Bounds, Zone, ZoneType, clamp_to_zone,
                                get_floor_plan, random_position_in_zone,
                                walkable_zones, zones_of_type)


def test_floor_plan_is_idempotent():
    print("\n[Test 1] Same site id gives identical zone lists")
    for site_id in ('T2', 'standard', 'T5'):
        first = get_floor_plan(site_id)
        second = get_floor_plan(site_id)
        assert first == second
        assert first is not second
        print(f"  ✓ {site_id}: {len(first)} zones")


def test_unknown_site_uses_standard_layout():
    print("\n[Test 2] Unknown sites share the standard layout")
    assert get_floor_plan('T9') == get_floor_plan('standard')
    assert get_floor_plan('T2') != get_floor_plan('standard')
    print("  ✓ Fallback works")


def test_standard_layout_contents():
    print("\n[Test 3] Standard terminal zones")
    zones = get_floor_plan('standard')
    ids = {z.id for z in zones}
    for zone_id in ('security', 'corridor', 'apm', 'lounge', 'wait1', 'wait2', 'wait3', 'wait4', 'gate24'):
        assert zone_id in ids, f"{zone_id} missing"
    assert len(zones_of_type(zones, ZoneType.GATE)) == 13
    by_id = {z.id: z for z in zones}
    assert by_id['apm'].zone_type == ZoneType.PLATFORM
    assert by_id['security'].zone_type == ZoneType.SERVICE
    assert all(z.walkable for z in zones)
    print("  ✓ Security, corridor, platform, waiting areas and 13 gates present")


def test_terminal2_shops_not_walkable():
    print("\n[Test 4] Terminal 2 shops are excluded from walkable zones")
    zones = get_floor_plan('T2')
    shops = [z for z in zones if z.id.startswith('shop') or z.id == 'service-area']
    assert shops
    assert not any(z.walkable for z in shops)

    walkable_ids = {z.id for z in walkable_zones(zones)}
    assert 'main-corridor' in walkable_ids
    assert {'near-shop-12', 'near-shop-13', 'near-shop-6-7', 'gate23a-area'} <= walkable_ids
    assert len(zones_of_type(zones, ZoneType.GATE)) == 13
    print(f"  ✓ {len(shops)} shop/service zones, {len(walkable_ids)} walkable zones")


def test_site_zone_lookup_missing():
    context = SiteContext.for_site('standard', SimulationConfig())
    assert context.zone('gate24').zone_type == ZoneType.GATE
    assert context.zone('no-such-zone') is None
    assert context.zone(None) is None


def test_random_positions_stay_inside_padded_interior():
    print("\n[Test 5] Random interior points respect padding")
    rng = np.random.RandomState(3)
    for zone in get_floor_plan('T2'):
        x_min, x_max, y_min, y_max = zone.interior(8)
        for _ in range(50):
            x, y = random_position_in_zone(zone, 8, rng)
            assert x_min <= x <= x_max
            assert y_min <= y <= y_max
    print("  ✓ All sampled points inside their zone")


def test_degenerate_zone_collapses_to_center():
    print("\n[Test 6] Zero-size zone does not invert its interior")
    dot = Zone('dot', 'Dot', 100, 200, 0, 0, ZoneType.WAITING)
    assert dot.interior(5) == (100, 100, 200, 200)
    assert random_position_in_zone(dot, 5, np.random.RandomState(0)) == (100, 200)
    assert clamp_to_zone(400, -50, dot, 5) == (100, 200)
    assert dot.area == 0

    thin = Zone('thin', 'Thin', 0, 0, 4, 100, ZoneType.CORRIDOR)
    x_min, x_max, y_min, y_max = thin.interior(10)
    assert x_min == x_max == 2
    assert (y_min, y_max) == (10, 90)
    print("  ✓ Interior collapses onto the centre line")


def test_bounds_clamp():
    bounds = Bounds(50, 750, 50, 540)
    assert bounds.clamp(0, 1000) == (50, 540)
    assert bounds.clamp(300, 300) == (300, 300)
    assert bounds.contains(50, 540)
    assert not bounds.contains(49.9, 100)


if __name__ == "__main__":
    print("=" * 70)
    print("FLOOR PLAN TESTS")
    print("=" * 70)
    test_floor_plan_is_idempotent()
    test_unknown_site_uses_standard_layout()
    test_standard_layout_contents()
    test_terminal2_shops_not_walkable()
    test_site_zone_lookup_missing()
    test_random_positions_stay_inside_padded_interior()
    test_degenerate_zone_collapses_to_center()
    test_bounds_clamp()
    print("\n✓ All floor plan tests PASSED\n")
