#!/usr/bin/env python3
"""
Heatmap tests.

Density grid sampling, band colours, per-zone palettes and the
walkable mask of strict sites.
"""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

import numpy as np

from terminal_config import HeatmapConfig, SimulationConfig
from terminal_crowd import Agent, AgentStatus, SiteContext, generate_population
from terminal_floorplan import Zone, ZoneType, walkable_zones
from terminal_heatmap import (PALETTES, cell_centers, generate_heatmap, heatmap_color,
                              intensity_band, zone_intensity)

RED = '#ef4444'
ORANGE = '#fb923c'


def _crowd(x, y, count, zone_id='corridor'):
    return [Agent(id=f'p{i}', x=x, y=y, target_x=x, target_y=y,
                  status=AgentStatus.WAITING, zone_id=zone_id)
            for i in range(count)]


def test_empty_snapshot():
    print("\n[Test 1] No agents, no cells")
    context = SiteContext.for_site('standard', SimulationConfig())
    assert generate_heatmap([], context.zones, context.profile.heatmap) == []
    print("  ✓ Empty list")


def test_dense_crowd_is_hot():
    print("\n[Test 2] A dense crowd produces hot cells capped at 100")
    context = SiteContext.for_site('standard', SimulationConfig())
    settings = context.profile.heatmap
    cells = generate_heatmap(_crowd(400, 300, 50), context.zones, settings)
    assert cells
    assert all(settings.min_intensity <= c.intensity <= 100 for c in cells)
    assert any(c.band == 'hot' and c.color == RED for c in cells)
    assert all(0 <= c.grid_x < settings.grid_size and 0 <= c.grid_y < settings.grid_size
               for c in cells)

    nearest = min(cells, key=lambda c: np.hypot(c.x - 400, c.y - 300))
    assert nearest.intensity == 100
    print(f"  ✓ {len(cells)} cells, hottest at ({nearest.x:.0f}, {nearest.y:.0f})")


def test_sparse_cells_dropped():
    settings = HeatmapConfig()
    # One agent: intensity 6 > 2 near it, nothing elsewhere
    cells = generate_heatmap(_crowd(400, 300, 1), [], settings)
    assert cells
    assert all(c.intensity == settings.intensity_multiplier for c in cells)
    assert all(c.zone_id is None for c in cells)

    quiet = HeatmapConfig(min_intensity=10.0)
    assert generate_heatmap(_crowd(400, 300, 1), [], quiet) == []

    # Exactly at the threshold is kept
    edge = HeatmapConfig(min_intensity=settings.intensity_multiplier)
    kept = generate_heatmap(_crowd(400, 300, 1), [], edge)
    assert kept == cells


def test_strict_walkable_mask():
    print("\n[Test 3] Terminal 2 cells only appear over walkable zones")
    config = SimulationConfig()
    context = SiteContext.for_site('T2', config)
    agents = generate_population(context, np.random.RandomState(0))
    cells = generate_heatmap(agents, context.zones, context.profile.heatmap, strict_walkable=True)
    walkable = walkable_zones(context.zones)
    assert cells
    for cell in cells:
        assert any(z.contains(cell.x, cell.y) for z in walkable), cell

    loose = generate_heatmap(agents, context.zones, context.profile.heatmap)
    assert len(loose) >= len(cells)
    print(f"  ✓ {len(cells)} masked cells (of {len(loose)} unmasked)")


def test_zone_palettes():
    print("\n[Test 4] Boarding gate is orange/red, coffee shops never red")
    context = SiteContext.for_site('T2', SimulationConfig())
    settings = context.profile.heatmap
    gate = context.zone('gate23a-area')
    shop = context.zone('near-shop-13')
    agents = _crowd(*gate.center, 30, gate.id) + _crowd(*shop.center, 40, shop.id)
    cells = generate_heatmap(agents, context.zones, settings, strict_walkable=True)

    gate_cells = [c for c in cells if c.zone_id == 'gate23a-area']
    amenity_cells = [c for c in cells if c.zone_id in ('near-shop-12', 'near-shop-13', 'near-shop-6-7')]
    assert gate_cells and amenity_cells
    assert all(c.color in (ORANGE, RED) for c in gate_cells)
    assert all(c.color != RED for c in amenity_cells)
    assert any(c.band == 'hot' and c.color == ORANGE for c in amenity_cells)
    print(f"  ✓ {len(gate_cells)} gate cells, {len(amenity_cells)} amenity cells")


def test_colour_bands():
    settings = HeatmapConfig()
    assert intensity_band(10, settings) == 'low'
    assert intensity_band(25, settings) == 'moderate'
    assert intensity_band(80, settings) == 'hot'
    assert heatmap_color(10, settings) == PALETTES['default'][0]
    assert heatmap_color(50, settings, 'amenity') == PALETTES['amenity'][1]
    assert heatmap_color(90, settings, 'no-such-palette') == RED


def test_cell_centres():
    settings = HeatmapConfig(grid_size=4, origin=(0.0, 0.0), extent=(400.0, 200.0))
    centers, cell_w, cell_h = cell_centers(settings)
    assert (cell_w, cell_h) == (100.0, 50.0)
    assert centers.shape == (16, 2)
    assert tuple(centers[0]) == (50.0, 25.0)
    assert tuple(centers[1]) == (50.0, 75.0)
    assert tuple(centers[-1]) == (350.0, 175.0)


def test_zone_intensity():
    print("\n[Test 5] Zone intensity per 1000 square units")
    zone = Zone('box', 'Box', 0, 0, 100, 100, ZoneType.WAITING)
    assert zone_intensity(zone, _crowd(50, 50, 5, 'box')) == 5
    assert zone_intensity(zone, _crowd(50, 50, 500, 'box')) == 100
    assert zone_intensity(zone, _crowd(50, 50, 5, 'elsewhere')) == 0
    dot = Zone('dot', 'Dot', 0, 0, 0, 0, ZoneType.WAITING)
    assert zone_intensity(dot, _crowd(0, 0, 5, 'dot')) == 0
    print("  ✓ Scaled, capped and zero for empty areas")


if __name__ == "__main__":
    print("=" * 70)
    print("HEATMAP TESTS")
    print("=" * 70)
    test_empty_snapshot()
    test_dense_crowd_is_hot()
    test_sparse_cells_dropped()
    test_strict_walkable_mask()
    test_zone_palettes()
    test_colour_bands()
    test_cell_centres()
    test_zone_intensity()
    print("\n✓ All heatmap tests PASSED\n")
