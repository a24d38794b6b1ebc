"""
Heatmap Module for the Terminal Crowd Simulation
Stateless density grid computed from an agent snapshot
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import KDTree

from terminal_config import HeatmapConfig
from terminal_crowd import Agent
from terminal_floorplan import Zone, walkable_zones


# Colours per band: (low, moderate, hot)
PALETTES: Dict[str, Tuple[str, str, str]] = {
    'default': ('#fde047', '#facc15', '#ef4444'),
    'boarding': ('#fb923c', '#fb923c', '#ef4444'),  # orange until very dense
    'amenity': ('#fde047', '#facc15', '#fb923c'),  # never red
}

BANDS = ('low', 'moderate', 'hot')


@dataclass
class HeatmapCell:
    """One sampled grid cell of the density field"""
    grid_x: int
    grid_y: int
    x: float
    y: float
    intensity: float
    band: str
    color: str
    zone_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'gridX': self.grid_x,
            'gridY': self.grid_y,
            'x': self.x,
            'y': self.y,
            'intensity': self.intensity,
            'band': self.band,
            'color': self.color,
            'zone': self.zone_id,
        }


def intensity_band(intensity: float, settings: HeatmapConfig) -> str:
    if intensity < settings.low_threshold:
        return 'low'
    if intensity < settings.moderate_threshold:
        return 'moderate'
    return 'hot'


def heatmap_color(intensity: float, settings: HeatmapConfig, palette: str = 'default') -> str:
    """Colour for an intensity; unknown palette names use the default palette"""
    colors = PALETTES.get(palette, PALETTES['default'])
    return colors[BANDS.index(intensity_band(intensity, settings))]


def cell_centers(settings: HeatmapConfig) -> Tuple[np.ndarray, float, float]:
    """
    Centres of every grid cell, row-major over (grid_x, grid_y).

    Returns:
        (N x 2 array of centres, cell width, cell height)
    """
    n = settings.grid_size
    origin_x, origin_y = settings.origin
    width, height = settings.extent
    cell_w = width / n
    cell_h = height / n

    xs = origin_x + (np.arange(n) + 0.5) * cell_w
    ys = origin_y + (np.arange(n) + 0.5) * cell_h
    grid_x, grid_y = np.meshgrid(xs, ys, indexing='ij')
    centers = np.column_stack([grid_x.ravel(), grid_y.ravel()])
    return centers, cell_w, cell_h


def _owning_zone(x: float, y: float, zones: Sequence[Zone],
                 settings: HeatmapConfig) -> Optional[Zone]:
    """Zone a cell belongs to; zones with a palette override win"""
    containing = [z for z in zones if z.contains(x, y)]
    for zone in containing:
        if zone.id in settings.zone_palettes:
            return zone
    return containing[0] if containing else None


def generate_heatmap(agents: Sequence[Agent], zones: Sequence[Zone],
                     settings: HeatmapConfig = None,
                     strict_walkable: bool = False) -> List[HeatmapCell]:
    """
    Compute the density grid for the current agent snapshot.

    For every cell centre the agents within 1.5 cell sizes are counted,
    scaled into a 0-100 intensity and dropped below the minimum intensity.

    Args:
        agents: Agent snapshot
        zones: Floor plan zones
        settings: Grid and colour settings (defaults if None)
        strict_walkable: Suppress cells outside every walkable zone

    Returns:
        List of heatmap cells (empty for an empty snapshot)
    """
    settings = settings if settings is not None else HeatmapConfig()
    if not agents or settings.grid_size < 1:
        return []

    centers, cell_w, cell_h = cell_centers(settings)
    radius = max(cell_w, cell_h) * settings.radius_factor

    positions = np.array([[a.x, a.y] for a in agents], dtype=float)
    tree = KDTree(positions)
    counts = tree.query_ball_point(centers, r=radius, return_length=True)

    walkable = walkable_zones(list(zones))
    n = settings.grid_size
    cells = []
    for idx, (center, count) in enumerate(zip(centers, counts)):
        intensity = min(100.0, float(count) * settings.intensity_multiplier)
        if intensity < settings.min_intensity:
            continue

        x, y = float(center[0]), float(center[1])
        if strict_walkable and not any(z.contains(x, y) for z in walkable):
            continue

        zone = _owning_zone(x, y, zones, settings)
        palette = settings.zone_palettes.get(zone.id, 'default') if zone is not None else 'default'
        cells.append(HeatmapCell(
            grid_x=idx // n,
            grid_y=idx % n,
            x=x,
            y=y,
            intensity=intensity,
            band=intensity_band(intensity, settings),
            color=heatmap_color(intensity, settings, palette),
            zone_id=zone.id if zone is not None else None,
        ))

    return cells


def zone_intensity(zone: Zone, agents: Sequence[Agent]) -> float:
    """Head count of a zone per 1000 square units, scaled to 0-100"""
    if zone.area <= 0:
        return 0.0
    count = sum(1 for a in agents if a.zone_id == zone.id)
    return min(100.0, count / (zone.area / 1000) * 10)
