"""
Floor Plan Module for the Terminal Crowd Simulation
Static zone geometry for every terminal layout
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple, Callable

import numpy as np


# ==================== ZONE TYPES ====================
class ZoneType(str, Enum):
    """Category of a floor plan zone"""
    WAITING = 'waiting'
    CORRIDOR = 'corridor'
    GATE = 'gate'
    SERVICE = 'service'
    PLATFORM = 'platform'


# ==================== GEOMETRY ====================
@dataclass(frozen=True)
class Bounds:
    """Axis-aligned rectangle that every agent position must stay inside"""
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def clamp(self, x: float, y: float) -> Tuple[float, float]:
        return clamp(x, self.min_x, self.max_x), clamp(y, self.min_y, self.max_y)

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


@dataclass(frozen=True)
class Zone:
    """
    Named rectangular region of a terminal floor plan.

    Zones may overlap. Only zones flagged as walkable are used to
    constrain agent targets and to mask the heatmap on strict sites.
    """
    id: str
    name: str
    x: float
    y: float
    width: float
    height: float
    zone_type: ZoneType
    walkable: bool = True

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, x: float, y: float, margin: float = 0.0) -> bool:
        """Check if a point lies inside the zone grown by ``margin``"""
        return (self.x - margin <= x <= self.x + self.width + margin and
                self.y - margin <= y <= self.y + self.height + margin)

    def interior(self, padding: float) -> Tuple[float, float, float, float]:
        """
        Padded interior as (x_min, x_max, y_min, y_max).

        Degenerate zones (narrower than twice the padding) collapse onto
        their centre line instead of producing an inverted interval.
        """
        pad_x = min(padding, self.width / 2)
        pad_y = min(padding, self.height / 2)
        return (self.x + pad_x, self.x + self.width - pad_x,
                self.y + pad_y, self.y + self.height - pad_y)


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value within [min_val, max_val]"""
    return max(min_val, min(max_val, value))


def clamp_to_zone(x: float, y: float, zone: Zone, padding: float) -> Tuple[float, float]:
    """Clamp a point to the padded interior of a zone"""
    x_min, x_max, y_min, y_max = zone.interior(padding)
    return clamp(x, x_min, x_max), clamp(y, y_min, y_max)


def random_position_in_zone(zone: Zone, padding: float,
                            rng: np.random.RandomState) -> Tuple[float, float]:
    """Uniform random point inside the padded interior of a zone"""
    x_min, x_max, y_min, y_max = zone.interior(padding)
    return (x_min + rng.rand() * (x_max - x_min),
            y_min + rng.rand() * (y_max - y_min))


def zones_of_type(zones: List[Zone], zone_type: ZoneType) -> List[Zone]:
    return [zone for zone in zones if zone.zone_type == zone_type]


def walkable_zones(zones: List[Zone]) -> List[Zone]:
    return [zone for zone in zones if zone.walkable]


# ==================== LAYOUTS ====================
def _terminal2_floor_plan() -> List[Zone]:
    """
    Terminal 2: one long central walkway with gate areas above and below.

    Shops and the service block are drawn on the plan but are not
    walkable; people cluster in the small waiting strips next to them.
    Viewport is 1200 x 600.
    """
    gate, service, waiting = ZoneType.GATE, ZoneType.SERVICE, ZoneType.WAITING
    return [
        # Central walkway
        Zone('main-corridor', 'Main Corridor', 50, 250, 1100, 100, ZoneType.CORRIDOR),

        # North gates
        Zone('gate20-area', 'Gate 20 Area', 50, 50, 120, 150, gate),
        Zone('gate22-area', 'Gate 22 Area', 250, 50, 120, 150, gate),
        Zone('gate24-area', 'Gate 24 Area', 450, 50, 120, 150, gate),
        Zone('gate26b-area', 'Gate 26B Area', 650, 50, 120, 150, gate),
        Zone('gate26a-area', 'Gate 26A Area', 800, 50, 120, 150, gate),
        Zone('gate28-area', 'Gate 28 Area', 1000, 50, 120, 150, gate),

        # South gates
        Zone('gate21b-area', 'Gate 21B Area', 50, 400, 120, 150, gate),
        Zone('gate21a-area', 'Gate 21A Area', 150, 400, 120, 150, gate),
        Zone('gate23a-area', 'Gate 23A Area', 300, 400, 120, 150, gate),
        Zone('gate23b-area', 'Gate 23B Area', 400, 400, 120, 150, gate),
        Zone('gate25b-area', 'Gate 25B Area', 600, 400, 120, 150, gate),
        Zone('gate25a-area', 'Gate 25A Area', 700, 400, 120, 150, gate),
        Zone('gate27-area', 'Gate 27 Area', 950, 400, 120, 150, gate),

        # Shops and services (not walkable)
        Zone('shop-1', 'Shop Area 1', 50, 200, 80, 50, service, walkable=False),
        Zone('shop-2', 'Shop Area 2', 150, 50, 50, 80, service, walkable=False),
        Zone('shop-3', 'Shop Area 3', 200, 50, 50, 80, service, walkable=False),
        Zone('shop-4', 'Shop Area 4', 50, 350, 80, 50, service, walkable=False),
        Zone('shop-5-top', 'Shop Area 5 (Top)', 300, 50, 80, 50, service, walkable=False),
        Zone('shop-5-bottom', 'Shop Area 5 (Bottom)', 300, 400, 80, 50, service, walkable=False),
        Zone('shop-6', 'Shop Area 6', 500, 400, 80, 50, service, walkable=False),
        Zone('shop-7', 'Shop Area 7', 580, 400, 80, 50, service, walkable=False),
        Zone('shop-8', 'Shop Area 8', 450, 50, 80, 50, service, walkable=False),
        Zone('shop-10', 'Shop Area 10', 650, 50, 80, 50, service, walkable=False),
        Zone('shop-11', 'Shop Area 11', 730, 50, 80, 50, service, walkable=False),
        Zone('shop-12', 'Shop Area 12', 850, 400, 80, 50, service, walkable=False),
        Zone('shop-13', 'Shop Area 13', 900, 400, 80, 50, service, walkable=False),
        Zone('shop-14', 'Shop Area 14', 810, 50, 80, 50, service, walkable=False),
        Zone('shop-15', 'Shop Area 15', 1000, 50, 50, 50, service, walkable=False),
        Zone('service-area', 'Service Area', 450, 350, 200, 50, service, walkable=False),

        # Standing room next to the busiest shops
        Zone('near-shop-12', 'Near Shop 12', 850, 350, 100, 50, waiting),
        Zone('near-shop-13', 'Near Shop 13', 900, 350, 100, 50, waiting),
        Zone('near-shop-6-7', 'Near Shops 6-7', 500, 350, 160, 50, waiting),
    ]


def _standard_floor_plan() -> List[Zone]:
    """
    Standard terminal: main building with a row of gates on each side,
    security and lounge along the corridor, and the APM platform below.
    Viewport is 800 x 550.
    """
    gate, waiting = ZoneType.GATE, ZoneType.WAITING
    return [
        Zone('terminal', 'Terminal Building', 100, 100, 600, 300, waiting),

        # North gates (left to right)
        Zone('gate28', 'Gate 28', 100, 50, 80, 50, gate),
        Zone('gate27', 'Gate 27', 190, 50, 80, 50, gate),
        Zone('gate26', 'Gate 26', 280, 50, 80, 50, gate),
        Zone('gate25', 'Gate 25', 370, 50, 80, 50, gate),
        Zone('gate24', 'Gate 24', 460, 50, 80, 50, gate),
        Zone('gate23', 'Gate 23', 550, 50, 80, 50, gate),

        # South gates (left to right)
        Zone('gate24a', 'Gate 24A', 100, 400, 80, 50, gate),
        Zone('gate23a', 'Gate 23A', 190, 400, 80, 50, gate),
        Zone('gate22', 'Gate 22', 280, 400, 80, 50, gate),
        Zone('gate21b', 'Gate 21B', 370, 400, 80, 50, gate),
        Zone('gate22a', 'Gate 22A', 460, 400, 80, 50, gate),
        Zone('gate21', 'Gate 21', 550, 400, 80, 50, gate),
        Zone('gate21a', 'Gate 21A', 640, 400, 60, 50, gate),

        Zone('corridor', 'Main Corridor', 100, 200, 600, 80, ZoneType.CORRIDOR),
        # Security is a service counter people queue through
        Zone('security', 'Security', 100, 150, 120, 50, ZoneType.SERVICE),
        Zone('lounge', 'Lounge', 580, 150, 120, 50, waiting),
        Zone('apm', 'APM Platform', 100, 500, 600, 40, ZoneType.PLATFORM),

        Zone('wait1', 'Waiting Area 1', 250, 120, 100, 60, waiting),
        Zone('wait2', 'Waiting Area 2', 400, 120, 100, 60, waiting),
        Zone('wait3', 'Waiting Area 3', 250, 320, 100, 60, waiting),
        Zone('wait4', 'Waiting Area 4', 400, 320, 100, 60, waiting),
    ]


LAYOUTS: Dict[str, Callable[[], List[Zone]]] = {
    'terminal2': _terminal2_floor_plan,
    'standard': _standard_floor_plan,
}

# Sites with a dedicated layout; everything else uses the standard one
SITE_LAYOUTS: Dict[str, str] = {
    'T2': 'terminal2',
}


def layout_for_site(site_id: str) -> str:
    return SITE_LAYOUTS.get(site_id, 'standard')


def get_floor_plan(site_id: str) -> List[Zone]:
    """
    Get the fixed zone list for a site.

    Pure and deterministic: every call builds a fresh list of immutable
    zones with identical content for the same site id.
    """
    return LAYOUTS[layout_for_site(site_id)]()
