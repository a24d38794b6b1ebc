"""
Configuration Module for the Terminal Crowd Simulation
Tunable movement, regulation and per-site parameters in one place
All times are milliseconds, all distances are floor plan units
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Tuple
import json

from terminal_floorplan import Bounds


@dataclass
class MovementConfig:
    """Per-frame movement and transition settings"""
    frame_interval_ms: float = 16.0  # ~60fps
    arrival_epsilon: float = 2.0  # distance to consider target reached

    # Inward padding when picking points inside zones
    zone_padding: float = 5.0
    gate_padding: float = 8.0
    cluster_padding: float = 10.0

    # Transition probabilities
    corridor_to_gate_probability: float = 0.3
    active_gate_visit_probability: float = 0.15  # share of gate picks allowed to hit the boarding gate
    amenity_move_probability: float = 0.2

    # Amenity clusters wander within this ring around the zone centre
    amenity_radius_min: float = 10.0
    amenity_radius_max: float = 20.0

    # Boarding agents past the exit threshold park with this wait
    exit_staging_wait_ms: float = 8000.0

    # Strict walkable sites: pull strays back toward walkable space
    walkable_margin: float = 20.0
    walkable_snap_distance: float = 50.0
    walkable_nudge_fraction: float = 0.1


@dataclass
class WaitTimeConfig:
    """Wait-time ranges (ms) drawn when an agent re-evaluates its target"""
    waiting: Tuple[float, float] = (2000.0, 5000.0)
    moving: Tuple[float, float] = (1000.0, 3000.0)
    boarding: Tuple[float, float] = (300.0, 1000.0)


@dataclass
class RegulationConfig:
    """Population target oscillation and count convergence"""
    target_update_interval_ms: float = 4000.0
    count_adjust_interval_ms: float = 2500.0
    variation_percent: Tuple[float, float] = (0.10, 0.15)
    increment_percent: Tuple[float, float] = (0.10, 0.15)
    min_change_threshold: float = 0.05
    band: Tuple[float, float] = (0.8, 1.2)  # target stays within this share of base population
    tolerance: int = 2
    spawn_wait_ms: Tuple[float, float] = (1000.0, 3000.0)


@dataclass
class FleetConfig:
    """APM vehicle loop settings (positions are percent of the loop)"""
    update_interval_ms: float = 2000.0
    speed: float = 0.2  # loop percent per update
    vehicles_per_direction: int = 4
    capacity: int = 200
    station_tolerance: float = 5.0
    min_gap_ratio: float = 0.8  # minimum gap as a share of the ideal spacing
    drift_correction: float = 0.5  # correction step as a share of the speed
    passenger_change: int = 10
    status_flip_probability: float = 0.05
    delayed_probability: float = 0.15
    waiting_variation: float = 0.2  # +/- share applied to station waiting counts


@dataclass
class HeatmapConfig:
    """Density grid settings for one site"""
    grid_size: int = 20
    origin: Tuple[float, float] = (50.0, 50.0)
    extent: Tuple[float, float] = (800.0, 550.0)
    radius_factor: float = 1.5  # neighbour radius as a multiple of the larger cell side
    intensity_multiplier: float = 6.0
    min_intensity: float = 2.0
    low_threshold: float = 25.0
    moderate_threshold: float = 80.0
    zone_palettes: Dict[str, str] = field(default_factory=dict)  # zone id -> palette name


@dataclass
class SiteProfile:
    """Distribution and behaviour rules for one terminal"""
    site_id: str = 'standard'
    layout: str = 'standard'
    base_population: int = 150
    min_waiting: int = 50
    bounds: Dict[str, float] = field(default_factory=lambda: {
        'min_x': 50.0, 'max_x': 750.0, 'min_y': 50.0, 'max_y': 540.0
    })

    # Speeds in units per frame
    base_speed: float = 0.12
    boarding_speed: float = 0.18

    # Ratio-based placement (applied to the population left after clusters)
    distribution: Dict[str, float] = field(default_factory=lambda: {
        'security': 0.12,
        'corridor': 0.35,
        'gates': 0.35,
        'waiting': 0.15,
        'platform': 0.03,
    })
    corridor_moving_share: float = 1.0
    busy_gate_ids: List[str] = field(default_factory=lambda: ['gate23', 'gate22', 'gate21'])
    busy_gate_multiplier: float = 1.5
    quiet_gate_multiplier: float = 0.7

    # Named zones
    entry_zone_id: Optional[str] = 'security'
    corridor_zone_id: Optional[str] = 'corridor'
    active_gate_id: Optional[str] = 'gate24'

    # Active boarding gate cluster
    active_gate_split: Dict[str, int] = field(default_factory=lambda: {
        'boarding': 15, 'moving': 15, 'waiting': 15
    })
    active_gate_layout: str = 'scatter'  # 'scatter' or 'ring'
    active_gate_exit_side: str = 'bottom'  # 'top' or 'bottom'

    # Amenity clusters: zone id -> head count
    amenity_clusters: Dict[str, int] = field(default_factory=dict)

    # Gate flow once an agent has settled at a regular gate
    gate_to_platform_probability: float = 0.3
    gate_to_corridor_probability: float = 0.0

    strict_walkable: bool = False
    heatmap: HeatmapConfig = None

    def __post_init__(self):
        if self.heatmap is None:
            self.heatmap = HeatmapConfig()

    @property
    def global_bounds(self) -> Bounds:
        return Bounds(**self.bounds)


def get_standard_profile(site_id: str = 'standard') -> SiteProfile:
    """Generic terminal: security -> corridor -> gates -> APM platform"""
    return SiteProfile(site_id=site_id)


def get_terminal2_profile() -> SiteProfile:
    """Terminal 2: long walkway, coffee shop clusters and a queue at Gate 23A"""
    return SiteProfile(
        site_id='T2',
        layout='terminal2',
        base_population=150,
        min_waiting=30,
        bounds={'min_x': 50.0, 'max_x': 1150.0, 'min_y': 50.0, 'max_y': 550.0},
        base_speed=0.25,
        boarding_speed=0.35,
        distribution={'corridor': 0.65, 'gates': 0.15},
        corridor_moving_share=0.3,
        busy_gate_ids=[],
        entry_zone_id='main-corridor',
        corridor_zone_id='main-corridor',
        active_gate_id='gate23a-area',
        active_gate_split={'boarding': 30},
        active_gate_layout='ring',
        active_gate_exit_side='top',
        amenity_clusters={'near-shop-12': 10, 'near-shop-13': 12, 'near-shop-6-7': 8},
        gate_to_platform_probability=0.0,
        gate_to_corridor_probability=0.4,
        strict_walkable=True,
        heatmap=HeatmapConfig(
            origin=(0.0, 0.0),
            extent=(1200.0, 600.0),
            intensity_multiplier=4.0,
            min_intensity=3.0,
            low_threshold=20.0,
            moderate_threshold=75.0,
            zone_palettes={
                'gate23a-area': 'boarding',
                'near-shop-12': 'amenity',
                'near-shop-13': 'amenity',
                'near-shop-6-7': 'amenity',
            },
        ),
    )


@dataclass
class SimulationConfig:
    """Main simulation configuration"""
    random_seed: int = 42

    # Sub-configurations
    movement: MovementConfig = None
    wait_times: WaitTimeConfig = None
    regulation: RegulationConfig = None
    fleet: FleetConfig = None

    # Site registry: site id -> profile
    sites: Dict[str, SiteProfile] = None

    def __post_init__(self):
        if self.movement is None:
            self.movement = MovementConfig()
        if self.wait_times is None:
            self.wait_times = WaitTimeConfig()
        if self.regulation is None:
            self.regulation = RegulationConfig()
        if self.fleet is None:
            self.fleet = FleetConfig()
        if self.sites is None:
            self.sites = {
                'standard': get_standard_profile(),
                'T2': get_terminal2_profile(),
            }

    def get_site_profile(self, site_id: str) -> SiteProfile:
        """Registered profile for the site, else the standard profile re-keyed"""
        if site_id in self.sites:
            return self.sites[site_id]
        standard = self.sites.get('standard') or get_standard_profile()
        profile = SiteProfile(**{**asdict(standard), 'heatmap': None})
        profile.heatmap = HeatmapConfig(**asdict(standard.heatmap))
        profile.site_id = site_id
        return profile


# ==================== PRESET CONFIGURATIONS ====================

def get_baseline_config() -> SimulationConfig:
    """Baseline scenario - ~150 people per terminal"""
    return SimulationConfig()


def get_busy_config() -> SimulationConfig:
    """Peak hour - bigger crowds and a higher waiting floor"""
    config = SimulationConfig()
    for profile in config.sites.values():
        profile.base_population = 200
        profile.min_waiting = max(profile.min_waiting, 50)
    config.sites['standard'].active_gate_split = {'boarding': 15, 'moving': 15, 'waiting': 15}
    config.sites['T2'].active_gate_split = {'boarding': 40}
    return config


def get_calm_config() -> SimulationConfig:
    """Off-peak - smaller crowds that drift slowly"""
    config = SimulationConfig()
    for profile in config.sites.values():
        profile.base_population = 100
        profile.min_waiting = 30
    config.sites['standard'].active_gate_split = {'boarding': 10, 'moving': 10, 'waiting': 10}
    config.regulation.target_update_interval_ms = 8000.0
    config.regulation.count_adjust_interval_ms = 5000.0
    return config


# ==================== CONFIGURATION MANAGEMENT ====================

class ConfigManager:
    """Manage and validate configurations"""

    @staticmethod
    def get_all_presets() -> Dict[str, SimulationConfig]:
        """Get all predefined configurations"""
        return {
            'baseline': get_baseline_config(),
            'busy': get_busy_config(),
            'calm': get_calm_config(),
        }

    @staticmethod
    def save_config(config: SimulationConfig, filepath: str):
        """Save configuration to JSON file"""
        with open(filepath, 'w') as f:
            json.dump(asdict(config), f, indent=2)

    @staticmethod
    def load_config(filepath: str) -> SimulationConfig:
        """Load configuration from JSON file"""
        with open(filepath, 'r') as f:
            config_dict = json.load(f)

        # Reconstruct nested configs
        movement = MovementConfig(**config_dict.get('movement', {}))
        wait_times = WaitTimeConfig(**{k: tuple(v) for k, v in config_dict.get('wait_times', {}).items()})
        regulation = RegulationConfig(**{
            k: tuple(v) if isinstance(v, list) else v
            for k, v in config_dict.get('regulation', {}).items()
        })

        fleet = FleetConfig(**config_dict.get('fleet', {}))

        sites = {}
        for site_id, site_dict in (config_dict.get('sites') or {}).items():
            heatmap_dict = dict(site_dict.get('heatmap') or {})
            for key in ('origin', 'extent'):
                if key in heatmap_dict:
                    heatmap_dict[key] = tuple(heatmap_dict[key])
            sites[site_id] = SiteProfile(
                **{k: v for k, v in site_dict.items() if k != 'heatmap'},
                heatmap=HeatmapConfig(**heatmap_dict),
            )

        return SimulationConfig(
            **{k: v for k, v in config_dict.items()
               if k not in ['movement', 'wait_times', 'regulation', 'fleet', 'sites']},
            movement=movement,
            wait_times=wait_times,
            regulation=regulation,
            fleet=fleet,
            sites=sites or None,
        )

    @staticmethod
    def validate_config(config: SimulationConfig) -> List[str]:
        """Validate configuration and return list of warnings"""
        warnings = []

        if config.movement.frame_interval_ms <= 0:
            warnings.append("Frame interval must be positive")
        if config.movement.arrival_epsilon <= 0:
            warnings.append("Arrival epsilon must be positive")
        for name in ('corridor_to_gate_probability', 'active_gate_visit_probability',
                     'amenity_move_probability'):
            value = getattr(config.movement, name)
            if value < 0 or value > 1:
                warnings.append(f"{name} must be between 0 and 1")

        for status in ('waiting', 'moving', 'boarding'):
            low, high = getattr(config.wait_times, status)
            if low < 0 or high < low:
                warnings.append(f"Wait time range for '{status}' is invalid")

        reg = config.regulation
        if reg.target_update_interval_ms <= 0 or reg.count_adjust_interval_ms <= 0:
            warnings.append("Regulation intervals must be positive")
        if reg.band[0] > reg.band[1]:
            warnings.append("Population band is inverted")
        if reg.tolerance < 0:
            warnings.append("Count tolerance cannot be negative")

        fleet = config.fleet
        if fleet.update_interval_ms <= 0 or fleet.speed <= 0:
            warnings.append("Fleet update interval and speed must be positive")
        if fleet.vehicles_per_direction < 1:
            warnings.append("Fleet needs at least one vehicle per direction")
        if fleet.capacity < 1:
            warnings.append("Vehicle capacity must be at least 1")

        for site_id, profile in config.sites.items():
            if profile.base_population < 1:
                warnings.append(f"[{site_id}] Base population must be at least 1")
            if profile.min_waiting > profile.base_population:
                warnings.append(f"[{site_id}] Waiting floor exceeds base population")
            if profile.base_speed <= 0 or profile.boarding_speed <= 0:
                warnings.append(f"[{site_id}] Speeds must be positive")
            bounds = profile.bounds
            if bounds['min_x'] > bounds['max_x'] or bounds['min_y'] > bounds['max_y']:
                warnings.append(f"[{site_id}] Bounds are inverted")
            if sum(profile.distribution.values()) > 1.0 + 1e-9:
                warnings.append(f"[{site_id}] Distribution ratios add up to more than 1")
            if profile.active_gate_exit_side not in ('top', 'bottom'):
                warnings.append(f"[{site_id}] Exit side must be 'top' or 'bottom'")
            if profile.heatmap.grid_size < 1:
                warnings.append(f"[{site_id}] Heatmap grid size must be at least 1")

        return warnings

    @staticmethod
    def print_config_summary(config: SimulationConfig):
        """Print a readable summary of the configuration"""
        print("\n" + "=" * 70)
        print(" SIMULATION CONFIGURATION ".center(70))
        print("=" * 70)

        print(f"\n🚶 MOVEMENT SETTINGS:")
        print(f"   Frame interval: {config.movement.frame_interval_ms:.0f}ms")
        print(f"   Arrival epsilon: {config.movement.arrival_epsilon:.1f}")
        print(f"   Corridor -> gate: {config.movement.corridor_to_gate_probability*100:.0f}%")

        print(f"\n👥 REGULATION SETTINGS:")
        reg = config.regulation
        print(f"   Target update: every {reg.target_update_interval_ms/1000:.1f}s")
        print(f"   Count adjust: every {reg.count_adjust_interval_ms/1000:.1f}s")
        print(f"   Band: {reg.band[0]*100:.0f}% - {reg.band[1]*100:.0f}% of base")

        print(f"\n🚝 APM FLEET:")
        fleet = config.fleet
        print(f"   Vehicles: {fleet.vehicles_per_direction} per direction, capacity {fleet.capacity}")
        print(f"   Update: every {fleet.update_interval_ms/1000:.1f}s at {fleet.speed}% of the loop")

        print(f"\n🏢 SITES:")
        for site_id, profile in config.sites.items():
            print(f"   {site_id}: {profile.base_population} people, "
                  f"waiting floor {profile.min_waiting}, active gate {profile.active_gate_id}")

        print(f"\n⏱️  Random seed: {config.random_seed}")
        print("=" * 70 + "\n")
