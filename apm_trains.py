"""
APM Vehicle Position Simulator
Keeps a two-direction fleet evenly spaced on a cyclic 0-100 loop and
derives segment, station, next stop, ETA and KPI values from it
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from sim_scheduler import Scheduler
from terminal_config import FleetConfig

logger = logging.getLogger(__name__)

LOOP_LENGTH = 100.0


# ==================== TRACK ====================
class Direction(str, Enum):
    CLOCKWISE = 'Outbound'
    COUNTER_CLOCKWISE = 'Inbound'


class VehicleStatus(str, Enum):
    ON_TIME = 'On Time'
    DELAYED = 'Delayed'


@dataclass(frozen=True)
class Station:
    id: str
    name: str
    position: float


@dataclass(frozen=True)
class Segment:
    id: str
    name: str
    start_station: str
    end_station: str
    start_position: float
    end_position: float

    def contains(self, position: float) -> bool:
        p = normalize(position)
        if self.start_position <= self.end_position:
            return self.start_position <= p <= self.end_position
        # Wraps through 100 -> 0
        return p >= self.start_position or p <= self.end_position


STATIONS: List[Station] = [
    Station('TBI', 'TBI', 5.0),
    Station('T3', 'T3', 14.0),
    Station('T2', 'T2', 23.0),
    Station('T1', 'T1', 32.0),
    Station('PARK', 'Parking', 45.0),
    Station('T9', 'T9', 54.0),
    Station('T8', 'T8', 62.0),
    Station('T7', 'T7', 70.0),
    Station('T6', 'T6', 77.0),
    Station('T5', 'T5', 85.0),
    Station('T4', 'T4', 96.91),
]

# Camera-feed baseline of people waiting per station
STATION_BASE_WAITING: Dict[str, int] = {
    'T1': 45, 'T2': 62, 'T3': 38, 'T4': 55, 'TBI': 35, 'T5': 48,
    'T6': 52, 'T7': 41, 'T8': 44, 'T9': 50, 'PARK': 28,
}


def build_segments(stations: List[Station]) -> List[Segment]:
    """One segment between each pair of consecutive stations, closing the loop"""
    ordered = sorted(stations, key=lambda s: normalize(s.position))
    segments = []
    for i, start in enumerate(ordered):
        end = ordered[(i + 1) % len(ordered)]
        segments.append(Segment(
            id=f'S{i + 1}',
            name=f'{start.id}-{end.id}',
            start_station=start.id,
            end_station=end.id,
            start_position=normalize(start.position),
            end_position=normalize(end.position),
        ))
    return segments


def normalize(position: float) -> float:
    """Map any position onto [0, 100)"""
    p = position % LOOP_LENGTH
    return 0.0 if p == LOOP_LENGTH else p


SEGMENTS: List[Segment] = build_segments(STATIONS)


def cyclic_distance(p: float, q: float) -> float:
    """Shortest distance between two loop positions: min(|p-q|, 100-|p-q|)"""
    diff = abs(normalize(p) - normalize(q))
    return min(diff, LOOP_LENGTH - diff)


def signed_offset(p: float, q: float) -> float:
    """Offset from q to p in (-50, 50]"""
    diff = normalize(p) - normalize(q)
    if diff > LOOP_LENGTH / 2:
        diff -= LOOP_LENGTH
    elif diff <= -LOOP_LENGTH / 2:
        diff += LOOP_LENGTH
    return diff


def distance_ahead(position: float, target: float, direction: Direction) -> float:
    """Distance travelled from position to target in the direction of travel"""
    if direction == Direction.CLOCKWISE:
        return normalize(target - position)
    return normalize(position - target)


def segment_for_position(position: float, segments: List[Segment] = None) -> Segment:
    segments = segments if segments is not None else SEGMENTS
    for segment in segments:
        if segment.contains(position):
            return segment
    return segments[0]


def station_at_position(position: float, tolerance: float = 5.0,
                        stations: List[Station] = None) -> Optional[Station]:
    """Nearest station strictly within ``tolerance`` of the position"""
    stations = stations if stations is not None else STATIONS
    nearest = min(stations, key=lambda s: cyclic_distance(position, s.position))
    if cyclic_distance(position, nearest.position) < tolerance:
        return nearest
    return None


def next_stop(position: float, direction: Direction,
              stations: List[Station] = None) -> Station:
    """Nearest station ahead in the direction of travel"""
    stations = stations if stations is not None else STATIONS
    ahead = [(distance_ahead(position, s.position, direction), s) for s in stations]
    ahead = [(d, s) for d, s in ahead if d > 1e-9] or ahead
    return min(ahead, key=lambda item: item[0])[1]


# ==================== VEHICLES ====================
@dataclass(frozen=True)
class Vehicle:
    """A vehicle on the loop with its derived fields"""
    id: str
    position: float
    direction: Direction
    passengers: int
    capacity: int
    status: VehicleStatus
    segment_id: str = ''
    station_id: Optional[str] = None
    next_stop: str = ''
    eta: int = 1  # updates until the next stop

    @property
    def load_percentage(self) -> float:
        return load_percentage(self)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'currentPosition': self.position,
            'currentSegment': self.segment_id,
            'currentStation': self.station_id,
            'passengers': self.passengers,
            'capacity': self.capacity,
            'direction': self.direction.value,
            'status': self.status.value,
            'nextStop': self.next_stop,
            'etaToNextStop': self.eta,
        }


def with_derived_fields(vehicle: Vehicle, fleet: FleetConfig) -> Vehicle:
    """Recompute segment, station, next stop and ETA from the position"""
    stop = next_stop(vehicle.position, vehicle.direction)
    distance = distance_ahead(vehicle.position, stop.position, vehicle.direction)
    station = station_at_position(vehicle.position, fleet.station_tolerance)
    return replace(
        vehicle,
        segment_id=segment_for_position(vehicle.position).id,
        station_id=station.id if station is not None else None,
        next_stop=stop.name,
        eta=max(1, int(math.floor(distance / fleet.speed))),
    )


def generate_initial_vehicles(rng: np.random.RandomState,
                              fleet: FleetConfig = None) -> List[Vehicle]:
    """Evenly spaced fleet: the first half clockwise, the second half counter-clockwise"""
    fleet = fleet if fleet is not None else FleetConfig()
    n = fleet.vehicles_per_direction
    spacing = LOOP_LENGTH / n
    vehicles = []
    number = 1
    for direction in (Direction.CLOCKWISE, Direction.COUNTER_CLOCKWISE):
        for i in range(n):
            delayed = rng.rand() < fleet.delayed_probability
            vehicle = Vehicle(
                id=f'TRAIN-{number:03d}',
                position=normalize(i * spacing),
                direction=direction,
                passengers=int(rng.randint(0, fleet.capacity)),
                capacity=fleet.capacity,
                status=VehicleStatus.DELAYED if delayed else VehicleStatus.ON_TIME,
            )
            vehicles.append(with_derived_fields(vehicle, fleet))
            number += 1
    return vehicles


def _step_direction(group: List[Vehicle], direction: Direction, fleet: FleetConfig,
                    rng: np.random.RandomState) -> List[Vehicle]:
    """Advance, re-space and refresh one direction's vehicles"""
    sign = 1.0 if direction == Direction.CLOCKWISE else -1.0
    # Direction order: ascending positions clockwise, descending counter-clockwise
    ordered = sorted(group, key=lambda v: sign * normalize(v.position))
    n = len(ordered)
    if n == 0:
        return []

    ideal = LOOP_LENGTH / n
    min_gap = ideal * fleet.min_gap_ratio
    anchor = normalize(ordered[0].position + sign * fleet.speed)

    updated = []
    for index, vehicle in enumerate(ordered):
        position = normalize(vehicle.position + sign * fleet.speed)

        # Pull toward the equidistant slot behind the lead vehicle
        slot = normalize(anchor + sign * index * ideal)
        drift = signed_offset(position, slot)
        if abs(drift) > ideal / 2:
            step = fleet.speed * fleet.drift_correction
            position = normalize(position - step if drift > 0 else position + step)

        # Minimum gap to the neighbours in direction order (no wrap pairing)
        if n > 1:
            if index > 0:
                previous = normalize(ordered[index - 1].position)
                if distance_ahead(previous, position, direction) < min_gap:
                    position = normalize(previous + sign * min_gap)
            if index < n - 1:
                following = normalize(ordered[index + 1].position)
                if distance_ahead(position, following, direction) < min_gap:
                    position = normalize(following - sign * min_gap)

        change = int(rng.randint(-fleet.passenger_change, fleet.passenger_change))
        passengers = max(0, min(vehicle.capacity, vehicle.passengers + change))

        status = vehicle.status
        if rng.rand() < fleet.status_flip_probability:
            delayed = rng.rand() < fleet.delayed_probability
            status = VehicleStatus.DELAYED if delayed else VehicleStatus.ON_TIME

        moved = replace(vehicle, position=position, passengers=passengers, status=status)
        updated.append(with_derived_fields(moved, fleet))
    return updated


def update_vehicles(vehicles: List[Vehicle], rng: np.random.RandomState,
                    fleet: FleetConfig = None) -> List[Vehicle]:
    """
    One update tick for the whole fleet.

    Args:
        vehicles: Current vehicles (not modified)
        rng: Random source
        fleet: Fleet settings (defaults if None)

    Returns:
        New vehicle list, clockwise vehicles first
    """
    fleet = fleet if fleet is not None else FleetConfig()
    result = []
    for direction in (Direction.CLOCKWISE, Direction.COUNTER_CLOCKWISE):
        group = [v for v in vehicles if v.direction == direction]
        result.extend(_step_direction(group, direction, fleet, rng))
    return result


# ==================== KPIs ====================
def load_percentage(vehicle: Vehicle) -> float:
    """Passengers on board as a percentage of capacity"""
    if vehicle.capacity <= 0:
        return 0.0
    return vehicle.passengers / vehicle.capacity * 100


def load_band(percentage: float) -> str:
    if percentage < 50:
        return 'green'
    if percentage < 80:
        return 'amber'
    return 'red'


def calculate_kpis(vehicles: List[Vehicle]) -> Dict:
    """Headline numbers for the KPI strip"""
    n = len(vehicles)
    on_time = sum(1 for v in vehicles if v.status == VehicleStatus.ON_TIME)
    total_load = sum(load_percentage(v) for v in vehicles)
    return {
        'average_headway': round(60 / n, 1) if n > 1 else 0,
        'vehicles_in_service': n,
        'on_time_performance': round(on_time / n * 100, 1) if n else 0,
        'average_load': round(total_load / n, 1) if n else 0,
    }


@dataclass
class StationWaitingData:
    station_id: str
    waiting_count: int
    last_updated: datetime
    camera_feed_status: str = 'offline'


def station_waiting_data(station_id: str, rng: np.random.RandomState,
                         variation: float = 0.2) -> StationWaitingData:
    """Synthesized waiting count: the station baseline +/- ``variation``"""
    base = STATION_BASE_WAITING.get(station_id, 30)
    factor = 1 + (rng.rand() - 0.5) * 2 * variation
    return StationWaitingData(
        station_id=station_id,
        waiting_count=max(0, int(math.floor(base * factor))),
        last_updated=datetime.now(),
    )


# ==================== FLEET RUNNER ====================
class FleetSimulation:
    """Periodic vehicle updates on the shared scheduler"""

    def __init__(self, fleet: FleetConfig = None, random_seed: int = 42,
                 playing: bool = True, realtime: bool = False):
        self.fleet = fleet if fleet is not None else FleetConfig()
        self.rng = np.random.RandomState(random_seed)
        self.vehicles = generate_initial_vehicles(self.rng, self.fleet)
        self.updates = 0
        self.closed = False

        self.scheduler = Scheduler(realtime=realtime)
        self.scheduler.add_task('vehicles', self.fleet.update_interval_ms, self.tick)
        logger.info("Fleet initialized with %d vehicles", len(self.vehicles))
        if playing:
            self.play()

    def tick(self):
        self.vehicles = update_vehicles(self.vehicles, self.rng, self.fleet)
        self.updates += 1

    @property
    def is_playing(self) -> bool:
        return bool(self.scheduler.running_tasks())

    def play(self):
        if self.closed:
            raise RuntimeError("Fleet simulation is closed")
        self.scheduler.start_all()

    def pause(self):
        if not self.closed:
            self.scheduler.stop_all()

    def advance(self, duration_ms: float):
        if self.closed:
            raise RuntimeError("Fleet simulation is closed")
        self.scheduler.advance(duration_ms)

    def close(self):
        if self.closed:
            return
        self.scheduler.close()
        self.closed = True
        logger.info("Fleet simulation closed after %d updates", self.updates)

    def snapshot(self) -> List[Vehicle]:
        return list(self.vehicles)

    def kpis(self) -> Dict:
        return calculate_kpis(self.vehicles)

    def station_waiting(self) -> List[StationWaitingData]:
        return [station_waiting_data(s.id, self.rng, self.fleet.waiting_variation)
                for s in STATIONS]
