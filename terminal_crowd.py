"""
Crowd Agents for the Terminal Simulation
Agent model, initial population generator and per-frame movement step
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from terminal_config import (MovementConfig, SimulationConfig, SiteProfile,
                             WaitTimeConfig)
from terminal_floorplan import (LAYOUTS, Bounds, Zone, ZoneType, clamp_to_zone,
                                get_floor_plan,
                                random_position_in_zone, walkable_zones,
                                zones_of_type)

logger = logging.getLogger(__name__)


# ==================== AGENT MODEL ====================
class AgentStatus(str, Enum):
    """Behavioural state of a simulated person"""
    WAITING = 'waiting'
    MOVING = 'moving'
    BOARDING = 'boarding'


@dataclass(frozen=True)
class Agent:
    """
    A simulated person.

    Agents are immutable snapshots: every update returns a new Agent via
    ``dataclasses.replace`` so a published list can be handed to renderers
    without copying.
    """
    id: str
    x: float
    y: float
    target_x: float
    target_y: float
    status: AgentStatus
    zone_id: str
    vx: float = 0.0
    vy: float = 0.0
    wait_time: float = 0.0  # ms left before the agent re-evaluates

    @property
    def position(self) -> Tuple[float, float]:
        return self.x, self.y

    def distance_to_target(self) -> float:
        return math.hypot(self.target_x - self.x, self.target_y - self.y)

    def to_dict(self) -> Dict:
        """Plain dict for renderers"""
        return {
            'id': self.id,
            'x': self.x,
            'y': self.y,
            'vx': self.vx,
            'vy': self.vy,
            'targetX': self.target_x,
            'targetY': self.target_y,
            'status': self.status.value,
            'zone': self.zone_id,
            'waitTime': self.wait_time,
        }


# ==================== SITE CONTEXT ====================
class SiteContext:
    """Everything the generator and the movement step need to know about one site"""

    def __init__(self, zones: List[Zone], profile: SiteProfile,
                 movement: MovementConfig = None, wait_times: WaitTimeConfig = None):
        """
        Initialize a site context.

        Args:
            zones: Floor plan of the site
            profile: Distribution and behaviour rules
            movement: Movement settings (defaults if None)
            wait_times: Wait-time ranges (defaults if None)
        """
        self.zones = list(zones)
        self.profile = profile
        self.movement = movement if movement is not None else MovementConfig()
        self.wait_times = wait_times if wait_times is not None else WaitTimeConfig()
        self.bounds: Bounds = profile.global_bounds

        self._zone_index = {zone.id: zone for zone in self.zones}
        self.active_gate = self.zone(profile.active_gate_id)
        self.corridor = self.zone(profile.corridor_zone_id)
        self.entry_zone = self.zone(profile.entry_zone_id)
        self.gates = zones_of_type(self.zones, ZoneType.GATE)
        self.platforms = zones_of_type(self.zones, ZoneType.PLATFORM)
        self.walkable = walkable_zones(self.zones)
        self.amenity_ids = set(profile.amenity_clusters)

    @classmethod
    def for_site(cls, site_id: str, config: SimulationConfig = None) -> 'SiteContext':
        """Build the context for a site id from a simulation config"""
        config = config if config is not None else SimulationConfig()
        profile = config.get_site_profile(site_id)
        if profile.layout in LAYOUTS:
            zones = LAYOUTS[profile.layout]()
        else:
            zones = get_floor_plan(site_id)
        return cls(zones, profile, config.movement, config.wait_times)

    def zone(self, zone_id: Optional[str]) -> Optional[Zone]:
        if zone_id is None:
            return None
        return self._zone_index.get(zone_id)

    def padding_for(self, zone: Zone) -> float:
        if zone.zone_type == ZoneType.GATE:
            return self.movement.gate_padding
        return self.movement.zone_padding

    def is_active_gate(self, zone_id: str) -> bool:
        return self.active_gate is not None and zone_id == self.active_gate.id

    def other_gates(self) -> List[Zone]:
        return [g for g in self.gates if not self.is_active_gate(g.id)]

    def draw_wait(self, status: str, rng: np.random.RandomState, scale: float = 1.0) -> float:
        """Random wait time (ms) from the range configured for ``status``"""
        low, high = getattr(self.wait_times, status)
        return rng.uniform(low, high) * scale


# ==================== POPULATION GENERATOR ====================
class PopulationBuilder:
    """Accumulates agents for the initial population without exceeding the cap"""

    def __init__(self, context: SiteContext, total: int, rng: np.random.RandomState):
        self.context = context
        self.total = total
        self.rng = rng
        self.agents: List[Agent] = []

    @property
    def full(self) -> bool:
        return len(self.agents) >= self.total

    @property
    def remaining(self) -> int:
        return max(0, self.total - len(self.agents))

    def waiting_count(self) -> int:
        return sum(1 for a in self.agents if a.status == AgentStatus.WAITING)

    def add(self, zone: Zone, status: AgentStatus, position: Tuple[float, float],
            wait_scale: float = 1.0, padding: float = None) -> Optional[Agent]:
        """
        Add one agent at ``position`` inside ``zone``.

        Moving agents get a second random interior point as their target,
        everyone else starts stationary.
        """
        if self.full:
            return None

        ctx = self.context
        padding = ctx.padding_for(zone) if padding is None else padding
        x, y = ctx.bounds.clamp(*clamp_to_zone(position[0], position[1], zone, padding))
        if status == AgentStatus.MOVING:
            tx, ty = ctx.bounds.clamp(*random_position_in_zone(zone, padding, self.rng))
        else:
            tx, ty = x, y

        agent = Agent(
            id=f'person-{len(self.agents)}',
            x=x, y=y,
            target_x=tx, target_y=ty,
            status=status,
            zone_id=zone.id,
            wait_time=ctx.draw_wait(status.value, self.rng, wait_scale),
        )
        self.agents.append(agent)
        return agent

    def add_random(self, zone: Zone, status: AgentStatus, count: int,
                   wait_scale: float = 1.0) -> int:
        """Add ``count`` agents at uniform interior points of ``zone``"""
        padding = self.context.padding_for(zone)
        added = 0
        for _ in range(count):
            position = random_position_in_zone(zone, padding, self.rng)
            if self.add(zone, status, position, wait_scale) is None:
                break
            added += 1
        return added


def _place_active_gate_cluster(builder: PopulationBuilder):
    """Large cluster at the active boarding gate, split across sub-states"""
    ctx = builder.context
    profile = ctx.profile
    gate = ctx.active_gate
    if gate is None:
        logger.debug("Active gate %r not on the %s floor plan, skipping its cluster",
                     profile.active_gate_id, profile.site_id)
        return

    cx, cy = gate.center
    index = 0
    for status_name, count in profile.active_gate_split.items():
        status = AgentStatus(status_name)
        for _ in range(count):
            if profile.active_gate_layout == 'ring':
                angle = builder.rng.rand() * 2 * np.pi
                radius = 15 + (index % 3) * 8
                position = (cx + np.cos(angle) * radius, cy + np.sin(angle) * radius)
            else:
                position = (cx + builder.rng.uniform(-17.5, 17.5),
                            cy + builder.rng.uniform(-12.5, 12.5))
            builder.add(gate, status, position, padding=ctx.movement.gate_padding)
            index += 1


def _place_amenity_clusters(builder: PopulationBuilder):
    """Small stationary rings of people around amenity zone centres"""
    ctx = builder.context
    for zone_id, count in ctx.profile.amenity_clusters.items():
        zone = ctx.zone(zone_id)
        if zone is None:
            logger.debug("Amenity zone %r missing, skipping cluster", zone_id)
            continue

        cx, cy = zone.center
        for _ in range(count):
            angle = builder.rng.rand() * 2 * np.pi
            radius = 20 + builder.rng.rand() * 15
            position = (cx + np.cos(angle) * radius, cy + np.sin(angle) * radius)
            builder.add(zone, AgentStatus.WAITING, position, wait_scale=2.0,
                        padding=ctx.movement.cluster_padding)


def _place_by_ratio(builder: PopulationBuilder):
    """Spread the population left after clustering across zone categories"""
    ctx = builder.context
    profile = ctx.profile
    budget = builder.remaining

    for category, ratio in profile.distribution.items():
        count = int(budget * ratio)
        if count <= 0:
            continue

        if category == 'security':
            if ctx.entry_zone is None:
                logger.debug("No entry zone on %s, skipping security share", profile.site_id)
                continue
            builder.add_random(ctx.entry_zone, AgentStatus.WAITING, count)

        elif category == 'corridor':
            if ctx.corridor is None:
                logger.debug("No corridor on %s, skipping corridor share", profile.site_id)
                continue
            moving = int(round(count * profile.corridor_moving_share))
            builder.add_random(ctx.corridor, AgentStatus.MOVING, moving)
            builder.add_random(ctx.corridor, AgentStatus.WAITING, count - moving, wait_scale=2.0)

        elif category == 'gates':
            gates = ctx.other_gates()
            if not gates:
                continue
            per_gate = count / len(gates)
            for gate in gates:
                if gate.id in profile.busy_gate_ids:
                    multiplier = profile.busy_gate_multiplier
                elif profile.busy_gate_ids:
                    multiplier = profile.quiet_gate_multiplier
                else:
                    multiplier = 1.0
                builder.add_random(gate, AgentStatus.WAITING, int(round(per_gate * multiplier)))

        elif category == 'waiting':
            areas = [z for z in zones_of_type(ctx.zones, ZoneType.WAITING)
                     if z.id not in ctx.amenity_ids]
            if not areas:
                continue
            share, extra = divmod(count, len(areas))
            for i, area in enumerate(areas):
                builder.add_random(area, AgentStatus.WAITING, share + (1 if i < extra else 0))

        elif category == 'platform':
            if not ctx.platforms:
                continue
            for _ in range(count):
                platform = ctx.platforms[builder.rng.randint(len(ctx.platforms))]
                builder.add_random(platform, AgentStatus.BOARDING, 1)

        else:
            logger.debug("Unknown distribution category %r ignored", category)


def _top_up(builder: PopulationBuilder):
    """Guarantee the waiting floor, then fill the population up to its total"""
    ctx = builder.context
    eligible = [z for z in ctx.walkable
                if z.zone_type != ZoneType.SERVICE and not ctx.is_active_gate(z.id)]
    if not eligible:
        eligible = ctx.walkable or ctx.zones
    if not eligible:
        return

    def pick() -> Zone:
        return eligible[builder.rng.randint(len(eligible))]

    waiting = builder.waiting_count()
    while waiting < ctx.profile.min_waiting and not builder.full:
        builder.add_random(pick(), AgentStatus.WAITING, 1)
        waiting += 1

    while not builder.full:
        if waiting < ctx.profile.min_waiting or builder.rng.rand() < 0.5:
            builder.add_random(pick(), AgentStatus.WAITING, 1)
            waiting += 1
        else:
            builder.add_random(pick(), AgentStatus.MOVING, 1)


def generate_population(context: SiteContext, rng: np.random.RandomState,
                        total: int = None) -> List[Agent]:
    """
    Create the initial agent list for a site.

    Explicit clusters are placed first, the rest of the population is
    spread by category ratios and finally topped up so that the waiting
    floor is met and the count reaches ``total``.

    Args:
        context: Site context (zones and rules)
        rng: Random source
        total: Population size (site base population if None)

    Returns:
        List of agents, never longer than ``total``
    """
    total = context.profile.base_population if total is None else total
    builder = PopulationBuilder(context, max(0, int(total)), rng)
    if not context.zones:
        return builder.agents

    _place_active_gate_cluster(builder)
    _place_amenity_clusters(builder)
    _place_by_ratio(builder)
    _top_up(builder)

    logger.debug("Generated %d agents for %s (%d waiting)",
                 len(builder.agents), context.profile.site_id, builder.waiting_count())
    return builder.agents


# ==================== TRANSITION POLICY ====================
def _retarget(agent: Agent, context: SiteContext, target: Tuple[float, float],
              status: AgentStatus, wait_time: float, zone: Optional[Zone] = None,
              clamp_zone: bool = True) -> Agent:
    """New target for an arrived agent, clamped to its owning zone and the bounds"""
    zone_id = zone.id if zone is not None else agent.zone_id
    owner = zone if zone is not None else context.zone(agent.zone_id)
    tx, ty = target
    if owner is not None and clamp_zone:
        tx, ty = clamp_to_zone(tx, ty, owner, context.padding_for(owner))
    tx, ty = context.bounds.clamp(tx, ty)
    return replace(agent, target_x=tx, target_y=ty, status=status,
                   zone_id=zone_id, wait_time=wait_time)


def _active_gate_policy(agent: Agent, gate: Zone, context: SiteContext,
                        rng: np.random.RandomState) -> Agent:
    """Three-way sub-machine for the active boarding gate"""
    cx, cy = gate.center
    if context.profile.active_gate_exit_side == 'top':
        edge, outward = gate.y, -1.0
    else:
        edge, outward = gate.y + gate.height, 1.0

    if agent.status == AgentStatus.BOARDING:
        beyond = (agent.y - edge) * outward
        if beyond < 10:
            # Queue towards the exit edge and just past it
            target = (cx + rng.uniform(-10, 10), edge + 25 * outward)
            wait = context.draw_wait('boarding', rng)
        else:
            # Past the exit threshold: park until removed
            target = (agent.x, edge + 40 * outward)
            wait = context.movement.exit_staging_wait_ms
        return _retarget(agent, context, target, AgentStatus.BOARDING, wait,
                         clamp_zone=False)

    if agent.status == AgentStatus.MOVING:
        target = (cx + rng.uniform(-15, 15), cy + rng.uniform(-10, 10))
        target = clamp_to_zone(target[0], target[1], gate, context.movement.cluster_padding)
        status = AgentStatus.BOARDING if rng.rand() < 0.5 else AgentStatus.MOVING
        return _retarget(agent, context, target, status, context.draw_wait('moving', rng))

    target = (cx + rng.uniform(-17.5, 17.5), cy + rng.uniform(-12.5, 12.5))
    status = AgentStatus.WAITING
    if rng.rand() < 0.35:
        status = AgentStatus.MOVING if rng.rand() < 0.6 else AgentStatus.BOARDING
    return _retarget(agent, context, target, status, context.draw_wait('waiting', rng))


def _wander(agent: Agent, zone: Zone, context: SiteContext,
            rng: np.random.RandomState) -> Agent:
    target = random_position_in_zone(zone, context.padding_for(zone), rng)
    return _retarget(agent, context, target, AgentStatus.WAITING,
                     context.draw_wait('waiting', rng), zone)


def transition(agent: Agent, context: SiteContext, rng: np.random.RandomState) -> Agent:
    """
    Choose the next target and status for an agent that reached its target.

    Pure: the result only depends on the agent, the site context and the
    values drawn from ``rng``.
    """
    movement = context.movement
    zone = context.zone(agent.zone_id)

    if zone is None:
        logger.debug("Zone %r not found for %s, clamping to global bounds",
                     agent.zone_id, agent.id)
        target = (agent.x + rng.uniform(-20, 20), agent.y + rng.uniform(-20, 20))
        return _retarget(agent, context, target, AgentStatus.WAITING,
                         context.draw_wait('waiting', rng))

    if context.is_active_gate(zone.id):
        return _active_gate_policy(agent, zone, context, rng)

    corridor = context.corridor
    if (context.entry_zone is not None and zone.id == context.entry_zone.id
            and corridor is not None and corridor.id != zone.id):
        target = random_position_in_zone(corridor, movement.zone_padding, rng)
        return _retarget(agent, context, target, AgentStatus.MOVING,
                         context.draw_wait('moving', rng), corridor)

    if corridor is not None and zone.id == corridor.id:
        if rng.rand() < movement.corridor_to_gate_probability and context.gates:
            gate = None
            if context.active_gate is not None and rng.rand() < movement.active_gate_visit_probability:
                gate = context.active_gate
            else:
                others = context.other_gates()
                if others:
                    gate = others[rng.randint(len(others))]
            if gate is not None:
                target = random_position_in_zone(gate, movement.gate_padding, rng)
                return _retarget(agent, context, target, AgentStatus.MOVING,
                                 context.draw_wait('moving', rng), gate)
        return _wander(agent, corridor, context, rng)

    if zone.id in context.amenity_ids:
        cx, cy = zone.center
        if rng.rand() < movement.amenity_move_probability:
            angle = rng.rand() * 2 * np.pi
            radius = rng.uniform(movement.amenity_radius_min, movement.amenity_radius_max)
            target = (cx + np.cos(angle) * radius, cy + np.sin(angle) * radius)
        else:
            target = (agent.x, agent.y)
        return _retarget(agent, context, target, AgentStatus.WAITING,
                         context.draw_wait('waiting', rng, 3.0))

    if zone.zone_type == ZoneType.GATE:
        profile = context.profile
        roll = rng.rand()
        if context.platforms and roll < profile.gate_to_platform_probability:
            platform = context.platforms[rng.randint(len(context.platforms))]
            target = random_position_in_zone(platform, movement.zone_padding, rng)
            return _retarget(agent, context, target, AgentStatus.BOARDING,
                             context.draw_wait('boarding', rng), platform)
        if corridor is not None and roll < profile.gate_to_corridor_probability:
            target = random_position_in_zone(corridor, movement.zone_padding, rng)
            return _retarget(agent, context, target, AgentStatus.MOVING,
                             context.draw_wait('moving', rng), corridor)

    return _wander(agent, zone, context, rng)


# ==================== MOVEMENT STEP ====================
def _nudge_to_walkable(agent: Agent, context: SiteContext) -> Agent:
    """Pull an agent that strayed far from walkable space back toward it"""
    movement = context.movement
    zones = context.walkable
    if not zones:
        return agent
    if any(z.contains(agent.x, agent.y, movement.walkable_margin) for z in zones):
        return agent

    nearest = min(zones, key=lambda z: math.hypot(agent.x - z.center[0], agent.y - z.center[1]))
    cx, cy = nearest.center
    if math.hypot(cx - agent.x, cy - agent.y) <= movement.walkable_snap_distance:
        return agent

    fraction = movement.walkable_nudge_fraction
    x, y = context.bounds.clamp(agent.x + (cx - agent.x) * fraction,
                                agent.y + (cy - agent.y) * fraction)
    tx, ty = context.bounds.clamp(cx, cy)
    return replace(agent, x=x, y=y, target_x=tx, target_y=ty, zone_id=nearest.id)


def step_agent(agent: Agent, context: SiteContext, rng: np.random.RandomState) -> Agent:
    """Advance one agent by a single frame"""
    movement = context.movement
    profile = context.profile

    if agent.wait_time > 0:
        return replace(agent, vx=0.0, vy=0.0,
                       wait_time=max(0.0, agent.wait_time - movement.frame_interval_ms))

    distance = agent.distance_to_target()
    if distance > movement.arrival_epsilon:
        if agent.status == AgentStatus.BOARDING and context.is_active_gate(agent.zone_id):
            speed = profile.boarding_speed
        else:
            speed = profile.base_speed
        step = min(speed, distance)
        vx = (agent.target_x - agent.x) / distance * step
        vy = (agent.target_y - agent.y) / distance * step
        x, y = context.bounds.clamp(agent.x + vx, agent.y + vy)
        status = AgentStatus.BOARDING if agent.status == AgentStatus.BOARDING else AgentStatus.MOVING
        updated = replace(agent, x=x, y=y, vx=vx, vy=vy, status=status)
    else:
        arrived = replace(agent, x=agent.target_x, y=agent.target_y, vx=0.0, vy=0.0)
        updated = transition(arrived, context, rng)

    x, y = context.bounds.clamp(updated.x, updated.y)
    if (x, y) != (updated.x, updated.y):
        updated = replace(updated, x=x, y=y)

    # Active-gate boarders leave walkable space through the exit edge
    exiting = (updated.status == AgentStatus.BOARDING
               and context.is_active_gate(updated.zone_id))
    if profile.strict_walkable and not exiting:
        updated = _nudge_to_walkable(updated, context)
    return updated


def update_agents(agents: List[Agent], context: SiteContext,
                  rng: np.random.RandomState) -> List[Agent]:
    """One animation frame for the whole population; returns a new list"""
    return [step_agent(agent, context, rng) for agent in agents]


def count_by_status(agents: List[Agent]) -> Dict[str, int]:
    counts = {status.value: 0 for status in AgentStatus}
    for agent in agents:
        counts[agent.status.value] += 1
    return counts


def count_by_zone(agents: List[Agent]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for agent in agents:
        counts[agent.zone_id] = counts.get(agent.zone_id, 0) + 1
    return counts
