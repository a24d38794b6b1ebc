"""
Population Regulation for the Terminal Crowd Simulation
A slowly oscillating target head count and a gradual spawn/despawn step
that steers the live agent list toward it
"""

import logging
import math
from typing import List, Optional

import numpy as np

from terminal_config import RegulationConfig
from terminal_crowd import Agent, AgentStatus, SiteContext
from terminal_floorplan import Zone, ZoneType, random_position_in_zone, zones_of_type

logger = logging.getLogger(__name__)


# Removal priorities, lowest removed first
EXITED = 0
EXITING = 1
AT_PLATFORM = 2
BOARDING = 3
OTHER = 4


def propose_target(initial_count: int, current_target: int, base_population: int,
                   regulation: RegulationConfig, rng: np.random.RandomState) -> int:
    """
    One tick of the target oscillator.

    The proposal is the initial count shifted up or down by 10-15 %. It is
    only accepted when it differs from the current target by more than the
    minimum relative change, and is then clamped to the allowed band
    around the site's base population.
    """
    if initial_count <= 0 or current_target <= 0:
        return current_target

    low, high = regulation.variation_percent
    variation = int(math.floor(initial_count * rng.uniform(low, high)))
    sign = 1 if rng.rand() > 0.5 else -1
    proposed = initial_count + sign * variation

    change = abs(proposed - current_target) / max(current_target, 1)
    if change <= regulation.min_change_threshold:
        return current_target

    band_low, band_high = regulation.band
    clamped = min(max(proposed, base_population * band_low), base_population * band_high)
    return int(round(clamped))


def convergence_change(current: int, target: int, regulation: RegulationConfig,
                       rng: np.random.RandomState) -> int:
    """
    Signed number of agents to add (positive) or remove (negative) this tick.

    Moves at most 10-15 % of the current size, so the count approaches
    the target over several ticks and lands on it exactly once the gap is
    small enough.
    """
    difference = target - current
    if abs(difference) <= regulation.tolerance:
        return 0

    low, high = regulation.increment_percent
    max_change = max(1, int(math.floor(current * rng.uniform(low, high))))
    return int(np.sign(difference)) * min(abs(difference), max_change)


class PopulationRegulator:
    """
    Keeps the head count of one site drifting around its base population.

    Holds the target count and the spawn counter; the agent list itself is
    owned by the caller and passed in on every call.
    """

    def __init__(self, context: SiteContext, regulation: RegulationConfig = None,
                 initial_count: int = None):
        """
        Initialize the regulator.

        Args:
            context: Site context the agents live in
            regulation: Regulation settings (defaults if None)
            initial_count: Size of the initial population (base population if None)
        """
        self.context = context
        self.regulation = regulation if regulation is not None else RegulationConfig()
        self.base_population = context.profile.base_population
        self.initial_count = self.base_population if initial_count is None else initial_count
        self.target_count = self.initial_count
        self.spawned = 0
        self.removed = 0

    # ---------- target oscillator ----------
    def update_target(self, rng: np.random.RandomState) -> int:
        """Advance the target oscillator and return the (possibly unchanged) target"""
        new_target = propose_target(self.initial_count, self.target_count,
                                    self.base_population, self.regulation, rng)
        if new_target != self.target_count:
            logger.debug("Target count %d -> %d", self.target_count, new_target)
        self.target_count = new_target
        return self.target_count

    # ---------- count convergence ----------
    def converge(self, agents: List[Agent], rng: np.random.RandomState,
                 target: int = None) -> List[Agent]:
        """
        Move the head count one step toward the target.

        Args:
            agents: Current agents (not modified)
            rng: Random source
            target: Override target (current target count if None)

        Returns:
            New agent list
        """
        target = self.target_count if target is None else target
        change = convergence_change(len(agents), target, self.regulation, rng)
        if change > 0:
            return list(agents) + [self.spawn_agent(rng) for _ in range(change)]
        if change < 0:
            return self.remove_agents(agents, -change, rng)
        return list(agents)

    def spawn_zone(self) -> Optional[Zone]:
        """Entry zone, else security, else any waiting zone, else the first zone"""
        ctx = self.context
        for zone in (ctx.entry_zone, ctx.zone('security')):
            if zone is not None:
                return zone
        waiting = zones_of_type(ctx.zones, ZoneType.WAITING)
        if waiting:
            return waiting[0]
        return ctx.zones[0] if ctx.zones else None

    def spawn_agent(self, rng: np.random.RandomState) -> Agent:
        """New waiting agent at the spawn zone with a short initial wait"""
        ctx = self.context
        zone = self.spawn_zone()
        if zone is not None:
            padding = ctx.movement.zone_padding
            x, y = random_position_in_zone(zone, padding, rng)
            zone_id = zone.id
        else:
            bounds = ctx.bounds
            x = rng.uniform(bounds.min_x, bounds.max_x)
            y = rng.uniform(bounds.min_y, bounds.max_y)
            zone_id = ''
        x, y = ctx.bounds.clamp(x, y)

        low, high = self.regulation.spawn_wait_ms
        agent = Agent(
            id=f'new-{self.spawned}',
            x=x, y=y,
            target_x=x, target_y=y,
            status=AgentStatus.WAITING,
            zone_id=zone_id,
            wait_time=rng.uniform(low, high),
        )
        self.spawned += 1
        return agent

    def removal_priority(self, agent: Agent) -> int:
        """Lower values are removed first: people who already left the scene go first"""
        ctx = self.context
        gate = ctx.active_gate
        if gate is not None and agent.zone_id == gate.id:
            if ctx.profile.active_gate_exit_side == 'top':
                beyond = gate.y - agent.y
            else:
                beyond = agent.y - (gate.y + gate.height)
            if beyond > 20:
                return EXITED
            if agent.status == AgentStatus.BOARDING and beyond > 10:
                return EXITING

        zone = ctx.zone(agent.zone_id)
        if zone is not None and zone.zone_type == ZoneType.PLATFORM:
            return AT_PLATFORM
        if agent.status == AgentStatus.BOARDING:
            return BOARDING
        return OTHER

    def remove_agents(self, agents: List[Agent], count: int,
                      rng: np.random.RandomState) -> List[Agent]:
        """Drop ``count`` agents by removal priority; survivors keep their order"""
        if count <= 0:
            return list(agents)
        if count >= len(agents):
            self.removed += len(agents)
            return []

        tiebreak = rng.rand(len(agents))
        order = sorted(range(len(agents)),
                       key=lambda i: (self.removal_priority(agents[i]), tiebreak[i]))
        doomed = set(order[:count])
        self.removed += count
        return [agent for i, agent in enumerate(agents) if i not in doomed]
