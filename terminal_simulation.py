"""
Terminal Crowd Simulation Controller
Owns the agent list and serializes the movement, target and count tasks
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from sim_scheduler import Scheduler
from terminal_config import ConfigManager, SimulationConfig, get_baseline_config
from terminal_crowd import (Agent, SiteContext, count_by_status, count_by_zone,
                            generate_population, update_agents)
from terminal_heatmap import HeatmapCell, generate_heatmap, zone_intensity
from terminal_population import PopulationRegulator

logger = logging.getLogger(__name__)


class TerminalSimulation:
    """
    Live crowd simulation for one terminal.

    Three periodic tasks share the agent list: the per-frame movement step,
    the target oscillator and the count convergence step. They run on one
    event loop, so each task reads the latest published list and publishes
    its result before the next task fires.
    """

    def __init__(self, site_id: str = 'standard', config: SimulationConfig = None,
                 playing: bool = True, realtime: bool = False):
        """
        Initialize the simulation and generate the initial population.

        Args:
            site_id: Site identifier selecting floor plan and rules
            config: Simulation configuration (uses baseline if None)
            playing: Start with the periodic tasks running
            realtime: Pace the event loop against the wall clock
        """
        self.config = config if config is not None else get_baseline_config()
        self.site_id = site_id

        warnings = ConfigManager.validate_config(self.config)
        for w in warnings:
            logger.warning("Configuration: %s", w)

        self.context = SiteContext.for_site(site_id, self.config)
        self.profile = self.context.profile
        self.rng = np.random.RandomState(self.config.random_seed)

        # Simulation state
        self.agents: List[Agent] = []
        self.regulator: Optional[PopulationRegulator] = None
        self.frames = 0
        self.target_updates = 0
        self.count_adjustments = 0
        self.closed = False

        self.scheduler = Scheduler(realtime=realtime)
        regulation = self.config.regulation
        self.scheduler.add_task('movement', self.config.movement.frame_interval_ms,
                                self.tick_movement)
        self.scheduler.add_task('target', regulation.target_update_interval_ms,
                                self.tick_target)
        self.scheduler.add_task('count', regulation.count_adjust_interval_ms,
                                self.tick_count)

        self._populate()
        logger.info("Simulation for %s initialized with %d agents",
                    site_id, len(self.agents))

        if playing:
            self.play()

    def _populate(self):
        self.agents = generate_population(self.context, self.rng)
        self.regulator = PopulationRegulator(self.context, self.config.regulation,
                                             initial_count=len(self.agents))
        self.frames = 0
        self.target_updates = 0
        self.count_adjustments = 0

    def _check_open(self):
        if self.closed:
            raise RuntimeError("Simulation is closed. Create a new TerminalSimulation.")

    # ==================== PERIODIC TASKS ====================
    def tick_movement(self):
        """One animation frame"""
        self.agents = update_agents(self.agents, self.context, self.rng)
        self.frames += 1

    def tick_target(self):
        """One target oscillator step"""
        self.regulator.update_target(self.rng)
        self.target_updates += 1

    def tick_count(self):
        """One count convergence step"""
        self.agents = self.regulator.converge(self.agents, self.rng)
        self.count_adjustments += 1

    # ==================== PLAYBACK ====================
    @property
    def is_playing(self) -> bool:
        return bool(self.scheduler.running_tasks())

    def play(self):
        """Start (or resume) all three periodic tasks"""
        self._check_open()
        if self.is_playing:
            return
        self.scheduler.start_all()
        logger.info("Simulation for %s playing at t=%.0fms", self.site_id, self.scheduler.now)

    def pause(self):
        """Halt movement and population regulation together"""
        if self.closed or not self.is_playing:
            return
        self.scheduler.stop_all()
        logger.info("Simulation for %s paused at t=%.0fms", self.site_id, self.scheduler.now)

    def set_playing(self, playing: bool):
        if playing:
            self.play()
        else:
            self.pause()

    def advance(self, duration_ms: float):
        """
        Advance simulated time, running every task that falls due.

        Args:
            duration_ms: Milliseconds to advance
        """
        self._check_open()
        self.scheduler.advance(duration_ms)

    def restart(self):
        """Generate a fresh population, keeping the playback state"""
        self._check_open()
        playing = self.is_playing
        self.scheduler.stop_all()
        self._populate()
        logger.info("Simulation for %s restarted with %d agents", self.site_id, len(self.agents))
        if playing:
            self.scheduler.start_all()

    def close(self):
        """Cancel every periodic task; the simulation cannot be resumed"""
        if self.closed:
            return
        self.scheduler.close()
        self.closed = True
        logger.info("Simulation for %s closed", self.site_id)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ==================== OUTPUTS ====================
    @property
    def target_count(self) -> int:
        return self.regulator.target_count

    @property
    def current_time(self) -> float:
        return self.scheduler.now

    def snapshot(self) -> List[Agent]:
        """Current agents (immutable records in a fresh list)"""
        return list(self.agents)

    def heatmap(self) -> List[HeatmapCell]:
        """Density grid for the current agents"""
        return generate_heatmap(self.agents, self.context.zones, self.profile.heatmap,
                                strict_walkable=self.profile.strict_walkable)

    def zone_intensities(self) -> Dict[str, float]:
        return {zone.id: zone_intensity(zone, self.agents) for zone in self.context.zones}

    def get_statistics(self) -> Dict:
        """Get current simulation statistics"""
        return {
            'site_id': self.site_id,
            'time_ms': self.scheduler.now,
            'total_people': len(self.agents),
            'target_count': self.regulator.target_count,
            'base_population': self.profile.base_population,
            'status_counts': count_by_status(self.agents),
            'zone_counts': count_by_zone(self.agents),
            'frames': self.frames,
            'target_updates': self.target_updates,
            'count_adjustments': self.count_adjustments,
            'spawned': self.regulator.spawned,
            'removed': self.regulator.removed,
            'playing': False if self.closed else self.is_playing,
        }
