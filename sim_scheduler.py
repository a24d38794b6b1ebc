"""
Periodic task scheduling on a SimPy event loop
Single-threaded: every task runs to completion before the next event fires
"""

import logging
from typing import Callable, Dict, List, Optional

import simpy
import simpy.rt
from simpy.events import Initialize

logger = logging.getLogger(__name__)


class PeriodicTask:
    """A callback fired every ``interval`` time units while started"""

    def __init__(self, env: simpy.Environment, name: str, interval: float,
                 action: Callable[[], None]):
        """
        Initialize a periodic task (not started).

        Args:
            env: Event loop the task runs on
            name: Name used in logs and statistics
            interval: Period in simulation time units
            action: Zero-argument callable run once per period
        """
        if interval <= 0:
            raise ValueError(f"Task interval must be positive, got {interval}")
        self.env = env
        self.name = name
        self.interval = interval
        self.action = action
        self.runs = 0
        self.running = False
        self.process: Optional[simpy.Process] = None
        self._generation = 0

    def start(self):
        """Schedule the first run one interval from now"""
        if self.running:
            return
        self.running = True
        self._generation += 1
        self.process = self.env.process(self._loop(self._generation))

    def stop(self):
        """Cancel the pending run; a later start() begins a fresh period"""
        if not self.running:
            return
        self.running = False
        self._generation += 1
        process, self.process = self.process, None
        # A process that has not started yet, or is stopping itself from
        # inside its own action, exits once it sees the generation moved on.
        if (process is not None and process.is_alive
                and process is not self.env.active_process
                and not isinstance(process.target, Initialize)):
            process.interrupt('stopped')

    def _loop(self, generation: int):
        try:
            while generation == self._generation:
                yield self.env.timeout(self.interval)
                if generation != self._generation:
                    break
                self.runs += 1
                self.action()
        except simpy.Interrupt:
            logger.debug("Task %s interrupted at t=%.0f", self.name, self.env.now)

    def __repr__(self):
        state = 'running' if self.running else 'stopped'
        return f"PeriodicTask('{self.name}', every {self.interval}, {state}, runs={self.runs})"


class Scheduler:
    """
    Owns one event loop and the periodic tasks registered on it.

    Time is in milliseconds. With ``realtime=True`` the loop is paced
    against the wall clock, otherwise it only moves when advanced.
    """

    def __init__(self, realtime: bool = False, factor: float = 0.001):
        if realtime:
            # factor = seconds of wall time per simulated millisecond
            self.env = simpy.rt.RealtimeEnvironment(factor=factor, strict=False)
        else:
            self.env = simpy.Environment()
        self.tasks: Dict[str, PeriodicTask] = {}
        self.closed = False

    @property
    def now(self) -> float:
        return self.env.now

    def add_task(self, name: str, interval: float, action: Callable[[], None]) -> PeriodicTask:
        if self.closed:
            raise RuntimeError("Scheduler is closed")
        task = PeriodicTask(self.env, name, interval, action)
        self.tasks[name] = task
        return task

    def start_all(self):
        if self.closed:
            raise RuntimeError("Scheduler is closed")
        for task in self.tasks.values():
            task.start()

    def stop_all(self):
        for task in self.tasks.values():
            task.stop()

    def running_tasks(self) -> List[str]:
        return [name for name, task in self.tasks.items() if task.running]

    def advance(self, duration: float):
        """
        Run every event due within the next ``duration`` ms, inclusive.

        Args:
            duration: Milliseconds to advance (must not be negative)
        """
        if self.closed:
            raise RuntimeError("Scheduler is closed")
        if duration < 0:
            raise ValueError(f"Cannot advance by a negative duration ({duration})")

        until = self.env.now + duration
        if until > self.env.now:
            self.env.run(until=until)
        # run(until=...) stops before events scheduled exactly at ``until``
        while self.env.peek() <= until:
            self.env.step()

    def close(self):
        """Stop and drop every task; the scheduler cannot be used afterwards"""
        if self.closed:
            return
        self.stop_all()
        # Deliver pending interrupts so no process is left suspended
        while self.env.peek() <= self.env.now:
            self.env.step()
        self.tasks.clear()
        self.closed = True
