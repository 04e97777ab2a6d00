"""
Periodic maintenance jobs.

A maintainer runs one cycle at a time and reports a success factor in
[0, 1] for health monitoring. Failures of the shared preconditions of a
cycle abort it and report 0.0; the next scheduled run is the retry.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .interfaces import Clock, JobControlStore


logger = logging.getLogger(__name__)


def as_success_factor(attempts: int, failures: int) -> float:
    """Fraction of attempts that succeeded; 1.0 when nothing was attempted."""
    if attempts == 0:
        return 1.0
    return 1.0 - failures / attempts


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobControl:
    """Activates and deactivates maintenance jobs by name."""

    def __init__(self, store: JobControlStore):
        self.store = store
        self._jobs: List[str] = []

    def register(self, name: str):
        if name not in self._jobs:
            self._jobs.append(name)

    @property
    def jobs(self) -> List[str]:
        return list(self._jobs)

    def is_active(self, name: str) -> bool:
        return name not in self.store.read_inactive_jobs()

    def set_active(self, name: str, active: bool):
        inactive = set(self.store.read_inactive_jobs())
        if active:
            inactive.discard(name)
        else:
            inactive.add(name)
        self.store.write_inactive_jobs(inactive)
        logger.info("maintenance_job_%s job=%s", "activated" if active else "deactivated", name)


class Maintainer(ABC):
    """
    Base class for maintenance jobs.

    Subclasses implement `maintain()`, which returns the cycle's success
    factor. `run()` guards it: deactivated jobs are skipped, and any error
    escaping `maintain()` is logged and reported as 0.0.
    """

    def __init__(
        self,
        interval: timedelta,
        job_control: Optional[JobControl] = None,
        clock: Clock = utc_now,
        name: Optional[str] = None
    ):
        if interval <= timedelta(0):
            raise ValueError(f"Maintenance interval must be positive, got {interval}")
        self.interval = interval
        self.job_control = job_control
        self.clock = clock
        self.name = name or type(self).__name__
        self.last_success_factor: Optional[float] = None
        self._lock = threading.Lock()
        if job_control is not None:
            job_control.register(self.name)

    @abstractmethod
    def maintain(self) -> float:
        ...

    def run(self) -> float:
        with self._lock:
            if self.job_control is not None and not self.job_control.is_active(self.name):
                logger.debug("maintenance_skipped job=%s reason=inactive", self.name)
                return 1.0
            try:
                factor = self.maintain()
            except Exception:
                logger.error("maintenance_failed job=%s retry_in=%s", self.name, self.interval, exc_info=True)
                factor = 0.0
            self.last_success_factor = factor
            return factor


class MaintenanceDriver:
    """
    Runs maintainers on their own intervals.

    `tick()` runs every maintainer that is due; `start()` calls it from a
    background thread until `close()`.
    """

    def __init__(self, maintainers: List[Maintainer], clock: Clock = utc_now, poll_interval: float = 1.0):
        self.maintainers = list(maintainers)
        self.clock = clock
        self.poll_interval = poll_interval
        self._next_run: Dict[str, datetime] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> Dict[str, float]:
        """Run due maintainers; returns their success factors by name."""
        now = self.clock()
        factors = {}
        for maintainer in self.maintainers:
            due = self._next_run.get(maintainer.name, now)
            if now < due:
                continue
            factors[maintainer.name] = maintainer.run()
            self._next_run[maintainer.name] = now + maintainer.interval
        return factors

    def start(self):
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="fleetops-maintenance", daemon=True)
        self._thread.start()

    def _loop(self):
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.poll_interval)

    def close(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
