"""
In-process implementations of the collaborator interfaces.

These back the fleet simulation and the tests. Each store guards its state
with a lock so individual reads and writes are atomic.
"""

import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Set

from .errors import InvalidTransitionError, LedgerUnavailableError
from .interfaces import Clock
from .maintainer import utc_now
from .models import (
    Application, Change, ConfidenceTier, Deployment, Instance, JobId, RunRecord,
    Version, VersionStatus, Zone
)


DEFAULT_UPGRADES_PER_MINUTE = 0.125


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime):
        if now.tzinfo is None:
            raise ValueError("ManualClock needs an aware datetime")
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> datetime:
        self.now += delta
        return self.now


class InMemoryFleet:
    """Fleet view and change trigger over a dictionary of applications."""

    def __init__(self, applications: Iterable[Application] = (), clock: Clock = utc_now):
        self.clock = clock
        self._applications: Dict[str, Application] = {a.id: a for a in applications}
        self._lock = threading.Lock()
        self.trigger_count = 0
        self.cancel_count = 0

    def put(self, application: Application):
        with self._lock:
            self._applications[application.id] = application

    def get(self, application_id: str) -> Application:
        with self._lock:
            return self._applications[application_id]

    def list_applications(self) -> List[Application]:
        with self._lock:
            return list(self._applications.values())

    def trigger(self, application_id: str, version: Version, allow_out_of_order: bool = False):
        with self._lock:
            application = self._applications.get(application_id)
            if application is None:
                raise InvalidTransitionError(f"Unknown application '{application_id}'")
            if application.is_deploying_application:
                raise InvalidTransitionError(
                    f"{application_id} is deploying {application.change.revision}, cannot also upgrade"
                )
            if application.is_upgrading and application.change.version != version:
                raise InvalidTransitionError(
                    f"{application_id} is already upgrading to {application.change.version}"
                )
            oldest = application.oldest_deployed_version
            if not allow_out_of_order and oldest is not None and version < oldest:
                raise InvalidTransitionError(f"{application_id} cannot downgrade from {oldest} to {version}")
            self._applications[application_id] = replace(application, change=Change.upgrade(version, self.clock()))
            self.trigger_count += 1

    def cancel(self, application_id: str):
        with self._lock:
            application = self._applications.get(application_id)
            if application is None or application.change is None:
                return
            self._applications[application_id] = replace(application, change=None)
            self.cancel_count += 1

    def set_deployment_version(self, instance_id: str, zone: Zone, version: Version):
        """Record that a deployment now runs version."""
        with self._lock:
            for application in self._applications.values():
                for instance in application.instances:
                    if instance.id == instance_id and any(d.zone == zone for d in instance.deployments):
                        instances = tuple(_with_version(i, zone, version) if i is instance else i
                                          for i in application.instances)
                        self._applications[application.id] = replace(application, instances=instances)
                        return
        raise KeyError(f"No deployment of {instance_id} in {zone}")

    def complete_change(self, application_id: str, failed: bool = False):
        """Finish the application's platform change, moving production deployments on success."""
        with self._lock:
            application = self._applications[application_id]
            if not application.is_upgrading:
                return
            target = application.change.version
            if failed:
                application = replace(application, change=None,
                                      failed_versions=application.failed_versions | {target})
            else:
                instances = tuple(
                    replace(i, deployments=tuple(
                        replace(d, version=target) if d.zone.environment.is_production else d
                        for d in i.deployments
                    ))
                    for i in application.instances
                )
                application = replace(application, instances=instances, change=None)
            self._applications[application_id] = application


def _with_version(instance: Instance, zone: Zone, version: Version) -> Instance:
    deployments = tuple(Deployment(d.zone, version) if d.zone == zone else d for d in instance.deployments)
    return replace(instance, deployments=deployments)


class InMemoryLedger:
    """Confidence ledger with a system version and per-version confidence."""

    def __init__(self, system_version: Optional[Version] = None, statuses: Iterable[VersionStatus] = ()):
        self._system_version = system_version
        self._statuses: Dict[Version, ConfidenceTier] = {s.version: s.confidence for s in statuses}
        self._lock = threading.Lock()
        self.available = True

    def system_version(self) -> Optional[Version]:
        self._check_available()
        with self._lock:
            return self._system_version

    def versions_by_recency_desc(self) -> List[VersionStatus]:
        self._check_available()
        with self._lock:
            return [VersionStatus(v, self._statuses[v]) for v in sorted(self._statuses, reverse=True)]

    def release(self, version: Version, confidence: ConfidenceTier = ConfidenceTier.LOW):
        """Add a version to the ledger and make it the system version."""
        with self._lock:
            self._statuses[version] = confidence
            self._system_version = version

    def set_confidence(self, version: Version, confidence: ConfidenceTier):
        with self._lock:
            if version not in self._statuses:
                raise KeyError(f"Unknown version {version}")
            self._statuses[version] = confidence

    def _check_available(self):
        if not self.available:
            raise LedgerUnavailableError("Confidence ledger is unavailable")


class InMemoryJobController:
    """Run history per job, newest first, and a job starter recording runs."""

    def __init__(self, clock: Clock = utc_now, on_start: Optional[Callable[[RunRecord], None]] = None):
        self.clock = clock
        self.on_start = on_start
        self._runs: Dict[JobId, List[RunRecord]] = {}
        self._lock = threading.Lock()

    def record(self, run: RunRecord):
        with self._lock:
            runs = self._runs.setdefault(run.job, [])
            runs.append(run)
            runs.sort(key=lambda r: r.start, reverse=True)

    def runs(self, job: JobId) -> List[RunRecord]:
        with self._lock:
            return list(self._runs.get(job, ()))

    def last_run(self, job: JobId) -> Optional[RunRecord]:
        with self._lock:
            runs = self._runs.get(job)
            return runs[0] if runs else None

    def start(self, job: JobId, version: Version, is_redeployment: bool = False):
        run = RunRecord(job, self.clock(), is_redeployment=is_redeployment, version=version)
        self.record(run)
        if self.on_start is not None:
            self.on_start(run)


class InMemoryControllerStore:
    """Rate configuration and job control flags."""

    def __init__(self, upgrades_per_minute: float = DEFAULT_UPGRADES_PER_MINUTE, ignore_confidence: bool = False):
        self._upgrades_per_minute = upgrades_per_minute
        self._ignore_confidence = ignore_confidence
        self._inactive_jobs: Set[str] = set()
        self._lock = threading.Lock()

    def read_upgrades_per_minute(self) -> float:
        with self._lock:
            return self._upgrades_per_minute

    def write_upgrades_per_minute(self, value: float):
        with self._lock:
            self._upgrades_per_minute = value

    def read_ignore_confidence(self) -> bool:
        with self._lock:
            return self._ignore_confidence

    def write_ignore_confidence(self, value: bool):
        with self._lock:
            self._ignore_confidence = value

    def read_inactive_jobs(self) -> Set[str]:
        with self._lock:
            return set(self._inactive_jobs)

    def write_inactive_jobs(self, jobs: Set[str]):
        with self._lock:
            self._inactive_jobs = set(jobs)
