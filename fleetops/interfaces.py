"""
Collaborator interfaces consumed by the maintenance jobs.

The engine only reads snapshots and issues requests through these protocols;
how the fleet, the version ledger and the job history are stored is up to
the implementation. `fleetops.memory` provides in-process implementations.

Ordering is part of the contract: `versions_by_recency_desc` and `runs`
return newest entries first.
"""

from datetime import datetime
from typing import List, Optional, Set, Callable, Protocol

from .models import Application, Version, VersionStatus, JobId, RunRecord


Clock = Callable[[], datetime]


class FleetView(Protocol):
    def list_applications(self) -> List[Application]:
        ...


class ConfidenceLedger(Protocol):
    def system_version(self) -> Optional[Version]:
        """The version currently deployed broadly across the system, if known."""
        ...

    def versions_by_recency_desc(self) -> List[VersionStatus]:
        ...


class ChangeTrigger(Protocol):
    def trigger(self, application_id: str, version: Version, allow_out_of_order: bool = False) -> None:
        """Start upgrading the application to version; raises InvalidTransitionError."""
        ...

    def cancel(self, application_id: str) -> None:
        """Cancel the application's pending change; no-op if there is none."""
        ...


class JobController(Protocol):
    def runs(self, job: JobId) -> List[RunRecord]:
        ...

    def last_run(self, job: JobId) -> Optional[RunRecord]:
        ...

    def start(self, job: JobId, version: Version, is_redeployment: bool = False) -> None:
        ...


class RateConfigStore(Protocol):
    def read_upgrades_per_minute(self) -> float:
        ...

    def write_upgrades_per_minute(self, value: float) -> None:
        ...

    def read_ignore_confidence(self) -> bool:
        ...

    def write_ignore_confidence(self, value: bool) -> None:
        ...


class JobControlStore(Protocol):
    def read_inactive_jobs(self) -> Set[str]:
        ...

    def write_inactive_jobs(self, jobs: Set[str]) -> None:
        ...
