"""
Maintenance configuration.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from .deployment_upgrader import DeploymentUpgrader
from .interfaces import (
    ChangeTrigger, Clock, ConfidenceLedger, FleetView, JobController, RateConfigStore
)
from .maintainer import JobControl, Maintainer, utc_now
from .upgrader import DEFAULT_JOB_TIMEOUT, Upgrader


@dataclass
class MaintenanceConfig:
    """Intervals and timeouts of the maintenance jobs."""
    upgrader_interval: timedelta = timedelta(minutes=1)
    deployment_upgrader_interval: timedelta = timedelta(hours=1)
    job_timeout: timedelta = DEFAULT_JOB_TIMEOUT  # Upgrades older than this are retriggered
    enable_upgrader: bool = True
    enable_deployment_upgrader: bool = True


def create_maintainers(
    config: MaintenanceConfig,
    fleet: FleetView,
    ledger: ConfidenceLedger,
    trigger: ChangeTrigger,
    jobs: JobController,
    rate_store: RateConfigStore,
    job_control: Optional[JobControl] = None,
    clock: Clock = utc_now
) -> List[Maintainer]:
    maintainers: List[Maintainer] = []
    if config.enable_upgrader:
        maintainers.append(Upgrader(
            fleet, ledger, trigger, rate_store,
            interval=config.upgrader_interval,
            job_timeout=config.job_timeout,
            job_control=job_control,
            clock=clock,
        ))
    if config.enable_deployment_upgrader:
        maintainers.append(DeploymentUpgrader(
            fleet, ledger, jobs,
            interval=config.deployment_upgrader_interval,
            job_control=job_control,
            clock=clock,
        ))
    return maintainers
