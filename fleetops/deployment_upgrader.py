"""
Upgrades deployments in manually deployed zones to the system version.

Deployments in dev and perf zones are not covered by the regular upgrade
rollout. They are upgraded here instead, at most once a day, during the
hour estimated to be night for the people deploying them.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import List, Optional

from .interfaces import Clock, ConfidenceLedger, FleetView, JobController
from .maintainer import JobControl, Maintainer, as_success_factor, utc_now
from .models import Deployment, Instance, JobId, Version
from .night_window import hour_of, is_within_hours, night_hour_for


logger = logging.getLogger(__name__)

MIN_TIME_BETWEEN_RUNS = timedelta(days=1)


class AttemptOutcome(Enum):
    TRIGGERED = "triggered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class UpgradeAttempt:
    """The decision taken for one deployment."""
    job: Optional[JobId]
    zone: str
    outcome: AttemptOutcome
    reason: str = ""


@dataclass
class DeploymentUpgradeReport:
    target: Optional[Version] = None
    attempts: List[UpgradeAttempt] = field(default_factory=list)

    def count(self, outcome: AttemptOutcome) -> int:
        return sum(1 for a in self.attempts if a.outcome is outcome)

    @property
    def triggered(self) -> List[JobId]:
        return [a.job for a in self.attempts if a.outcome is AttemptOutcome.TRIGGERED]

    @property
    def success_factor(self) -> float:
        """Successful upgrades over upgrades attempted; skipped deployments do not count."""
        triggered = self.count(AttemptOutcome.TRIGGERED)
        failed = self.count(AttemptOutcome.FAILED)
        return as_success_factor(triggered + failed, failed)


class DeploymentUpgrader(Maintainer):

    def __init__(
        self,
        fleet: FleetView,
        ledger: ConfidenceLedger,
        jobs: JobController,
        interval: timedelta = timedelta(hours=1),
        job_control: Optional[JobControl] = None,
        clock: Clock = utc_now
    ):
        super().__init__(interval, job_control=job_control, clock=clock)
        self.fleet = fleet
        self.ledger = ledger
        self.jobs = jobs

    def maintain(self) -> float:
        return self.run_cycle().success_factor

    def run_cycle(self) -> DeploymentUpgradeReport:
        report = DeploymentUpgradeReport(target=self.ledger.system_version())
        if report.target is None:
            logger.info("deployment_upgrades_skipped reason=unknown_system_version")
            return report

        for application in self.fleet.list_applications():
            for instance in application.instances:
                for deployment in instance.deployments:
                    report.attempts.append(self._consider(instance, deployment, report.target))
        return report

    def _consider(self, instance: Instance, deployment: Deployment, target: Version) -> UpgradeAttempt:
        job = None
        try:
            if not deployment.zone.environment.is_manually_deployed:
                return UpgradeAttempt(None, str(deployment.zone), AttemptOutcome.SKIPPED, "not manually deployed")
            job = JobId(instance.id, deployment.zone.job_type)
            reason = self._skip_reason(job, deployment, target)
            if reason:
                logger.debug("deployment_upgrade_skipped job=%s reason=%s", job, reason)
                return UpgradeAttempt(job, str(deployment.zone), AttemptOutcome.SKIPPED, reason)

            logger.info("deployment_upgrade_started instance=%s zone=%s version=%s", instance.id, deployment.zone, target)
            self.jobs.start(job, target, is_redeployment=False)
            return UpgradeAttempt(job, str(deployment.zone), AttemptOutcome.TRIGGERED)
        except Exception as e:  # noqa: BLE001 - one deployment must not stop the cycle
            logger.warning(
                "deployment_upgrade_failed instance=%s zone=%s error=%s retry_in=%s",
                instance.id, deployment.zone, e, self.interval
            )
            return UpgradeAttempt(job, str(deployment.zone), AttemptOutcome.FAILED, str(e))

    def _skip_reason(self, job: JobId, deployment: Deployment, target: Version) -> Optional[str]:
        if not deployment.version.is_before(target):
            return "already on system version"

        now = self.clock()
        last = self.jobs.last_run(job)
        if last is None:
            return "never run"
        if now < last.start + MIN_TIME_BETWEEN_RUNS:
            return "ran within the last day"

        night = night_hour_for(self.jobs.runs(job))
        if night is None:
            return "no night estimate"
        if not is_within_hours(hour_of(now), night):
            return f"not night, expected around {night:02d}:00 UTC"
        return None
