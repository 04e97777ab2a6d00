"""
Platform upgrade orchestration.

Each cycle moves the fleet one step toward the right platform version for
every upgrade policy:

- canary applications follow the current system version
- default applications follow the newest version with normal confidence
- conservative applications follow the newest version with high confidence

Changes toward versions that are no longer the target are cancelled first,
then new upgrades are triggered for the furthest-behind applications, at most
a throttled number per policy and cycle. Running a cycle again without any
external change is a no-op.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional

from . import filters
from .errors import InvalidTransitionError, OrderingError
from .interfaces import ChangeTrigger, Clock, ConfidenceLedger, FleetView, RateConfigStore
from .maintainer import JobControl, Maintainer, as_success_factor, utc_now
from .models import (
    Application, ConfidenceTier, RolloutSettings, UpgradePolicy, Version, VersionStatus
)


logger = logging.getLogger(__name__)

DEFAULT_JOB_TIMEOUT = timedelta(hours=12)


@dataclass
class TriggerAttempt:
    application_id: str
    version: Version
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class UpgradeReport:
    """What one upgrade cycle decided and did."""
    targets: Dict[UpgradePolicy, Version] = field(default_factory=dict)
    cancelled: List[str] = field(default_factory=list)
    attempts: List[TriggerAttempt] = field(default_factory=list)

    @property
    def triggered(self) -> List[str]:
        return [a.application_id for a in self.attempts if a.succeeded]

    @property
    def failures(self) -> List[TriggerAttempt]:
        return [a for a in self.attempts if not a.succeeded]

    @property
    def success_factor(self) -> float:
        return as_success_factor(len(self.attempts), len(self.failures))


class Upgrader(Maintainer):
    """
    Schedules applications for platform version upgrades.

    The rate of upgrades and whether to ignore version confidence are
    operator knobs held in the rate store; they are read once at the start
    of each cycle.
    """

    def __init__(
        self,
        fleet: FleetView,
        ledger: ConfidenceLedger,
        trigger: ChangeTrigger,
        rate_store: RateConfigStore,
        interval: timedelta = timedelta(minutes=1),
        job_timeout: timedelta = DEFAULT_JOB_TIMEOUT,
        job_control: Optional[JobControl] = None,
        clock: Clock = utc_now
    ):
        super().__init__(interval, job_control=job_control, clock=clock)
        self.fleet = fleet
        self.ledger = ledger
        self.trigger = trigger
        self.rate_store = rate_store
        self.job_timeout = job_timeout

    def maintain(self) -> float:
        return self.run_cycle().success_factor

    def run_cycle(self) -> UpgradeReport:
        now = self.clock()
        settings = self.read_settings()
        report = UpgradeReport(targets=self.resolve_targets(settings))
        applications = self.fleet.list_applications()

        for policy, target in report.targets.items():
            misdirected = filters.not_upgrading_to(
                filters.upgrading(filters.with_policy(applications, policy)), target
            )
            applications = self._cancel(applications, misdirected, report, reason="target_changed")

        limit = self.upgrades_per_cycle(settings)
        for policy, target in report.targets.items():
            applications = self._cancel(
                applications,
                filters.upgrading_to_lower_than(filters.with_policy(applications, policy), target),
                report,
                reason="superseded",
            )
            candidates = filters.upgrade_candidates(
                filters.with_policy(applications, policy), target, now, self.job_timeout, limit
            )
            for application in candidates:
                report.attempts.append(self._trigger(application, target))

        return report

    def resolve_targets(self, settings: RolloutSettings) -> Dict[UpgradePolicy, Version]:
        """Target version per upgrade policy; policies without a qualifying version are left out."""
        system_version = self.ledger.system_version()
        versions = self.ledger.versions_by_recency_desc()
        _check_newest_first(versions)

        targets: Dict[UpgradePolicy, Version] = {}
        for policy in UpgradePolicy:
            confidence = policy.required_confidence
            if confidence is None or settings.ignore_confidence:
                target = system_version
            else:
                target = _newest_with_confidence(versions, confidence)
            if target is not None:
                targets[policy] = target
        return targets

    def upgrades_per_cycle(self, settings: RolloutSettings) -> int:
        """The number of applications to upgrade per policy in one cycle."""
        return max(1, round(self.interval.total_seconds() * settings.upgrades_per_minute / 60))

    def read_settings(self) -> RolloutSettings:
        return RolloutSettings(
            upgrades_per_minute=self.rate_store.read_upgrades_per_minute(),
            ignore_confidence=self.rate_store.read_ignore_confidence(),
        )

    def upgrades_per_minute(self) -> float:
        return self.rate_store.read_upgrades_per_minute()

    def set_upgrades_per_minute(self, n: float):
        if n < 0:
            raise ValueError(f"Upgrades per minute must be non-negative, got {n}")
        self.rate_store.write_upgrades_per_minute(n)

    def ignore_confidence(self) -> bool:
        return self.rate_store.read_ignore_confidence()

    def set_ignore_confidence(self, value: bool):
        self.rate_store.write_ignore_confidence(value)

    def _cancel(
        self,
        applications: List[Application],
        to_cancel: List[Application],
        report: UpgradeReport,
        reason: str
    ) -> List[Application]:
        if not to_cancel:
            return applications
        logger.info("cancelling_upgrades count=%d reason=%s", len(to_cancel), reason)
        for application in to_cancel:
            self.trigger.cancel(application.id)
            logger.info(
                "upgrade_cancelled application=%s version=%s reason=%s",
                application.id, application.change.version, reason
            )
            report.cancelled.append(application.id)
        return filters.without_changes(applications, [a.id for a in to_cancel])

    def _trigger(self, application: Application, target: Version) -> TriggerAttempt:
        try:
            self.trigger.trigger(application.id, target, allow_out_of_order=False)
        except InvalidTransitionError as e:
            logger.info("upgrade_not_triggered application=%s version=%s error=%s", application.id, target, e)
            return TriggerAttempt(application.id, target, error=str(e))
        except Exception as e:  # noqa: BLE001 - one application must not stop the cycle
            logger.warning(
                "upgrade_trigger_failed application=%s version=%s error=%s",
                application.id, target, e, exc_info=True
            )
            return TriggerAttempt(application.id, target, error=str(e))
        logger.info("upgrade_triggered application=%s version=%s", application.id, target)
        return TriggerAttempt(application.id, target)


def _newest_with_confidence(versions: List[VersionStatus], confidence: ConfidenceTier) -> Optional[Version]:
    for status in versions:
        if status.confidence.at_least(confidence):
            return status.version
    return None


def _check_newest_first(versions: List[VersionStatus]):
    for newer, older in zip(versions, versions[1:]):
        if newer.version < older.version:
            raise OrderingError(f"Ledger versions must be newest first: {newer.version} precedes {older.version}")
