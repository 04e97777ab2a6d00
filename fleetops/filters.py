"""
Application list filters used by the upgrader.

Every filter is a pure function from a list of applications to a new list;
input order is preserved except by `by_increasing_deployed_version`, which
sorts stably. `upgrade_candidates` applies the scheduling filters in their
fixed order: later filters assume earlier ones have already pruned invalid
states, and the order decides which applications the throttle cuts off.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List

from .blackout import can_upgrade_at as _can_upgrade_at
from .models import Application, ArtifactKind, UpgradePolicy, Version


ApplicationList = List[Application]


def with_policy(applications: ApplicationList, policy: UpgradePolicy) -> ApplicationList:
    return [a for a in applications if a.policy is policy]


def upgrading(applications: ApplicationList) -> ApplicationList:
    """Applications with a platform change in progress."""
    return [a for a in applications if a.is_upgrading]


def not_upgrading_to(applications: ApplicationList, version: Version) -> ApplicationList:
    """Applications not converging to exactly this version (including those not upgrading)."""
    return [a for a in applications if not (a.is_upgrading and a.change.version == version)]


def upgrading_to_lower_than(applications: ApplicationList, version: Version) -> ApplicationList:
    return [a for a in applications if a.is_upgrading and a.change.version < version]


def not_ephemeral(applications: ApplicationList) -> ApplicationList:
    """Drops throwaway test builds, which are deleted rather than upgraded."""
    return [a for a in applications if a.artifact_kind is not ArtifactKind.EPHEMERAL]


def with_production_deployment(applications: ApplicationList) -> ApplicationList:
    return [a for a in applications if a.has_production_deployment]


def on_lower_version_than(applications: ApplicationList, version: Version) -> ApplicationList:
    """Applications with at least one deployment below the version."""
    return [a for a in applications if any(d.version < version for d in a.deployments)]


def not_deploying_application(applications: ApplicationList) -> ApplicationList:
    return [a for a in applications if not a.is_deploying_application]


def not_failing_on(applications: ApplicationList, version: Version) -> ApplicationList:
    return [a for a in applications if version not in a.failed_versions]


def not_currently_upgrading(
    applications: ApplicationList,
    version: Version,
    now: datetime,
    job_timeout: timedelta
) -> ApplicationList:
    """
    Drops applications already upgrading to the version, unless the change
    was triggered longer than the job timeout ago and is considered stale.
    """
    limit = now - job_timeout
    return [
        a for a in applications
        if not (a.is_upgrading and a.change.version == version and a.change.triggered_at > limit)
    ]


def can_upgrade_at(applications: ApplicationList, instant: datetime) -> ApplicationList:
    """Drops applications inside one of their upgrade blackout windows."""
    return [a for a in applications if _can_upgrade_at(a, instant)]


def by_increasing_deployed_version(applications: ApplicationList) -> ApplicationList:
    """Furthest-behind first; applications without deployments go last."""
    return sorted(
        applications,
        key=lambda a: (a.oldest_deployed_version is None, a.oldest_deployed_version or Version())
    )


def first(applications: ApplicationList, n: int) -> ApplicationList:
    return applications[:max(0, n)]


def without_changes(applications: ApplicationList, application_ids: Iterable[str]) -> ApplicationList:
    """The same applications, with the changes of the given ones cleared."""
    cancelled = set(application_ids)
    return [replace(a, change=None) if a.id in cancelled else a for a in applications]


def upgrade_candidates(
    applications: ApplicationList,
    target: Version,
    now: datetime,
    job_timeout: timedelta,
    limit: int
) -> ApplicationList:
    """Applications to trigger an upgrade to target for, in trigger order."""
    applications = not_ephemeral(applications)
    applications = with_production_deployment(applications)
    applications = on_lower_version_than(applications, target)
    applications = not_deploying_application(applications)
    applications = not_failing_on(applications, target)
    applications = not_currently_upgrading(applications, target, now, job_timeout)
    applications = can_upgrade_at(applications, now)
    applications = by_increasing_deployed_version(applications)
    return first(applications, limit)
