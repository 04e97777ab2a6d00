"""
Shared fixtures: a fixed clock and a builder for fleet applications.
"""

from datetime import datetime, timezone

import pytest

from fleetops.memory import ManualClock
from fleetops.models import (
    Application, ArtifactKind, Deployment, Environment, Instance, UpgradePolicy, Version, Zone
)


@pytest.fixture
def clock():
    # A Wednesday, mid-day UTC
    return ManualClock(datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def build_application():
    """Factory for applications with one instance and the given deployments."""

    def build(
        application_id,
        policy=UpgradePolicy.DEFAULT,
        versions=("6.0.0",),
        environment=Environment.PROD,
        **kwargs
    ):
        deployments = tuple(
            Deployment(Zone(environment, f"region-{i}"), Version.from_string(v))
            for i, v in enumerate(versions)
        )
        kwargs.setdefault("artifact_kind", ArtifactKind.ORDINARY)
        return Application(
            id=application_id,
            policy=policy,
            instances=(Instance(f"{application_id}.default", deployments),),
            **kwargs
        )

    return build
