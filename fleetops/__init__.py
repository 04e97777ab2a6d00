"""
fleetops: Platform Version Rollout for a Hosted Application Fleet

Two periodic maintenance jobs decide which applications to upgrade, to which
platform version, and when:
1. Upgrader - confidence-tiered targets, cancellation, throttled rollout
2. DeploymentUpgrader - nightly upgrades of manually deployed zones

Collaborators (fleet, version ledger, change trigger, job history) are
injected; `fleetops.memory` provides in-process implementations.
"""

__version__ = "1.0.0"

from .models import (
    Application, ConfidenceTier, Environment, UpgradePolicy, Version, Zone
)
from .maintainer import JobControl, Maintainer, MaintenanceDriver
from .upgrader import Upgrader, UpgradeReport
from .deployment_upgrader import DeploymentUpgrader, DeploymentUpgradeReport
from .night_window import most_likely_night_hour
from .config import MaintenanceConfig, create_maintainers
from .simulator import FleetSimulator, run_rollout_simulation

__all__ = [
    "Application",
    "ConfidenceTier",
    "Environment",
    "UpgradePolicy",
    "Version",
    "Zone",
    "JobControl",
    "Maintainer",
    "MaintenanceDriver",
    "Upgrader",
    "UpgradeReport",
    "DeploymentUpgrader",
    "DeploymentUpgradeReport",
    "most_likely_night_hour",
    "MaintenanceConfig",
    "create_maintainers",
    "FleetSimulator",
    "run_rollout_simulation",
]
