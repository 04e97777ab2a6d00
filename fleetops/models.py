"""
Data models for the fleetops rollout orchestrator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Tuple, FrozenSet


@dataclass(frozen=True, order=True)
class Version:
    """A platform release, ordered on (major, minor, micro, qualifier)."""
    major: int = 0
    minor: int = 0
    micro: int = 0
    qualifier: str = ""

    @classmethod
    def from_string(cls, text: str) -> "Version":
        parts = text.strip().split(".", 3)
        if not parts or parts[0] == "":
            raise ValueError(f"Invalid version '{text}'")
        try:
            numbers = [int(p) for p in parts[:3]]
        except ValueError:
            raise ValueError(f"Invalid version '{text}'") from None
        if any(n < 0 for n in numbers):
            raise ValueError(f"Invalid version '{text}'")
        numbers += [0] * (3 - len(numbers))
        qualifier = parts[3] if len(parts) == 4 else ""
        return cls(numbers[0], numbers[1], numbers[2], qualifier)

    def is_before(self, other: "Version") -> bool:
        return self < other

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.micro}"
        return f"{text}.{self.qualifier}" if self.qualifier else text


class ConfidenceTier(Enum):
    """How much safe production exposure a version has accumulated."""
    BROKEN = 0        # Known bad, never a target
    LOW = 1
    NORMAL = 2
    HIGH = 3

    def at_least(self, other: "ConfidenceTier") -> bool:
        return self.value >= other.value


class UpgradePolicy(Enum):
    """How cautiously an application adopts new platform versions."""
    CANARY = "canary"
    DEFAULT = "default"
    CONSERVATIVE = "conservative"

    @property
    def required_confidence(self) -> Optional[ConfidenceTier]:
        """Minimum confidence of the target; canaries follow the system version."""
        return {
            UpgradePolicy.CANARY: None,
            UpgradePolicy.DEFAULT: ConfidenceTier.NORMAL,
            UpgradePolicy.CONSERVATIVE: ConfidenceTier.HIGH,
        }[self]


class Environment(Enum):
    PROD = "prod"
    STAGING = "staging"
    TEST = "test"
    DEV = "dev"
    PERF = "perf"

    @property
    def is_production(self) -> bool:
        return self is Environment.PROD

    @property
    def is_manually_deployed(self) -> bool:
        return self in (Environment.DEV, Environment.PERF)


@dataclass(frozen=True)
class Zone:
    environment: Environment
    region: str

    @property
    def job_type(self) -> str:
        """Name of the job converging deployments in this zone."""
        return f"{self.environment.value}-{self.region}"

    def __str__(self) -> str:
        return f"{self.environment.value}.{self.region}"


class ArtifactKind(Enum):
    ORDINARY = "ordinary"
    EPHEMERAL = "ephemeral"   # Throwaway test builds, e.g. pull requests


class ChangeKind(Enum):
    PLATFORM = "platform"         # Converge to a platform version
    APPLICATION = "application"   # Converge to new application content


@dataclass(frozen=True)
class Change:
    """A pending convergence of an application to a version or revision."""
    kind: ChangeKind
    triggered_at: datetime
    version: Optional[Version] = None
    revision: Optional[str] = None

    @classmethod
    def upgrade(cls, version: Version, triggered_at: datetime) -> "Change":
        return cls(ChangeKind.PLATFORM, triggered_at, version=version)

    @classmethod
    def application(cls, revision: str, triggered_at: datetime) -> "Change":
        return cls(ChangeKind.APPLICATION, triggered_at, revision=revision)

    @property
    def is_platform(self) -> bool:
        return self.kind is ChangeKind.PLATFORM


@dataclass(frozen=True)
class Deployment:
    zone: Zone
    version: Version


@dataclass(frozen=True)
class Instance:
    id: str
    deployments: Tuple[Deployment, ...] = ()


@dataclass(frozen=True)
class JobId:
    instance_id: str
    job_type: str

    def __str__(self) -> str:
        return f"{self.instance_id}/{self.job_type}"


@dataclass(frozen=True)
class RunRecord:
    """One execution of a deployment job."""
    job: JobId
    start: datetime
    is_redeployment: bool = False
    version: Optional[Version] = None


@dataclass(frozen=True)
class BlackoutWindow:
    """
    Days and hours during which an application accepts no platform upgrades.

    Days are ISO weekdays (1=Monday, 7=Sunday) and hours 0-23, both read in
    the window's time zone. An empty set means every day or every hour.
    """
    days: FrozenSet[int] = frozenset()
    hours: FrozenSet[int] = frozenset()
    time_zone: str = "UTC"


@dataclass(frozen=True)
class Application:
    """A managed application, as seen in one fleet snapshot."""
    id: str
    policy: UpgradePolicy = UpgradePolicy.DEFAULT
    artifact_kind: ArtifactKind = ArtifactKind.ORDINARY
    instances: Tuple[Instance, ...] = ()
    change: Optional[Change] = None
    failed_versions: FrozenSet[Version] = frozenset()
    blackout_windows: Tuple[BlackoutWindow, ...] = ()

    @property
    def deployments(self) -> List[Deployment]:
        return [d for instance in self.instances for d in instance.deployments]

    @property
    def has_production_deployment(self) -> bool:
        return any(d.zone.environment.is_production for d in self.deployments)

    @property
    def oldest_deployed_version(self) -> Optional[Version]:
        versions = [d.version for d in self.deployments]
        return min(versions) if versions else None

    @property
    def is_upgrading(self) -> bool:
        return self.change is not None and self.change.is_platform

    @property
    def is_deploying_application(self) -> bool:
        return self.change is not None and self.change.kind is ChangeKind.APPLICATION


@dataclass(frozen=True)
class VersionStatus:
    """A ledger entry: a candidate platform version and its confidence."""
    version: Version
    confidence: ConfidenceTier


@dataclass(frozen=True)
class RolloutSettings:
    """Operator knobs, read once at the start of an upgrade cycle."""
    upgrades_per_minute: float
    ignore_confidence: bool = False


@dataclass
class MaintenanceResults:
    """Success factors reported by one maintenance job over many runs."""
    job: str
    success_factors: List[float] = field(default_factory=list)

    @property
    def runs(self) -> int:
        return len(self.success_factors)

    @property
    def degraded_runs(self) -> int:
        return sum(1 for f in self.success_factors if f < 1.0)

    @property
    def mean_success_factor(self) -> float:
        if not self.success_factors:
            return 1.0
        return sum(self.success_factors) / len(self.success_factors)
