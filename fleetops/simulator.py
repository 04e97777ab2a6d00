"""
Fleet Rollout Simulator

Runs the maintenance jobs against an in-memory fleet over simulated days:

- new platform versions are released regularly and gain confidence over time
- some releases turn out broken, forcing cancellation of upgrades toward them
- triggered upgrades finish after a deployment delay, a few of them failing
- manually deployed zones are upgraded at night by the deployment upgrader

Run this to watch a rollout converge.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .blackout import window
from .config import MaintenanceConfig, create_maintainers
from .maintainer import JobControl, MaintenanceDriver
from .memory import (
    InMemoryControllerStore, InMemoryFleet, InMemoryJobController, InMemoryLedger, ManualClock
)
from .models import (
    Application, ArtifactKind, ConfidenceTier, Deployment, Environment, Instance, JobId,
    MaintenanceResults, RunRecord, UpgradePolicy, Version, Zone
)
from .night_window import hour_of


PROD_REGIONS = ["us-east-1", "us-west-1", "eu-west-1", "ap-northeast-1"]
DEV_REGIONS = ["us-east-1", "eu-west-1"]


@dataclass
class SimulationConfig:
    """Configuration for running rollout simulations."""
    num_applications: int = 40
    num_days: int = 14
    step: timedelta = timedelta(minutes=30)
    release_every: timedelta = timedelta(days=3)
    normal_confidence_after: timedelta = timedelta(days=1)
    high_confidence_after: timedelta = timedelta(days=3)
    broken_release_rate: float = 0.15
    deployment_delay: timedelta = timedelta(hours=2)
    deployment_failure_rate: float = 0.02
    upgrades_per_minute: float = 0.125
    random_seed: Optional[int] = 7
    start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FleetSimulator:
    """
    Simulates platform rollouts across a fleet of applications.

    Applications are spread over the three upgrade policies, each with
    production deployments and, for most, a dev deployment with a history of
    runs during the working hours of its team's time zone.
    """

    POLICY_WEIGHTS = {
        UpgradePolicy.CANARY: 0.1,
        UpgradePolicy.DEFAULT: 0.7,
        UpgradePolicy.CONSERVATIVE: 0.2,
    }

    def __init__(self, config: SimulationConfig = None):
        self.config = config or SimulationConfig()
        self.random = random.Random(self.config.random_seed)
        self.clock = ManualClock(self.config.start)

        self.store = InMemoryControllerStore(upgrades_per_minute=self.config.upgrades_per_minute)
        self.ledger = InMemoryLedger()
        self.fleet = InMemoryFleet(clock=self.clock)
        self.jobs = InMemoryJobController(clock=self.clock, on_start=self._deploy_manually)
        self.job_control = JobControl(self.store)

        self.releases: List[Dict[str, Any]] = []
        self.manual_upgrades = 0
        self._next_release = self.config.start
        self._minor = 0

        self._release()
        self._generate_fleet()

        maintainers = create_maintainers(
            MaintenanceConfig(upgrader_interval=self.config.step),
            self.fleet, self.ledger, self.fleet, self.jobs, self.store,
            job_control=self.job_control, clock=self.clock,
        )
        self.driver = MaintenanceDriver(maintainers, clock=self.clock)
        self.results = {m.name: MaintenanceResults(m.name) for m in maintainers}

    def _release(self):
        self._minor += 1
        version = Version(8, self._minor, 0)
        self.ledger.release(version, ConfidenceTier.LOW)
        self.releases.append({
            "version": version,
            "released_at": self.clock(),
            "broken": self.random.random() < self.config.broken_release_rate,
        })
        self._next_release = self.clock() + self.config.release_every

    def _generate_fleet(self):
        policies = list(self.POLICY_WEIGHTS)
        weights = list(self.POLICY_WEIGHTS.values())
        initial = self.releases[0]["version"]

        for i in range(self.config.num_applications):
            app_id = f"tenant{i:03d}.app"
            instance_id = f"{app_id}.default"
            deployments = [
                Deployment(Zone(Environment.PROD, region), initial)
                for region in self.random.sample(PROD_REGIONS, self.random.randint(1, 3))
            ]
            if self.random.random() < 0.8:
                zone = Zone(Environment.DEV, self.random.choice(DEV_REGIONS))
                deployments.append(Deployment(zone, initial))
                self._generate_dev_history(JobId(instance_id, zone.job_type))

            blackouts = ()
            if self.random.random() < 0.1:
                blackouts = (window(days=[6, 7]),)  # No weekend upgrades

            self.fleet.put(Application(
                id=app_id,
                policy=self.random.choices(policies, weights)[0],
                artifact_kind=ArtifactKind.EPHEMERAL if self.random.random() < 0.05 else ArtifactKind.ORDINARY,
                instances=(Instance(instance_id, tuple(deployments)),),
                blackout_windows=blackouts,
            ))

    def _generate_dev_history(self, job: JobId):
        """Past runs during a team's working hours, in a random time zone."""
        offset = self.random.randint(-8, 9)
        for days_ago in range(30, 1, -1):
            if self.random.random() < 0.5:
                continue
            hour = (self.random.randint(9, 17) - offset) % 24
            start = self.config.start - timedelta(days=days_ago)
            start = start.replace(hour=hour, minute=self.random.randint(0, 59))
            self.jobs.record(RunRecord(job, start, is_redeployment=self.random.random() < 0.2))

    def _deploy_manually(self, run: RunRecord):
        zone = _zone_of(run.job.job_type)
        self.fleet.set_deployment_version(run.job.instance_id, zone, run.version)
        self.manual_upgrades += 1

    def _update_confidence(self):
        now = self.clock()
        for release in self.releases:
            age = now - release["released_at"]
            if release["broken"]:
                confidence = ConfidenceTier.BROKEN if age >= timedelta(hours=12) else ConfidenceTier.LOW
            elif age >= self.config.high_confidence_after:
                confidence = ConfidenceTier.HIGH
            elif age >= self.config.normal_confidence_after:
                confidence = ConfidenceTier.NORMAL
            else:
                confidence = ConfidenceTier.LOW
            self.ledger.set_confidence(release["version"], confidence)

    def _complete_deployments(self):
        now = self.clock()
        for application in self.fleet.list_applications():
            if not application.is_upgrading:
                continue
            if now - application.change.triggered_at < self.config.deployment_delay:
                continue
            failed = self.random.random() < self.config.deployment_failure_rate
            self.fleet.complete_change(application.id, failed=failed)

    def run_simulation(self) -> Dict[str, Any]:
        steps = int(timedelta(days=self.config.num_days) / self.config.step)

        print(f"\n{'='*60}")
        print("Fleet Rollout Simulation")
        print(f"{'='*60}")
        print(f"Applications: {self.config.num_applications}")
        print(f"Simulated days: {self.config.num_days}")
        print(f"Upgrades per minute: {self.store.read_upgrades_per_minute()}")
        print(f"{'='*60}\n")

        for i in range(steps):
            self.clock.advance(self.config.step)
            if self.clock() >= self._next_release:
                self._release()
            self._update_confidence()
            self._complete_deployments()
            for name, factor in self.driver.tick().items():
                self.results[name].success_factors.append(factor)

            if hour_of(self.clock()) == 0 and self.clock().minute == 0:
                day = (self.clock() - self.config.start).days
                print(f"Day {day}: system version {self.ledger.system_version()}")

        return self._compile_results()

    def _compile_results(self) -> Dict[str, Any]:
        applications = self.fleet.list_applications()
        production: Dict[str, int] = {}
        manual: Dict[str, int] = {}
        for application in applications:
            for deployment in application.deployments:
                counts = production if deployment.zone.environment.is_production else manual
                key = str(deployment.version)
                counts[key] = counts.get(key, 0) + 1

        return {
            "simulation_summary": {
                "applications": len(applications),
                "days": self.config.num_days,
                "releases": [str(r["version"]) for r in self.releases],
                "broken_releases": [str(r["version"]) for r in self.releases if r["broken"]],
                "system_version": str(self.ledger.system_version()),
            },
            "maintenance": {
                name: {
                    "runs": result.runs,
                    "degraded_runs": result.degraded_runs,
                    "mean_success_factor": round(result.mean_success_factor, 3),
                }
                for name, result in self.results.items()
            },
            "upgrades_triggered": self.fleet.trigger_count,
            "upgrades_cancelled": self.fleet.cancel_count,
            "manual_zone_upgrades": self.manual_upgrades,
            "production_versions": dict(sorted(production.items())),
            "manual_zone_versions": dict(sorted(manual.items())),
        }

    def print_report(self, results: Dict[str, Any]):
        """Print formatted simulation report."""
        summary = results["simulation_summary"]
        print("\n" + "="*60)
        print("ROLLOUT RESULTS")
        print("="*60)
        print(f"  Releases:            {', '.join(summary['releases'])}")
        print(f"  Broken releases:     {', '.join(summary['broken_releases']) or 'none'}")
        print(f"  System version:      {summary['system_version']}")
        print(f"  Upgrades triggered:  {results['upgrades_triggered']}")
        print(f"  Upgrades cancelled:  {results['upgrades_cancelled']}")
        print(f"  Manual zone upgrades: {results['manual_zone_upgrades']}")
        print("\n  Production deployments by version:")
        for version, count in results["production_versions"].items():
            print(f"    {version:>10}: {count}")
        print("\n  Manually deployed zones by version:")
        for version, count in results["manual_zone_versions"].items():
            print(f"    {version:>10}: {count}")
        print("\n  Maintenance health:")
        for name, health in results["maintenance"].items():
            print(f"    {name}: {health['runs']} runs, {health['degraded_runs']} degraded, "
                  f"mean success factor {health['mean_success_factor']}")
        print("\n" + "="*60)


def _zone_of(job_type: str) -> Zone:
    environment, region = job_type.split("-", 1)
    return Zone(Environment(environment), region)


def run_rollout_simulation(num_days: int = 14, num_applications: int = 40) -> Dict[str, Any]:
    """
    Convenience function to run a rollout simulation.

    Args:
        num_days: Number of days to simulate
        num_applications: Size of the simulated fleet

    Returns:
        Dictionary with rollout results
    """
    simulator = FleetSimulator(SimulationConfig(num_days=num_days, num_applications=num_applications))
    results = simulator.run_simulation()
    simulator.print_report(results)
    return results


if __name__ == "__main__":
    results = run_rollout_simulation()
