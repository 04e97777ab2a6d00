"""
Unit tests for upgrades of manually deployed zones.
"""

from datetime import datetime, timedelta, timezone

import pytest

from fleetops.deployment_upgrader import AttemptOutcome, DeploymentUpgrader
from fleetops.memory import InMemoryFleet, InMemoryJobController, InMemoryLedger, ManualClock
from fleetops.models import (
    ConfidenceTier, Deployment, Environment, JobId, RunRecord, Version, VersionStatus, Zone
)


V = Version.from_string
DEV = Zone(Environment.DEV, "region-0")


def job_of(application_id, zone=DEV):
    return JobId(f"{application_id}.default", zone.job_type)


def at(day, hour):
    return datetime(2024, 1, day, hour, 0, tzinfo=timezone.utc)


class FailingJobController(InMemoryJobController):
    """Job controller failing to start jobs of some instances."""

    def __init__(self, failing, **kwargs):
        super().__init__(**kwargs)
        self.failing = set(failing)

    def start(self, job, version, is_redeployment=False):
        if job.instance_id in self.failing:
            raise ConnectionError(f"controller unreachable for {job}")
        super().start(job, version, is_redeployment)


class OldestFirstJobController(InMemoryJobController):

    def runs(self, job):
        return list(reversed(super().runs(job)))


@pytest.fixture
def clock():
    # Night for jobs that usually run around 02:00 UTC
    return ManualClock(at(10, 15))


@pytest.fixture
def ledger():
    return InMemoryLedger(V("7.2.0"), [VersionStatus(V("7.2.0"), ConfidenceTier.LOW)])


@pytest.fixture
def fleet(clock):
    return InMemoryFleet(clock=clock)


@pytest.fixture
def jobs(clock):
    return InMemoryJobController(clock=clock)


def record_history(jobs, job, starts):
    """Record runs starting at the given (day, hour) pairs."""
    for day, hour in starts:
        jobs.record(RunRecord(job, at(day, hour)))


# Newest first, these starts are hours [2, 2, 3, 2]: night is 15:00
NIGHT_AT_15 = [(8, 2), (7, 2), (6, 3), (5, 2)]


def upgrader_for(fleet, ledger, jobs, clock):
    return DeploymentUpgrader(fleet, ledger, jobs, interval=timedelta(hours=1), clock=clock)


class TestDeploymentUpgrader:

    def test_upgrades_at_night_after_a_quiet_day(self, fleet, ledger, jobs, clock, build_application):
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))
        record_history(jobs, job_of("app"), NIGHT_AT_15)

        report = upgrader_for(fleet, ledger, jobs, clock).run_cycle()

        assert report.triggered == [job_of("app")]
        last = jobs.last_run(job_of("app"))
        assert last.start == clock()
        assert last.version == V("7.2.0")
        assert last.is_redeployment is False

    def test_recent_run_blocks_upgrade(self, fleet, ledger, jobs, clock, build_application):
        """A run two hours ago blocks the upgrade even if the hour matches."""
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))
        record_history(jobs, job_of("app"), NIGHT_AT_15)
        jobs.record(RunRecord(job_of("app"), clock() - timedelta(hours=2), is_redeployment=True))

        report = upgrader_for(fleet, ledger, jobs, clock).run_cycle()

        assert report.triggered == []
        assert report.attempts[0].reason == "ran within the last day"

    def test_triggers_exactly_once(self, fleet, ledger, jobs, build_application):
        """Last run 30 hours ago and the hour within one of the estimate: one upgrade."""
        clock = ManualClock(at(10, 8))
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))
        record_history(jobs, job_of("app"), [(7, 19), (6, 19), (5, 19)])  # Night at 08:00
        jobs.record(RunRecord(job_of("app"), clock() - timedelta(hours=30), is_redeployment=True))
        jobs.clock = clock
        upgrader = upgrader_for(fleet, ledger, jobs, clock)

        first = upgrader.run_cycle()
        clock.advance(timedelta(minutes=30))
        second = upgrader.run_cycle()

        assert first.triggered == [job_of("app")]
        assert second.triggered == []
        assert len([r for r in jobs.runs(job_of("app")) if r.start >= at(10, 0)]) == 1

    def test_not_night(self, fleet, ledger, jobs, build_application):
        clock = ManualClock(at(10, 12))
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))
        record_history(jobs, job_of("app"), NIGHT_AT_15)

        report = upgrader_for(fleet, ledger, jobs, clock).run_cycle()

        assert report.triggered == []
        assert report.attempts[0].reason.startswith("not night")

    def test_hour_next_to_night_is_accepted(self, fleet, ledger, jobs, build_application):
        clock = ManualClock(at(10, 16))
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))
        record_history(jobs, job_of("app"), NIGHT_AT_15)

        assert upgrader_for(fleet, ledger, jobs, clock).run_cycle().triggered == [job_of("app")]

    def test_only_manually_deployed_zones_behind_system_version(self, fleet, ledger, jobs, clock, build_application):
        fleet.put(build_application("prod", versions=("7.0.0",), environment=Environment.PROD))
        fleet.put(build_application("staging", versions=("7.0.0",), environment=Environment.STAGING))
        fleet.put(build_application("current", versions=("7.2.0",), environment=Environment.DEV))
        fleet.put(build_application("perf", versions=("7.0.0",), environment=Environment.PERF))
        for name in ["current", "perf"]:
            record_history(jobs, job_of(name, Zone(Environment.PERF, "region-0")), NIGHT_AT_15)
            record_history(jobs, job_of(name), NIGHT_AT_15)

        report = upgrader_for(fleet, ledger, jobs, clock).run_cycle()

        assert report.triggered == [job_of("perf", Zone(Environment.PERF, "region-0"))]
        assert report.count(AttemptOutcome.SKIPPED) == 3

    def test_never_run_job_is_not_upgraded(self, fleet, ledger, jobs, clock, build_application):
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))

        report = upgrader_for(fleet, ledger, jobs, clock).run_cycle()

        assert report.triggered == []
        assert report.attempts[0].reason == "never run"

    def test_redeployments_only_give_no_estimate(self, fleet, ledger, jobs, clock, build_application):
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))
        jobs.record(RunRecord(job_of("app"), at(8, 2), is_redeployment=True))

        report = upgrader_for(fleet, ledger, jobs, clock).run_cycle()

        assert report.attempts[0].reason == "no night estimate"

    def test_unknown_system_version_does_nothing(self, fleet, jobs, clock, build_application):
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))
        record_history(jobs, job_of("app"), NIGHT_AT_15)

        report = upgrader_for(fleet, InMemoryLedger(), jobs, clock).run_cycle()

        assert report.attempts == []
        assert report.success_factor == 1.0


class TestFailureIsolation:

    def test_failing_deployment_does_not_stop_others(self, fleet, ledger, clock, build_application):
        jobs = FailingJobController(["a.default"], clock=clock)
        for name in ["a", "b"]:
            fleet.put(build_application(name, versions=("7.0.0",), environment=Environment.DEV))
            record_history(jobs, job_of(name), NIGHT_AT_15)
        upgrader = upgrader_for(fleet, ledger, jobs, clock)

        report = upgrader.run_cycle()

        assert report.triggered == [job_of("b")]
        assert report.count(AttemptOutcome.FAILED) == 1
        assert "unreachable" in report.attempts[0].reason
        assert report.success_factor == 0.5

    def test_misordered_history_fails_only_that_deployment(self, fleet, ledger, clock, build_application):
        jobs = OldestFirstJobController(clock=clock)
        fleet.put(build_application("app", versions=("7.0.0",), environment=Environment.DEV))
        record_history(jobs, job_of("app"), NIGHT_AT_15)

        report = upgrader_for(fleet, ledger, jobs, clock).run_cycle()

        assert report.attempts[0].outcome is AttemptOutcome.FAILED
        assert report.success_factor == 0.0

    def test_unavailable_ledger_reports_zero(self, fleet, ledger, jobs, clock):
        ledger.available = False

        assert upgrader_for(fleet, ledger, jobs, clock).run() == 0.0


class TestWithFleetChanges:

    def test_started_job_moves_deployment(self, fleet, ledger, clock, build_application):
        """Starting a job through the fleet hook moves the deployment to the target."""
        app = build_application("app", versions=("7.0.0",), environment=Environment.DEV)
        fleet.put(app)

        def deploy(run):
            fleet.set_deployment_version(run.job.instance_id, DEV, run.version)

        jobs = InMemoryJobController(clock=clock, on_start=deploy)
        record_history(jobs, job_of("app"), NIGHT_AT_15)

        upgrader_for(fleet, ledger, jobs, clock).run_cycle()

        assert fleet.get("app").deployments == [Deployment(DEV, V("7.2.0"))]
