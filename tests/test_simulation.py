"""
Tests for the fleet rollout simulator.
"""

import pytest

from fleetops.simulator import FleetSimulator, SimulationConfig, _zone_of
from fleetops.models import Environment, Zone


@pytest.fixture
def config():
    """Small, failure-free simulation with a release on day three."""
    return SimulationConfig(
        num_applications=10,
        num_days=5,
        broken_release_rate=0.0,
        deployment_failure_rate=0.0,
        random_seed=11,
    )


class TestFleetSimulator:

    def test_fleet_generation(self, config):
        simulator = FleetSimulator(config)
        applications = simulator.fleet.list_applications()

        assert len(applications) == 10
        assert all(a.has_production_deployment for a in applications)
        assert simulator.ledger.system_version() == simulator.releases[0]["version"]

    def test_rollout_reaches_default_applications(self, config):
        results = FleetSimulator(config).run_simulation()

        assert results["simulation_summary"]["releases"] == ["8.1.0", "8.2.0"]
        assert results["upgrades_triggered"] > 0
        assert "8.2.0" in results["production_versions"]
        assert results["upgrades_cancelled"] == 0

    def test_maintenance_stays_healthy(self, config):
        results = FleetSimulator(config).run_simulation()

        assert set(results["maintenance"]) == {"Upgrader", "DeploymentUpgrader"}
        for health in results["maintenance"].values():
            assert health["runs"] > 0
            assert health["degraded_runs"] == 0

    def test_same_seed_same_results(self, config):
        first = FleetSimulator(config).run_simulation()
        second = FleetSimulator(config).run_simulation()

        assert first == second

    def test_zone_of_job_type(self):
        assert _zone_of("dev-us-east-1") == Zone(Environment.DEV, "us-east-1")
