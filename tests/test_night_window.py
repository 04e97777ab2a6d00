"""
Unit tests for night-window estimation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from fleetops.errors import OrderingError
from fleetops.models import JobId, RunRecord
from fleetops.night_window import (
    hour_of, is_within_hours, most_likely_night_hour, night_hour_for
)


JOB = JobId("tenant.app.default", "dev-us-east-1")


def run_at(day, hour, is_redeployment=False):
    return RunRecord(JOB, datetime(2024, 1, day, hour, 15, tzinfo=timezone.utc), is_redeployment)


class TestMostLikelyNightHour:
    """Tests for the estimator over start hours, newest first."""

    def test_documented_example(self):
        """Starts clustered around 02:00 put the night at 15:00."""
        assert most_likely_night_hour([2, 2, 3, 2]) == 15

    def test_deterministic(self):
        starts = [9, 10, 14, 9, 17, 23, 11]
        assert most_likely_night_hour(starts) == most_likely_night_hour(list(starts))

    def test_empty_history_has_no_estimate(self):
        assert most_likely_night_hour([]) is None

    @pytest.mark.parametrize("hour, night", [(9, 22), (19, 8), (0, 13), (12, 1), (23, 12)])
    def test_single_hour_is_opposite_on_the_ring(self, hour, night):
        assert most_likely_night_hour([hour]) == night

    def test_recent_runs_weigh_more(self):
        """The newest start dominates two otherwise equal starts."""
        assert most_likely_night_hour([9, 21]) == 22
        assert most_likely_night_hour([21, 9]) == 10

    def test_rejects_invalid_hours(self):
        with pytest.raises(ValueError):
            most_likely_night_hour([3, 24])


class TestRunHistory:
    """Tests for estimation over run records."""

    def test_hour_of_is_utc(self):
        assert hour_of(datetime(2024, 1, 1, 5, 30, tzinfo=timezone.utc)) == 5
        assert hour_of(datetime(2024, 1, 1, 7, 0, tzinfo=timezone(timedelta(hours=2)))) == 5

    def test_redeployments_are_ignored(self):
        runs = [run_at(9, 20, is_redeployment=True), run_at(8, 9), run_at(7, 20, is_redeployment=True)]
        assert night_hour_for(runs) == most_likely_night_hour([9])

    def test_only_redeployments_give_no_estimate(self):
        assert night_hour_for([run_at(9, 20, is_redeployment=True)]) is None

    def test_history_must_be_newest_first(self):
        with pytest.raises(OrderingError):
            night_hour_for([run_at(7, 2), run_at(8, 2)])

    def test_history_is_not_mutated(self):
        runs = [run_at(8, 2), run_at(7, 2), run_at(6, 3)]
        copy = list(runs)
        night_hour_for(runs)
        assert runs == copy


class TestHourTolerance:

    @pytest.mark.parametrize("hour, target, expected", [
        (5, 5, True),
        (4, 5, True),
        (6, 5, True),
        (7, 5, False),
        (23, 0, True),
        (0, 23, True),
        (22, 0, False),
    ])
    def test_within_one_hour_on_the_ring(self, hour, target, expected):
        assert is_within_hours(hour, target) is expected
