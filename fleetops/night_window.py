"""
Night-window estimation.

Estimates the hour of the day at which a job is least likely to disturb
anyone, from the hours its past runs started. Run starts cluster around the
working day of whoever deploys; the busiest part of the 24-hour ring is
found with a weighted distance cost and the hour opposite to it is taken as
"night". Recent runs weigh more than old ones.
"""

import math
from datetime import datetime
from typing import List, Optional, Sequence

from .errors import OrderingError
from .models import RunRecord


HOURS_PER_DAY = 24

# Each run weighs this much less than the next more recent one
DECAY = (math.sqrt(5) - 1) / 2


def hour_of(instant: datetime) -> int:
    """The UTC hour of day of an aware timestamp."""
    return int(instant.timestamp() // 3600) % HOURS_PER_DAY


def most_likely_night_hour(starts: Sequence[int]) -> Optional[int]:
    """
    Estimate the night hour from run start hours, given newest first.

    Returns None when there are no starts to estimate from.
    """
    if not starts:
        return None

    buckets = [0.0] * HOURS_PER_DAY
    weight = 1.0
    for start in starts:
        if not 0 <= start < HOURS_PER_DAY:
            raise ValueError(f"Start hour must be in 0-23, got {start}")
        weight *= DECAY
        buckets[start] += weight

    best = -1
    lowest = math.inf
    for center in range(12, 36):
        cost = sum(abs(offset) * buckets[(center + offset) % HOURS_PER_DAY] for offset in range(-12, 12))
        if cost < lowest:
            lowest = cost
            best = center

    # Opposite the busiest hour, shifted by one for the asymmetric window
    return (best + 13) % HOURS_PER_DAY


def check_newest_first(runs: Sequence[RunRecord]):
    for newer, older in zip(runs, runs[1:]):
        if newer.start < older.start:
            raise OrderingError(
                f"Runs of {newer.job} must be ordered newest first: {newer.start} precedes {older.start}"
            )


def night_hour_for(runs: Sequence[RunRecord]) -> Optional[int]:
    """Estimated night hour from a job's run history, ignoring redeployments."""
    check_newest_first(runs)
    starts: List[int] = [hour_of(run.start) for run in runs if not run.is_redeployment]
    return most_likely_night_hour(starts)


def is_within_hours(hour: int, target: int, tolerance: int = 1) -> bool:
    """Whether hour lies within tolerance of target on the 24-hour ring."""
    distance = abs(hour - target) % HOURS_PER_DAY
    return min(distance, HOURS_PER_DAY - distance) <= tolerance
