"""
Upgrade blackout windows.

Applications may declare windows during which platform upgrades must not
start, e.g. business hours in their own time zone or a whole weekday. A
window blocks an instant when both its day and its hour match, evaluated in
the window's time zone.
"""

from datetime import datetime
from typing import Iterable
from zoneinfo import ZoneInfo

from .models import Application, BlackoutWindow


def window(days: Iterable[int] = (), hours: Iterable[int] = (), time_zone: str = "UTC") -> BlackoutWindow:
    """Build a validated blackout window."""
    days = frozenset(days)
    hours = frozenset(hours)
    if any(d < 1 or d > 7 for d in days):
        raise ValueError(f"Blackout days must be ISO weekdays 1-7, got {sorted(days)}")
    if any(h < 0 or h > 23 for h in hours):
        raise ValueError(f"Blackout hours must be in 0-23, got {sorted(hours)}")
    ZoneInfo(time_zone)  # Fail early on unknown zones
    return BlackoutWindow(days=days, hours=hours, time_zone=time_zone)


def is_blocked(blackout: BlackoutWindow, instant: datetime) -> bool:
    local = instant.astimezone(ZoneInfo(blackout.time_zone))
    if blackout.days and local.isoweekday() not in blackout.days:
        return False
    if blackout.hours and local.hour not in blackout.hours:
        return False
    return True


def can_upgrade_at(application: Application, instant: datetime) -> bool:
    """Whether no blackout window of the application covers the instant."""
    return not any(is_blocked(w, instant) for w in application.blackout_windows)
