"""
Error types raised by fleetops and its collaborators.
"""


class FleetOpsError(Exception):
    """Base error for fleetops."""


class LedgerUnavailableError(FleetOpsError):
    """The confidence ledger or system version could not be read."""


class OrderingError(FleetOpsError, ValueError):
    """A collaborator returned records out of their documented order."""


class InvalidTransitionError(FleetOpsError, ValueError):
    """The change trigger rejected a change for the application's current state."""
