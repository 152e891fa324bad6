"""
Service-level exceptions.
"""


class SyncError(Exception):
    """Raised when a record cannot be synchronized between systems."""

    pass


class EscalationStateError(Exception):
    """Raised when an escalation decision is not allowed in its current state."""

    pass


class DeductionStateError(Exception):
    """Raised when a salary deduction cannot move to the requested state."""

    pass
