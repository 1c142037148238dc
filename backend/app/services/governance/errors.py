"""
Exceptions raised by the admission-control gate.

Ownership mismatches and unknown pending request ids are ordinary gate
decisions and are returned, not raised.
"""


class GovernanceError(Exception):
    """Base class for governance failures."""


class RiskValidationError(GovernanceError, ValueError):
    """Raised when risk inputs are malformed (e.g. a non-numeric question count)."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class PersistenceError(GovernanceError):
    """
    Raised when the pending request store cannot be reached or rejects a write.

    The message never includes the request payload.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(message)
        self.operation = operation
