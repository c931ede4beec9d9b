"""
Typed exceptions raised by the test execution engine.

Services raise these instead of HTTPException so they stay usable outside a
request (scripts, background jobs). The application maps each type to a
fixed HTTP status in examhub.main:

    NotFoundError               -> 404
    UnauthorizedError           -> 403
    ValidationError             -> 400
    ConcurrentModificationError -> 409
    anything else               -> 500
"""

from typing import Any, Optional


class ExecutionError(Exception):
    """Base class for engine errors.

    Attributes:
        message: User-facing message
        details: Optional structured context returned alongside the message
    """

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(ExecutionError):
    """An execution, plan or question does not exist."""


class UnauthorizedError(ExecutionError):
    """The caller is not allowed to act on the resource."""


class ValidationError(ExecutionError):
    """Illegal state transition or malformed submission."""


class ConcurrentModificationError(ExecutionError):
    """Another writer updated the execution since it was read."""


class TestDataCorruptedError(ExecutionError):
    """The persisted test data document cannot be parsed.

    This is a data integrity failure, not a client error; it is reported as
    an internal error and logged with the execution id.
    """

    def __init__(self, execution_id: int, reason: str):
        self.execution_id = execution_id
        self.reason = reason
        super().__init__(f"Test data for execution {execution_id} is corrupted: {reason}")
