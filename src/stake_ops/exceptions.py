"""Exception hierarchy for the staking operations coordinator."""

from typing import Any


class StakeOpsError(Exception):
    """Base exception for all staking operation errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NetworkError(StakeOpsError):
    """Raised when a node read or connection cannot complete."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class ValidationError(StakeOpsError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class SubmissionError(StakeOpsError):
    """Raised when the signer or provider refuses to broadcast a transaction."""

    def __init__(
        self,
        message: str,
        function_name: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.function_name = function_name


class UserRejectedError(SubmissionError):
    """Raised when the signer explicitly declines a transaction."""

    pass


class StateTransitionError(StakeOpsError):
    """Raised when an operation is asked to move backwards or out of a terminal state."""

    def __init__(self, operation_id: str, current: str, requested: str):
        super().__init__(
            f"Operation {operation_id} cannot move from {current} to {requested}",
            details={"current": current, "requested": requested},
        )
        self.operation_id = operation_id
        self.current = current
        self.requested = requested
