"""Base exception classes for the SwipeMatch domain layer.

The hierarchy mirrors how a failure is presented to the user:

- ``ConfigurationError``: missing or invalid backing-service credentials.
  Fatal at startup.
- ``NotFoundError``: unknown session reference. Terminal for that navigation.
- ``ValidationError``: bad user input (empty filters, empty name).
  Recoverable, the user is re-prompted.
- ``TransientStoreError``: network or store failure. Recoverable with retry,
  swipe state must not advance.
- ``NoOpError``: the request had nothing to act on (e.g. undo with nothing
  to undo). Informational.
"""


class SwipeMatchError(Exception):
    """Base exception for all domain errors.

    All domain-specific exceptions inherit from this class so that callers
    can separate expected failures from programming errors.
    """

    def __init__(self, message: str = "") -> None:
        """Initialize the exception with an optional message.

        Args:
            message: Human-readable error description.
        """
        super().__init__(message)
        self.message = message


class ConfigurationError(SwipeMatchError):
    """Required configuration is missing or invalid."""


class NotFoundError(SwipeMatchError):
    """A referenced entity does not exist."""


class ValidationError(SwipeMatchError):
    """User input was rejected."""


class TransientStoreError(SwipeMatchError):
    """The backing store could not be reached or rejected the request.

    Attributes:
        operation: Store operation that failed.
        retryable: Always True; kept explicit for result objects.
    """

    retryable = True

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        message = f"Store operation '{operation}' failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NoOpError(SwipeMatchError):
    """The request was valid but there was nothing to do."""
