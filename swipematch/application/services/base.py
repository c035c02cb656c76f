"""Logging mixin shared by the application services.

Usage:
    class ConsensusEngine(LoggingMixin):
        def __init__(self, store: SessionStoreProtocol) -> None:
            self._store = store
            self._init_logger(component="consensus")

        async def record_vote(self, ...) -> VoteOutcome:
            log = self._log_operation("record_vote", session_id=session_id)
            log.info("vote_recorded", direction=direction.value)
"""

import structlog

from swipematch.infrastructure.observability.correlation import get_correlation_id


class LoggingMixin:
    """Gives a service a bound structlog logger and per-operation loggers.

    The base logger carries ``service`` (the class name) and ``component``.
    ``_log_operation`` adds the operation name, the active correlation ID and
    any extra context.

    Attributes:
        _log: The service-level BoundLogger.
    """

    _log: structlog.BoundLogger

    def _init_logger(self, component: str = "swipe") -> None:
        """Bind the service logger. Call from ``__init__``.

        Args:
            component: Component category for log filtering.
        """
        self._log = structlog.get_logger().bind(
            service=self.__class__.__name__,
            component=component,
        )

    def _log_operation(
        self,
        operation: str,
        **context: object,
    ) -> structlog.BoundLogger:
        """Return a logger scoped to one operation.

        Args:
            operation: Name of the operation being performed.
            **context: Additional key/values bound to the logger.
        """
        return self._log.bind(
            operation=operation,
            correlation_id=get_correlation_id(),
            **context,
        )
