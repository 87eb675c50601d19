"""Context managers for structured logging."""

import logging
import time
from contextlib import contextmanager
from typing import Any, Optional

from core.logging.utilities import log_exception, log_with_context


class OperationContext:
    """Context manager for timed operations with automatic logging."""

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.DEBUG,
        slow_threshold_ms: Optional[float] = 1000.0,
        log_start: bool = False,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        if isinstance(level, str):
            self.level = getattr(logging, level.upper(), logging.DEBUG)
        else:
            self.level = level
        self.slow_threshold_ms = slow_threshold_ms
        self.log_start = log_start
        self.context = context
        self._start_time: Optional[float] = None

    @property
    def elapsed_ms(self) -> float:
        if self._start_time is None:
            return 0.0
        return (time.perf_counter() - self._start_time) * 1000

    def __enter__(self) -> "OperationContext":
        self._start_time = time.perf_counter()
        if self.log_start:
            log_with_context(
                self.logger,
                logging.DEBUG,
                f"Starting: {self.operation}",
                operation=self.operation,
                **self.context,
            )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = round(self.elapsed_ms, 2)

        # Auto-promote to INFO if slow
        effective_level = self.level
        if self.slow_threshold_ms and duration_ms > self.slow_threshold_ms:
            effective_level = max(self.level, logging.INFO)

        if exc_val is not None:
            log_exception(
                self.logger,
                exc_val,
                f"Failed: {self.operation}",
                level=logging.WARNING,
                include_traceback=False,
                duration_ms=duration_ms,
                operation=self.operation,
                **self.context,
            )
        else:
            log_with_context(
                self.logger,
                effective_level,
                f"Completed: {self.operation}",
                duration_ms=duration_ms,
                operation=self.operation,
                **self.context,
            )
        return False

    def add_context(self, **kwargs: Any) -> None:
        """Add context mid-operation (row counts, etc)."""
        self.context.update(kwargs)


@contextmanager
def log_operation(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    slow_threshold_ms: Optional[float] = 1000.0,
    **context: Any,
):
    """Convenience context manager for ad-hoc operation logging."""
    with OperationContext(
        logger, operation, level=level, slow_threshold_ms=slow_threshold_ms, **context
    ) as ctx:
        yield ctx
