"""Logging utilities for adoptkit.

This module registers a custom STAGE log level, used to mark the start of each
pipeline stage, and provides `enable_logging()` for opting in to adoptkit log
output with loguru.

Note:
    Importing this module removes loguru's default stderr handler (ID 0) so the
    handler added by ``enable_logging()`` is the only one printing adoptkit
    records. If handler 0 was already removed, the removal is a no-op.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

STAGE_LEVEL: Final[str] = "STAGE"
STAGE_LEVEL_NUMBER: Final[int] = 25  # Between INFO (20) and WARNING (30)


def _register_stage_level() -> None:
    """Register the STAGE custom log level with loguru.

    Loguru does not allow changing the numeric value of an existing level, so a
    UserWarning is emitted when STAGE already exists with a different number.
    """
    try:
        existing_level = logger.level(STAGE_LEVEL)
    except ValueError:
        logger.level(STAGE_LEVEL, no=STAGE_LEVEL_NUMBER, icon="▶")
    else:
        if existing_level.no != STAGE_LEVEL_NUMBER:
            msg = f"STAGE level already registered as {existing_level.no}, expected {STAGE_LEVEL_NUMBER}"
            warnings.warn(msg, stacklevel=2)


_register_stage_level()

type LogLevel = Literal[
    "TRACE",
    "DEBUG",
    "INFO",
    "STAGE",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

type LogFormat = Literal["short", "full"]

_SHORT_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
    "<cyan>{function}</cyan> - "
    "<level>{message}</level> {extra}"
)
_FULL_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level> {extra}"
)


class LoggingHandle:
    """Handle owning one loguru handler added by `enable_logging`.

    Examples:
        >>> with enable_logging():  # doctest: +SKIP
        ...     run_pipeline(raw_table, settings)

        >>> handle = enable_logging(level="DEBUG")  # doctest: +SKIP
        >>> handle.disable()  # doctest: +SKIP
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Initialize the logging handle.

        Args:
            handler_id (int): The loguru handler ID from logger.add().
        """
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove this handle's handler; the last active handle also disables adoptkit logging."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Enter context manager.

        Returns:
            LoggingHandle: This handle instance.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager and disable logging.

        Args:
            exc_type (type[BaseException] | None): The exception type, if raised.
            exc_val (BaseException | None): The exception instance, if raised.
            exc_tb (TracebackType | None): The traceback, if raised.
        """
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return the number of handles that have not been disabled.

        Returns:
            int: Count of active handles.
        """
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = STAGE_LEVEL,
    log_format: LogFormat = "short",
) -> LoggingHandle:
    """Enable adoptkit logging to stderr.

    The default STAGE level prints one line per pipeline stage and per-service
    failures. Lower it to "INFO" to also see stage results (row counts, selected
    complexity values, accuracies) or to "DEBUG" for sweep details.

    Args:
        level (LogLevel): Minimum log level to display. Defaults to "STAGE".
        log_format (LogFormat): "short" shows the function name only; "full"
            adds module and line number.

    Returns:
        LoggingHandle: Independent handle for removing the handler again.

    Examples:
        >>> with enable_logging(level="INFO"):  # doctest: +SKIP
        ...     run_pipeline(raw_table, settings)
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sys.stderr,
        level=level,
        filter=_is_adoptkit_record,
        format=_SHORT_FORMAT if log_format == "short" else _FULL_FORMAT,
    )
    return LoggingHandle(handler_id)


def _is_adoptkit_record(record: Record) -> bool:
    """Pass only records emitted from within the adoptkit package.

    Args:
        record (Record): The loguru Record object to filter.

    Returns:
        bool: True if the record is from the adoptkit package.
    """
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
