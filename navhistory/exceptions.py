"""Errors raised by navhistory.

Navigation never raises to the host under normal operation. These come from
reading and writing config or session files, from store write quotas, and
from targets that cannot be turned into a path.
"""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class NavHistoryError(Exception):
    """Root of the navhistory error tree.

    Attributes:
        message: What went wrong.
        context: Key/value details shown after the message.
        timestamp: Creation time.
        cause: The lower-level exception, if one was wrapped.
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now()
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


def _file_context(
    file_path: str | None, context: dict[str, Any] | None
) -> dict[str, Any]:
    ctx = dict(context or {})
    if file_path:
        ctx["file_path"] = file_path
    return ctx


# =============================================================================
# Backend Errors
# =============================================================================


class BackendError(NavHistoryError):
    """A backend or the store behind it failed."""

    pass


class HistoryQuotaExceededError(BackendError):
    """A store will not take another ``push_state``.

    The session backend catches this and does a full navigation instead.
    """

    def __init__(
        self,
        limit: int,
        *,
        url: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = dict(context or {}, limit=limit)
        if url is not None:
            ctx["url"] = url
        super().__init__("History write quota exceeded", context=ctx, cause=cause)
        self.limit = limit
        self.url = url


class SessionStoreError(BackendError):
    """A session file could not be used."""

    def __init__(
        self,
        message: str,
        *,
        file_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message, context=_file_context(file_path, context), cause=cause
        )


class SessionStoreLoadError(SessionStoreError):
    pass


class SessionStoreSaveError(SessionStoreError):
    pass


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(NavHistoryError):
    """Bad or unreadable history settings."""

    pass


class ConfigFileError(ConfigError):
    """A config file could not be read or written."""

    default_message = "Config file error"

    def __init__(
        self,
        message: str | None = None,
        *,
        file_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message or self.default_message,
            context=_file_context(file_path, context),
            cause=cause,
        )


class ConfigLoadError(ConfigFileError):
    default_message = "Failed to load configuration"


class ConfigSaveError(ConfigFileError):
    default_message = "Failed to save configuration"


class ConfigValidationError(ConfigError):
    """Settings parsed but do not describe a usable history.

    ``field`` names the offending setting; ``value`` is kept short so a
    huge value does not flood the log.
    """

    def __init__(
        self,
        message: str = "Invalid configuration",
        *,
        field: str | None = None,
        value: Any = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = dict(context or {})
        if field:
            ctx["field"] = field
        if value is not None:
            ctx["value"] = str(value)[:100]
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# Path Errors
# =============================================================================


class InvalidPathError(NavHistoryError):
    """A navigation target that is not a path."""

    def __init__(
        self,
        path: str,
        reason: str,
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Invalid path: {reason}", context=dict(context or {}, path=path))
        self.path = path
        self.reason = reason


# =============================================================================
# Error Counters
# =============================================================================


@dataclass
class ErrorStats:
    """Counts of errors the library has logged, by exception class.

    ``recent_errors`` keeps ``(time, class name, message)`` for the last
    ``max_recent`` errors.
    """

    max_recent: int = 100
    total_count: int = 0
    by_type: Counter[str] = field(default_factory=Counter)
    recent_errors: deque[tuple[datetime, str, str]] = field(init=False)

    def __post_init__(self) -> None:
        self.recent_errors = deque(maxlen=self.max_recent)

    def record(self, error: Exception) -> None:
        name = type(error).__name__
        self.total_count += 1
        self.by_type[name] += 1
        self.recent_errors.append((datetime.now(), name, str(error)[:200]))

    def reset(self) -> None:
        self.total_count = 0
        self.by_type.clear()
        self.recent_errors.clear()


# Shared by every module that logs an error
error_stats = ErrorStats()


def record_error(error: Exception) -> None:
    """Count ``error`` in ``error_stats``."""
    error_stats.record(error)
