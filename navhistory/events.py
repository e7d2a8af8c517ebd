"""Callback dispatch and Textual message classes.

This module defines the ordered callback registry used for listeners and
blockers, and the Textual Message classes a connected history posts
for UI updates.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from textual.message import Message

from .exceptions import record_error
from .logging_config import log_exception

if TYPE_CHECKING:
    from .models import Location, Transition, Update

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class _Registration:
    """One slot in an EventDispatcher. Compared by identity."""

    __slots__ = ("callback",)

    def __init__(self, callback: Callable[..., Any]) -> None:
        self.callback = callback


class EventDispatcher(Generic[F]):
    """Ordered, mutable registry of callbacks.

    - ``register`` appends; registering the same callback twice keeps both.
    - The returned function removes that one registration and is idempotent.
    - ``broadcast`` calls a snapshot of the registry taken when it starts,
      so callbacks may register or unregister while it runs. A callback
      that raises is logged and the rest still receive the argument.
    """

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._registrations: list[_Registration] = []

    def __len__(self) -> int:
        return len(self._registrations)

    @property
    def count(self) -> int:
        """Number of active registrations."""
        return len(self._registrations)

    def register(self, callback: F) -> Callable[[], None]:
        """Append ``callback`` and return a function that removes it."""
        registration = _Registration(callback)
        self._registrations.append(registration)

        def unregister() -> None:
            self._registrations = [
                r for r in self._registrations if r is not registration
            ]

        return unregister

    def broadcast(self, *args: Any) -> None:
        """Call every registered callback with ``args`` in registration order."""
        for registration in tuple(self._registrations):
            try:
                registration.callback(*args)
            except Exception as e:
                log_exception(logger, e, f"Callback failed during {self.name} broadcast")
                record_error(e)


# =============================================================================
# Textual Messages for History Events
# =============================================================================


class HistoryMessage(Message):
    """Base class for history messages."""

    pass


class LocationChanged(HistoryMessage):
    """Posted after a transition is committed."""

    def __init__(self, update: Update, index: int | None) -> None:
        super().__init__()
        self.update = update
        self.index = index

    @property
    def location(self) -> Location:
        return self.update.location


class NavigationBlocked(HistoryMessage):
    """Posted when a transition is offered to blockers instead of applied."""

    def __init__(self, transition: Transition) -> None:
        super().__init__()
        self.transition = transition
