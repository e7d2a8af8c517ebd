"""Backend abstraction layer.

This module defines protocols (interfaces) for the systems a history talks
to, allowing the engine to work with different backends: a durable session
store, a hash fragment, a plain in-memory list, or mocks for testing.

The abstraction follows the "ports and adapters" (hexagonal) architecture
pattern, where ports define the interfaces and the backends/ and stores
modules provide implementations.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from navhistory.models import Location, To


PositionListener = Callable[[], None]
UnloadHook = Callable[[], bool]


@runtime_checkable
class HistoryBackend(Protocol):
    """Protocol for the system of record behind a history.

    The backend owns the position pointer. ``move_by`` is fire-and-forget:
    its effect is reported later through the ``subscribe`` channel, never
    through a return value.
    """

    @abstractmethod
    def read_current(self) -> tuple[int | None, Location]:
        """Read the current position and decode it into a Location.

        Returns:
            ``(index, location)``. ``index`` is ``None`` when the backend
            holds no record the library created.
        """
        ...

    @abstractmethod
    def commit_push(self, location: Location, index: int | None) -> str:
        """Persist a new entry at ``index``, forward of the current one.

        Must not raise on a write-quota refusal; fall back to a full
        navigation instead.

        Returns:
            The address that was written.
        """
        ...

    @abstractmethod
    def commit_replace(self, location: Location, index: int | None) -> str:
        """Overwrite the current entry in place."""
        ...

    @abstractmethod
    def move_by(self, delta: int) -> None:
        """Ask the backend to shift its position by ``delta`` entries."""
        ...

    @abstractmethod
    def subscribe(self, callback: PositionListener) -> Callable[[], None]:
        """Register for "position changed" notifications.

        Returns:
            A function that removes the subscription.
        """
        ...

    @abstractmethod
    def create_href(self, to: To) -> str:
        """Return the address string that ``to`` would be written as."""
        ...


@runtime_checkable
class UnloadGuard(Protocol):
    """Protocol for intercepting the host's "discard this session" signal.

    A history arms the guard when its first blocker registers and disarms
    it when the last one is removed.
    """

    @property
    @abstractmethod
    def armed(self) -> bool: ...

    @abstractmethod
    def arm(self) -> None: ...

    @abstractmethod
    def disarm(self) -> None: ...


@runtime_checkable
class SessionStore(Protocol):
    """Protocol for a browser-style session history.

    Entries are ``(url, state)`` pairs with a position pointer. ``go``
    reports its effect through the ``listen`` channel, possibly later.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        """Address of the current entry."""
        ...

    @property
    @abstractmethod
    def state(self) -> dict[str, Any] | None:
        """State record of the current entry."""
        ...

    @property
    @abstractmethod
    def length(self) -> int:
        """Number of entries in the store."""
        ...

    @abstractmethod
    def push_state(self, state: dict[str, Any] | None, url: str) -> None:
        """Drop forward entries and append a new one.

        Raises:
            HistoryQuotaExceededError: If the store refuses further writes.
        """
        ...

    @abstractmethod
    def replace_state(self, state: dict[str, Any] | None, url: str) -> None:
        """Overwrite the current entry."""
        ...

    @abstractmethod
    def go(self, delta: int) -> None:
        """Move the pointer by ``delta``; out-of-range moves do nothing."""
        ...

    @abstractmethod
    def assign(self, url: str) -> None:
        """Full navigation to ``url``: a new entry with no state."""
        ...

    @abstractmethod
    def listen(self, callback: PositionListener) -> Callable[[], None]:
        """Register for pop notifications. Returns an unlisten function."""
        ...

    @abstractmethod
    def add_unload_hook(self, hook: UnloadHook) -> Callable[[], None]:
        """Register a hook consulted by ``request_unload``."""
        ...

    @abstractmethod
    def request_unload(self) -> bool:
        """Ask every unload hook; ``False`` if any of them vetoes."""
        ...
