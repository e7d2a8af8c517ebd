"""In-memory backend for hosts with no external navigation state.

The stack is a plain list of Locations with a pointer. Moves are applied
immediately and reported synchronously through the subscribe channel.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence, Union

from navhistory.events import EventDispatcher
from navhistory.models import Location, PartialPath, To
from navhistory.paths import (
    DEFAULT_KEY_LENGTH,
    create_key,
    create_path,
    normalize_hash,
    normalize_search,
    to_partial,
)
from navhistory.ports import PositionListener

logger = logging.getLogger(__name__)

InitialEntry = Union[str, PartialPath, Location]


def clamp(n: int, lower: int, upper: int) -> int:
    return min(max(n, lower), upper)


class MemoryBackend:
    """HistoryBackend that keeps its entries in a list."""

    def __init__(
        self,
        initial_entries: Sequence[InitialEntry] | None = None,
        initial_index: int | None = None,
        *,
        key_length: int = DEFAULT_KEY_LENGTH,
    ) -> None:
        entries = list(initial_entries) if initial_entries else ["/"]
        self._entries: list[Location] = [
            self._create_entry(entry, key_length) for entry in entries
        ]

        last = len(self._entries) - 1
        if initial_index is None:
            self._index = last
        else:
            self._index = clamp(initial_index, 0, last)
            if self._index != initial_index:
                logger.warning(
                    "Initial index %d is out of range, using %d",
                    initial_index,
                    self._index,
                )

        self._listeners: EventDispatcher[PositionListener] = EventDispatcher(
            "memory position"
        )

    @staticmethod
    def _create_entry(entry: InitialEntry, key_length: int) -> Location:
        if isinstance(entry, Location):
            return entry
        partial = to_partial(entry)
        return Location(
            pathname=partial.pathname or "/",
            search=normalize_search(partial.search),
            hash=normalize_hash(partial.hash),
            key=create_key(key_length),
        )

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def entries(self) -> tuple[Location, ...]:
        return tuple(self._entries)

    @property
    def length(self) -> int:
        return len(self._entries)

    @property
    def position(self) -> int:
        """The backend's own pointer."""
        return self._index

    def can_go(self, delta: int) -> bool:
        """Whether a move by ``delta`` stays inside the stack."""
        return 0 <= self._index + delta < len(self._entries)

    # =========================================================================
    # HistoryBackend
    # =========================================================================

    def read_current(self) -> tuple[int | None, Location]:
        return self._index, self._entries[self._index]

    def commit_push(self, location: Location, index: int | None) -> str:
        # Positions come from the list itself, so ``index`` is not needed here
        del self._entries[self._index + 1 :]
        self._entries.append(location)
        self._index = len(self._entries) - 1
        return create_path(location)

    def commit_replace(self, location: Location, index: int | None) -> str:
        self._entries[self._index] = location
        return create_path(location)

    def move_by(self, delta: int) -> None:
        next_index = clamp(self._index + delta, 0, len(self._entries) - 1)
        if next_index == self._index:
            return
        self._index = next_index
        self._listeners.broadcast()

    def subscribe(self, callback: PositionListener) -> Callable[[], None]:
        return self._listeners.register(callback)

    def create_href(self, to: To | Location) -> str:
        if isinstance(to, str):
            return to
        return create_path(to)
