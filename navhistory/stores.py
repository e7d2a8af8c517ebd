"""Browser-style session stores used by the session and hash backends.

Provides:
- InMemorySessionStore: a simulated session history, optionally reporting
  moves asynchronously on an asyncio loop
- FileSessionStore: the same stack persisted to a JSON file, with
  watchfiles-based detection of moves made by other processes
- StoreUnloadGuard: arms unload prevention on a store
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import dacite
from watchfiles import Change, awatch

from .events import EventDispatcher
from .exceptions import (
    HistoryQuotaExceededError,
    SessionStoreLoadError,
    SessionStoreSaveError,
    record_error,
)
from .models import SessionEntry, SessionSnapshot, model_from_dict, model_to_dict
from .ports import PositionListener, UnloadHook

logger = logging.getLogger(__name__)


class InMemorySessionStore:
    """Session history kept in memory.

    Args:
        initial_url: Address of the first entry.
        max_writes: Number of ``push_state`` calls accepted before the store
            raises HistoryQuotaExceededError. ``None`` means unlimited.
        loop: When given, ``go`` reports the move with ``loop.call_soon``
            instead of before returning.
    """

    def __init__(
        self,
        initial_url: str = "/",
        *,
        max_writes: int | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._snapshot = SessionSnapshot(entries=[SessionEntry(url=initial_url)])
        self.max_writes = max_writes
        self._loop = loop
        self._listeners: EventDispatcher[PositionListener] = EventDispatcher(
            "session pop"
        )
        self._unload_hooks: list[tuple[object, UnloadHook]] = []

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def url(self) -> str:
        return self._current.url

    @property
    def state(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._current.state)

    @property
    def length(self) -> int:
        return len(self._snapshot.entries)

    @property
    def index(self) -> int:
        return self._snapshot.index

    @property
    def writes(self) -> int:
        return self._snapshot.writes

    @property
    def entries(self) -> list[SessionEntry]:
        return copy.deepcopy(self._snapshot.entries)

    @property
    def _current(self) -> SessionEntry:
        return self._snapshot.entries[self._snapshot.index]

    # =========================================================================
    # SessionStore
    # =========================================================================

    def push_state(self, state: dict[str, Any] | None, url: str) -> None:
        if self.max_writes is not None and self._snapshot.writes >= self.max_writes:
            raise HistoryQuotaExceededError(self.max_writes, url=url)
        self._append(SessionEntry(url=url, state=copy.deepcopy(state)))
        self._snapshot.writes += 1
        self._changed()

    def replace_state(self, state: dict[str, Any] | None, url: str) -> None:
        self._snapshot.entries[self._snapshot.index] = SessionEntry(
            url=url, state=copy.deepcopy(state)
        )
        self._changed()

    def assign(self, url: str) -> None:
        logger.info("Full navigation to %s", url)
        self._append(SessionEntry(url=url))
        self._changed()

    def go(self, delta: int) -> None:
        target = self._snapshot.index + delta
        if delta == 0 or not 0 <= target < len(self._snapshot.entries):
            logger.debug("Ignoring go(%d) at index %d", delta, self._snapshot.index)
            return
        self._snapshot.index = target
        self._changed()
        self._notify()

    def listen(self, callback: PositionListener) -> Callable[[], None]:
        return self._listeners.register(callback)

    def add_unload_hook(self, hook: UnloadHook) -> Callable[[], None]:
        token = object()
        self._unload_hooks.append((token, hook))

        def remove() -> None:
            self._unload_hooks = [h for h in self._unload_hooks if h[0] is not token]

        return remove

    def request_unload(self) -> bool:
        vetoed = [hook for _, hook in tuple(self._unload_hooks) if not hook()]
        if vetoed:
            logger.info("Unload vetoed by %d hook(s)", len(vetoed))
        return not vetoed

    @property
    def unload_hook_count(self) -> int:
        return len(self._unload_hooks)

    # =========================================================================
    # Internals
    # =========================================================================

    def _append(self, entry: SessionEntry) -> None:
        del self._snapshot.entries[self._snapshot.index + 1:]
        self._snapshot.entries.append(entry)
        self._snapshot.index += 1

    def _changed(self) -> None:
        """Called after every mutation; subclasses persist here."""

    def _notify(self) -> None:
        if self._loop is not None:
            self._loop.call_soon(self._listeners.broadcast)
        else:
            self._listeners.broadcast()


class FileSessionStore(InMemorySessionStore):
    """Session history persisted to a JSON file.

    Every mutation rewrites the file. ``start_watching`` observes the file
    with watchfiles; when another process moves the pointer or adds an
    entry, the store reloads and emits a pop notification.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        initial_url: str = "/",
        max_writes: int | None = None,
    ) -> None:
        super().__init__(initial_url, max_writes=max_writes)
        self.path = Path(path).expanduser()
        self.last_mtime: float = 0
        self.watching = False
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

        if self.path.exists():
            self._snapshot = self._read_snapshot()
            self._record_mtime()
        else:
            self._save()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _read_snapshot(self) -> SessionSnapshot:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in session file: %s", e)
            record_error(e)
            raise SessionStoreLoadError(
                f"Invalid JSON in session file at line {e.lineno}",
                file_path=str(self.path),
                context={"line": e.lineno, "column": e.colno},
                cause=e,
            ) from e
        except OSError as e:
            logger.error("Failed to read session file: %s", e)
            record_error(e)
            raise SessionStoreLoadError(
                "Failed to read session file", file_path=str(self.path), cause=e
            ) from e

        if not isinstance(data, dict):
            raise SessionStoreLoadError(
                "Session file must contain a JSON object", file_path=str(self.path)
            )
        try:
            snapshot: SessionSnapshot = model_from_dict(SessionSnapshot, data)  # type: ignore[assignment]
        except (dacite.DaciteError, TypeError) as e:
            logger.error("Session file schema validation failed: %s", e)
            record_error(e)
            raise SessionStoreLoadError(
                f"Session file schema validation failed: {e}",
                file_path=str(self.path),
                cause=e,
            ) from e

        if not snapshot.entries or not 0 <= snapshot.index < len(snapshot.entries):
            raise SessionStoreLoadError(
                "Session file has no entry at its index",
                file_path=str(self.path),
                context={"index": snapshot.index, "length": len(snapshot.entries)},
            )
        return snapshot

    def _save(self) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(model_to_dict(self._snapshot), f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to write session file: %s", e)
            record_error(e)
            raise SessionStoreSaveError(
                "Failed to write session file", file_path=str(self.path), cause=e
            ) from e
        except (TypeError, ValueError) as e:
            logger.error("Failed to serialize session to JSON: %s", e)
            record_error(e)
            raise SessionStoreSaveError(
                "Failed to serialize session to JSON (state must be JSON data)",
                file_path=str(self.path),
                cause=e,
            ) from e
        self._record_mtime()

    def _record_mtime(self) -> None:
        try:
            self.last_mtime = self.path.stat().st_mtime
        except OSError as e:
            logger.warning("Failed to stat session file: %s", e)

    def _changed(self) -> None:
        self._save()

    def reload(self) -> bool:
        """Re-read the file and report an external move.

        Returns:
            True if the current entry changed and a pop notification was sent.
        """
        before = (self._snapshot.index, self._current)
        try:
            snapshot = self._read_snapshot()
        except SessionStoreLoadError as e:
            logger.warning("Ignoring unreadable session file change: %s", e)
            return False
        self._snapshot = snapshot
        self._record_mtime()

        if (snapshot.index, self._current) == before:
            logger.debug("Session file changed without moving the pointer")
            return False
        logger.debug("External move to index %d", snapshot.index)
        self._notify()
        return True

    # =========================================================================
    # Watching
    # =========================================================================

    async def start_watching(self) -> None:
        """Start watching the session file for external changes."""
        self.watching = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._watch_loop())

    async def stop_watching(self) -> None:
        """Stop watching the session file."""
        self.watching = False
        self._stop_event.set()

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _watch_loop(self) -> None:
        try:
            async for changes in awatch(
                self.path.parent,
                stop_event=self._stop_event,
                debounce=100,
                rust_timeout=500,
            ):
                if not self.watching:
                    break

                for change_type, change_path in changes:
                    if Path(change_path) == self.path and change_type in (
                        Change.modified,
                        Change.added,
                    ):
                        self._on_file_change()
        except asyncio.CancelledError:
            pass

    def _on_file_change(self) -> None:
        if not self.path.exists():
            logger.debug("Session file disappeared, skipping change")
            return
        try:
            current_mtime = self.path.stat().st_mtime
        except OSError as e:
            logger.warning("Failed to stat session file: %s", e)
            return

        # Our own write
        if current_mtime == self.last_mtime:
            return
        self.reload()


@dataclass
class StoreUnloadGuard:
    """UnloadGuard that vetoes ``store.request_unload()`` while armed."""

    store: InMemorySessionStore
    _remove: Callable[[], None] | None = field(default=None, repr=False)

    @property
    def armed(self) -> bool:
        return self._remove is not None

    def arm(self) -> None:
        if self._remove is None:
            self._remove = self.store.add_unload_hook(lambda: False)

    def disarm(self) -> None:
        if self._remove is not None:
            self._remove()
            self._remove = None
