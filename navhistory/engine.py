"""Transition engine: the history object a host application talks to.

The engine keeps the current ``(action, location, index)`` triple, runs
push/replace through blockers before handing them to the backend, and
reconciles POPs the backend has already applied by the time it reports
them.

POP reconciliation in brief: when a blocked POP is observed, the engine
stores it as a pending transition and moves the backend back by the same
distance. The notification produced by that undo is recognised because a
pending transition exists, and only then is the transition offered to the
blockers. A blocker that approves calls ``retry()``, which records the index
the redo is expected to land on and moves forward again; the matching
notification is accepted without consulting the blockers a second time.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from .events import EventDispatcher, LocationChanged, NavigationBlocked
from .models import Action, Blocker, Listener, Location, To, Transition, Update
from .paths import (
    DEFAULT_KEY_LENGTH,
    create_key,
    normalize_hash,
    normalize_search,
    resolve_pathname,
    to_partial,
)

if TYPE_CHECKING:
    from textual.app import App

    from .ports import HistoryBackend, UnloadGuard

logger = logging.getLogger(__name__)


class History:
    """Navigation history over a pluggable backend.

    Example:
        history = History(MemoryBackend(["/home"]))
        history.listen(lambda update: print(update.action, update.location.path))
        history.push("/settings")
        history.back()
    """

    def __init__(
        self,
        backend: HistoryBackend,
        *,
        unload_guard: UnloadGuard | None = None,
        key_length: int = DEFAULT_KEY_LENGTH,
    ) -> None:
        self._backend = backend
        self._unload_guard = unload_guard
        self._key_length = key_length

        self._listeners: EventDispatcher[Listener] = EventDispatcher("listener")
        self._blockers: EventDispatcher[Blocker] = EventDispatcher("blocker")

        # Set only while a POP reversal is in flight
        self._blocked_pop: Transition | None = None
        # Index an approved POP retry is expected to land on
        self._resolving_index: int | None = None

        self._app: App | None = None

        self._action = Action.POP
        index, location = backend.read_current()
        if index is None:
            index = 0
            backend.commit_replace(location, index)
        # None while the current entry was not created by this history
        self._index: int | None = index
        self._location: Location = location

        self._unsubscribe: Callable[[], None] | None = backend.subscribe(
            self._handle_pop
        )
        logger.debug("History started at %s (index %d)", location.path, index)

    def __repr__(self) -> str:
        return (
            f"History(action={self._action.value}, "
            f"path={self._location.path!r}, index={self._index})"
        )

    # =========================================================================
    # Read-only State
    # =========================================================================

    @property
    def action(self) -> Action:
        """How the current location became current."""
        return self._action

    @property
    def location(self) -> Location:
        """The current location."""
        return self._location

    @property
    def index(self) -> int | None:
        """Position of the current location in the backend's stack.

        ``None`` after a POP to an entry this history did not write.
        """
        return self._index

    @property
    def backend(self) -> HistoryBackend:
        return self._backend

    # =========================================================================
    # Navigation
    # =========================================================================

    def create_href(self, to: To) -> str:
        """Return the address string for ``to``."""
        return self._backend.create_href(to)

    def push(self, to: To, state: Any = None) -> None:
        """Push a new entry onto the stack.

        Args:
            to: Target path string or PartialPath. Relative pathnames
                resolve against the current pathname.
            state: Opaque data stored with the new location.
        """
        next_location = self._next_location(to, state)
        if next_location.path == self._location.path and state == self._location.state:
            logger.warning(
                "Pushing the current location %s again with the same state",
                next_location.path,
            )

        retry = self._retry_once(lambda: self._commit(Action.PUSH, next_location))
        if self._allow_tx(Action.PUSH, next_location, retry):
            self._commit(Action.PUSH, next_location)

    def replace(self, to: To, state: Any = None) -> None:
        """Replace the current entry.

        Args:
            to: Target path string or PartialPath.
            state: Opaque data stored with the new location.
        """
        next_location = self._next_location(to, state)
        retry = self._retry_once(lambda: self._commit(Action.REPLACE, next_location))
        if self._allow_tx(Action.REPLACE, next_location, retry):
            self._commit(Action.REPLACE, next_location)

    def go(self, delta: int) -> None:
        """Move by ``delta`` entries.

        Returns immediately; the change is observed later through the
        backend's notification.
        """
        self._backend.move_by(delta)

    def back(self) -> None:
        self.go(-1)

    def forward(self) -> None:
        self.go(1)

    # =========================================================================
    # Listeners and Blockers
    # =========================================================================

    def listen(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with an Update after every committed transition.

        Returns:
            A function that removes the listener.
        """
        return self._listeners.register(listener)

    def block(self, blocker: Blocker) -> Callable[[], None]:
        """Offer every transition to ``blocker`` before it is applied.

        A blocker approves a transition by calling its ``retry()``. While
        any blocker is registered the unload guard is armed.

        Returns:
            A function that removes the blocker.
        """
        unregister = self._blockers.register(blocker)
        if len(self._blockers) == 1:
            self._arm_unload()

        def unblock() -> None:
            unregister()
            if not len(self._blockers):
                self._disarm_unload()

        return unblock

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def blocker_count(self) -> int:
        return len(self._blockers)

    # =========================================================================
    # Host Integration
    # =========================================================================

    def connect_app(self, app: App) -> None:
        """Connect to a Textual App for message posting.

        Args:
            app: The Textual App instance to post messages to.
        """
        self._app = app

    def close(self) -> None:
        """Stop observing the backend and release the unload guard."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._disarm_unload()
        self._app = None

    def __enter__(self) -> History:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # =========================================================================
    # Internals
    # =========================================================================

    def _post_message(self, message: Any) -> None:
        if self._app is not None:
            self._app.post_message(message)

    def _arm_unload(self) -> None:
        if self._unload_guard is not None and not self._unload_guard.armed:
            self._unload_guard.arm()

    def _disarm_unload(self) -> None:
        if self._unload_guard is not None and self._unload_guard.armed:
            self._unload_guard.disarm()

    def _next_location(self, to: To, state: Any) -> Location:
        partial = to_partial(to)
        pathname = self._location.pathname
        if partial.pathname is not None:
            pathname = resolve_pathname(partial.pathname, self._location.pathname)
        return Location(
            pathname=pathname,
            search=normalize_search(partial.search),
            hash=normalize_hash(partial.hash),
            state=state,
            key=create_key(self._key_length),
        )

    @staticmethod
    def _retry_once(apply: Callable[[], None]) -> Callable[[], None]:
        done = False

        def retry() -> None:
            nonlocal done
            if done:
                logger.debug("Ignoring repeated retry of an approved transition")
                return
            done = True
            apply()

        return retry

    def _allow_tx(
        self, action: Action, location: Location, retry: Callable[[], None]
    ) -> bool:
        """Approve when no blockers exist, otherwise offer the transition."""
        if not len(self._blockers):
            return True
        logger.debug(
            "%s to %s offered to %d blocker(s)",
            action.value,
            location.path,
            len(self._blockers),
        )
        self._offer(Transition(action=action, location=location, retry=retry))
        return False

    def _offer(self, transition: Transition) -> None:
        self._post_message(NavigationBlocked(transition))
        self._blockers.broadcast(transition)

    def _commit(self, action: Action, location: Location) -> None:
        # Entries written from an untracked position stay untracked
        next_index = self._index
        if action is Action.PUSH:
            if next_index is not None:
                next_index += 1
            self._backend.commit_push(location, next_index)
        else:
            self._backend.commit_replace(location, next_index)
        self._apply_tx(action, next_index)

    def _apply_tx(self, action: Action, expected_index: int | None) -> None:
        index, location = self._backend.read_current()
        if index is None and expected_index is not None:
            # The backend fell back to a navigation that dropped the record
            logger.warning(
                "History record for %s was lost; state attached to it is gone",
                location.path,
            )
            index = expected_index
            self._backend.commit_replace(location, index)
        self._adopt(action, location, index)

    def _adopt(self, action: Action, location: Location, index: int | None) -> None:
        self._action = action
        self._location = location
        self._index = index
        logger.debug("%s %s (index %s)", action.value, location.path, index)

        update = Update(action=action, location=location)
        self._listeners.broadcast(update)
        self._post_message(LocationChanged(update, index))

    def _accept_pop(self, index: int | None, location: Location) -> None:
        self._adopt(Action.POP, location, index)

    def _handle_pop(self) -> None:
        """Reconcile a move the backend has already applied."""
        if self._blocked_pop is not None:
            # Echo of our own reversal: now ask the blockers
            transition, self._blocked_pop = self._blocked_pop, None
            self._offer(transition)
            return

        next_index, next_location = self._backend.read_current()

        resolving, self._resolving_index = self._resolving_index, None
        if resolving is not None and next_index == resolving:
            self._accept_pop(next_index, next_location)
            return

        if not len(self._blockers):
            self._accept_pop(next_index, next_location)
            return

        if next_index is None or self._index is None:
            # No distance to undo when either end is untracked
            untracked = next_location if next_index is None else self._location
            logger.warning(
                "Cannot block a POP between %s and %s: %s was not created by "
                "this history, so the navigation is accepted. Navigate through "
                "the history object instead of writing to the backend directly.",
                self._location.path,
                next_location.path,
                untracked.path,
            )
            self._accept_pop(next_index, next_location)
            return

        delta = self._index - next_index
        if not delta:
            return

        logger.debug("Reverting POP to index %d (delta %d)", next_index, delta)
        self._blocked_pop = Transition(
            action=Action.POP,
            location=next_location,
            retry=self._retry_once(lambda: self._redo_pop(next_index, -delta)),
        )
        self._backend.move_by(delta)

    def _redo_pop(self, target_index: int, delta: int) -> None:
        self._resolving_index = target_index
        self._backend.move_by(delta)
