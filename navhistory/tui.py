"""Textual host integration.

Provides:
- LeaveConfirmModal: confirmation dialog shown when the user tries to quit
  while navigation is blocked
- TextualUnloadGuard: an UnloadGuard that routes quitting through the modal
- HistoryAppMixin: quit bindings and message wiring for a Textual App
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static

if TYPE_CHECKING:
    from textual.app import App

    from navhistory.engine import History

logger = logging.getLogger(__name__)


class LeaveAction(Enum):
    """Choices offered when quitting with navigation blocked."""

    LEAVE = "leave"
    STAY = "stay"


class LeaveConfirmModal(ModalScreen[LeaveAction]):
    """Modal asking whether to discard the session while changes are guarded."""

    BINDINGS = [
        Binding("l", "leave", "Leave"),
        Binding("s", "stay", "Stay"),
        Binding("escape", "stay", "Stay"),
    ]

    def __init__(self, location_path: str | None = None) -> None:
        super().__init__()
        self.location_path = location_path

    def _message(self) -> Text:
        text = Text("Changes you made may not be saved.")
        if self.location_path:
            text.append("\nCurrent page: ", style="dim")
            text.append(self.location_path, style="bold")
        return text

    def compose(self) -> ComposeResult:
        """Compose the modal layout."""
        yield Container(
            Static("Leave?", id="title"),
            Vertical(
                Static(self._message(), id="message"),
                id="content",
            ),
            Vertical(
                Button("[L] Leave", id="leave", variant="error"),
                Button("[S] Stay", id="stay", variant="primary"),
                id="buttons",
            ),
            id="dialog",
        )

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button presses."""
        action = LeaveAction.LEAVE if event.button.id == "leave" else LeaveAction.STAY
        self.dismiss(action)

    def action_leave(self) -> None:
        """Discard the session."""
        self.dismiss(LeaveAction.LEAVE)

    def action_stay(self) -> None:
        """Keep the session."""
        self.dismiss(LeaveAction.STAY)


class TextualUnloadGuard:
    """UnloadGuard for a Textual App.

    While armed, ``request_exit`` shows LeaveConfirmModal instead of
    exiting right away.
    """

    def __init__(self) -> None:
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self) -> None:
        self._armed = True
        logger.debug("Quit confirmation armed")

    def disarm(self) -> None:
        self._armed = False
        logger.debug("Quit confirmation disarmed")

    def request_exit(self, app: App, location_path: str | None = None) -> None:
        """Exit ``app``, asking first if the guard is armed."""
        if not self._armed:
            app.exit()
            return

        def on_dismiss(action: LeaveAction | None) -> None:
            if action is LeaveAction.LEAVE:
                logger.info("Leaving with navigation blocked")
                app.exit()

        app.push_screen(LeaveConfirmModal(location_path), on_dismiss)


class HistoryAppMixin:
    """Mixin for a Textual App that owns a History.

    Call ``attach_history`` from ``__init__``; the mixin connects the
    history so widgets receive LocationChanged / NavigationBlocked messages
    and routes quitting through the unload guard.

    Example:
        class MyApp(HistoryAppMixin, App):
            BINDINGS = HistoryAppMixin.HISTORY_BINDINGS

            def __init__(self) -> None:
                super().__init__()
                guard = TextualUnloadGuard()
                self.attach_history(create_memory_history(unload_guard=guard), guard)
    """

    HISTORY_BINDINGS = [
        Binding("q", "request_quit", "Quit"),
        Binding("ctrl+c", "request_quit", "Quit", show=False),
        Binding("alt+left", "history_back", "Back", show=False),
        Binding("alt+right", "history_forward", "Forward", show=False),
    ]

    history: History
    unload_guard: TextualUnloadGuard

    def attach_history(self, history: History, guard: TextualUnloadGuard) -> None:
        self.history = history
        self.unload_guard = guard
        history.connect_app(self)  # type: ignore[arg-type]

    def action_request_quit(self) -> None:
        """Handle quit with confirmation while navigation is blocked."""
        self.unload_guard.request_exit(
            self,  # type: ignore[arg-type]
            self.history.location.path,
        )

    def action_history_back(self) -> None:
        self.history.back()

    def action_history_forward(self) -> None:
        self.history.forward()
