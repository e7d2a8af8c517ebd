"""Tests for the History transition engine."""

from unittest.mock import MagicMock

import pytest

from navhistory.backends import MemoryBackend
from navhistory.engine import History
from navhistory.events import LocationChanged, NavigationBlocked
from navhistory.models import Action, Location, PartialPath, Transition, Update
from navhistory.testing import MockBackend, MockUnloadGuard


def _recorder():
    calls = []
    return calls, calls.append


class TestInitialState:
    """Tests for the state a History starts in."""

    def test_starts_in_pop_with_backend_location(self) -> None:
        backend = MockBackend(["/a", "/b"], position=1)
        history = History(backend)

        assert history.action is Action.POP
        assert history.location.pathname == "/b"
        assert history.index == 1

    def test_missing_index_is_synthesized_and_persisted(self) -> None:
        backend = MockBackend(["/start"], tracked=False)
        history = History(backend)

        assert history.index == 0
        replaces = backend.calls_to("commit_replace")
        assert len(replaces) == 1
        assert replaces[0].index == 0
        assert backend.read_current()[0] == 0

    def test_subscribes_to_backend(self) -> None:
        backend = MockBackend()
        History(backend)
        assert backend.subscriber_count == 1

    def test_close_unsubscribes(self) -> None:
        backend = MockBackend()
        history = History(backend)
        history.close()
        assert backend.subscriber_count == 0

    def test_context_manager_closes(self) -> None:
        backend = MockBackend()
        with History(backend):
            assert backend.subscriber_count == 1
        assert backend.subscriber_count == 0


class TestPush:
    """Tests for push without blockers."""

    def test_push_updates_state_and_notifies_once(self) -> None:
        history = History(MemoryBackend(["/"]))
        updates, listener = _recorder()
        history.listen(listener)

        history.push("/next", state={"id": 1})

        assert history.action is Action.PUSH
        assert history.location.pathname == "/next"
        assert history.location.state == {"id": 1}
        assert history.index == 1
        assert updates == [Update(Action.PUSH, history.location)]

    def test_index_increases_by_one_per_push_with_unique_keys(self) -> None:
        history = History(MemoryBackend(["/"]))
        keys = []
        for i in range(1, 6):
            history.push(f"/page/{i}")
            assert history.index == i
            keys.append(history.location.key)

        assert len(set(keys)) == len(keys)

    def test_push_commits_to_backend_at_next_index(self) -> None:
        backend = MockBackend(["/a"])
        history = History(backend)

        history.push("/b")

        pushes = backend.calls_to("commit_push")
        assert len(pushes) == 1
        assert pushes[0].index == 1
        assert pushes[0].location.pathname == "/b"

    def test_push_parses_search_and_hash(self) -> None:
        history = History(MemoryBackend(["/"]))
        history.push("/the/path?the=query#the-hash")

        assert history.location.pathname == "/the/path"
        assert history.location.search == "?the=query"
        assert history.location.hash == "#the-hash"

    def test_push_missing_pathname_keeps_current_pathname(self) -> None:
        history = History(MemoryBackend(["/the/path?a=b#c"]))
        history.push("?another=query")

        assert history.location.pathname == "/the/path"
        assert history.location.search == "?another=query"
        assert history.location.hash == ""

    def test_push_relative_pathname(self) -> None:
        history = History(MemoryBackend(["/the/path?the=query#the-hash"]))
        history.push("../other/path?another=query#another-hash")

        assert history.location.pathname == "/other/path"
        assert history.location.search == "?another=query"
        assert history.location.hash == "#another-hash"

    def test_push_partial_path(self) -> None:
        history = History(MemoryBackend(["/home"]))
        history.push(PartialPath(pathname="/x", search="?q=1"))

        assert history.location.path == "/x?q=1"

    def test_push_partial_path_without_prefixes(self) -> None:
        """Bare query and fragment parts get their ``?`` and ``#``."""
        history = History(MemoryBackend(["/home"]))
        history.push(PartialPath(pathname="/a", search="q=1", hash="top"))

        assert history.location.search == "?q=1"
        assert history.location.hash == "#top"
        assert history.location.path == "/a?q=1#top"
        assert history.location.path == history.create_href(history.location)

    def test_push_same_path_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        history = History(MemoryBackend(["/same"]))
        updates, listener = _recorder()
        history.listen(listener)

        with caplog.at_level("WARNING", logger="navhistory.engine"):
            history.push("/same")

        assert "same state" in caplog.text
        # Still navigates
        assert len(updates) == 1
        assert history.index == 1

    def test_push_same_path_with_new_state_does_not_warn(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        history = History(MemoryBackend(["/same"]))
        with caplog.at_level("WARNING", logger="navhistory.engine"):
            history.push("/same", state={"n": 1})
        assert caplog.text == ""

    def test_push_after_back_truncates_forward_entries(self) -> None:
        backend = MemoryBackend(["/a", "/b", "/c"], 2)
        history = History(backend)

        history.back()
        history.push("/d")

        assert [loc.pathname for loc in backend.entries] == ["/a", "/b", "/d"]
        assert history.index == 2


class TestReplace:
    """Tests for replace without blockers."""

    def test_replace_keeps_index(self) -> None:
        history = History(MemoryBackend(["/a", "/b"], 1))
        old_key = history.location.key

        history.replace("/c", state="s")

        assert history.index == 1
        assert history.action is Action.REPLACE
        assert history.location.pathname == "/c"
        assert history.location.state == "s"
        assert history.location.key != old_key

    def test_replace_notifies_once(self) -> None:
        history = History(MemoryBackend(["/a"]))
        updates, listener = _recorder()
        history.listen(listener)

        history.replace("/b")

        assert len(updates) == 1
        assert updates[0].action is Action.REPLACE

    def test_replace_commits_at_current_index(self) -> None:
        backend = MockBackend(["/a", "/b"], position=1)
        history = History(backend)

        history.replace("/c")

        assert backend.calls_to("commit_replace")[-1].index == 1


class TestGo:
    """Tests for go/back/forward."""

    def test_go_only_asks_backend(self) -> None:
        backend = MockBackend(["/a", "/b", "/c"], position=2)
        history = History(backend)
        updates, listener = _recorder()
        history.listen(listener)

        history.go(-2)

        assert backend.moves == [-2]
        # Nothing happens until the backend reports the move
        assert history.index == 2
        assert updates == []

    def test_back_and_forward(self) -> None:
        backend = MockBackend(["/a", "/b"], position=1)
        history = History(backend)

        history.back()
        history.forward()

        assert backend.moves == [-1, 1]

    def test_notification_is_accepted_as_pop(self) -> None:
        backend = MockBackend(["/a", "/b", "/c"], position=2)
        history = History(backend)
        updates, listener = _recorder()
        history.listen(listener)

        backend.set_position(0)
        backend.fire()

        assert history.action is Action.POP
        assert history.location.pathname == "/a"
        assert history.index == 0
        assert len(updates) == 1

    def test_memory_backend_go(self) -> None:
        history = History(MemoryBackend(["/a", "/b", "/c"], 2))
        history.go(-2)
        assert history.location.pathname == "/a"
        history.forward()
        assert history.location.pathname == "/b"
        assert history.action is Action.POP

    def test_memory_backend_go_out_of_range_does_nothing(self) -> None:
        history = History(MemoryBackend(["/a"]))
        updates, listener = _recorder()
        history.listen(listener)

        history.go(5)

        assert updates == []
        assert history.action is Action.POP


class TestListen:
    """Tests for listener registration."""

    def test_unlisten_stops_notifications(self) -> None:
        history = History(MemoryBackend(["/"]))
        updates, listener = _recorder()
        unlisten = history.listen(listener)

        unlisten()
        history.push("/a")

        assert updates == []

    def test_listener_receives_new_state(self) -> None:
        history = History(MemoryBackend(["/"]))
        seen = []
        history.listen(lambda update: seen.append((history.index, update.location)))

        history.push("/a")

        assert seen == [(1, history.location)]


class TestBlockPushReplace:
    """Tests for the blocking handshake on push/replace."""

    def test_blocked_push_changes_nothing(self) -> None:
        backend = MockBackend(["/a"])
        history = History(backend)
        before = (history.action, history.location, history.index)
        updates, listener = _recorder()
        history.listen(listener)
        transitions, blocker = _recorder()
        history.block(blocker)

        history.push("/b")

        assert (history.action, history.location, history.index) == before
        assert updates == []
        assert backend.calls_to("commit_push") == []
        assert len(transitions) == 1
        assert transitions[0].action is Action.PUSH
        assert transitions[0].location.pathname == "/b"

    def test_blocked_replace_changes_nothing(self) -> None:
        history = History(MemoryBackend(["/a"]))
        before = (history.action, history.location, history.index)
        transitions, blocker = _recorder()
        history.block(blocker)

        history.replace("/b")

        assert (history.action, history.location, history.index) == before
        assert transitions[0].action is Action.REPLACE

    def test_delayed_retry_applies_offered_location_once(self) -> None:
        history = History(MemoryBackend(["/a"]))
        updates, listener = _recorder()
        history.listen(listener)
        transitions, blocker = _recorder()
        unblock = history.block(blocker)

        history.push("/b", state={"x": 1})
        offered = transitions[0]
        assert updates == []

        unblock()
        offered.retry()
        offered.retry()

        assert len(updates) == 1
        assert history.location == offered.location
        assert history.index == 1
        assert history.action is Action.PUSH

    def test_retry_applies_even_while_blocker_remains(self) -> None:
        history = History(MemoryBackend(["/a"]))
        transitions, blocker = _recorder()
        history.block(blocker)

        history.replace("/b")
        transitions[0].retry()

        assert history.location.pathname == "/b"
        assert len(transitions) == 1

    def test_blocker_retrying_synchronously(self) -> None:
        history = History(MemoryBackend(["/a"]))
        updates, listener = _recorder()
        history.listen(listener)
        history.block(lambda tx: tx.retry())

        history.push("/b")

        assert history.location.pathname == "/b"
        assert len(updates) == 1

    def test_every_blocker_is_offered_the_transition(self) -> None:
        history = History(MemoryBackend(["/a"]))
        first, blocker_a = _recorder()
        second, blocker_b = _recorder()
        history.block(blocker_a)
        history.block(blocker_b)

        history.push("/b")

        assert len(first) == 1
        assert first[0] is second[0]

    def test_unblock_allows_navigation(self) -> None:
        history = History(MemoryBackend(["/a"]))
        unblock = history.block(lambda tx: None)
        unblock()

        history.push("/b")

        assert history.location.pathname == "/b"

    def test_blocker_may_navigate_elsewhere(self) -> None:
        history = History(MemoryBackend(["/a"]))

        def redirect(tx: Transition) -> None:
            unblock()
            history.replace("/login")

        unblock = history.block(redirect)
        history.push("/secret")

        assert history.location.pathname == "/login"
        assert history.action is Action.REPLACE


class TestUnloadGuard:
    """Tests for arming unload confirmation with blockers."""

    def test_first_blocker_arms_last_disarms(self) -> None:
        guard = MockUnloadGuard()
        history = History(MockBackend(), unload_guard=guard)

        unblock_a = history.block(lambda tx: None)
        unblock_b = history.block(lambda tx: None)
        assert guard.events == ["arm"]

        unblock_a()
        assert guard.armed
        unblock_b()
        assert guard.events == ["arm", "disarm"]

    def test_unblock_twice_is_harmless(self) -> None:
        guard = MockUnloadGuard()
        history = History(MockBackend(), unload_guard=guard)

        unblock = history.block(lambda tx: None)
        unblock()
        unblock()

        assert guard.events == ["arm", "disarm"]
        assert history.blocker_count == 0

    def test_close_disarms(self) -> None:
        guard = MockUnloadGuard()
        history = History(MockBackend(), unload_guard=guard)
        history.block(lambda tx: None)

        history.close()

        assert not guard.armed


class TestPopReconciliation:
    """Tests for blocking POPs the backend already applied."""

    def _history_at_five(self):
        backend = MockBackend([f"/{i}" for i in range(8)], position=5)
        history = History(backend)
        updates, listener = _recorder()
        history.listen(listener)
        return backend, history, updates

    def test_blocked_pop_is_reverted(self) -> None:
        backend, history, updates = self._history_at_five()
        before = (history.action, history.location, history.index)
        transitions, blocker = _recorder()
        history.block(blocker)

        # User jumps back two entries
        backend.set_position(3)
        backend.fire()

        # The engine undoes the move before asking anyone
        assert backend.moves == [2]
        assert transitions == []

        # Echo of the undo
        backend.set_position(5)
        backend.fire()

        assert (history.action, history.location, history.index) == before
        assert updates == []
        assert len(transitions) == 1
        assert transitions[0].action is Action.POP
        assert transitions[0].location.pathname == "/3"

    def test_blocked_pop_with_synchronous_backend(self) -> None:
        backend, history, updates = self._history_at_five()
        backend.auto_apply = True
        before = (history.action, history.location, history.index)
        transitions, blocker = _recorder()
        history.block(blocker)

        backend.set_position(3)
        backend.fire()

        assert (history.action, history.location, history.index) == before
        assert backend.position == 5
        assert updates == []
        assert len(transitions) == 1
        assert transitions[0].action is Action.POP

    def test_approved_pop_is_replayed(self) -> None:
        backend, history, updates = self._history_at_five()
        backend.auto_apply = True
        transitions, blocker = _recorder()
        history.block(blocker)

        backend.set_position(3)
        backend.fire()
        transitions[0].retry()

        assert history.action is Action.POP
        assert history.location.pathname == "/3"
        assert history.index == 3
        assert len(updates) == 1
        # The replay is not offered to blockers again
        assert len(transitions) == 1
        assert backend.moves == [2, -2]

    def test_approved_pop_with_asynchronous_echo(self) -> None:
        backend, history, updates = self._history_at_five()
        transitions, blocker = _recorder()
        history.block(blocker)

        backend.set_position(3)
        backend.fire()
        backend.set_position(5)
        backend.fire()

        transitions[0].retry()
        assert backend.moves == [2, -2]
        assert updates == []

        backend.set_position(3)
        backend.fire()

        assert (history.action, history.index) == (Action.POP, 3)
        assert history.location.pathname == "/3"
        assert len(updates) == 1
        assert len(transitions) == 1

    def test_blocker_retrying_during_echo(self) -> None:
        backend, history, updates = self._history_at_five()
        backend.auto_apply = True
        offered = []

        def approve(tx: Transition) -> None:
            offered.append(tx)
            tx.retry()

        history.block(approve)
        backend.set_position(4)
        backend.fire()

        assert history.index == 4
        assert history.location.pathname == "/4"
        assert len(offered) == 1
        assert len(updates) == 1

    def test_each_vetoed_pop_is_offered(self) -> None:
        backend, history, updates = self._history_at_five()
        backend.auto_apply = True
        transitions, blocker = _recorder()
        history.block(blocker)

        backend.set_position(3)
        backend.fire()
        backend.set_position(6)
        backend.fire()

        assert history.index == 5
        assert [t.location.pathname for t in transitions] == ["/3", "/6"]

    def test_mismatched_notification_clears_resolution(self) -> None:
        backend, history, updates = self._history_at_five()
        transitions, blocker = _recorder()
        history.block(blocker)

        backend.set_position(3)
        backend.fire()
        backend.set_position(5)
        backend.fire()
        transitions[0].retry()

        # Something else moved the backend before the redo landed
        backend.set_position(6)
        backend.fire()

        assert history.index == 5
        assert updates == []
        assert backend.moves == [2, -2, -1]

    def test_zero_delta_does_nothing(self) -> None:
        backend, history, updates = self._history_at_five()
        transitions, blocker = _recorder()
        history.block(blocker)

        backend.fire()

        assert backend.moves == []
        assert transitions == []
        assert updates == []

    def test_untracked_pop_is_accepted_with_warning(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        backend, history, updates = self._history_at_five()
        transitions, blocker = _recorder()
        history.block(blocker)
        backend.entries[2] = (None, Location(pathname="/foreign"))

        backend.set_position(2)
        with caplog.at_level("WARNING", logger="navhistory.engine"):
            backend.fire()

        assert "Cannot block a POP" in caplog.text
        assert history.location.pathname == "/foreign"
        assert history.action is Action.POP
        assert transitions == []
        assert len(updates) == 1
        # The foreign entry is left without a record
        assert history.index is None
        assert backend.entries[2][0] is None
        assert backend.calls_to("commit_replace") == []

    def test_pop_away_from_untracked_entry_is_accepted_with_warning(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Forward after an untracked back lands where the backend is."""
        backend, history, updates = self._history_at_five()
        backend.entries[4] = (None, Location(pathname="/foreign"))
        backend.set_position(4)
        backend.fire()
        assert history.index is None

        transitions, blocker = _recorder()
        history.block(blocker)
        backend.set_position(5)
        with caplog.at_level("WARNING", logger="navhistory.engine"):
            backend.fire()

        assert "Cannot block a POP" in caplog.text
        assert "/foreign" in caplog.text
        assert backend.moves == []
        assert transitions == []
        assert len(updates) == 2
        assert history.location == backend.entries[5][1]
        assert history.index == 5

    def test_blocking_resumes_after_leaving_untracked_entry(self) -> None:
        """Once back on tracked entries, POPs are reverted and offered again."""
        backend, history, updates = self._history_at_five()
        backend.entries[3] = (None, Location(pathname="/foreign"))
        backend.set_position(3)
        backend.fire()

        transitions, blocker = _recorder()
        history.block(blocker)
        backend.set_position(6)
        backend.fire()
        backend.set_position(2)
        backend.fire()

        assert backend.moves == [4]
        assert history.index == 6
        assert len(transitions) == 0
        # The reversal echo is what offers the transition
        backend.set_position(6)
        backend.fire()
        assert len(transitions) == 1
        assert transitions[0].location == backend.entries[2][1]

    def test_push_from_untracked_entry_is_untracked(self) -> None:
        backend, history, updates = self._history_at_five()
        backend.entries[2] = (None, Location(pathname="/foreign"))
        backend.set_position(2)
        backend.fire()

        history.push("/next")

        assert backend.calls_to("commit_push")[-1].index is None
        assert history.index is None
        assert history.location.pathname == "/next"
        assert len(updates) == 2

    def test_pop_without_blockers_after_unblock(self) -> None:
        backend, history, updates = self._history_at_five()
        unblock = history.block(lambda tx: None)
        unblock()

        backend.set_position(1)
        backend.fire()

        assert history.index == 1
        assert backend.moves == []


class TestTextualMessages:
    """Tests for posting messages to a connected Textual app."""

    def test_location_changed_posted(self) -> None:
        history = History(MemoryBackend(["/"]))
        app = MagicMock()
        history.connect_app(app)

        history.push("/a")

        message = app.post_message.call_args[0][0]
        assert isinstance(message, LocationChanged)
        assert message.location.pathname == "/a"
        assert message.index == 1

    def test_navigation_blocked_posted(self) -> None:
        history = History(MemoryBackend(["/"]))
        app = MagicMock()
        history.connect_app(app)
        history.block(lambda tx: None)

        history.push("/a")

        message = app.post_message.call_args[0][0]
        assert isinstance(message, NavigationBlocked)
        assert message.transition.location.pathname == "/a"

    def test_no_messages_after_close(self) -> None:
        history = History(MemoryBackend(["/"]))
        app = MagicMock()
        history.connect_app(app)
        history.close()

        history.push("/a")

        app.post_message.assert_not_called()


class TestCreateHref:
    """Tests for create_href delegation."""

    def test_string_passthrough(self) -> None:
        history = History(MemoryBackend(["/"]))
        assert history.create_href("/a?b#c") == "/a?b#c"

    def test_partial_path(self) -> None:
        history = History(MemoryBackend(["/"]))
        assert history.create_href(PartialPath(pathname="/a", search="?b")) == "/a?b"
