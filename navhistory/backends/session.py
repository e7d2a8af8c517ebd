"""Durable-URL backend over a session store.

Each entry's address is the location's path under an optional basename;
its state record carries ``{usr, key, idx}`` so the engine can recover the
location's state, key and position after any move.
"""

from __future__ import annotations

import logging
from typing import Callable

from navhistory.exceptions import HistoryQuotaExceededError, record_error
from navhistory.models import (
    HistoryRecord,
    Location,
    To,
    record_from_state,
    record_to_dict,
)
from navhistory.paths import (
    create_path,
    has_basename,
    normalize_basename,
    parse_path,
    strip_basename,
)
from navhistory.ports import PositionListener, SessionStore

logger = logging.getLogger(__name__)


class SessionHistoryBackend:
    """HistoryBackend that writes addresses and records into a SessionStore."""

    def __init__(self, store: SessionStore, *, basename: str = "") -> None:
        self.store = store
        self.basename = normalize_basename(basename)

    # =========================================================================
    # Address Encoding
    # =========================================================================

    def _path_from_store(self) -> str:
        """The current entry's path, without basename."""
        url = self.store.url
        if self.basename and not has_basename(url, self.basename):
            logger.warning(
                "Address %s does not start with basename %s",
                url,
                self.basename,
            )
        return strip_basename(url, self.basename)

    def create_href(self, to: To | Location) -> str:
        path = to if isinstance(to, str) else create_path(to)
        return self.basename + path

    # =========================================================================
    # HistoryBackend
    # =========================================================================

    def read_current(self) -> tuple[int | None, Location]:
        partial = parse_path(self._path_from_store())
        record = record_from_state(self.store.state)
        location = Location(
            pathname=partial.pathname or "/",
            search=partial.search or "",
            hash=partial.hash or "",
            state=record.usr,
            key=record.key,
        )
        return record.idx, location

    @staticmethod
    def _record(location: Location, index: int | None) -> dict:
        return record_to_dict(
            HistoryRecord(usr=location.state, key=location.key, idx=index)
        )

    def commit_push(self, location: Location, index: int | None) -> str:
        url = self.create_href(location)
        try:
            self.store.push_state(self._record(location, index), url)
        except HistoryQuotaExceededError as e:
            # State attached to the location is lost with a full navigation
            logger.warning("Falling back to full navigation to %s: %s", url, e)
            record_error(e)
            self.store.assign(url)
        return url

    def commit_replace(self, location: Location, index: int | None) -> str:
        url = self.create_href(location)
        self.store.replace_state(self._record(location, index), url)
        return url

    def move_by(self, delta: int) -> None:
        self.store.go(delta)

    def subscribe(self, callback: PositionListener) -> Callable[[], None]:
        return self.store.listen(callback)
