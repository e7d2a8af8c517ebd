"""Hash-fragment backend.

Same record handling as the session backend, but the location's path is
kept after the ``#`` of the address, encoded according to a HashType.
"""

from __future__ import annotations

import logging

from navhistory.models import HashType, Location, To
from navhistory.paths import (
    create_path,
    decode_hash_path,
    encode_hash_path,
    has_basename,
    split_fragment,
    strip_basename,
)
from navhistory.ports import SessionStore

from .session import SessionHistoryBackend

logger = logging.getLogger(__name__)


class HashHistoryBackend(SessionHistoryBackend):
    """HistoryBackend that stores the path in the address fragment."""

    def __init__(
        self,
        store: SessionStore,
        *,
        basename: str = "",
        hash_type: HashType = HashType.SLASH,
    ) -> None:
        super().__init__(store, basename=basename)
        self.hash_type = hash_type
        self._ensure_canonical_fragment()

    def _ensure_canonical_fragment(self) -> None:
        """Rewrite the current address if its fragment uses another encoding."""
        document, fragment = split_fragment(self.store.url)
        path = decode_hash_path(fragment, self.hash_type)
        encoded = encode_hash_path(path, self.hash_type)
        if encoded != fragment:
            logger.debug("Rewriting fragment %r as %r", fragment, encoded)
            self.store.replace_state(self.store.state, f"{document}#{encoded}")

    def _path_from_store(self) -> str:
        _, fragment = split_fragment(self.store.url)
        path = decode_hash_path(fragment, self.hash_type)
        if self.basename and not has_basename(path, self.basename):
            logger.warning(
                "Hash path %s does not start with basename %s",
                path,
                self.basename,
            )
        return strip_basename(path, self.basename)

    def create_href(self, to: To | Location) -> str:
        document, _ = split_fragment(self.store.url)
        path = to if isinstance(to, str) else create_path(to)
        return f"{document}#{encode_hash_path(self.basename + path, self.hash_type)}"
