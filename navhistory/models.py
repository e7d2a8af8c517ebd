"""Core dataclasses for locations, transitions, persisted records and config.

All persisted models are designed for JSON serialization using dacite.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Union

import dacite

DEFAULT_KEY = "default"


# =============================================================================
# Navigation Models
# =============================================================================


class Action(Enum):
    """How the current location came to be current."""

    POP = "POP"  # Moved through the backend stack (back/forward/initial load)
    PUSH = "PUSH"  # New entry added
    REPLACE = "REPLACE"  # Current entry overwritten


@dataclass(frozen=True)
class PartialPath:
    """Path components of a navigation target. Unset parts inherit."""

    pathname: str | None = None
    search: str | None = None
    hash: str | None = None


# A navigation target: a path string or explicit components.
To = Union[str, PartialPath]


@dataclass(frozen=True)
class Location:
    """An entry in the history stack."""

    pathname: str = "/"
    search: str = ""
    hash: str = ""
    state: Any = None  # Opaque user data
    key: str = DEFAULT_KEY  # Unique per engine-created location

    @property
    def path(self) -> str:
        """The location as a single path string."""
        return self.pathname + self.search + self.hash

    @property
    def has_key(self) -> bool:
        """Whether the location carries a key the backend recorded."""
        return self.key != DEFAULT_KEY


@dataclass(frozen=True)
class Update:
    """Passed to listeners after a transition is committed."""

    action: Action
    location: Location


@dataclass(frozen=True)
class Transition:
    """A proposed change offered to blockers.

    Calling ``retry()`` re-attempts the exact same transition.
    """

    action: Action
    location: Location
    retry: Callable[[], None] = field(compare=False, repr=False)


Listener = Callable[[Update], None]
Blocker = Callable[[Transition], None]


# =============================================================================
# Persisted Session Records
# =============================================================================


@dataclass
class HistoryRecord:
    """State record stored next to each address in a session store."""

    usr: Any = None  # Location.state
    key: str = DEFAULT_KEY
    idx: int | None = None  # Position in the store's stack


@dataclass
class SessionEntry:
    """One entry of a session store: the address plus its state record."""

    url: str
    state: dict[str, Any] | None = None


@dataclass
class SessionSnapshot:
    """Complete contents of a session store (used for file persistence)."""

    entries: list[SessionEntry] = field(default_factory=list)
    index: int = 0
    writes: int = 0


# =============================================================================
# Configuration
# =============================================================================


class BackendKind(Enum):
    """Which backend a configured history uses."""

    MEMORY = "memory"
    SESSION = "session"
    HASH = "hash"


class HashType(Enum):
    """Encoding of the path inside a hash fragment."""

    SLASH = "slash"  # #/home
    NOSLASH = "noslash"  # #home
    HASHBANG = "hashbang"  # #!/home


@dataclass
class HistoryConfig:
    """Complete history configuration."""

    backend: BackendKind = BackendKind.MEMORY
    basename: str = ""
    hash_type: HashType = HashType.SLASH
    key_length: int = 8

    # Memory backend
    initial_entries: list[str] = field(default_factory=lambda: ["/"])
    initial_index: int | None = None

    # Session/hash backends
    session_file: str | None = None  # None keeps the session in memory
    max_writes: int | None = None  # Write quota before falling back


# =============================================================================
# Serialization Helpers
# =============================================================================


def record_to_dict(record: HistoryRecord) -> dict[str, Any]:
    """Convert a HistoryRecord to the dict stored in a session entry."""
    return asdict(record)


def record_from_state(state: object) -> HistoryRecord:
    """Decode a session entry's state into a HistoryRecord.

    Anything that is not a mapping (including ``None``) decodes to an
    empty record, which reads back as an untracked location.
    """
    if not isinstance(state, dict):
        return HistoryRecord()
    data = {k: state[k] for k in ("usr", "key", "idx") if k in state}
    if not isinstance(data.get("key", DEFAULT_KEY), str):
        data.pop("key")
    if not isinstance(data.get("idx"), int) or isinstance(data.get("idx"), bool):
        data.pop("idx", None)
    return dacite.from_dict(data_class=HistoryRecord, data=data)


def _convert_enums(obj: object) -> object:
    """Recursively convert Enum values to their string values."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: _convert_enums(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_enums(item) for item in obj]
    return obj


def model_to_dict(obj: object) -> dict:
    """Convert a dataclass model to a dictionary for JSON serialization."""
    data = asdict(obj)  # type: ignore[arg-type]
    return _convert_enums(data)  # type: ignore[return-value]


def model_from_dict(data_class: type, data: dict) -> object:
    """Load a dataclass model from a dictionary."""
    return dacite.from_dict(
        data_class=data_class,
        data=data,
        config=dacite.Config(cast=[Enum]),
    )
