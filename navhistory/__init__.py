"""Navigation history for Python hosts.

Keeps a virtual stack of locations (path + state + key) over a pluggable
backend: a plain in-memory list, a session store whose addresses hold the
path, or a session store whose address fragment holds it. Blockers can veto
any transition, including back/forward moves the backend applied before
the history heard about them.

Usage:
    from navhistory import create_memory_history

    history = create_memory_history(["/home"])
    unlisten = history.listen(lambda update: print(update.action, update.location.path))

    def confirm(transition):
        if ask_user():
            unblock()
            transition.retry()

    unblock = history.block(confirm)
    history.push("/settings", state={"tab": "general"})
    history.back()
"""

__version__ = "0.1.0"

from navhistory.backends import HashHistoryBackend, MemoryBackend, SessionHistoryBackend
from navhistory.config import (
    load_global_config,
    load_merged_config,
    save_global_config,
    save_project_config,
)
from navhistory.engine import History
from navhistory.events import (
    EventDispatcher,
    LocationChanged,
    NavigationBlocked,
)
from navhistory.exceptions import (
    BackendError,
    ConfigError,
    ConfigFileError,
    ConfigLoadError,
    ConfigSaveError,
    ConfigValidationError,
    HistoryQuotaExceededError,
    InvalidPathError,
    NavHistoryError,
    SessionStoreError,
    SessionStoreLoadError,
    SessionStoreSaveError,
)
from navhistory.factory import (
    create_hash_history,
    create_history_from_config,
    create_memory_history,
    create_session_history,
)
from navhistory.models import (
    Action,
    BackendKind,
    HashType,
    HistoryConfig,
    Location,
    PartialPath,
    Transition,
    Update,
)
from navhistory.paths import create_path, parse_path
from navhistory.ports import HistoryBackend, SessionStore, UnloadGuard
from navhistory.stores import FileSessionStore, InMemorySessionStore, StoreUnloadGuard

__all__ = [
    # Engine
    "History",
    # Factories
    "create_memory_history",
    "create_session_history",
    "create_hash_history",
    "create_history_from_config",
    # Models
    "Action",
    "Location",
    "PartialPath",
    "Transition",
    "Update",
    "HistoryConfig",
    "BackendKind",
    "HashType",
    # Paths
    "create_path",
    "parse_path",
    # Backends and stores
    "HistoryBackend",
    "SessionStore",
    "UnloadGuard",
    "MemoryBackend",
    "SessionHistoryBackend",
    "HashHistoryBackend",
    "InMemorySessionStore",
    "FileSessionStore",
    "StoreUnloadGuard",
    # Events
    "EventDispatcher",
    "LocationChanged",
    "NavigationBlocked",
    # Config
    "load_global_config",
    "load_merged_config",
    "save_global_config",
    "save_project_config",
    # Exceptions
    "NavHistoryError",
    "BackendError",
    "HistoryQuotaExceededError",
    "SessionStoreError",
    "SessionStoreLoadError",
    "SessionStoreSaveError",
    "ConfigError",
    "ConfigFileError",
    "ConfigLoadError",
    "ConfigSaveError",
    "ConfigValidationError",
    "InvalidPathError",
]
