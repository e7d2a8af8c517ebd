"""Constructors that wire a History to each kind of backend."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from .backends.hash import HashHistoryBackend
from .backends.memory import InitialEntry, MemoryBackend
from .backends.session import SessionHistoryBackend
from .engine import History
from .models import BackendKind, HashType, HistoryConfig
from .paths import DEFAULT_KEY_LENGTH
from .ports import UnloadGuard
from .stores import FileSessionStore, InMemorySessionStore, StoreUnloadGuard

logger = logging.getLogger(__name__)


def create_memory_history(
    initial_entries: Sequence[InitialEntry] | None = None,
    initial_index: int | None = None,
    *,
    key_length: int = DEFAULT_KEY_LENGTH,
    unload_guard: UnloadGuard | None = None,
) -> History:
    """History kept entirely in memory, for tests and non-browser hosts."""
    backend = MemoryBackend(initial_entries, initial_index, key_length=key_length)
    return History(backend, unload_guard=unload_guard, key_length=key_length)


def create_session_history(
    store: InMemorySessionStore | None = None,
    *,
    basename: str = "",
    key_length: int = DEFAULT_KEY_LENGTH,
    loop: asyncio.AbstractEventLoop | None = None,
) -> History:
    """History that stores paths as addresses in a session store.

    Without a store, an InMemorySessionStore is created.
    """
    if store is None:
        store = InMemorySessionStore(loop=loop)
    backend = SessionHistoryBackend(store, basename=basename)
    return History(backend, unload_guard=StoreUnloadGuard(store), key_length=key_length)


def create_hash_history(
    store: InMemorySessionStore | None = None,
    *,
    basename: str = "",
    hash_type: HashType = HashType.SLASH,
    key_length: int = DEFAULT_KEY_LENGTH,
    loop: asyncio.AbstractEventLoop | None = None,
) -> History:
    """History that stores paths in the fragment of a session store's address."""
    if store is None:
        store = InMemorySessionStore(loop=loop)
    backend = HashHistoryBackend(store, basename=basename, hash_type=hash_type)
    return History(backend, unload_guard=StoreUnloadGuard(store), key_length=key_length)


def create_store_from_config(config: HistoryConfig) -> InMemorySessionStore:
    """Session store described by ``config`` (file-backed when configured)."""
    if config.session_file:
        return FileSessionStore(
            Path(config.session_file), max_writes=config.max_writes
        )
    return InMemorySessionStore(max_writes=config.max_writes)


def create_history_from_config(config: HistoryConfig) -> History:
    """Build the History a HistoryConfig describes."""
    logger.debug("Creating %s history", config.backend.value)
    if config.backend is BackendKind.MEMORY:
        return create_memory_history(
            config.initial_entries,
            config.initial_index,
            key_length=config.key_length,
        )

    store = create_store_from_config(config)
    if config.backend is BackendKind.HASH:
        return create_hash_history(
            store,
            basename=config.basename,
            hash_type=config.hash_type,
            key_length=config.key_length,
        )
    return create_session_history(
        store, basename=config.basename, key_length=config.key_length
    )
