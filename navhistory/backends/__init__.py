"""Backend adapters: one HistoryBackend implementation per environment."""

from navhistory.backends.hash import HashHistoryBackend
from navhistory.backends.memory import MemoryBackend
from navhistory.backends.session import SessionHistoryBackend

__all__ = [
    "HashHistoryBackend",
    "MemoryBackend",
    "SessionHistoryBackend",
]
