"""Testing utilities for navhistory.

This package provides mock implementations of the backend protocols
for unit testing without a real session store.
"""

from navhistory.testing.mock_backend import MockBackend, MockCall, MockUnloadGuard

__all__ = [
    "MockBackend",
    "MockCall",
    "MockUnloadGuard",
]
