"""Errors raised by the state store.

Kept in the store package so chaba_store has no dependency on chaba_core.
chaba_core.errors re-exports these for callers that only import from core.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for all state store failures."""


class StateConflictError(StoreError):
    """The state file changed on disk since the caller loaded it.

    Callers must reload, re-apply their mutation and save again. The store
    never merges concurrent writes itself.
    """

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"State was modified by another process (expected version {expected}, found {actual}). "
            "Reload and try again."
        )


class StateIOError(StoreError):
    """Reading, locking or writing the state file failed."""


class StateSerializationError(StoreError):
    """The state file could not be parsed or the state could not be rendered."""
