"""Abstract store interface.

The lifecycle orchestrator depends on BaseStore, not on a concrete backend.
There is deliberately no in-memory authority: every operation reloads the
state, mutates it and saves it back, so separate processes working on the
same store are kept consistent by the version check in save().
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

from chaba_store.errors import StateConflictError

if TYPE_CHECKING:
    from chaba_store.models import EnvironmentRecord, StoreState

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3


class BaseStore(ABC):
    """Versioned persistence for environment records.

    save() is a compare-and-swap on ``state.version``: it either persists the
    state with the version bumped by exactly one, or raises
    StateConflictError and leaves the backing storage untouched.
    """

    @abstractmethod
    def load(self) -> StoreState:
        """Return the current state, or an empty state at version 0 if none exists."""

    @abstractmethod
    def save(self, state: StoreState) -> None:
        """Persist ``state`` if nobody else saved since it was loaded.

        On success ``state.version`` is incremented in place.
        """

    def add_record(self, record: EnvironmentRecord) -> StoreState:
        """Load, replace-by-identifier and save in one call.

        Single attempt: a StateConflictError propagates to the caller. Use
        transact() when the mutation should be retried.
        """
        state = self.load()
        state.upsert(record)
        self.save(state)
        return state

    def remove_record(self, identifier: int) -> StoreState:
        state = self.load()
        state.discard(identifier)
        self.save(state)
        return state

    def transact(self, mutate: Callable[[StoreState], None], retries: int = DEFAULT_RETRIES) -> StoreState:
        """Run ``mutate`` against freshly loaded state and save, retrying on conflict.

        ``mutate`` may be called more than once and must derive everything it
        writes from the state it is handed, never from a previous attempt.
        """
        retries = max(retries, 1)
        for attempt in range(1, retries + 1):
            state = self.load()
            mutate(state)
            try:
                self.save(state)
                return state
            except StateConflictError as e:
                if attempt == retries:
                    logger.error("Giving up after %d conflicting saves: %s", retries, e)
                    raise
                logger.warning("State conflict (attempt %d/%d): %s. Reloading...", attempt, retries, e)
        raise AssertionError("unreachable")  # pragma: no cover
