"""Port assignment for review environments.

The check is point-in-time: a port that binds now may be taken by another
program before the review environment's dev server starts. That race is
accepted for a single-operator tool; uniqueness among chaba environments
comes from the state store, not from a lock here.
"""

from __future__ import annotations

import logging
import socket
from typing import TYPE_CHECKING

from chaba_core.errors import NoAvailablePortError

if TYPE_CHECKING:
    from chaba_store.models import StoreState

logger = logging.getLogger(__name__)

_BIND_HOST = "127.0.0.1"


def is_port_free(port: int, host: str = _BIND_HOST) -> bool:
    """Return True if a listener can be bound on ``port`` right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def assign_port(state: StoreState, range_start: int, range_end: int) -> int:
    """Return the lowest port in [range_start, range_end] that is neither recorded nor bound.

    Raises NoAvailablePortError when the whole range is exhausted.
    """
    used = state.assigned_ports()
    for port in range(range_start, range_end + 1):
        if port in used:
            continue
        if is_port_free(port):
            return port
        logger.debug("Port %d is in use by another process, skipping", port)
    raise NoAvailablePortError(range_start, range_end)
