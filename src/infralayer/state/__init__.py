"""Durable record of applied resources."""

from infralayer.state.models import OutputValue, StateRecord
from infralayer.state.store import (
    DEFAULT_STATE_PATH,
    LocalStateStore,
    MemoryStateStore,
    StateSnapshot,
    StateStore,
)

__all__ = [
    "DEFAULT_STATE_PATH",
    "LocalStateStore",
    "MemoryStateStore",
    "OutputValue",
    "StateRecord",
    "StateSnapshot",
    "StateStore",
]
