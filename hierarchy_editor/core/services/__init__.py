from __future__ import annotations

"""Stateful helpers owned by one editor instance (expansion state, undo history, persistence)."""

from .expansion_state import ExpansionStateManager  # noqa: F401
from .state_store import JsonFileStore, MemoryStore, StateStore  # noqa: F401
from .undo_service import UndoService  # noqa: F401

__all__: list[str] = [
    "ExpansionStateManager",
    "JsonFileStore",
    "MemoryStore",
    "StateStore",
    "UndoService",
]
