from __future__ import annotations

"""Expanded/collapsed bookkeeping keyed by node path.

The manager never looks at node content except when a caller hands it a root
to enumerate (``expand_all``, ``expand_to_depth``). Paths are the same
delimiter-joined strings produced by
:meth:`~hierarchy_editor.core.hierarchy_model.HierarchyModel.path_of`; the
root itself has the empty path and is not tracked.

Resolution order of :meth:`ExpansionStateManager.is_expanded`:

1. after ``collapse_all`` only explicitly stored paths are expanded;
2. a path never toggled and not stored follows ``default_expanded``;
3. otherwise membership in the stored set decides.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Set

from hierarchy_editor.core.events import EventEmitter
from hierarchy_editor.core.models import HierarchyNode
from hierarchy_editor.core.services.state_store import StateStore

logger = logging.getLogger(__name__)

__all__ = ["ExpansionStateManager"]


class ExpansionStateManager(EventEmitter):
    """Tracks which paths are expanded, with optional keyed persistence.

    Parameters
    ----------
    default_expanded : bool, default=True
        State reported for paths that were never toggled.
    max_depth : float, default=inf
        Depth limit used by :meth:`expand_all` when none is given.
    initial_expanded : iterable of str, optional
        Paths expanded at construction and after :meth:`reset`.
    store, persist_key : optional
        When both are given, the state is read from ``store[persist_key]`` at
        construction and written back after every mutating call.
    scheduler, persist_debounce : optional
        With a scheduler and a positive debounce (seconds), writes are
        coalesced into one deferred write.
    delimiter : str, default="."
        Separator used to build and cascade paths.
    """

    def __init__(self, default_expanded: bool = True, max_depth: float = math.inf,
                 initial_expanded: Optional[Iterable[str]] = None,
                 store: Optional[StateStore] = None, persist_key: Optional[str] = None,
                 scheduler: Any = None, persist_debounce: float = 0.0,
                 delimiter: str = ".") -> None:
        super().__init__()
        self._initial = list(initial_expanded or [])
        self._expanded: Set[str] = set(self._initial)
        self._toggled: Set[str] = set()
        self._all_collapsed = False
        self.default_expanded = default_expanded
        self.max_depth = max_depth
        self.delimiter = delimiter
        self._store = store
        self._persist_key = persist_key
        self._scheduler = scheduler
        self._persist_debounce = persist_debounce
        self._pending_persist = None

        if self._store is not None and self._persist_key:
            self._load_persisted_state()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_expanded(self, path: str) -> bool:
        if not path:
            return self.default_expanded
        if self._all_collapsed:
            return path in self._expanded
        if path not in self._expanded and path not in self._toggled:
            return self.default_expanded
        return path in self._expanded

    def get_expanded_paths(self) -> List[str]:
        return sorted(self._expanded)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "totalExpanded": len(self._expanded),
            "expandedPaths": self.get_expanded_paths(),
            "defaultExpanded": self.default_expanded,
            "maxDepth": self.max_depth,
            "hasPersistence": self._has_persistence(),
        }

    # -------------------------------------------------------------------------
    # Single-path mutation
    # -------------------------------------------------------------------------

    def expand(self, path: str) -> None:
        if not path:
            return
        self._toggled.add(path)
        if path in self._expanded:
            return
        self._expanded.add(path)
        self.emit("expand", {"path": path})
        self.emit("change", {"action": "expand", "path": path})
        self._persist()

    def collapse(self, path: str) -> None:
        """Collapse ``path`` and forget every stored descendant."""
        if not path:
            return
        self._toggled.add(path)
        before = len(self._expanded)
        self._collapse_descendants(path)
        if path not in self._expanded and not self.default_expanded:
            if len(self._expanded) != before:
                self._persist()
            return
        self._expanded.discard(path)
        self.emit("collapse", {"path": path})
        self.emit("change", {"action": "collapse", "path": path})
        self._persist()

    def toggle(self, path: str) -> bool:
        """Flip ``path``; returns the new state."""
        if self.is_expanded(path):
            self.collapse(path)
            return False
        self.expand(path)
        return True

    def expand_path(self, target: str) -> None:
        """Expand ``target`` and every ancestor prefix of it."""
        if not target:
            return
        current = ""
        for part in target.split(self.delimiter):
            current = part if not current else f"{current}{self.delimiter}{part}"
            self._expanded.add(current)
            self._toggled.add(current)
        self.emit("change", {"action": "expandPath", "path": target})
        self._persist()

    # -------------------------------------------------------------------------
    # Bulk mutation
    # -------------------------------------------------------------------------

    def expand_all(self, root: Optional[HierarchyNode] = None,
                   max_depth: Optional[float] = None) -> None:
        self._all_collapsed = False
        if root is not None:
            limit = self.max_depth if max_depth is None else max_depth
            self._expanded.update(self._collect_branch_paths(root, limit))
        self.emit("change", {"action": "expandAll"})
        self._persist()

    def collapse_all(self) -> None:
        self._expanded.clear()
        self._all_collapsed = True
        self.emit("change", {"action": "collapseAll"})
        self._persist()

    def expand_to_depth(self, root: Optional[HierarchyNode], depth: int) -> None:
        """Reset to all-collapsed, then expand branches shallower than ``depth``."""
        if root is None or depth < 0:
            return
        self.collapse_all()
        self._expanded.update(self._collect_branch_paths(root, depth))
        self.emit("change", {"action": "expandToDepth", "depth": depth})
        self._persist()

    def set_expanded_paths(self, paths: Iterable[str]) -> None:
        self._expanded = {p for p in paths if p}
        self.emit("change", {"action": "setPaths"})
        self._persist()

    def reset(self) -> None:
        self._expanded = set(self._initial)
        self._toggled.clear()
        self._all_collapsed = False
        self.emit("change", {"action": "reset"})
        self._persist()

    # -------------------------------------------------------------------------
    # Snapshot / persistence
    # -------------------------------------------------------------------------

    def save_state(self) -> Dict[str, Any]:
        max_depth = None if math.isinf(self.max_depth) else self.max_depth
        return {
            "expandedNodes": self.get_expanded_paths(),
            "defaultExpanded": self.default_expanded,
            "maxDepth": max_depth,
        }

    def restore_state(self, state: Optional[Dict[str, Any]]) -> None:
        """Apply a snapshot produced by :meth:`save_state`; unknown fields are ignored."""
        if not state:
            return
        nodes = state.get("expandedNodes")
        if isinstance(nodes, list):
            self._expanded = {p for p in nodes if isinstance(p, str) and p}
        if isinstance(state.get("defaultExpanded"), bool):
            self.default_expanded = state["defaultExpanded"]
        max_depth = state.get("maxDepth")
        if isinstance(max_depth, (int, float)) and not isinstance(max_depth, bool):
            self.max_depth = max_depth
        self.emit("change", {"action": "restore"})

    def clear_persisted_state(self) -> None:
        if not self._has_persistence():
            return
        try:
            self._store.remove(self._persist_key)
        except Exception as e:
            logger.warning("Failed to clear persisted expansion state: %s", e)

    def flush(self) -> None:
        """Write a pending debounced state immediately."""
        if self._pending_persist is not None:
            self._scheduler.cancel(self._pending_persist)
            self._pending_persist = None
            self._write_state()

    def destroy(self) -> None:
        if self._pending_persist is not None and self._scheduler is not None:
            self._scheduler.cancel(self._pending_persist)
        self._pending_persist = None
        self._expanded.clear()
        self._toggled.clear()
        self.remove_all_listeners()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _has_persistence(self) -> bool:
        return self._store is not None and bool(self._persist_key)

    def _collapse_descendants(self, path: str) -> None:
        prefix = path + self.delimiter
        self._expanded = {p for p in self._expanded if not p.startswith(prefix)}

    def _collect_branch_paths(self, root: HierarchyNode, limit: float) -> List[str]:
        paths: List[str] = []

        def walk(node: HierarchyNode, path: str, depth: int) -> None:
            if depth >= limit or not node.children:
                return
            if path:
                paths.append(path)
            for child in node.children:
                child_path = child.segment() if not path else f"{path}{self.delimiter}{child.segment()}"
                walk(child, child_path, depth + 1)

        walk(root, "", 0)
        return paths

    def _persist(self) -> None:
        if not self._has_persistence():
            return
        if self._scheduler is not None and self._persist_debounce > 0:
            if self._pending_persist is not None:
                self._scheduler.cancel(self._pending_persist)
            self._pending_persist = self._scheduler.call_later(self._persist_debounce, self._debounced_write)
            return
        self._write_state()

    def _debounced_write(self) -> None:
        self._pending_persist = None
        self._write_state()

    def _write_state(self) -> None:
        try:
            self._store.set(self._persist_key, self.save_state())
        except Exception as e:
            logger.warning("Failed to persist expansion state: %s", e)

    def _load_persisted_state(self) -> None:
        try:
            stored = self._store.get(self._persist_key)
        except Exception as e:
            logger.warning("Failed to load persisted expansion state: %s", e)
            return
        if isinstance(stored, dict):
            self.restore_state(stored)
