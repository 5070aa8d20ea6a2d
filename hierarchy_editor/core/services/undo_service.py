from __future__ import annotations

"""Undo/redo snapshot management for a :class:`HierarchyModel`.

This service is UI-agnostic and performs pure in-memory history tracking of
the whole node tree. Each snapshot is a deep, parent-free mapping produced by
:meth:`HierarchyNode.to_dict`; restoring rebuilds a fresh tree and hands it
to the model in one swap.

Design principles
-----------------
- No UI imports and no I/O.
- Snapshots are never mutated once stored.
- Redo stack is cleared on every new snapshot push.
- Memory usage controlled by ``max_history`` (oldest entries trimmed).
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from hierarchy_editor.core.hierarchy_model import HierarchyModel
from hierarchy_editor.core.models import HierarchyNode

logger = logging.getLogger(__name__)

__all__ = ["UndoService"]


@dataclass(frozen=True)
class _Snapshot:
    """Immutable capture of a tree.

    Attributes
    ----------
    tree :
        ``to_dict`` form of the root, or None when the model was empty.
    label :
        Short description of the action that produced this state.
    """

    tree: Optional[Dict[str, Any]]
    label: str = ""


class UndoService:
    """Manage undo/redo stacks for a :class:`HierarchyModel`.

    Parameters
    ----------
    max_history : int, default=50
        Maximum number of undo snapshots to keep. Values below 1 are coerced
        to 1.

    Notes
    -----
    Callers push a baseline snapshot before the first mutation and one after
    every committed mutation. ``undo`` restores the snapshot below the top of
    the stack and moves the top to the redo stack.

    Examples
    --------
    >>> svc = UndoService(max_history=10)
    >>> svc.push_snapshot(model)          # baseline
    >>> model.update_node_value(node, 2)
    >>> svc.push_snapshot(model, "edit")  # post
    >>> svc.undo(model)
    True
    """

    def __init__(self, max_history: int = 50) -> None:
        self._max_history: int = max(1, int(max_history))
        self._undo_stack: List[_Snapshot] = []
        self._redo_stack: List[_Snapshot] = []

    # --------------------------------------------------------------------- API

    def push_snapshot(self, model: HierarchyModel, label: str = "") -> None:
        snap = self._create_snapshot(model, label)
        if snap is None:
            return
        self._undo_stack.append(snap)
        self._redo_stack.clear()
        self._trim(self._undo_stack)

    def undo(self, model: HierarchyModel) -> bool:
        """Restore the previous state into ``model``. Returns False when nothing to undo."""
        if len(self._undo_stack) < 2:
            return False
        post_snap = self._undo_stack.pop()
        baseline_snap = self._undo_stack[-1]
        if not self._restore_snapshot(model, baseline_snap):
            self._undo_stack.append(post_snap)
            return False
        self._redo_stack.append(post_snap)
        self._trim(self._redo_stack)
        logger.debug("Edit OK: undo %s", post_snap.label or "change")
        return True

    def redo(self, model: HierarchyModel) -> bool:
        """Re-apply a state that was previously undone."""
        if not self._redo_stack:
            return False
        post_snap = self._redo_stack.pop()
        if not self._restore_snapshot(model, post_snap):
            self._redo_stack.append(post_snap)
            return False
        self._undo_stack.append(post_snap)
        self._trim(self._undo_stack)
        logger.debug("Edit OK: redo %s", post_snap.label or "change")
        return True

    def can_undo(self) -> bool:
        return len(self._undo_stack) > 1

    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()

    # --------------------------------------------------------------- Internals

    def _trim(self, stack: List[_Snapshot]) -> None:
        overflow = len(stack) - self._max_history
        if overflow > 0:
            del stack[0:overflow]

    def _create_snapshot(self, model: HierarchyModel, label: str) -> Optional[_Snapshot]:
        root = model.get_root_node()
        try:
            tree = copy.deepcopy(root.to_dict()) if root is not None else None
        except Exception as e:
            logger.warning("Edit FAIL: snapshot %s: %s", label or "change", e)
            return None
        return _Snapshot(tree=tree, label=label)

    def _restore_snapshot(self, model: HierarchyModel, snap: _Snapshot) -> bool:
        try:
            root = HierarchyNode.from_dict(copy.deepcopy(snap.tree)) if snap.tree is not None else None
        except Exception as e:
            logger.warning("Edit FAIL: restore %s: %s", snap.label or "change", e)
            return False
        model.set_root_node(root)
        return True
