from __future__ import annotations

"""Owner of the live node tree.

This module provides a UI-agnostic, testable model that encapsulates path
addressing and structural mutation of one :class:`HierarchyNode` tree.

Scope and guarantees:
- Operates purely in-memory, no file I/O nor UI imports.
- Conservative behavior with boundary checks; invalid operations return
  ``OperationResult(success=False, ...)`` with clear messaging, never raise.
- Every committed mutation emits one ``change`` notification.

Examples
--------
Basic usage:

    model = HierarchyModel()
    model.set_root_node(root)
    result = model.move_node(model.find_by_path("a.b"), model.find_by_path("c"))
    if not result.success:
        print(result.message)
"""

import logging
import re
from typing import Any, Iterator, List, Optional

from hierarchy_editor.core.events import EventEmitter
from hierarchy_editor.core.models import HierarchyNode, NodeType, OperationResult

__all__ = ["HierarchyModel", "DEFAULT_DELIMITER"]

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = "."
_INDEX_RE = re.compile(r"^\d+$")


class HierarchyModel(EventEmitter):
    """Holds the root node and offers addressing plus safe mutation helpers.

    Parameters
    ----------
    delimiter : str, default="."
        Separator used when joining node segments into paths.

    Notes
    -----
    Array children carry their position as ``name``; the model renumbers
    them after each structural change so paths stay aligned with indices.
    """

    def __init__(self, delimiter: str = DEFAULT_DELIMITER) -> None:
        super().__init__()
        self.delimiter = delimiter
        self._root: Optional[HierarchyNode] = None
        self.is_dirty = False

    # -------------------------------------------------------------------------
    # Root management
    # -------------------------------------------------------------------------

    def get_root_node(self) -> Optional[HierarchyNode]:
        return self._root

    def set_root_node(self, node: Optional[HierarchyNode]) -> None:
        """Replace the whole tree (never patched)."""
        if node is not None:
            node.parent = None
            _relink(node)
        self._root = node
        self.is_dirty = False
        self.emit("change", {"source": "set-root", "root": node})

    def clear(self) -> None:
        self._root = None
        self.is_dirty = False
        self.emit("cleared")

    # -------------------------------------------------------------------------
    # Addressing
    # -------------------------------------------------------------------------

    def iter_nodes(self) -> Iterator[HierarchyNode]:
        if self._root is not None:
            yield from self._root.depth_first()

    def get_node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def find_by_id(self, node_id: str) -> Optional[HierarchyNode]:
        if self._root is None or not node_id:
            return None
        return self._root.find_descendant(node_id)

    def path_of(self, node: HierarchyNode) -> str:
        """Computed path of ``node``; the root's path is the empty string."""
        parts: List[str] = []
        current: Optional[HierarchyNode] = node
        while current is not None and current.parent is not None:
            parts.append(current.segment())
            current = current.parent
        return self.delimiter.join(reversed(parts))

    def normalize_path(self, path: str) -> str:
        """Strip a leading segment naming the root (``"root.a"`` -> ``"a"``)."""
        if not path or self._root is None:
            return path or ""
        root_segment = self._root.name
        if root_segment:
            if path == root_segment:
                return ""
            prefix = root_segment + self.delimiter
            if path.startswith(prefix) and self._resolve(self._root, path) is None:
                return path[len(prefix):]
        return path

    def find_by_path(self, path: Optional[str]) -> Optional[HierarchyNode]:
        """Resolve a delimiter-joined path starting below the root.

        Segments match a child's name, its id, or (for arrays) its index.
        Names that themselves contain the delimiter are matched greedily.
        """
        if self._root is None or path is None:
            return None
        if path in ("", self.delimiter):
            return self._root
        found = self._resolve(self._root, path)
        if found is None:
            normalized = self.normalize_path(path)
            if normalized != path:
                return self._root if normalized == "" else self._resolve(self._root, normalized)
        return found

    def find(self, path_or_id: Optional[str]) -> Optional[HierarchyNode]:
        """Path lookup first, then id lookup."""
        if path_or_id is None:
            return None
        return self.find_by_path(path_or_id) or self.find_by_id(path_or_id)

    def _resolve(self, node: HierarchyNode, remaining: str) -> Optional[HierarchyNode]:
        parts = remaining.split(self.delimiter)
        # Longest candidate first so "v1.2" beats "v1" when both exist
        for take in range(len(parts), 0, -1):
            head = self.delimiter.join(parts[:take])
            rest = self.delimiter.join(parts[take:])
            child = self._match_child(node, head)
            if child is None:
                continue
            if take == len(parts):
                return child
            found = self._resolve(child, rest)
            if found is not None:
                return found
        return None

    @staticmethod
    def _match_child(node: HierarchyNode, segment: str) -> Optional[HierarchyNode]:
        for child in node.children:
            if child.segment() == segment:
                return child
        if node.type == NodeType.ARRAY.value and _INDEX_RE.match(segment):
            index = int(segment)
            if index < len(node.children):
                return node.children[index]
        return None

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def update_node_value(self, node: HierarchyNode, value: Any) -> OperationResult:
        old_value = node.value
        node.value = value
        self._touch("node-updated", node, oldValue=old_value)
        logger.debug("Edit OK: update value path=%s", self.path_of(node))
        return OperationResult(True, "Value updated.", {"oldValue": old_value, "newValue": value})

    def rename_node(self, node: HierarchyNode, name: str) -> OperationResult:
        if node.parent is None:
            return OperationResult(False, "The root node cannot be renamed.")
        if node.parent.type == NodeType.ARRAY.value:
            return OperationResult(False, "Array items are addressed by index and cannot be renamed.")
        if any(s is not node and s.name == name for s in node.parent.children):
            return OperationResult(False, f"A sibling named '{name}' already exists.", {"name": name})
        old_name = node.name
        node.name = name
        self._touch("node-renamed", node, oldValue=old_name)
        return OperationResult(True, "Node renamed.", {"oldValue": old_name, "newValue": name})

    def add_node(self, parent: HierarchyNode, node: HierarchyNode,
                 index: Optional[int] = None) -> OperationResult:
        if parent.type == NodeType.OBJECT.value and node.name and any(
                c.name == node.name for c in parent.children):
            logger.warning("Edit FAIL: add_node duplicate_key key=%s", node.name)
            return OperationResult(False, f"Key '{node.name}' already exists.", {"key": node.name})
        parent.insert_child(index, node)
        _reindex(parent)
        self._touch("node-added", node, parent=parent)
        return OperationResult(True, "Node added.", {"index": node.index_in_parent(), "nodeId": node.id})

    def remove_node(self, node: HierarchyNode) -> OperationResult:
        parent = node.parent
        if parent is None:
            return OperationResult(False, "The root node cannot be removed.")
        index = node.index_in_parent()
        parent.remove_child(node)
        _reindex(parent)
        self._touch("node-removed", node, parent=parent, index=index)
        return OperationResult(True, "Node removed.", {"index": index})

    def move_node(self, node: HierarchyNode, new_parent: HierarchyNode,
                  index: Optional[int] = None) -> OperationResult:
        """Move ``node`` under ``new_parent``; refuses moves that would create a cycle."""
        if node.parent is None:
            return OperationResult(False, "The root node cannot be moved.")
        if node is new_parent or node.is_ancestor_of(new_parent):
            logger.warning("Edit FAIL: move_node cycle from=%s to=%s",
                           self.path_of(node), self.path_of(new_parent))
            return OperationResult(False, "Cannot move node into its own descendant (circular reference).")
        if new_parent.type == NodeType.OBJECT.value and node.name and any(
                c is not node and c.name == node.name for c in new_parent.children):
            logger.warning("Edit FAIL: move_node duplicate_key key=%s", node.name)
            return OperationResult(False, f"Key '{node.name}' already exists.", {"key": node.name})
        old_parent = node.parent
        new_parent.insert_child(index, node)
        _reindex(old_parent)
        if new_parent is not old_parent:
            _reindex(new_parent)
        self._touch("node-moved", node, oldParent=old_parent, parent=new_parent)
        return OperationResult(True, "Node moved.", {"index": node.index_in_parent()})

    def _touch(self, action: str, node: HierarchyNode, **extra: Any) -> None:
        self.is_dirty = True
        payload = {"source": action, "node": node}
        payload.update(extra)
        self.emit(action, payload)
        self.emit("change", payload)

    def destroy(self) -> None:
        self.clear()
        self.remove_all_listeners()


def _relink(node: HierarchyNode) -> None:
    for child in node.children:
        child.parent = node
        _relink(child)


def _reindex(node: HierarchyNode) -> None:
    if node.type == NodeType.ARRAY.value:
        for i, child in enumerate(node.children):
            child.name = str(i)
