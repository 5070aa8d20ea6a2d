from __future__ import annotations

"""Shared data structures used across the hierarchy editor core.

This module is intentionally free of UI / I/O code so that the contained
objects can be reused in any context (unit-tests, CLI, GUI, etc.).
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

__all__ = [
    "NodeType",
    "EditorMode",
    "HierarchyNode",
    "EditableFields",
    "OperationResult",
    "ErrorRecord",
    "PendingChange",
]


class NodeType(str, Enum):
    """Known node tags. ``HierarchyNode.type`` also accepts any other string."""

    OBJECT = "object"
    ARRAY = "array"
    VALUE = "value"
    PROPERTY = "property"
    ELEMENT = "element"
    HEADING = "heading"
    CONTENT = "content"
    DOCUMENT = "document"
    TEXT = "text"
    COMMENT = "comment"
    CDATA = "cdata"


class EditorMode(str, Enum):
    TREE = "tree"
    SOURCE = "source"


def _new_node_id() -> str:
    return f"node-{uuid.uuid4().hex[:9]}"


def _tag(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


@dataclass(eq=False)
class HierarchyNode:
    """A node in the canonical tree shared by every format.

    Attributes
    ----------
    type
        Tag of the node variant (see :class:`NodeType`); unknown tags are kept
        as-is and rendered with a neutral fallback.
    name
        Key, tag name or heading text. Empty for anonymous nodes, whose path
        segment falls back to ``id``.
    value
        Scalar payload of leaves.
    children
        Ordered children. The list owns its nodes; use :meth:`append_child`,
        :meth:`insert_child` and :meth:`remove_child` so the parent link stays
        correct.
    attributes
        Attribute mapping of markup elements.
    metadata
        Free-form, format-specific data (heading level, content kind, ...).
    parent
        Non-owning back reference. Never serialized or compared.
    """

    type: str = NodeType.VALUE.value
    name: str = ""
    value: Any = None
    children: List["HierarchyNode"] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_node_id)
    parent: Optional["HierarchyNode"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.type = _tag(self.type)
        if self.name is None:
            self.name = ""
        for child in self.children:
            child.parent = self

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    def append_child(self, child: "HierarchyNode") -> "HierarchyNode":
        """Append ``child``, detaching it from its current parent first."""
        return self.insert_child(len(self.children), child)

    def insert_child(self, index: Optional[int], child: "HierarchyNode") -> "HierarchyNode":
        """Insert ``child`` at ``index`` (``None`` or out of range appends)."""
        if child is self or child.is_ancestor_of(self):
            raise ValueError("A node cannot be inserted into its own subtree")
        if child.parent is not None:
            child.parent.remove_child(child)
        if index is None or index < 0 or index > len(self.children):
            index = len(self.children)
        self.children.insert(index, child)
        child.parent = self
        return child

    def remove_child(self, child: "HierarchyNode") -> Optional["HierarchyNode"]:
        for i, existing in enumerate(self.children):
            if existing is child:
                del self.children[i]
                child.parent = None
                return child
        return None

    def index_in_parent(self) -> int:
        if self.parent is None:
            return -1
        for i, sibling in enumerate(self.parent.children):
            if sibling is self:
                return i
        return -1

    def is_ancestor_of(self, node: "HierarchyNode") -> bool:
        current = node.parent
        while current is not None:
            if current is self:
                return True
            current = current.parent
        return False

    def get_depth(self) -> int:
        depth = 0
        current = self.parent
        while current is not None:
            depth += 1
            current = current.parent
        return depth

    def segment(self) -> str:
        """Path segment of this node: its name, else its id."""
        return self.name if self.name not in (None, "") else self.id

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def depth_first(self) -> Iterator["HierarchyNode"]:
        """Traverse depth-first, yielding self then children."""
        yield self
        for child in self.children:
            yield from child.depth_first()

    def find_descendant(self, node_id: str) -> Optional["HierarchyNode"]:
        for node in self.depth_first():
            if node.id == node_id:
                return node
        return None

    # ------------------------------------------------------------------
    # Copy / comparison
    # ------------------------------------------------------------------

    def clone(self) -> "HierarchyNode":
        """Deep copy with fresh ids and no parent."""
        return HierarchyNode(
            type=self.type,
            name=self.name,
            value=self.value,
            children=[child.clone() for child in self.children],
            attributes=dict(self.attributes),
            metadata=dict(self.metadata),
        )

    def structurally_equals(self, other: "HierarchyNode") -> bool:
        """Compare type, name, value, attributes and children, ignoring ids and metadata."""
        if not isinstance(other, HierarchyNode):
            return False
        if (self.type, self.name, self.attributes) != (other.type, other.name, other.attributes):
            return False
        if type(self.value) is not type(other.value) or self.value != other.value:
            return False
        if len(self.children) != len(other.children):
            return False
        return all(a.structurally_equals(b) for a, b in zip(self.children, other.children))

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping of the subtree; ``parent`` is deliberately omitted."""
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "value": self.value,
            "attributes": dict(self.attributes),
            "metadata": dict(self.metadata),
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HierarchyNode":
        return cls(
            type=data.get("type", NodeType.VALUE.value),
            name=data.get("name") or "",
            value=data.get("value"),
            children=[cls.from_dict(child) for child in data.get("children", [])],
            attributes=dict(data.get("attributes") or {}),
            metadata=dict(data.get("metadata") or {}),
            id=data.get("id") or _new_node_id(),
        )

    def __repr__(self) -> str:
        return f"HierarchyNode({self.type}:{self.name!r}:{self.id})"


@dataclass(frozen=True)
class EditableFields:
    """Which parts of a node a format lets the user edit in place."""

    key_editable: bool = True
    value_editable: bool = True
    type_changeable: bool = False
    structure_editable: bool = True


@dataclass(frozen=True)
class OperationResult:
    """Result of an editor operation.

    Attributes
    ----------
    success
        Whether the operation completed successfully.
    message
        Human-readable summary suitable for logs or UI display.
    details
        Optional structured details for diagnostics or caller logic.
    """
    success: bool
    message: str = ""
    details: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.success


@dataclass
class ErrorRecord:
    """One entry of the editor's error history."""

    kind: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    recoverable: bool = True
    details: Dict[str, Any] = field(default_factory=dict)
    suggestion: Optional[str] = None
    error: Optional[BaseException] = field(default=None, repr=False)


@dataclass(frozen=True)
class PendingChange:
    """A mutation recorded while a batch is open."""

    source: str
    path: str = ""
