from __future__ import annotations

"""Display-independent description of one rendered node.

A :class:`VisualElement` is what the renderer hands to a render surface: the
text to show, which parts are editable, whether an expand control or a spacer
leads the row, and the child elements when the node is expanded. Surfaces
decide how that maps onto widgets.
"""

import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

from hierarchy_editor.core.models import HierarchyNode

if TYPE_CHECKING:
    from hierarchy_editor.renderer.editing import EditSession

__all__ = ["ElementKind", "VisualElement", "EXPANDED_GLYPH", "COLLAPSED_GLYPH"]

EXPANDED_GLYPH = "▼"
COLLAPSED_GLYPH = "▶"


class ElementKind:
    NODE = "node"
    ROOT = "root"
    EMPTY = "empty"


@dataclass(eq=False)
class VisualElement:
    """One row (plus nested rows) of the rendered hierarchy.

    The element holds only a weak reference to its node so the renderer's
    identity cache never keeps a removed subtree alive.
    """

    kind: str = ElementKind.NODE
    path: str = ""
    depth: int = 0
    node_id: Optional[str] = None
    node_type: Optional[str] = None
    classes: List[str] = field(default_factory=list)
    key_text: Optional[str] = None
    value_text: Optional[str] = None
    value_type: Optional[str] = None
    key_editable: bool = False
    value_editable: bool = False
    expandable: bool = False
    expanded: bool = False
    summary: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)
    children: List["VisualElement"] = field(default_factory=list)
    text: Optional[str] = None
    editing: Optional["EditSession"] = field(default=None, repr=False)
    _node_ref: Any = field(default=None, repr=False)

    # ------------------------------------------------------------------
    # Node link
    # ------------------------------------------------------------------

    @property
    def node(self) -> Optional[HierarchyNode]:
        return self._node_ref() if self._node_ref is not None else None

    def bind(self, node: HierarchyNode) -> None:
        self._node_ref = weakref.ref(node)
        self.node_id = node.id
        self.node_type = node.type

    # ------------------------------------------------------------------
    # Presentation helpers
    # ------------------------------------------------------------------

    @property
    def control_glyph(self) -> Optional[str]:
        """Glyph of the expand control; None means a fixed-width spacer is shown."""
        if not self.expandable:
            return None
        return EXPANDED_GLYPH if self.expanded else COLLAPSED_GLYPH

    @property
    def display_text(self) -> str:
        """Single-line label as a plain text surface would show it."""
        if self.kind == ElementKind.EMPTY:
            return self.text or ""
        parts: List[str] = []
        if self.key_text:
            parts.append(self.key_text)
        if self.attributes:
            parts.append(" ".join(f'{k}="{v}"' for k, v in self.attributes.items()))
        if self.editing is not None:
            parts.append(f"[{self.editing.text}]")
        elif self.value_text is not None:
            parts.append(self.value_text)
        if self.summary and not self.expanded:
            parts.append(f"// {self.summary}")
        return " ".join(parts)

    def iter_elements(self) -> Iterator["VisualElement"]:
        yield self
        for child in self.children:
            yield from child.iter_elements()

    def find(self, path: str) -> Optional["VisualElement"]:
        for element in self.iter_elements():
            if element.kind == ElementKind.NODE and element.path == path:
                return element
        return None

    def visible_paths(self) -> List[str]:
        return [e.path for e in self.iter_elements() if e.kind == ElementKind.NODE]

    def __repr__(self) -> str:
        return f"VisualElement({self.kind}:{self.path!r}:{self.display_text!r})"
