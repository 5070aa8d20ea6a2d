from __future__ import annotations

"""Node tree + expansion state -> :class:`VisualElement` tree.

Rendering is a pure function of ``(node, expansion state, parent path)``:
one element per visible node, children only when the node is expanded.
Presentation is dispatched on ``node.type`` through :attr:`HierarchyRenderer._TYPE_RENDERERS`;
unknown types fall back to a neutral row.

Signals (via :class:`~hierarchy_editor.core.events.EventEmitter`):

- ``edit`` ``{type: "key"|"value", node, oldValue, newValue, path}``
- ``expansion-changed`` ``{node, path, expanded}``
"""

import logging
import weakref
from typing import Any, Optional

from hierarchy_editor.core.events import EventEmitter
from hierarchy_editor.core.models import EditableFields, HierarchyNode, NodeType
from hierarchy_editor.core.services.expansion_state import ExpansionStateManager
from hierarchy_editor.renderer.editing import EditSession, KeyEditSession, ValueEditSession
from hierarchy_editor.renderer.elements import ElementKind, VisualElement

logger = logging.getLogger(__name__)

__all__ = ["HierarchyRenderer", "EMPTY_MESSAGE", "collapsed_summary"]

EMPTY_MESSAGE = "No data to display"

_SUMMARY_NOUNS = {
    NodeType.OBJECT.value: ("property", "properties"),
    NodeType.ARRAY.value: ("item", "items"),
    NodeType.ELEMENT.value: ("child", "children"),
}
_ROOT_CONTAINERS = {
    NodeType.OBJECT.value,
    NodeType.ARRAY.value,
    NodeType.DOCUMENT.value,
    NodeType.ELEMENT.value,
}


def collapsed_summary(node: HierarchyNode) -> Optional[str]:
    """``"N property/properties"`` style count shown next to a collapsed node."""
    count = len(node.children)
    if count == 0:
        return None
    singular, plural = _SUMMARY_NOUNS.get(node.type, ("node", "nodes"))
    return f"{count} {singular if count == 1 else plural}"


class HierarchyRenderer(EventEmitter):
    """Builds visual elements and hosts inline edit sessions.

    Parameters
    ----------
    expansion_state : ExpansionStateManager, optional
        Consulted for every expandable node; without one every node is
        rendered expanded.
    editable : bool, default=True
        Master switch for key/value editing.
    theme : str, default="light"
        Copied onto root elements as a ``theme-<name>`` class.
    delimiter : str, default="."
        Separator used to build child paths.
    """

    _TYPE_RENDERERS = {
        NodeType.VALUE.value: "_render_value",
        NodeType.PROPERTY.value: "_render_value",
        NodeType.OBJECT.value: "_render_container",
        NodeType.ARRAY.value: "_render_container",
        NodeType.ELEMENT.value: "_render_element",
        NodeType.HEADING.value: "_render_heading",
        NodeType.CONTENT.value: "_render_content",
        NodeType.DOCUMENT.value: "_render_container",
        NodeType.TEXT.value: "_render_markup_text",
        NodeType.COMMENT.value: "_render_markup_text",
        NodeType.CDATA.value: "_render_markup_text",
    }

    def __init__(self, expansion_state: Optional[ExpansionStateManager] = None,
                 editable: bool = True, theme: str = "light", delimiter: str = ".") -> None:
        super().__init__()
        self.expansion_state = expansion_state
        self.editable = editable
        self.theme = theme
        self.delimiter = delimiter
        self._cache: "weakref.WeakKeyDictionary[HierarchyNode, VisualElement]" = weakref.WeakKeyDictionary()
        self._session: Optional[EditSession] = None

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def render(self, node: Optional[HierarchyNode], depth: int = 0, parent_path: str = "",
               format_handler: Any = None) -> VisualElement:
        if node is None:
            return VisualElement(kind=ElementKind.EMPTY, text=EMPTY_MESSAGE, classes=["hierarchy-empty"])

        fields = self._editable_fields(format_handler)
        if depth == 0 and node.parent is None and node.type in _ROOT_CONTAINERS:
            element = self._render_root(node, format_handler)
        else:
            element = self._render_node(node, depth, parent_path, format_handler, fields)
        self._cache[node] = element
        return element

    def _render_root(self, node: HierarchyNode, format_handler: Any) -> VisualElement:
        element = VisualElement(kind=ElementKind.ROOT, depth=0, expandable=False, expanded=True,
                                classes=["hierarchy-root", f"theme-{self.theme}"])
        element.bind(node)
        if node.type == NodeType.ELEMENT.value:
            element.key_text = f"<{node.name}>"
            element.attributes = dict(node.attributes)
        for child in node.children:
            element.children.append(self.render(child, 1, "", format_handler))
        return element

    def _render_node(self, node: HierarchyNode, depth: int, parent_path: str,
                     format_handler: Any, fields: EditableFields) -> VisualElement:
        path = self._child_path(parent_path, node)
        expandable = bool(node.children)
        expanded = expandable and self._is_expanded(path)

        element = VisualElement(kind=ElementKind.NODE, path=path, depth=depth,
                                expandable=expandable, expanded=expanded,
                                classes=["hierarchy-node", f"type-{node.type}"])
        element.bind(node)
        element.extra["parent_path"] = parent_path

        method = self._TYPE_RENDERERS.get(node.type)
        if method is None:
            self._render_fallback(node, element, fields)
        else:
            getattr(self, method)(node, element, fields)

        if expandable and not expanded:
            element.summary = collapsed_summary(node)
        if expanded:
            for child in node.children:
                element.children.append(self.render(child, depth + 1, path, format_handler))
        return element

    # -------------------------------------------------------------------------
    # Type presentation
    # -------------------------------------------------------------------------

    def _render_key(self, node: HierarchyNode, element: VisualElement, fields: EditableFields) -> None:
        if not node.name:
            return
        in_array = node.parent is not None and node.parent.type == NodeType.ARRAY.value
        element.key_text = f"[{node.name}]" if in_array else node.name
        if in_array:
            element.classes.append("array-index")
        element.key_editable = self.editable and fields.key_editable and not in_array

    def _render_value(self, node: HierarchyNode, element: VisualElement, fields: EditableFields) -> None:
        self._render_key(node, element, fields)
        element.value_text, element.value_type = _format_scalar(node.value)
        element.classes.append(f"{element.value_type}-value")
        element.value_editable = self.editable and fields.value_editable

    def _render_container(self, node: HierarchyNode, element: VisualElement, fields: EditableFields) -> None:
        self._render_key(node, element, fields)
        if not node.children:
            if node.type == NodeType.OBJECT.value:
                element.value_text = "{}"
            elif node.type == NodeType.ARRAY.value:
                element.value_text = "[]"

    def _render_element(self, node: HierarchyNode, element: VisualElement, fields: EditableFields) -> None:
        element.key_text = f"<{node.name}>"
        element.classes.append("xml-tag")
        element.key_editable = self.editable and fields.key_editable
        element.attributes = dict(node.attributes)
        if not node.children and node.value is not None:
            element.value_text = str(node.value)
            element.value_type = "text"
            element.value_editable = self.editable and fields.value_editable

    def _render_heading(self, node: HierarchyNode, element: VisualElement, fields: EditableFields) -> None:
        level = min(int(node.metadata.get("level", 1) or 1), 6)
        element.key_text = node.name or (str(node.value) if node.value is not None else "")
        element.classes.append(f"markdown-heading-h{level}")
        element.extra["level"] = level
        element.key_editable = self.editable and fields.key_editable

    def _render_content(self, node: HierarchyNode, element: VisualElement, fields: EditableFields) -> None:
        content_type = node.metadata.get("type", "paragraph")
        element.classes.append(f"content-{content_type}")
        element.extra["content_type"] = content_type
        if content_type == "code" and node.metadata.get("language"):
            element.extra["language"] = node.metadata["language"]
        element.value_text = "" if node.value is None else str(node.value)
        element.value_type = "text"
        element.value_editable = self.editable and fields.value_editable

    def _render_markup_text(self, node: HierarchyNode, element: VisualElement, fields: EditableFields) -> None:
        element.value_text = "" if node.value is None else str(node.value)
        element.value_type = node.type
        if node.type == NodeType.COMMENT.value:
            element.value_text = f"<!--{element.value_text}-->"
        else:
            element.value_editable = self.editable and fields.value_editable

    def _render_fallback(self, node: HierarchyNode, element: VisualElement, fields: EditableFields) -> None:
        element.classes.append("unknown-type")
        self._render_key(node, element, fields)
        if node.value is not None:
            element.value_text, element.value_type = _format_scalar(node.value)

    # -------------------------------------------------------------------------
    # Interaction
    # -------------------------------------------------------------------------

    def activate_control(self, element: VisualElement) -> Optional[bool]:
        """Toggle expansion for ``element``; returns the new state, or None if it has no control."""
        if not element.expandable or element.kind != ElementKind.NODE:
            return None
        if self.expansion_state is not None:
            expanded = self.expansion_state.toggle(element.path)
        else:
            expanded = not element.expanded
        element.expanded = expanded
        self.emit("expansion-changed", {"node": element.node, "path": element.path, "expanded": expanded})
        return expanded

    def start_key_edit(self, element: VisualElement) -> Optional[KeyEditSession]:
        if not element.key_editable or element.node is None:
            return None
        return self._begin(KeyEditSession(self, element))

    def start_value_edit(self, element: VisualElement) -> Optional[ValueEditSession]:
        if not element.value_editable or element.node is None:
            return None
        return self._begin(ValueEditSession(self, element))

    @property
    def active_session(self) -> Optional[EditSession]:
        return self._session

    def _begin(self, session: EditSession) -> EditSession:
        # Opening a new editor blurs the previous one
        previous = self._session
        self._session = session
        if previous is not None and previous.active:
            previous.blur()
        return session

    def _end_session(self, session: EditSession) -> None:
        if self._session is session:
            self._session = None

    # -------------------------------------------------------------------------
    # Cache / configuration
    # -------------------------------------------------------------------------

    def get_cached(self, node: HierarchyNode) -> Optional[VisualElement]:
        return self._cache.get(node)

    def is_rendered(self, node: HierarchyNode) -> bool:
        return node in self._cache

    def clear_cache(self) -> None:
        self._cache = weakref.WeakKeyDictionary()

    def update_config(self, expansion_state: Optional[ExpansionStateManager] = None,
                      editable: Optional[bool] = None, theme: Optional[str] = None) -> None:
        if expansion_state is not None:
            self.expansion_state = expansion_state
        if editable is not None:
            self.editable = editable
        if theme is not None:
            self.theme = theme

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _child_path(self, parent_path: str, node: HierarchyNode) -> str:
        segment = node.segment()
        return f"{parent_path}{self.delimiter}{segment}" if parent_path else segment

    def _is_expanded(self, path: str) -> bool:
        return self.expansion_state.is_expanded(path) if self.expansion_state is not None else True

    @staticmethod
    def _editable_fields(format_handler: Any) -> EditableFields:
        getter = getattr(format_handler, "get_editable_fields", None)
        if getter is None:
            return EditableFields()
        fields = getter()
        if isinstance(fields, dict):
            return EditableFields(
                key_editable=bool(fields.get("key_editable", fields.get("keyEditable", True))),
                value_editable=bool(fields.get("value_editable", fields.get("valueEditable", True))),
            )
        return fields


def _format_scalar(value: Any) -> "tuple[str, str]":
    if value is None:
        return "null", "null"
    if isinstance(value, bool):
        return ("true" if value else "false"), "boolean"
    if isinstance(value, (int, float)):
        return repr(value) if isinstance(value, float) else str(value), "number"
    if isinstance(value, str):
        return f'"{value}"', "string"
    return str(value), "other"
