from __future__ import annotations

"""JSON <-> node tree.

Objects become ``object`` nodes whose children are named by key, arrays
become ``array`` nodes whose children are named by index, and every scalar
(including ``null``) becomes a ``value`` leaf. The root is named ``root``.

:func:`data_to_node` and :func:`node_to_data` are shared with the YAML
handler, which maps onto the same plain-data model.
"""

import json
import logging
from typing import Any, Optional

from hierarchy_editor.core.exceptions import ParseError, SerializationError
from hierarchy_editor.core.handlers.base import FormatHandler
from hierarchy_editor.core.models import EditableFields, HierarchyNode, NodeType

logger = logging.getLogger(__name__)

__all__ = ["JsonHandler", "data_to_node", "node_to_data"]


def data_to_node(data: Any, name: str = "root") -> HierarchyNode:
    """Build a node tree from plain dict / list / scalar data."""
    if isinstance(data, dict):
        return HierarchyNode(NodeType.OBJECT, name,
                             children=[data_to_node(v, str(k)) for k, v in data.items()])
    if isinstance(data, (list, tuple)):
        return HierarchyNode(NodeType.ARRAY, name,
                             children=[data_to_node(v, str(i)) for i, v in enumerate(data)])
    return HierarchyNode(NodeType.VALUE, name, value=data)


def node_to_data(node: HierarchyNode) -> Any:
    """Plain Python data for ``node`` (dict / list / scalar)."""
    if node.type == NodeType.OBJECT.value:
        return {child.name: node_to_data(child) for child in node.children}
    if node.type == NodeType.ARRAY.value:
        return [node_to_data(child) for child in node.children]
    if node.type in (NodeType.VALUE.value, NodeType.PROPERTY.value) or not node.children:
        return node.value
    # Foreign container (element, heading, ...) maps onto an object;
    # repeated names collapse into a list
    data: dict = {}
    for child in node.children:
        key, value = child.segment(), node_to_data(child)
        if key not in data:
            data[key] = value
        elif isinstance(data[key], _Repeated):
            data[key].append(value)
        else:
            data[key] = _Repeated([data[key], value])
    return {k: list(v) if isinstance(v, _Repeated) else v for k, v in data.items()}


class _Repeated(list):
    pass


class JsonHandler(FormatHandler):
    format_name = "json"
    display_name = "JSON"
    file_extensions = [".json"]
    mime_types = ["application/json"]

    def detect(self, text: str) -> bool:
        if not isinstance(text, str):
            return False
        trimmed = text.strip()
        if not ((trimmed.startswith("{") and trimmed.endswith("}"))
                or (trimmed.startswith("[") and trimmed.endswith("]"))):
            return False
        try:
            json.loads(trimmed)
        except ValueError:
            return False
        return True

    def parse(self, text: str) -> HierarchyNode:
        if not isinstance(text, str) or not text.strip():
            raise ParseError("JSON content must be a non-empty string", {"format": self.format_name})
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
                             {"format": self.format_name, "line": e.lineno, "column": e.colno}, e)
        root = data_to_node(data, "root")
        root.metadata["format"] = self.format_name
        return root

    def serialize(self, root: Optional[HierarchyNode], indent: Optional[str] = None) -> str:
        if root is None:
            raise SerializationError("Node is required for serialization", {"format": self.format_name})
        try:
            return json.dumps(node_to_data(root), indent=self._indent(indent), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize to JSON: {e}", {"format": self.format_name}, e)

    def get_editable_fields(self) -> EditableFields:
        return EditableFields(key_editable=True, value_editable=True,
                              type_changeable=True, structure_editable=True)
