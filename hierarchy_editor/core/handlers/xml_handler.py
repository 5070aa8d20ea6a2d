from __future__ import annotations

"""XML <-> node tree, built on lxml.

Mapping
-------
- Every element becomes an ``element`` node named by its local tag name,
  with its attributes copied verbatim and its namespace URI kept in
  ``metadata["namespace"]``.
- An element whose only content is text keeps that text as ``value`` (so it
  can be edited inline). Mixed content yields ``text`` children.
- Comments become ``comment`` nodes; processing instructions inside the root
  become ``processing-instruction`` nodes. Whitespace-only text is dropped
  and regenerated by pretty printing.
"""

import logging
import re
from typing import Optional

from lxml import etree as ET

from hierarchy_editor.core.exceptions import ParseError, SerializationError
from hierarchy_editor.core.handlers.base import FormatHandler
from hierarchy_editor.core.models import EditableFields, HierarchyNode, NodeType

logger = logging.getLogger(__name__)

__all__ = ["XmlHandler"]

_NAME_RE = re.compile(r"^[A-Za-z_][-A-Za-z0-9_.]*$")
_HTML_TAGS = {"html", "head", "body", "div", "span", "p", "a", "img"}
_DECLARATION_RE = re.compile(r"^<\?xml\b[^>]*\?>", re.IGNORECASE)
_FIRST_TAG_RE = re.compile(r"<([A-Za-z_][\w.-]*)")
_PI = "processing-instruction"


class XmlHandler(FormatHandler):
    format_name = "xml"
    display_name = "XML"
    file_extensions = [".xml"]
    mime_types = ["application/xml", "text/xml"]

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect(self, text: str) -> bool:
        if not isinstance(text, str):
            return False
        trimmed = text.strip()
        if trimmed.startswith("<?xml"):
            return True
        if trimmed.startswith("<") and ">" in trimmed:
            match = _FIRST_TAG_RE.match(trimmed)
            return bool(match) and match.group(1).lower() not in _HTML_TAGS
        return False

    def get_confidence(self, text: str) -> float:
        if not self.detect(text):
            return 0.0
        return 1.0 if text.strip().startswith("<?xml") else 0.8

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, text: str) -> HierarchyNode:
        if not isinstance(text, str) or not text.strip():
            raise ParseError("Invalid XML input", {"format": self.format_name})
        parser = ET.XMLParser(resolve_entities=False, no_network=True, remove_comments=False)
        stripped = text.strip()
        try:
            # text is already decoded; lxml rejects str input that declares an encoding
            root_el = ET.fromstring(_DECLARATION_RE.sub("", stripped, count=1), parser)
        except ET.XMLSyntaxError as e:
            line, column = e.position if e.position else (None, None)
            raise ParseError(f"XML parsing error: {e.msg}",
                             {"format": self.format_name, "line": line, "column": column}, e)
        root = self._element_to_node(root_el)
        root.metadata["format"] = self.format_name
        root.metadata["declaration"] = stripped.startswith("<?xml")
        return root

    def _element_to_node(self, el) -> HierarchyNode:
        qname = ET.QName(el)
        node = HierarchyNode(NodeType.ELEMENT, qname.localname,
                             attributes={str(k): str(v) for k, v in el.attrib.items()})
        if qname.namespace:
            node.metadata["namespace"] = qname.namespace
            if el.prefix:
                node.metadata["prefix"] = el.prefix

        if len(el) == 0:
            if el.text is not None and el.text.strip():
                node.value = el.text
            return node

        self._append_text(node, el.text)
        for child in el:
            if isinstance(child, ET._Comment):
                node.append_child(HierarchyNode(NodeType.COMMENT, "#comment", value=child.text or ""))
            elif isinstance(child, ET._ProcessingInstruction):
                node.append_child(HierarchyNode(_PI, child.target, value=child.text or ""))
            elif isinstance(child, ET._Element):
                node.append_child(self._element_to_node(child))
            self._append_text(node, child.tail)
        return node

    @staticmethod
    def _append_text(node: HierarchyNode, text: Optional[str]) -> None:
        if text is not None and text.strip():
            node.append_child(HierarchyNode(NodeType.TEXT, "#text", value=text.strip()))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self, root: Optional[HierarchyNode], indent: Optional[str] = None) -> str:
        if root is None:
            raise SerializationError("Node is required for serialization", {"format": self.format_name})
        if root.type in (NodeType.COMMENT.value, NodeType.TEXT.value, _PI):
            raise SerializationError("XML document root must be an element",
                                     {"format": self.format_name, "type": root.type})
        root_el = self._build_element(root, None)
        ET.indent(root_el, space=self._indent(indent))
        body = ET.tostring(root_el, encoding="unicode")
        if root.metadata.get("declaration"):
            return '<?xml version="1.0" encoding="UTF-8"?>\n' + body
        return body

    def _build_element(self, node: HierarchyNode, parent):
        tag = self._tag_for(node, parent is None)
        namespace = node.metadata.get("namespace")
        if namespace:
            tag = ET.QName(namespace, tag)
        nsmap = None
        # Children inherit the parent's declarations
        if namespace and (parent is None or namespace not in parent.nsmap.values()):
            nsmap = {node.metadata.get("prefix"): namespace}
        if parent is None:
            el = ET.Element(tag, nsmap=nsmap)
        else:
            el = ET.SubElement(parent, tag, nsmap=nsmap)
        for key in sorted(node.attributes):
            el.set(key, _text(node.attributes[key]))

        if not node.children:
            if node.type == NodeType.CDATA.value:
                el.text = ET.CDATA(_text(node.value))
            elif node.value is not None:
                el.text = _text(node.value)
            return el

        last = None
        for child in node.children:
            if child.type in (NodeType.TEXT.value, NodeType.CDATA.value):
                payload = _text(child.value)
                if last is None:
                    el.text = (el.text or "") + payload
                else:
                    last.tail = (last.tail or "") + payload
            elif child.type == NodeType.COMMENT.value:
                last = ET.Comment(_text(child.value))
                el.append(last)
            elif child.type == _PI:
                last = ET.PI(child.name, _text(child.value))
                el.append(last)
            else:
                last = self._build_element(child, el)
        return el

    @staticmethod
    def _tag_for(node: HierarchyNode, is_root: bool) -> str:
        if node.type == NodeType.ELEMENT.value:
            if not _NAME_RE.match(node.name or ""):
                raise SerializationError(f"Invalid element name: {node.name!r}",
                                         {"format": "xml", "name": node.name})
            return node.name
        # Nodes from other formats: keep usable names, fall back otherwise
        if node.name and _NAME_RE.match(node.name):
            return node.name
        if is_root:
            return "document" if node.type == NodeType.DOCUMENT.value else "root"
        return "item"

    def get_editable_fields(self) -> EditableFields:
        return EditableFields(key_editable=True, value_editable=True,
                              type_changeable=False, structure_editable=True)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
