from __future__ import annotations

"""YAML <-> node tree via PyYAML.

Uses ``yaml.safe_load`` / ``yaml.safe_dump`` only; mappings, sequences and
scalars map onto the same object / array / value nodes as JSON. Key order
is preserved on output.
"""

import logging
import re
from typing import Optional

import yaml

from hierarchy_editor.core.exceptions import ParseError, SerializationError
from hierarchy_editor.core.handlers.base import FormatHandler
from hierarchy_editor.core.handlers.json_handler import data_to_node, node_to_data
from hierarchy_editor.core.models import EditableFields, HierarchyNode

logger = logging.getLogger(__name__)

__all__ = ["YamlHandler"]

_KEY_RE = re.compile(r"^\s*[\w-]+:(\s|$)")
_ITEM_RE = re.compile(r"^\s*-\s")
_INDENTED_RE = re.compile(r"^\s{2,}\S")


class YamlHandler(FormatHandler):
    format_name = "yaml"
    display_name = "YAML"
    file_extensions = [".yaml", ".yml"]
    mime_types = ["application/yaml", "text/yaml"]

    def detect(self, text: str) -> bool:
        return self._feature_count(text) >= 1

    def get_confidence(self, text: str) -> float:
        features = self._feature_count(text)
        if features <= 0:
            return 0.0
        return min(1.0, 0.5 + 0.1 * features)

    @staticmethod
    def _feature_count(text: str) -> int:
        if not isinstance(text, str):
            return 0
        trimmed = text.strip()
        if not trimmed:
            return 0
        if trimmed.startswith("---") or "\n---" in trimmed:
            return 5
        features = 0
        for line in trimmed.splitlines()[:10]:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if _KEY_RE.match(line):
                features += 1
            if _ITEM_RE.match(line):
                features += 1
            if _INDENTED_RE.match(line):
                features += 1
        return features

    def parse(self, text: str) -> HierarchyNode:
        if not isinstance(text, str) or not text.strip():
            raise ParseError("YAML content must be a non-empty string", {"format": self.format_name})
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            details = {"format": self.format_name}
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                details.update(line=mark.line + 1, column=mark.column + 1)
            problem = getattr(e, "problem", None) or str(e)
            raise ParseError(f"Invalid YAML: {problem}", details, e)
        root = data_to_node(data, "root")
        root.metadata["format"] = self.format_name
        return root

    def serialize(self, root: Optional[HierarchyNode], indent: Optional[str] = None) -> str:
        if root is None:
            raise SerializationError("Node is required for serialization", {"format": self.format_name})
        width = len(self._indent(indent)) or self.indent_size
        try:
            return yaml.safe_dump(node_to_data(root), indent=max(2, width), sort_keys=False,
                                  allow_unicode=True, default_flow_style=False)
        except yaml.YAMLError as e:
            raise SerializationError(f"Cannot serialize to YAML: {e}", {"format": self.format_name}, e)

    def get_editable_fields(self) -> EditableFields:
        return EditableFields(key_editable=True, value_editable=True,
                              type_changeable=True, structure_editable=True)
