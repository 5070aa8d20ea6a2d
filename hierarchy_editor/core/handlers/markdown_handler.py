from __future__ import annotations

"""Markdown outline <-> node tree.

The document is split into headings (ATX ``#`` and setext ``===``/``---``)
and the content blocks between them. Headings nest by level under a single
``document`` root; each content block becomes a ``content`` node attached to
the closest preceding heading. Content blocks are classified as
``paragraph``, ``code``, ``list`` or ``blockquote`` in
``metadata["type"]``.

Fence and quote markers are stripped on parse and re-added on
serialization, so a block's ``value`` is the text the user actually edits.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from hierarchy_editor.core.exceptions import ParseError, SerializationError
from hierarchy_editor.core.handlers.base import FormatHandler
from hierarchy_editor.core.models import EditableFields, HierarchyNode, NodeType

logger = logging.getLogger(__name__)

__all__ = ["MarkdownHandler"]

_ATX_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_SETEXT_H1_RE = re.compile(r"^=+$")
_SETEXT_H2_RE = re.compile(r"^-+$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)(.*)$")
_LIST_RE = re.compile(r"^\s*([-*+]|\d+\.)\s")
_QUOTE_RE = re.compile(r"^\s*>\s?")
_EMPHASIS_RE = re.compile(r"[*_]{1,2}[^*_]+[*_]{1,2}")
_LINK_RE = re.compile(r"\[.+\]\(.+\)")
_INLINE_CODE_RE = re.compile(r"`.+`")

# (kind, payload): ("heading", (level, text)) or ("content", text)
_Section = Tuple[str, object]


class MarkdownHandler(FormatHandler):
    format_name = "markdown"
    display_name = "Markdown"
    file_extensions = [".md", ".markdown"]
    mime_types = ["text/markdown"]

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect(self, text: str) -> bool:
        return self._feature_score(text) >= 1

    def get_confidence(self, text: str) -> float:
        score = self._feature_score(text)
        return 0.0 if score <= 0 else min(1.0, 0.4 + 0.1 * score)

    @staticmethod
    def _feature_score(text: str) -> int:
        if not isinstance(text, str) or not text.strip():
            return 0
        lines = text.strip().splitlines()
        score = 0
        for line in lines[:20]:
            stripped = line.strip()
            if _ATX_RE.match(stripped):
                score += 2
            if _LIST_RE.match(line):
                score += 1
            if _QUOTE_RE.match(line) and stripped != ">":
                score += 1
            if stripped.startswith("```"):
                score += 2
            if _EMPHASIS_RE.search(stripped):
                score += 1
            if _LINK_RE.search(stripped):
                score += 1
            if _INLINE_CODE_RE.search(stripped):
                score += 1
        for current, following in zip(lines, lines[1:]):
            if current.strip() and (_SETEXT_H1_RE.match(following.strip()) or _SETEXT_H2_RE.match(following.strip())):
                score += 2
        return score

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, text: str) -> HierarchyNode:
        if not isinstance(text, str) or not text.strip():
            raise ParseError("Markdown content must be a non-empty string", {"format": self.format_name})
        sections = self._split_sections(text.strip().splitlines())
        root = HierarchyNode(NodeType.DOCUMENT, "", metadata={"format": self.format_name})
        counter = 0
        stack: List[HierarchyNode] = []
        for kind, payload in sections:
            if kind == "heading":
                level, title = payload
                heading = HierarchyNode(NodeType.HEADING, title, metadata={"level": level})
                while stack and stack[-1].metadata["level"] >= level:
                    stack.pop()
                (stack[-1] if stack else root).append_child(heading)
                stack.append(heading)
            else:
                counter += 1
                value, metadata = self._classify(payload)
                block = HierarchyNode(NodeType.CONTENT, f"content-{counter}", value=value, metadata=metadata)
                (stack[-1] if stack else root).append_child(block)
        return root

    def _split_sections(self, lines: List[str]) -> List[_Section]:
        sections: List[_Section] = []
        buffer: List[str] = []
        in_fence = False

        def flush() -> None:
            content = "\n".join(buffer).strip("\n")
            if content.strip():
                sections.extend(("content", block) for block in self._split_blocks(content))
            buffer.clear()

        i = 0
        while i < len(lines):
            line = lines[i]
            if _FENCE_RE.match(line):
                in_fence = not in_fence
                buffer.append(line)
                i += 1
                continue
            if not in_fence:
                atx = _ATX_RE.match(line)
                if atx:
                    flush()
                    sections.append(("heading", (len(atx.group(1)), atx.group(2).strip())))
                    i += 1
                    continue
                setext = self._setext_level(lines, i)
                if setext:
                    flush()
                    sections.append(("heading", (setext, line.strip())))
                    i += 2
                    continue
            buffer.append(line)
            i += 1
        flush()
        return sections

    @staticmethod
    def _setext_level(lines: List[str], index: int) -> int:
        if index + 1 >= len(lines):
            return 0
        current, underline = lines[index].strip(), lines[index + 1].strip()
        if not current or _LIST_RE.match(lines[index]) or _QUOTE_RE.match(lines[index]):
            return 0
        if _SETEXT_H1_RE.match(underline) and len(underline) >= len(current):
            return 1
        if _SETEXT_H2_RE.match(underline) and len(underline) >= len(current):
            return 2
        return 0

    @staticmethod
    def _split_blocks(content: str) -> List[str]:
        """Split on blank lines, keeping fenced code intact."""
        blocks: List[str] = []
        current: List[str] = []
        in_fence = False
        for line in content.splitlines():
            if _FENCE_RE.match(line):
                in_fence = not in_fence
            if not line.strip() and not in_fence:
                if current:
                    blocks.append("\n".join(current))
                    current = []
                continue
            current.append(line)
        if current:
            blocks.append("\n".join(current))
        return blocks

    @staticmethod
    def _classify(block: str) -> Tuple[str, Dict[str, object]]:
        lines = block.splitlines()
        fence = _FENCE_RE.match(lines[0])
        if fence:
            language = fence.group(2).strip()
            body = lines[1:]
            if body and _FENCE_RE.match(body[-1]):
                body = body[:-1]
            return "\n".join(body), {"type": "code", "language": language or "text"}
        if all(_QUOTE_RE.match(line) for line in lines):
            return "\n".join(_QUOTE_RE.sub("", line, count=1) for line in lines), {"type": "blockquote"}
        if any(_LIST_RE.match(line) for line in lines):
            return block, {"type": "list"}
        return block, {"type": "paragraph"}

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self, root: Optional[HierarchyNode], indent: Optional[str] = None) -> str:
        if root is None:
            return ""
        chunks = self._serialize_node(root)
        return "\n\n".join(chunk for chunk in chunks if chunk) + "\n"

    def _serialize_node(self, node: HierarchyNode) -> List[str]:
        if node.type == NodeType.DOCUMENT.value:
            chunks: List[str] = []
            for child in node.children:
                chunks.extend(self._serialize_node(child))
            return chunks
        if node.type == NodeType.HEADING.value:
            level = min(max(int(node.metadata.get("level", 1) or 1), 1), 6)
            chunks = [f"{'#' * level} {node.name or ''}".rstrip()]
            for child in node.children:
                chunks.extend(self._serialize_node(child))
            return chunks
        if node.type == NodeType.CONTENT.value:
            return [self._serialize_content(node)]
        if not node.children and node.value is not None:
            return [str(node.value)]
        raise SerializationError(f"Unknown node type: {node.type}",
                                 {"format": self.format_name, "type": node.type})

    @staticmethod
    def _serialize_content(node: HierarchyNode) -> str:
        value = "" if node.value is None else str(node.value)
        if not value:
            return ""
        kind = node.metadata.get("type", "paragraph")
        if kind == "code":
            language = node.metadata.get("language", "")
            language = "" if language == "text" else language
            return f"```{language}\n{value}\n```"
        if kind == "blockquote":
            return "\n".join(f"> {line}".rstrip() for line in value.splitlines())
        return value

    def get_editable_fields(self) -> EditableFields:
        return EditableFields(key_editable=False, value_editable=True,
                              type_changeable=False, structure_editable=True)
