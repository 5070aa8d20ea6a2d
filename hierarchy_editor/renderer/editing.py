from __future__ import annotations

"""Inline key/value edit sessions.

A session replaces the display text of one element with an input buffer
seeded from the node. ``confirm()`` (and ``blur()``) commit, ``cancel()``
restores; either way the element returns to display form and the session
is finished. Committing a real change emits an ``edit`` signal through the
owning renderer.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional, Tuple

from hierarchy_editor.renderer.elements import VisualElement

if TYPE_CHECKING:
    from hierarchy_editor.renderer.hierarchy_renderer import HierarchyRenderer

logger = logging.getLogger(__name__)

__all__ = ["EditSession", "KeyEditSession", "ValueEditSession", "coerce_value", "value_to_text"]

_INT_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d*\.\d+$")


def coerce_value(text: str) -> Any:
    """Turn edited text into a typed scalar.

    ``null`` -> None, ``true``/``false`` -> bool, integer and decimal
    literals -> int/float; anything else stays a string.
    """
    text = text.strip()
    if text == "null":
        return None
    if text == "true":
        return True
    if text == "false":
        return False
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    return text


def value_to_text(value: Any) -> str:
    """Seed text for a value edit: strings verbatim, other scalars as JSON literals."""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def _changed(old: Any, new: Any) -> bool:
    # 1 == True in Python, so a type switch counts as a change
    return type(old) is not type(new) or old != new


class EditSession(ABC):
    """Common lifecycle of an inline edit."""

    edit_type = ""

    def __init__(self, renderer: "HierarchyRenderer", element: VisualElement) -> None:
        self._renderer = renderer
        self.element = element
        self.node = element.node
        self.original_text = self._seed()
        self.text = self.original_text
        self.active = True
        element.editing = self

    @abstractmethod
    def _seed(self) -> str:
        """Text the edit buffer starts from."""

    def set_text(self, text: str) -> None:
        if self.active:
            self.text = text

    def confirm(self) -> bool:
        """Commit the buffer; returns True if an ``edit`` signal was emitted."""
        if not self.active:
            return False
        change = self._pending_change()
        self._finish()
        if change is None:
            return False
        old_value, new_value = change
        self._renderer.emit("edit", {
            "type": self.edit_type,
            "node": self.node,
            "oldValue": old_value,
            "newValue": new_value,
            "path": self.element.path,
        })
        return True

    def blur(self) -> bool:
        """Focus loss commits like confirm."""
        return self.confirm()

    def cancel(self) -> None:
        if not self.active:
            return
        self.text = self.original_text
        self._finish()

    @abstractmethod
    def _pending_change(self) -> Optional[Tuple[Any, Any]]:
        """``(old, new)`` to emit, or None when nothing changed."""

    def _finish(self) -> None:
        self.active = False
        self.element.editing = None
        self._renderer._end_session(self)


class KeyEditSession(EditSession):
    edit_type = "key"

    def _seed(self) -> str:
        return self.node.name if self.node is not None else ""

    def _pending_change(self) -> Optional[Tuple[Any, Any]]:
        new_key = self.text.strip()
        if self.node is None or not new_key or new_key == self.original_text:
            return None
        return self.original_text, new_key


class ValueEditSession(EditSession):
    edit_type = "value"

    def _seed(self) -> str:
        return value_to_text(self.node.value) if self.node is not None else ""

    def _pending_change(self) -> Optional[Tuple[Any, Any]]:
        if self.node is None:
            return None
        old_value = self.node.value
        new_value = coerce_value(self.text)
        if not _changed(old_value, new_value):
            return None
        return old_value, new_value
