from __future__ import annotations

"""Turns node trees into display-independent visual elements."""

from .editing import KeyEditSession, ValueEditSession, coerce_value  # noqa: F401
from .elements import ElementKind, VisualElement  # noqa: F401
from .hierarchy_renderer import EMPTY_MESSAGE, HierarchyRenderer, collapsed_summary  # noqa: F401

__all__: list[str] = [
    "EMPTY_MESSAGE",
    "ElementKind",
    "HierarchyRenderer",
    "KeyEditSession",
    "ValueEditSession",
    "VisualElement",
    "coerce_value",
    "collapsed_summary",
]
