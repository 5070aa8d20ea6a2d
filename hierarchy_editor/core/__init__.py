from __future__ import annotations

"""GUI-agnostic core of the hierarchy editor: node model, format handlers and services."""

from .hierarchy_model import HierarchyModel  # noqa: F401
from .models import EditorMode, HierarchyNode, NodeType, OperationResult  # noqa: F401

__all__: list[str] = [
    "EditorMode",
    "HierarchyModel",
    "HierarchyNode",
    "NodeType",
    "OperationResult",
]
