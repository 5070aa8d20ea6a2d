"""Top-level package of the hierarchy editor.

Tree-shaped documents (JSON, XML, YAML, Markdown) are parsed into one node
model, shown through a renderer with independent expand/collapse state and
edited through :class:`HierarchyEditor`. Front-ends should depend on the
names exported here rather than on internal modules.
"""

from .core.models import EditorMode, HierarchyNode, NodeType, OperationResult  # noqa: F401
from .editor import HierarchyEditor  # noqa: F401

__version__ = "1.0.0"

__all__: list[str] = [
    "EditorMode",
    "HierarchyEditor",
    "HierarchyNode",
    "NodeType",
    "OperationResult",
]
