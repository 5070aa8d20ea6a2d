from __future__ import annotations

"""Render surface contract and a headless implementation.

The renderer produces :class:`~hierarchy_editor.renderer.VisualElement`
trees; a surface is whatever turns them into something visible. The editor
only ever talks to a surface through :class:`RenderSurface`, so the core can
run without a display.
"""

from typing import Any, Callable, List, Optional, Protocol, Tuple

from hierarchy_editor.renderer.elements import VisualElement

__all__ = ["RenderSurface", "InMemorySurface"]


class RenderSurface(Protocol):
    def mount(self, element: VisualElement) -> None: ...

    def replace(self, old: VisualElement, new: VisualElement) -> None: ...

    def clear(self) -> None: ...

    def show_message(self, text: str, kind: str = "error", suggestion: Optional[str] = None) -> None: ...


class InMemorySurface:
    """Keeps the mounted element tree and inline messages in memory.

    Useful for tests and for hosts that draw the tree themselves. The
    ``lines()`` helper renders the visible rows as indented text.
    """

    def __init__(self) -> None:
        self.root: Optional[VisualElement] = None
        self.messages: List[Tuple[str, str, Optional[str]]] = []
        self.mount_count = 0
        self.replace_count = 0
        self._listeners: List[Callable[[str, Any], None]] = []

    def mount(self, element: VisualElement) -> None:
        self.root = element
        self.messages.clear()
        self.mount_count += 1
        self._notify("mount", element)

    def replace(self, old: VisualElement, new: VisualElement) -> None:
        if self.root is None or self.root is old:
            self.root = new
        else:
            parent = _find_parent(self.root, old)
            if parent is None:
                # Stale element; a full mount is the only safe fallback
                self.root = new
            else:
                parent.children[parent.children.index(old)] = new
        self.replace_count += 1
        self._notify("replace", new)

    def clear(self) -> None:
        self.root = None
        self.messages.clear()
        self._notify("clear", None)

    def show_message(self, text: str, kind: str = "error", suggestion: Optional[str] = None) -> None:
        self.messages.append((kind, text, suggestion))
        self._notify("message", text)

    def subscribe(self, listener: Callable[[str, Any], None]) -> None:
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Inspection helpers
    # -------------------------------------------------------------------------

    def find(self, path: str) -> Optional[VisualElement]:
        return self.root.find(path) if self.root is not None else None

    def lines(self) -> List[str]:
        if self.root is None:
            return []
        rows: List[str] = []
        for element in self.root.iter_elements():
            glyph = element.control_glyph or " "
            rows.append(f"{'  ' * element.depth}{glyph} {element.display_text}".rstrip())
        return rows

    def _notify(self, action: str, payload: Any) -> None:
        for listener in list(self._listeners):
            listener(action, payload)


def _find_parent(root: VisualElement, target: VisualElement) -> Optional[VisualElement]:
    for element in root.iter_elements():
        if any(child is target for child in element.children):
            return element
    return None
