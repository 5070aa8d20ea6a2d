from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Callable, Dict, Optional, Set

from hierarchy_editor.renderer.elements import ElementKind, VisualElement

__all__ = ["TreeviewSurface"]

_PLACEHOLDER_TEXT = "…"


class TreeviewSurface(ttk.Frame):
    """Tkinter render surface presenting visual elements in a ``ttk.Treeview``.

    This widget only draws what the renderer produced and forwards user
    intents; expansion state, editing and validation stay in the editor.

    Callbacks:
        - on_toggle: Invoked when the user opens or closes a row
          (``<<TreeviewOpen>>`` / ``<<TreeviewClose>>``). Receives the element.
        - on_activate: Invoked on double-click. Receives the element under the
          cursor, if any.
        - on_select: Invoked when selection changes. Receives the first selected
          element, or None.

    Notes
    -----
    - Collapsed rows with children get a placeholder child so Tk draws the
      open indicator; the real children arrive through :meth:`replace`.
    - The Treeview style is registered once per Tk interpreter.
    """

    STYLE_NAME = "HierarchyEditor.Treeview"
    _styled_interpreters: Set[str] = set()

    def __init__(
        self,
        master: "tk.Widget",
        *,
        on_toggle: Optional[Callable[[VisualElement], None]] = None,
        on_activate: Optional[Callable[[Optional[VisualElement]], None]] = None,
        on_select: Optional[Callable[[Optional[VisualElement]], None]] = None,
    ) -> None:
        super().__init__(master)
        self._on_toggle = on_toggle
        self._on_activate = on_activate
        self._on_select = on_select

        self._register_style()

        self._tree = ttk.Treeview(self, columns=("value",), show="tree", selectmode="browse",
                                  style=self.STYLE_NAME, height=12)
        self._tree.column("#0", stretch=True, minwidth=120)
        self._tree.column("value", stretch=True, minwidth=80)
        self._vsb = ttk.Scrollbar(self, orient="vertical", command=self._tree.yview)
        self._tree.configure(yscrollcommand=self._vsb.set)
        self._message = ttk.Label(self, text="", anchor="w")

        self._tree.grid(row=0, column=0, sticky="nsew")
        self._vsb.grid(row=0, column=1, sticky="ns")
        self._message.grid(row=1, column=0, columnspan=2, sticky="ew")

        self.columnconfigure(0, weight=1)
        self.rowconfigure(0, weight=1)

        # Internal mappings: tree item id -> element, element path -> item id
        self._id_to_element: Dict[str, VisualElement] = {}
        self._path_to_id: Dict[str, str] = {}
        self._root_element: Optional[VisualElement] = None
        # Guards against echoing programmatic open/close back as user intents
        self._syncing = False

        self._tree.bind("<<TreeviewOpen>>", self._on_open_event, add="+")
        self._tree.bind("<<TreeviewClose>>", self._on_open_event, add="+")
        self._tree.bind("<<TreeviewSelect>>", self._on_select_event, add="+")
        self._tree.bind("<Double-1>", self._on_double_click_event, add="+")

    def _register_style(self) -> None:
        key = str(self.tk)
        if key in self._styled_interpreters:
            return
        style = ttk.Style(self)
        style.configure(self.STYLE_NAME, rowheight=22)
        self._styled_interpreters.add(key)

    # -------------------------------------------------------------------------
    # RenderSurface
    # -------------------------------------------------------------------------

    def mount(self, element: VisualElement) -> None:
        self.clear()
        self._root_element = element
        if element.kind == ElementKind.EMPTY:
            self._message.configure(text=element.text or "")
            return
        if element.kind == ElementKind.ROOT:
            for child in element.children:
                self._insert(child, "")
        else:
            self._insert(element, "")

    def replace(self, old: VisualElement, new: VisualElement) -> None:
        item_id = self._path_to_id.get(old.path)
        if old is self._root_element or item_id is None or new.kind != ElementKind.NODE:
            self.mount(new)
            return
        self._syncing = True
        try:
            self._forget_children(item_id)
            self._tree.item(item_id, text=self._label(new), values=(self._value(new),),
                            tags=tuple(new.classes), open=new.expanded)
            self._bind_item(item_id, new)
            self._insert_children(new, item_id)
        finally:
            self._syncing = False

    def clear(self) -> None:
        self._tree.delete(*self._tree.get_children(""))
        self._id_to_element.clear()
        self._path_to_id.clear()
        self._root_element = None
        self._message.configure(text="")

    def show_message(self, text: str, kind: str = "error", suggestion: Optional[str] = None) -> None:
        message = f"{text} ({suggestion})" if suggestion else text
        self._message.configure(text=message)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def element_for_item(self, item_id: str) -> Optional[VisualElement]:
        return self._id_to_element.get(item_id)

    def item_for_path(self, path: str) -> Optional[str]:
        return self._path_to_id.get(path)

    def focus_path(self, path: str) -> None:
        item_id = self._path_to_id.get(path)
        if item_id is not None:
            self._tree.selection_set((item_id,))
            self._tree.focus(item_id)
            self._tree.see(item_id)

    # -------------------------------------------------------------------------
    # Population helpers
    # -------------------------------------------------------------------------

    def _insert(self, element: VisualElement, parent_id: str) -> str:
        item_id = self._tree.insert(parent_id, "end", text=self._label(element),
                                    values=(self._value(element),), tags=tuple(element.classes),
                                    open=element.expanded)
        self._bind_item(item_id, element)
        self._insert_children(element, item_id)
        return item_id

    def _insert_children(self, element: VisualElement, item_id: str) -> None:
        if element.expandable and not element.expanded:
            self._tree.insert(item_id, "end", text=_PLACEHOLDER_TEXT, tags=("placeholder",))
            return
        for child in element.children:
            self._insert(child, item_id)

    def _bind_item(self, item_id: str, element: VisualElement) -> None:
        self._id_to_element[item_id] = element
        self._path_to_id[element.path] = item_id

    def _forget_children(self, item_id: str) -> None:
        for child_id in self._tree.get_children(item_id):
            self._forget_children(child_id)
            element = self._id_to_element.pop(child_id, None)
            if element is not None:
                self._path_to_id.pop(element.path, None)
        self._tree.delete(*self._tree.get_children(item_id))

    @staticmethod
    def _label(element: VisualElement) -> str:
        parts = [element.key_text or ""]
        if element.attributes:
            parts.append(" ".join(f'{k}="{v}"' for k, v in element.attributes.items()))
        # Tree labels are single-line
        return " ".join(" ".join(p for p in parts if p).split())

    @staticmethod
    def _value(element: VisualElement) -> str:
        if element.expandable and not element.expanded and element.summary:
            return f"// {element.summary}"
        return " ".join((element.value_text or "").split())

    # -------------------------------------------------------------------------
    # Tk event handlers
    # -------------------------------------------------------------------------

    def _on_open_event(self, _event: tk.Event) -> None:
        if self._syncing or not self._on_toggle:
            return
        element = self._id_to_element.get(self._tree.focus())
        if element is not None and element.expandable:
            self._on_toggle(element)

    def _on_select_event(self, _event: tk.Event) -> None:
        if not self._on_select:
            return
        selection = self._tree.selection()
        self._on_select(self._id_to_element.get(selection[0]) if selection else None)

    def _on_double_click_event(self, event: tk.Event) -> None:
        if not self._on_activate:
            return
        self._on_activate(self._id_to_element.get(self._tree.identify_row(event.y)))
