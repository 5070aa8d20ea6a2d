# -*- coding: utf-8 -*-

"""
Main entry point for launching the hierarchy editor in a Tk window.

Usage: ``python run.py [document]`` (JSON, XML, YAML or Markdown; detected).
"""

import logging
import sys
import tkinter as tk
from pathlib import Path
from tkinter import simpledialog

from hierarchy_editor import HierarchyEditor
from hierarchy_editor.core.scheduler import TkScheduler
from hierarchy_editor.logging_config import setup_logging
from hierarchy_editor.renderer.editing import coerce_value, value_to_text
from hierarchy_editor.ui.tk_surface import TreeviewSurface


def main():
    """
    Configure logging, main window, and launch the editor.
    """
    setup_logging()

    root = tk.Tk()
    root.title("Hierarchy Editor")
    window_width, window_height = 520, 640
    screen_width = root.winfo_screenwidth()
    screen_height = root.winfo_screenheight()
    pos_x = (screen_width // 2) - (window_width // 2)
    pos_y = (screen_height // 2) - (window_height // 2)
    root.geometry(f"{window_width}x{window_height}+{pos_x}+{pos_y}")

    editor = None

    def on_activate(element):
        if element is None or not element.value_editable or element.node is None:
            return
        text = simpledialog.askstring("Edit value", element.key_text or element.path,
                                      initialvalue=value_to_text(element.node.value), parent=root)
        if text is not None:
            editor.edit_node(element.node_id, coerce_value(text))

    surface = TreeviewSurface(
        root,
        on_toggle=lambda element: editor.toggle_node(element.path),
        on_activate=on_activate,
        on_select=lambda element: element is not None and editor.select_node(element.node_id),
    )
    surface.pack(fill="both", expand=True)

    editor = HierarchyEditor(surface=surface, scheduler=TkScheduler(root)).render()
    root.bind("<Control-z>", lambda _e: editor.handle_shortcut("cmd+z"))
    root.bind("<Control-Shift-Z>", lambda _e: editor.handle_shortcut("cmd+shift+z"))
    root.bind("<Delete>", lambda _e: editor.handle_shortcut("delete"))

    if len(sys.argv) > 1:
        editor.load_content(Path(sys.argv[1]).read_text(encoding="utf-8"))

    root.protocol("WM_DELETE_WINDOW", lambda: (editor.destroy(), root.destroy()))
    root.mainloop()


if __name__ == '__main__':
    main()

    logging.info("===== Application terminated =====")
