from __future__ import annotations

"""Plugin hooks for the hierarchy editor."""

from .base import EditorPlugin, PluginState, plugin_name  # noqa: F401

__all__: list[str] = ["EditorPlugin", "PluginState", "plugin_name"]
