from __future__ import annotations

"""Editor plugin base class and lifecycle states.

A plugin is any object with ``init(editor)`` and ``destroy()``; subclassing
:class:`EditorPlugin` is optional but gives a name, a per-plugin logger and
state tracking. The editor calls ``init`` once after construction and
``destroy`` on teardown. Exceptions raised from either hook are contained by
the editor and reported as ``plugin-error`` records.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from hierarchy_editor.editor import HierarchyEditor

logger = logging.getLogger(__name__)

__all__ = ["PluginState", "EditorPlugin", "plugin_name"]


class PluginState(Enum):
    """Plugin lifecycle states: CREATED -> ACTIVE -> DESTROYED, or ERROR."""

    CREATED = "created"
    ACTIVE = "active"
    DESTROYED = "destroyed"
    ERROR = "error"


class EditorPlugin:
    """Convenience base for editor plugins.

    Override :meth:`on_init` and :meth:`on_destroy` rather than the public
    hooks so state bookkeeping stays consistent.
    """

    name: str = ""

    def __init__(self, name: Optional[str] = None) -> None:
        if name:
            self.name = name
        if not self.name:
            self.name = type(self).__name__
        self._state = PluginState.CREATED
        self._editor: Optional["HierarchyEditor"] = None
        self._logger = logging.getLogger(f"plugin.{self.name}")

    # -------------------------------------------------------------------------
    # Public Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> PluginState:
        return self._state

    @property
    def editor(self) -> Optional["HierarchyEditor"]:
        return self._editor

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def init(self, editor: "HierarchyEditor") -> None:
        self._editor = editor
        try:
            self.on_init(editor)
        except Exception:
            self._state = PluginState.ERROR
            raise
        self._state = PluginState.ACTIVE
        self._logger.debug("Plugin initialized: %s", self.name)

    def destroy(self) -> None:
        try:
            self.on_destroy()
        finally:
            self._editor = None
            self._state = PluginState.DESTROYED
            self._logger.debug("Plugin destroyed: %s", self.name)

    def on_init(self, editor: "HierarchyEditor") -> None:
        """Called from :meth:`init`; subscribe to editor signals here."""

    def on_destroy(self) -> None:
        """Called from :meth:`destroy`; release anything acquired in :meth:`on_init`."""


def plugin_name(plugin: Any) -> str:
    """Display name for any plugin-shaped object."""
    return getattr(plugin, "name", None) or type(plugin).__name__
