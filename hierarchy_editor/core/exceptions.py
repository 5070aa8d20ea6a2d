from __future__ import annotations

"""Editor exception classes.

Every failure inside the editor is expressed as one of these exceptions and
then funnelled into an :class:`~hierarchy_editor.core.models.ErrorRecord` by
the orchestrator. The ``kind`` attribute carries the public error taxonomy
(``parse-error``, ``operation-error``, ...).
"""

from typing import Any, Dict, Optional


class HierarchyEditorError(Exception):
    """Base exception for all editor errors.

    All editor exceptions inherit from this base class so callers can catch
    the whole family at once.
    """

    kind: str = "error"
    recoverable: bool = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[BaseException] = None,
                 recoverable: Optional[bool] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})
        self.cause = cause
        if recoverable is not None:
            self.recoverable = recoverable

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message}"


class ParseError(HierarchyEditorError):
    """Raised when source text cannot be parsed by a format handler.

    The previously loaded content stays live.
    """
    kind = "parse-error"


class SerializationError(HierarchyEditorError):
    """Raised when a node tree cannot be written back to text."""
    kind = "serialization-error"


class RenderError(HierarchyEditorError):
    """Raised when a render pass fails."""
    kind = "render-error"


class ValidationError(HierarchyEditorError):
    """Raised when a per-path validator rejects a value."""
    kind = "validation-error"


class EditError(HierarchyEditorError):
    """Raised when an edit cannot be applied to the model."""
    kind = "edit-error"


class OperationError(HierarchyEditorError):
    """Raised for rejected structural operations.

    This includes deleting a protected path, moving a node into its own
    subtree, and nesting batch operations.
    """
    kind = "operation-error"


class ModeSwitchError(HierarchyEditorError):
    """Raised when the target view mode cannot represent the current content."""
    kind = "mode-switch-error"


class ConversionError(HierarchyEditorError):
    """Raised when converting between two formats fails."""
    kind = "conversion-error"


class ImportFailedError(HierarchyEditorError):
    """Raised when an import parser rejects its input."""
    kind = "import-error"


class ContentError(HierarchyEditorError):
    """Raised when replacing the editor content fails."""
    kind = "content-error"


class PluginError(HierarchyEditorError):
    """Raised when a plugin hook throws. Always contained."""
    kind = "plugin-error"

    def __init__(self, message: str, plugin_name: Optional[str] = None,
                 cause: Optional[BaseException] = None) -> None:
        super().__init__(message, {"plugin": plugin_name}, cause)
        self.plugin_name = plugin_name

    def __str__(self) -> str:
        if self.plugin_name:
            return f"[Plugin: {self.plugin_name}] {self.message}"
        return super().__str__()


class UnsupportedFormatError(HierarchyEditorError):
    """Raised when no format handler is registered under a name."""
    kind = "conversion-error"

    def __init__(self, format_name: str, available_formats: Optional[list[str]] = None) -> None:
        self.format_name = format_name
        self.available_formats = available_formats or []
        if self.available_formats:
            message = (f"No handler registered for format '{format_name}'. "
                       f"Supported formats: {', '.join(self.available_formats)}")
        else:
            message = f"No handler registered for format '{format_name}'."
        super().__init__(message, {"format": format_name})
