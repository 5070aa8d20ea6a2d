from __future__ import annotations

"""Editor orchestrator: one object per edited document.

:class:`HierarchyEditor` owns a :class:`HierarchyModel`, an
:class:`ExpansionStateManager`, a :class:`HierarchyRenderer` and the format
handler of the current syntax, and exposes the public operations and signals
of the editor. Presentation goes through a render surface
(:class:`~hierarchy_editor.ui.surface.InMemorySurface` when none is given).

Every failure is funnelled through :meth:`HierarchyEditor._report`, which
builds an :class:`ErrorRecord`, records it when ``track_errors`` is on, offers
it to the configured ``error_handler`` and otherwise emits ``error``.

Examples
--------
    editor = HierarchyEditor(content='{"a": {"b": 1}}').render()
    editor.on("contentchange", lambda e: print(e["content"]))
    editor.edit_node("a.b", 2)
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from hierarchy_editor.config import ConfigManager
from hierarchy_editor.core.editor_config import EditorConfig
from hierarchy_editor.core.events import EventEmitter
from hierarchy_editor.core.exceptions import (
    ContentError,
    ConversionError,
    EditError,
    HierarchyEditorError,
    ImportFailedError,
    ModeSwitchError,
    OperationError,
    ParseError,
    PluginError,
    RenderError,
    SerializationError,
    UnsupportedFormatError,
)
from hierarchy_editor.core.handlers import FormatHandler, FormatMatch, FormatRegistry, ValidationResult, create_default_registry
from hierarchy_editor.core.handlers.json_handler import data_to_node
from hierarchy_editor.core.hierarchy_model import HierarchyModel
from hierarchy_editor.core.models import EditorMode, ErrorRecord, HierarchyNode, NodeType, OperationResult, PendingChange
from hierarchy_editor.core.plugins import plugin_name
from hierarchy_editor.core.scheduler import QueueScheduler
from hierarchy_editor.core.services import ExpansionStateManager, JsonFileStore, UndoService
from hierarchy_editor.renderer import HierarchyRenderer, VisualElement
from hierarchy_editor.renderer.editing import EditSession
from hierarchy_editor.ui.surface import InMemorySurface

logger = logging.getLogger(__name__)

__all__ = ["HierarchyEditor"]

EXPANSION_STATE_FILE = "expansion_state.json"

_SUGGESTIONS = (
    ("trailing comma", "Remove the trailing comma from your JSON"),
    ("expecting property name", "Remove the trailing comma from your JSON"),
    ("unterminated string", "Make sure all strings are properly closed with quotes"),
    ("mismatch", "Check that every opening tag has a matching closing tag"),
    ("not closed", "Check that every opening tag has a matching closing tag"),
    ("expecting", "Check for missing quotes or brackets"),
    ("unexpected", "Check for missing quotes or brackets"),
    ("mapping values are not allowed", "Check the indentation of your YAML"),
)


class HierarchyEditor(EventEmitter):
    """Hierarchical document editor.

    Parameters
    ----------
    content : str, optional
        Text loaded by :meth:`render` using the configured format.
    surface : RenderSurface, optional
        Receives rendered element trees and inline messages.
    scheduler : Scheduler, optional
        Runs deferred work (``ready`` / ``rendercomplete``, debounced
        persistence). Defaults to a :class:`QueueScheduler` drained by the host.
    registry : FormatRegistry, optional
        Format handlers; the bundled JSON/XML/YAML/Markdown set by default.
    store : StateStore, optional
        Storage for expansion state when ``persist_expansion`` is on; a JSON
        file in the user config directory by default.
    defaults : dict, optional
        Base options instead of the packaged/user ``editor_defaults.yml``.
    **options
        Construction options (see :class:`EditorConfig`); camelCase accepted.

    Notes
    -----
    Operations run to completion before the next one is accepted. Mode
    switches and batches are guarded: a second ``set_mode`` while one is in
    progress fails with ``reason="busy"``, a nested ``bulk_operation`` raises
    :class:`OperationError`.
    """

    def __init__(
        self,
        content: Optional[str] = None,
        *,
        surface: Any = None,
        scheduler: Any = None,
        registry: Optional[FormatRegistry] = None,
        store: Any = None,
        defaults: Optional[Dict[str, Any]] = None,
        **options: Any,
    ) -> None:
        super().__init__()
        self.config = EditorConfig.from_options(defaults, **options)
        self.scheduler = scheduler if scheduler is not None else QueueScheduler()
        self.surface = surface if surface is not None else InMemorySurface()
        self.registry = registry if registry is not None else create_default_registry(self.config.indent_size)

        self.model = HierarchyModel(delimiter=self.config.path_delimiter)
        self.expansion_state = self._create_expansion_state(store)
        self.renderer = HierarchyRenderer(
            expansion_state=self.expansion_state,
            editable=self.config.editable,
            theme=self.config.theme,
            delimiter=self.config.path_delimiter,
        )
        self.undo_service = UndoService(max_history=self.config.undo_history)

        self._initial_content = content
        self._format = self.config.format
        self._handler: Optional[FormatHandler] = None
        self._mode = self.config.default_mode
        self._source_text = ""
        self._previous_content = ""
        self._view: Optional[VisualElement] = None
        self._selected_id: Optional[str] = None

        self._rendered = False
        self._destroyed = False
        self._batching = False
        self._mode_switching = False
        self._pending_changes: List[PendingChange] = []
        self._error_history: List[ErrorRecord] = []
        self._last_error: Optional[ErrorRecord] = None
        self._failed_load: Optional[Tuple[str, str]] = None
        self._active_plugins: List[Any] = []
        self._deferred: List[Any] = []

        self.model.on("change", self._on_model_change)
        self.expansion_state.on("expand", self._on_expansion_signal)
        self.expansion_state.on("collapse", self._on_expansion_signal)
        self.renderer.on("edit", self._on_renderer_edit)
        self.renderer.on("expansion-changed", self._on_expansion_changed)

    def _create_expansion_state(self, store: Any) -> ExpansionStateManager:
        persist_key = None
        if self.config.persist_expansion:
            persist_key = self.config.persist_key or f"hierarchy-expansion-{self.config.format}"
            if store is None:
                store = JsonFileStore(ConfigManager().get_user_dir() / EXPANSION_STATE_FILE)
        return ExpansionStateManager(
            default_expanded=self.config.default_expanded,
            max_depth=self.config.max_depth,
            store=store if persist_key else None,
            persist_key=persist_key,
            scheduler=self.scheduler,
            persist_debounce=self.config.persist_debounce,
            delimiter=self.config.path_delimiter,
        )

    # -------------------------------------------------------------------------
    # Public Properties
    # -------------------------------------------------------------------------

    @property
    def format(self) -> str:
        return self._format

    @property
    def format_handler(self) -> Optional[FormatHandler]:
        return self._handler

    @property
    def view(self) -> Optional[VisualElement]:
        """Element tree of the last render pass."""
        return self._view

    @property
    def is_rendered(self) -> bool:
        return self._rendered

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def selected_node(self) -> Optional[HierarchyNode]:
        return self.model.find_by_id(self._selected_id) if self._selected_id else None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def render(self) -> "HierarchyEditor":
        """Load the initial content, start plugins and mount the tree.

        ``mount`` is emitted before returning; ``ready`` and
        ``rendercomplete`` are deferred through the scheduler so listeners
        attached right after this call still observe them.
        """
        if self._rendered or self._destroyed:
            return self
        started = time.perf_counter()
        try:
            self._handler = self.registry.get(self._format)
            if self._initial_content:
                self.load_content(self._initial_content, self._format)
            else:
                self._render_tree()
            if self._mode == EditorMode.SOURCE.value:
                self._source_text = self._serialize()
        except Exception as e:
            self._report(RenderError(f"Editor failed to render: {e}", cause=e, recoverable=False))
        self._init_plugins()
        self._rendered = True

        self.emit("mount", {"editor": self, "format": self._format, "mode": self._mode})
        self._deferred.append(self.scheduler.call_later(0.0, lambda: self._emit_ready(started)))
        logger.info("Editor rendered (format=%s, mode=%s)", self._format, self._mode)
        return self

    def _emit_ready(self, started: float) -> None:
        if self._destroyed:
            return
        node_count = self.model.get_node_count()
        self.emit("ready", {"editor": self, "nodeCount": node_count, "format": self._format})
        self.emit("rendercomplete", {
            "nodeCount": node_count,
            "renderTime": (time.perf_counter() - started) * 1000.0,
            "mode": self._mode,
            "format": self._format,
        })

    def _init_plugins(self) -> None:
        for plugin in self.config.plugins:
            try:
                plugin.init(self)
            except Exception as e:
                name = plugin_name(plugin)
                self._report(PluginError(f"Plugin '{name}' failed to initialize: {e}", name, cause=e))
                continue
            self._active_plugins.append(plugin)

    def destroy(self) -> None:
        if self._destroyed:
            return
        for handle in self._deferred:
            self.scheduler.cancel(handle)
        self._deferred.clear()

        session = self.renderer.active_session
        if session is not None:
            session.cancel()

        for plugin in reversed(self._active_plugins):
            try:
                plugin.destroy()
            except Exception:
                logger.exception("Error destroying plugin %s", plugin_name(plugin))
        self._active_plugins.clear()

        self.expansion_state.flush()
        self.expansion_state.destroy()
        self.renderer.clear_cache()
        self.renderer.remove_all_listeners()
        self.model.destroy()
        self.undo_service.clear()
        self.surface.clear()
        self._view = None
        self._destroyed = True

        self.emit("destroy", {"editor": self})
        self.remove_all_listeners()
        logger.info("Editor destroyed")

    # -------------------------------------------------------------------------
    # Content I/O
    # -------------------------------------------------------------------------

    def get_content(self) -> str:
        """Serialize the live tree with the current format handler."""
        try:
            return self._serialize()
        except HierarchyEditorError as e:
            self._report(e)
            return ""

    def set_content(self, text: str) -> OperationResult:
        """Replace the document with ``text`` in the current format.

        Preceded by a cancellable ``beforechange``; followed by
        ``contentchange`` with ``source="set-content"``.
        """
        if not self.config.editable:
            return OperationResult(False, "Editor is read-only.", {"reason": "read-only"})
        event = self.emit("beforechange", {"content": text, "previousContent": self._previous_content})
        if event.default_prevented:
            return OperationResult(False, "Change was cancelled.", {"reason": "prevented"})
        try:
            self._apply_content(text, self._format)
        except HierarchyEditorError as e:
            self._report(ContentError(f"Content rejected: {e.message}", {"format": self._format}, cause=e))
            return OperationResult(False, e.message, {"reason": e.kind})
        self._pending_changes.append(PendingChange("set-content"))
        self._flush_changes("set-content")
        return OperationResult(True, "Content replaced.", {"format": self._format})

    def load_content(self, text: str, fmt: Optional[str] = None) -> OperationResult:
        """Parse ``text`` (detecting the format when ``fmt`` is None) and reset the document.

        On a parse failure the previous document stays live, a ``parse-error``
        is reported and the surface shows the message inline.
        """
        if not text or not text.strip():
            if self.model.get_root_node() is None:
                self._render_tree()
            return OperationResult(False, "No content to load.", {"reason": "empty"})
        if fmt is None:
            fmt = self._detect_format(text).format
        fmt = fmt.lower()
        try:
            self._apply_content(text, fmt)
        except HierarchyEditorError as e:
            self._failed_load = (text, fmt)
            record = self._report(e, format=fmt)
            if self._view is None:
                self._render_tree()
            self.surface.show_message(e.message, "error", record.suggestion)
            return OperationResult(False, e.message, {"reason": e.kind, "format": fmt})

        self._failed_load = None
        if self._last_error is not None:
            self.emit("recovery", {"fromError": self._last_error.kind, "newContent": text, "newFormat": fmt})
            self._last_error = None
        return OperationResult(True, f"Loaded {fmt} content.",
                               {"format": fmt, "nodeCount": self.model.get_node_count()})

    def _apply_content(self, text: str, fmt: str) -> None:
        handler = self.registry.get(fmt)
        try:
            root = handler.parse(text)
        except HierarchyEditorError:
            raise
        except Exception as e:
            raise ParseError(f"Invalid {fmt} content: {e}", {"format": fmt}, cause=e)

        if fmt != self._format:
            previous = self._format
            self._format = fmt
            self.emit("formatchange", {"fromFormat": previous, "toFormat": fmt, "content": text})
        self._handler = handler
        self.model.set_root_node(root)
        self._source_text = text
        self._previous_content = self._serialize_quietly()
        self.undo_service.clear()
        self.undo_service.push_snapshot(self.model, "load")
        self._render_tree()
        logger.info("Edit OK: loaded %s content (%d nodes)", fmt, self.model.get_node_count())

    def _detect_format(self, text: str) -> FormatMatch:
        """Ask the registered handlers in priority order; fall back to the configured format."""
        match = self.registry.detect(text)
        if match is None:
            return FormatMatch(self.config.format, 0.0)
        self.emit("formatdetected", {"format": match.format, "confidence": match.confidence, "content": text})
        return match

    def convert_to(self, fmt: str) -> OperationResult:
        """Re-express the document in another registered format and reload it."""
        fmt = fmt.lower()
        try:
            target = self.registry.get(fmt)
            root = self._handler.parse(self._serialize())
            converted = target.serialize(root, self._indent())
        except HierarchyEditorError as e:
            self._report(ConversionError(f"Cannot convert {self._format} to {fmt}: {e.message}",
                                         {"fromFormat": self._format, "toFormat": fmt}, cause=e))
            return OperationResult(False, e.message, {"reason": "conversion-error"})
        return self.load_content(converted, fmt)

    def validate(self, text: str, fmt: Optional[str] = None) -> ValidationResult:
        """Check ``text`` against a format handler without touching the document."""
        try:
            handler = self.registry.get(fmt or self._format)
        except UnsupportedFormatError as e:
            return ValidationResult(False, [e.message])
        return handler.validate(text)

    def get_tree_data(self) -> Optional[Dict[str, Any]]:
        root = self.model.get_root_node()
        return root.to_dict() if root is not None else None

    def export_as(self, fmt: str) -> Any:
        """Run the ``export_formats[fmt]`` adapter on :meth:`get_tree_data`."""
        exporter = self.config.export_formats.get(fmt)
        if exporter is None:
            raise UnsupportedFormatError(fmt, sorted(self.config.export_formats))
        try:
            return exporter(self.get_tree_data())
        except Exception as e:
            self._report(SerializationError(f"Export to {fmt} failed: {e}", {"format": fmt}, cause=e))
            return None

    def import_from(self, text: str, fmt: str) -> OperationResult:
        """Parse ``text`` with ``import_parsers[fmt]`` and load the resulting data as JSON."""
        parser = self.config.import_parsers.get(fmt)
        if parser is None:
            raise UnsupportedFormatError(fmt, sorted(self.config.import_parsers))
        try:
            content = json.dumps(parser(text), ensure_ascii=False)
        except Exception as e:
            self._report(ImportFailedError(f"Import from {fmt} failed: {e}", {"format": fmt}, cause=e))
            return OperationResult(False, str(e), {"reason": "import-error"})
        return self.load_content(content, "json")

    def retry(self) -> OperationResult:
        """Re-run the last failed load."""
        if self._failed_load is None:
            return OperationResult(False, "Nothing to retry.")
        text, fmt = self._failed_load
        return self.load_content(text, fmt)

    # -------------------------------------------------------------------------
    # Node operations
    # -------------------------------------------------------------------------

    def edit_node(self, path_or_id: str, value: Any) -> OperationResult:
        """Set a node's value after running the validator registered for its path."""
        if not self.config.editable:
            return OperationResult(False, "Editor is read-only.", {"reason": "read-only"})
        node = self.model.find(path_or_id)
        if node is None:
            logger.warning("Edit FAIL: edit_node not_found path=%s", path_or_id)
            return OperationResult(False, f"Node not found: {path_or_id}", {"reason": "not-found"})

        path = self.model.path_of(node)
        validator_key, validator = self._validator_for(path)
        if validator is not None:
            valid, message = _run_validator(validator, value)
            if not valid:
                logger.info("Edit FAIL: edit_node validation path=%s", path)
                self.emit("validationerror", {"path": path, "value": value, "error": message,
                                              "validator": validator_key})
                return OperationResult(False, message or "Validation failed.", {"reason": "validation"})

        old_value = node.value
        logger.info("Edit: edit_node path=%s", path)
        self.model.update_node_value(node, value)
        parent_path = self.model.path_of(node.parent) if node.parent is not None else ""
        self.emit("nodeedit", {"path": path, "oldValue": old_value, "newValue": value,
                               "nodeId": node.id, "parentPath": parent_path})
        self._flush_changes("tree-edit")
        return OperationResult(True, "Value updated.", {"oldValue": old_value, "newValue": value})

    def add_node(self, parent_path: str, value: Any = None, key: Optional[str] = None) -> OperationResult:
        """Add a child under ``parent_path``; dict/list values become subtrees."""
        if not self.config.editable:
            return OperationResult(False, "Editor is read-only.", {"reason": "read-only"})
        parent = self.model.find(parent_path)
        if parent is None:
            self._report(OperationError(f"Parent node not found: {parent_path}",
                                        {"operation": "add", "path": parent_path}))
            return OperationResult(False, f"Parent node not found: {parent_path}", {"reason": "not-found"})
        if parent.type == NodeType.OBJECT.value and not key:
            self._report(OperationError("A key is required to add a property to an object.",
                                        {"operation": "add", "path": parent_path}))
            return OperationResult(False, "A key is required.", {"reason": "missing-key"})

        node = _build_node(parent, value, key)
        logger.info("Edit: add_node parent=%s key=%s", parent_path, key)
        result = self.model.add_node(parent, node)
        if not result:
            self._report(OperationError(result.message, {"operation": "add", "path": parent_path}))
            return result

        index = result.details["index"]
        self.emit("nodeadd", {"parentPath": self.model.path_of(parent), "value": value, "key": key,
                              "index": index, "nodeId": node.id, "parentType": parent.type})
        self._flush_changes("node-add")
        return OperationResult(True, "Node added.",
                               {"nodeId": node.id, "index": index, "path": self.model.path_of(node)})

    def delete_node(self, path_or_id: str) -> OperationResult:
        """Remove a node; required paths (and their ancestors) are protected."""
        if not self.config.editable:
            return OperationResult(False, "Editor is read-only.", {"reason": "read-only"})
        node = self.model.find(path_or_id)
        if node is None:
            logger.warning("Edit FAIL: delete_node not_found path=%s", path_or_id)
            return OperationResult(False, f"Node not found: {path_or_id}", {"reason": "not-found"})

        path = self.model.path_of(node)
        if self._is_protected(path):
            self._report(OperationError(f"Cannot delete required node: {path}",
                                        {"operation": "delete", "path": path}))
            return OperationResult(False, f"Cannot delete required node: {path}", {"reason": "required"})

        parent = node.parent
        parent_path = self.model.path_of(parent) if parent is not None else ""
        had_children = node.has_children
        logger.info("Edit: delete_node path=%s", path)
        result = self.model.remove_node(node)
        if not result:
            self._report(OperationError(result.message, {"operation": "delete", "path": path}))
            return result

        if self._selected_id == node.id:
            self._selected_id = None
        self.emit("noderemove", {"path": path, "value": node.value, "parentPath": parent_path,
                                 "hadChildren": had_children})
        self.emit("nodedelete", {"path": path, "value": node.value, "parentPath": parent_path,
                                 "index": result.details["index"]})
        self._flush_changes("node-delete")
        return OperationResult(True, "Node removed.", {"path": path, "index": result.details["index"]})

    def move_node(self, from_path: str, to_path: str, to_index: Optional[int] = None) -> OperationResult:
        """Move ``from_path`` under ``to_path``; moving into its own subtree is refused."""
        if not self.config.editable:
            return OperationResult(False, "Editor is read-only.", {"reason": "read-only"})
        node = self.model.find(from_path)
        target = self.model.find(to_path)
        if node is None or target is None:
            missing = from_path if node is None else to_path
            self._report(OperationError(f"Node not found: {missing}",
                                        {"operation": "move", "fromPath": from_path, "toPath": to_path}))
            return OperationResult(False, f"Node not found: {missing}", {"reason": "not-found"})
        if node is target or node.is_ancestor_of(target):
            message = "Cannot move node into its own descendant (circular reference)."
            logger.warning("Edit FAIL: move_node cycle from=%s to=%s", from_path, to_path)
            self._report(OperationError(message, {"operation": "move", "fromPath": from_path, "toPath": to_path}))
            return OperationResult(False, message, {"reason": "cycle"})

        from_parent = self.model.path_of(node.parent) if node.parent is not None else ""
        logger.info("Edit: move_node from=%s to=%s index=%s", from_path, to_path, to_index)
        result = self.model.move_node(node, target, to_index)
        if not result:
            self._report(OperationError(result.message,
                                        {"operation": "move", "fromPath": from_path, "toPath": to_path}))
            return result

        new_path = self.model.path_of(node)
        self.emit("nodemove", {"fromPath": from_path, "toPath": to_path, "toIndex": to_index,
                               "value": node.value, "fromParent": from_parent,
                               "toParent": self.model.path_of(target), "newPath": new_path})
        self._flush_changes("node-move")
        return OperationResult(True, "Node moved.", {"path": new_path, "index": result.details["index"]})

    def bulk_operation(self, fn: Callable[[], Any]) -> Any:
        """Run ``fn`` with change notifications collapsed into one ``contentchange``.

        Emits ``slowoperation`` when ``fn`` takes longer than
        ``slow_operation_threshold`` milliseconds. Returns ``fn``'s result.
        """
        if self._batching:
            raise OperationError("A bulk operation is already in progress.", {"operation": "bulk-operation"})
        self._batching = True
        self._pending_changes = []
        started = time.perf_counter()
        try:
            result = fn()
        finally:
            self._batching = False
            item_count = len(self._pending_changes)
            self._flush_changes("bulk-operation")

        duration = (time.perf_counter() - started) * 1000.0
        if duration > self.config.slow_operation_threshold:
            logger.warning("Slow bulk operation: %.1f ms for %d changes", duration, item_count)
            self.emit("slowoperation", {"operation": "bulk-operation", "duration": duration,
                                        "itemCount": item_count})
        return result

    # -------------------------------------------------------------------------
    # Undo / redo
    # -------------------------------------------------------------------------

    def undo(self) -> bool:
        return self._restore(self.undo_service.undo, "undo")

    def redo(self) -> bool:
        return self._restore(self.undo_service.redo, "redo")

    def can_undo(self) -> bool:
        return self.undo_service.can_undo()

    def can_redo(self) -> bool:
        return self.undo_service.can_redo()

    def _restore(self, step: Callable[[HierarchyModel], bool], source: str) -> bool:
        if not self.config.editable or not step(self.model):
            return False
        # Restoring replaces the root, which clears the dirty flag
        self.model.is_dirty = True
        self._render_tree()
        self._emit_content_change(source, [PendingChange(source)])
        return True

    # -------------------------------------------------------------------------
    # Mode
    # -------------------------------------------------------------------------

    def get_mode(self) -> str:
        return self._mode

    def set_mode(self, mode: Any) -> OperationResult:
        """Switch between ``tree`` and ``source`` presentation.

        Leaving source mode parses the source buffer; if that fails the mode
        is unchanged and a ``mode-switch-error`` is reported.
        """
        target = mode.value if isinstance(mode, EditorMode) else str(mode).lower()
        if self._mode_switching:
            return OperationResult(False, "A mode switch is already in progress.", {"reason": "busy"})
        if target not in (EditorMode.TREE.value, EditorMode.SOURCE.value):
            self._report(ModeSwitchError(f"Unknown mode: {mode}", {"fromMode": self._mode, "toMode": target}))
            return OperationResult(False, f"Unknown mode: {mode}", {"reason": "unknown-mode"})
        if target == self._mode:
            return OperationResult(True, f"Already in {target} mode.", {"mode": target})

        event = self.emit("beforemodechange", {"fromMode": self._mode, "toMode": target})
        if event.default_prevented:
            return OperationResult(False, "Mode change was cancelled.", {"reason": "prevented"})

        self._mode_switching = True
        try:
            reparsed = self._prepare_mode(target)
        except HierarchyEditorError as e:
            self._report(ModeSwitchError(f"Cannot switch to {target} mode: {e.message}",
                                         {"fromMode": self._mode, "toMode": target,
                                          "reason": "invalid-content"}, cause=e))
            return OperationResult(False, e.message, {"reason": "invalid-content"})
        finally:
            self._mode_switching = False

        previous = self._mode
        self._mode = target
        if reparsed is not None:
            self.model.set_root_node(reparsed)
            self.model.is_dirty = True
            self._pending_changes.append(PendingChange("source-edit"))
            self._flush_changes("source-edit")
        self.emit("modechange", {"fromMode": previous, "toMode": target})
        logger.info("Mode changed: %s -> %s", previous, target)
        return OperationResult(True, f"Switched to {target} mode.", {"mode": target})

    def _prepare_mode(self, target: str) -> Optional[HierarchyNode]:
        if target == EditorMode.SOURCE.value:
            self._source_text = self._serialize()
            return None
        if self._source_text == self._previous_content:
            return None
        if not self._source_text.strip():
            raise ParseError("Source is empty", {"format": self._format})
        return self._handler.parse(self._source_text)

    def get_source_text(self) -> str:
        return self._source_text

    def set_source_text(self, text: str) -> Optional[ValidationResult]:
        """Replace the source buffer; applied to the tree on the next switch to tree mode.

        With ``realtime_validation`` the buffer is validated and a
        ``validation`` signal emitted; the result is returned.
        """
        self._source_text = text
        if not self.config.realtime_validation or self._handler is None:
            return None
        result = self._handler.validate(text)
        self.emit("validation", {"valid": result.valid, "errors": list(result.errors), "format": self._format})
        return result

    # -------------------------------------------------------------------------
    # Selection / expansion / navigation
    # -------------------------------------------------------------------------

    def select_node(self, path_or_id: str) -> OperationResult:
        node = self.model.find(path_or_id)
        if node is None:
            return OperationResult(False, f"Node not found: {path_or_id}", {"reason": "not-found"})
        self._selected_id = node.id
        self.emit("select", {"nodeId": node.id, "path": self.model.path_of(node)})
        return OperationResult(True, "Node selected.", {"nodeId": node.id})

    def expand_node(self, path_or_id: str, recursive: bool = False) -> bool:
        node = self.model.find(path_or_id)
        if node is None:
            return False
        path = self.model.path_of(node)
        if recursive:
            for branch in self._branch_paths(node, path):
                self.expansion_state.expand(branch)
        else:
            self.expansion_state.expand(path)
        self._render_tree()
        return True

    def collapse_node(self, path_or_id: str) -> bool:
        node = self.model.find(path_or_id)
        if node is None:
            return False
        self.expansion_state.collapse(self.model.path_of(node))
        self._render_tree()
        return True

    def toggle_node(self, path: str) -> Optional[bool]:
        """Activate the expand control of a rendered row (what a surface click does)."""
        element = self._view.find(path) if self._view is not None else None
        if element is None:
            return None
        return self.renderer.activate_control(element)

    def expand_all(self, max_depth: Optional[float] = None) -> None:
        self.expansion_state.expand_all(self.model.get_root_node(), max_depth)
        self._render_tree()

    def collapse_all(self) -> None:
        self.expansion_state.collapse_all()
        self._render_tree()

    def expand_to_depth(self, depth: int) -> None:
        self.expansion_state.expand_to_depth(self.model.get_root_node(), depth)
        self._render_tree()

    def expand_path(self, path: str) -> None:
        """Expand every ancestor of ``path`` (and ``path`` itself) so it becomes visible."""
        node = self.model.find(path)
        self.expansion_state.expand_path(self.model.path_of(node) if node is not None else path)
        self._render_tree()

    def navigate(self, direction: str) -> Optional[str]:
        """Move the selection over visible rows.

        ``up``/``down`` step through rows, ``first``/``last`` jump, ``right``
        expands a collapsed row or enters its first child, ``left`` collapses
        an expanded row or goes to its parent. Returns the new path.
        """
        if self._view is None:
            return None
        paths = self._view.visible_paths()
        if not paths:
            return None
        current = self.selected_node
        current_path = self.model.path_of(current) if current is not None else None
        index = paths.index(current_path) if current_path in paths else -1
        target: Optional[str] = None

        if direction == "down":
            target = paths[min(index + 1, len(paths) - 1)]
        elif direction == "up":
            target = paths[max(index - 1, 0)]
        elif direction == "first":
            target = paths[0]
        elif direction == "last":
            target = paths[-1]
        elif direction in ("right", "left") and current_path is not None:
            element = self._view.find(current_path)
            target = current_path
            if direction == "right" and element is not None and element.expandable:
                if not element.expanded:
                    self.toggle_node(current_path)
                elif element.children:
                    target = element.children[0].path
            elif direction == "left":
                if element is not None and element.expandable and element.expanded:
                    self.toggle_node(current_path)
                elif current is not None and current.parent is not None and current.parent.parent is not None:
                    target = self.model.path_of(current.parent)
        if target is None:
            return None
        self.select_node(target)
        self.emit("navigate", {"direction": direction, "fromPath": current_path, "toPath": target})
        return target

    # -------------------------------------------------------------------------
    # Inline editing
    # -------------------------------------------------------------------------

    def start_inline_edit(self, path_or_id: str, part: str = "value") -> Optional[EditSession]:
        """Open an inline editor on a node's ``value`` (or ``key``) region."""
        if not self.config.editable:
            return None
        node = self.model.find(path_or_id)
        if node is None:
            return None
        path = self.model.path_of(node)
        element = self._view.find(path) if self._view is not None else None
        if element is None:
            parent = node.parent
            if parent is not None and parent.parent is not None:
                self.expansion_state.expand_path(self.model.path_of(parent))
            self._render_tree()
            element = self._view.find(path) if self._view is not None else None
            if element is None:
                return None
        if part == "key":
            session = self.renderer.start_key_edit(element)
        else:
            session = self.renderer.start_value_edit(element)
        if session is None:
            return None
        self.emit("editstart", {"path": path, "currentValue": node.value, "mode": "inline", "part": part})
        return session

    def cancel_edit(self) -> bool:
        session = self.renderer.active_session
        if session is None:
            return False
        node = session.node
        session.cancel()
        self.emit("editcancel", {
            "path": self.model.path_of(node) if node is not None else session.element.path,
            "originalValue": node.value if node is not None else None,
            "reason": "user-cancelled",
        })
        return True

    # -------------------------------------------------------------------------
    # Configuration / shortcuts
    # -------------------------------------------------------------------------

    def update_config(self, **changes: Any) -> EditorConfig:
        """Patch mutable options (raises ``ValueError`` for invalid or fixed ones) and re-render."""
        self.config = self.config.patch(**changes)
        self.renderer.update_config(editable=self.config.editable, theme=self.config.theme)
        if self._rendered:
            self._render_tree()
        return self.config

    def set_theme(self, theme: str) -> None:
        self.update_config(theme=theme)

    def handle_shortcut(self, key: str) -> bool:
        """Run the action bound to ``key`` (e.g. ``"cmd+z"``). Returns False if unbound."""
        action = self.config.shortcuts.get(key.lower())
        if action is None:
            return False
        selected = self._selected_id
        if action == "save":
            self.emit("save", {"content": self.get_content(), "format": self._format})
        elif action == "undo":
            self.undo()
        elif action == "redo":
            self.redo()
        elif action == "deleteNode" and selected:
            self.delete_node(selected)
        elif action == "editNode" and selected:
            self.start_inline_edit(selected)
        elif action == "expandAll":
            self.expand_all()
        elif action == "collapseAll":
            self.collapse_all()
        else:
            logger.debug("Shortcut %s -> %s ignored", key, action)
        return True

    # -------------------------------------------------------------------------
    # Errors
    # -------------------------------------------------------------------------

    def has_errors(self) -> bool:
        return bool(self._error_history)

    def get_error_history(self) -> List[ErrorRecord]:
        return list(self._error_history)

    def clear_error_history(self) -> None:
        self._error_history.clear()

    def _report(self, error: HierarchyEditorError, **details: Any) -> ErrorRecord:
        """Funnel ``error`` into a record: history, user handler, then ``error`` signal."""
        record = ErrorRecord(
            kind=error.kind,
            message=error.message,
            context={"mode": self._mode, "nodeCount": self.model.get_node_count()},
            recoverable=error.recoverable,
            details={**error.details, **details},
            suggestion=self._suggestion_for(error),
            error=error,
        )
        self._last_error = record
        if self.config.track_errors:
            self._error_history.append(record)
        logger.warning("Edit FAIL: %s %s", record.kind, record.message)

        if self.config.error_handler is not None:
            try:
                verdict = self.config.error_handler(record)
            except Exception:
                logger.exception("Error handler failed for %s", record.kind)
                verdict = None
            handled = verdict.get("handled") if isinstance(verdict, dict) else verdict
            if handled:
                return record

        self.emit("error", {
            "kind": record.kind,
            "message": record.message,
            "context": record.context,
            "timestamp": record.timestamp,
            "recoverable": record.recoverable,
            "details": record.details,
            "suggestion": record.suggestion,
            "error": error,
            "record": record,
        })
        return record

    def _suggestion_for(self, error: HierarchyEditorError) -> Optional[str]:
        if not self.config.show_error_suggestions:
            return None
        message = error.message.lower()
        for needle, suggestion in _SUGGESTIONS:
            if needle in message:
                return suggestion
        return None

    # -------------------------------------------------------------------------
    # Signal handlers
    # -------------------------------------------------------------------------

    def _on_model_change(self, event: Dict[str, Any]) -> None:
        source = event.get("source", "model")
        if source == "set-root":
            return
        node = event.get("node")
        path = self.model.path_of(node) if node is not None and node.parent is not None else ""
        self._pending_changes.append(PendingChange(source, path))

    def _on_expansion_signal(self, event: Dict[str, Any]) -> None:
        path = event.get("path", "")
        self.emit(event.name, {"path": path, "node": self.model.find_by_path(path)})

    def _on_expansion_changed(self, event: Dict[str, Any]) -> None:
        """Re-render only the toggled subtree after a control activation."""
        node, path = event.get("node"), event.get("path", "")
        old = self._view.find(path) if self._view is not None else None
        if node is None or old is None:
            self._render_tree()
            return
        try:
            new = self.renderer.render(node, old.depth, old.extra.get("parent_path", ""), self._handler)
        except Exception as e:
            self._report(RenderError(f"Render failed: {e}", {"path": path}, cause=e))
            return
        self.surface.replace(old, new)
        _swap_element(self._view, old, new)

    def _on_renderer_edit(self, event: Dict[str, Any]) -> None:
        node = event.get("node")
        if node is None or self.model.find_by_id(node.id) is None:
            logger.warning("Edit FAIL: stale inline edit on %s", event.get("path"))
            return
        edit_type, old_value, new_value = event.get("type"), event.get("oldValue"), event.get("newValue")
        if edit_type == "key":
            result = self._rename(node, new_value)
        else:
            result = self.edit_node(node.id, new_value)
        if result:
            self.emit("editend", {"path": self.model.path_of(node), "oldValue": old_value,
                                  "newValue": new_value, "type": edit_type})

    def _rename(self, node: HierarchyNode, name: str) -> OperationResult:
        if not self.config.editable:
            return OperationResult(False, "Editor is read-only.", {"reason": "read-only"})
        old_path = self.model.path_of(node)
        if self._is_protected(old_path):
            self._report(EditError(f"Cannot rename required node: {old_path}", {"path": old_path}))
            return OperationResult(False, f"Cannot rename required node: {old_path}", {"reason": "required"})
        result = self.model.rename_node(node, name)
        if not result:
            self._report(EditError(result.message, {"path": old_path}))
            return result
        if self.expansion_state.is_expanded(old_path) and node.has_children:
            self.expansion_state.expand(self.model.path_of(node))
        self.emit("nodeedit", {"path": self.model.path_of(node), "oldValue": result.details["oldValue"],
                               "newValue": name, "nodeId": node.id, "type": "key",
                               "parentPath": self.model.path_of(node.parent)})
        self._flush_changes("key-edit")
        return result

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _flush_changes(self, source: str) -> None:
        if self._batching or not self._pending_changes:
            return
        changes, self._pending_changes = self._pending_changes, []
        self.undo_service.push_snapshot(self.model, source)
        self._render_tree()
        self._emit_content_change(source, changes)

    def _emit_content_change(self, source: str, changes: List[PendingChange]) -> None:
        content = self.get_content()
        previous, self._previous_content = self._previous_content, content
        self._source_text = content
        self.emit("contentchange", {
            "content": content,
            "previousContent": previous,
            "source": source,
            "format": self._format,
            "changes": changes,
        })

    def _render_tree(self) -> None:
        if self._destroyed:
            return
        try:
            element = self.renderer.render(self.model.get_root_node(), format_handler=self._handler)
        except Exception as e:
            self._report(RenderError(f"Render failed: {e}", cause=e))
            return
        self._view = element
        self.surface.mount(element)

    def _serialize(self) -> str:
        root = self.model.get_root_node()
        if root is None or self._handler is None:
            return ""
        try:
            return self._handler.serialize(root, self._indent())
        except HierarchyEditorError:
            raise
        except Exception as e:
            raise SerializationError(f"Cannot serialize as {self._format}: {e}", {"format": self._format}, cause=e)

    def _serialize_quietly(self) -> str:
        try:
            return self._serialize()
        except HierarchyEditorError as e:
            logger.debug("Serialization skipped: %s", e)
            return ""

    def _indent(self) -> str:
        return (self.config.indent_char or " ") * self.config.indent_size

    def _validator_for(self, path: str) -> Tuple[Optional[str], Optional[Callable[[Any], Any]]]:
        for key, validator in self.config.validators.items():
            if self.model.normalize_path(key) == path:
                return key, validator
        return None, None

    def _is_protected(self, path: str) -> bool:
        prefix = path + self.model.delimiter
        for required in self.config.required_paths:
            normalized = self.model.normalize_path(required)
            if normalized == path or normalized.startswith(prefix):
                return True
        return False

    def _branch_paths(self, node: HierarchyNode, path: str) -> List[str]:
        paths = [path] if node.children and path else []
        for child in node.children:
            child_path = f"{path}{self.model.delimiter}{child.segment()}" if path else child.segment()
            paths.extend(self._branch_paths(child, child_path))
        return paths


def _run_validator(validator: Callable[[Any], Any], value: Any) -> Tuple[bool, Optional[str]]:
    """Normalize a validator verdict to ``(valid, message)``.

    Accepted verdicts: ``None``/``True`` (valid), ``False``, a mapping with
    ``valid``/``error`` keys, an object with a ``valid`` attribute, or a
    raised ``ValueError``/``HierarchyEditorError``.
    """
    try:
        verdict = validator(value)
    except (ValueError, TypeError, HierarchyEditorError) as e:
        return False, getattr(e, "message", None) or str(e)
    if verdict is None or verdict is True:
        return True, None
    if verdict is False:
        return False, "Validation failed."
    if isinstance(verdict, dict):
        return bool(verdict.get("valid")), verdict.get("error") or verdict.get("message")
    if hasattr(verdict, "valid"):
        errors = getattr(verdict, "errors", None)
        return bool(verdict.valid), getattr(verdict, "error", None) or ("; ".join(errors) if errors else None)
    return bool(verdict), None


def _build_node(parent: HierarchyNode, value: Any, key: Optional[str]) -> HierarchyNode:
    """Node for a new child of ``parent``, typed by the parent's format family."""
    if parent.type in (NodeType.DOCUMENT.value, NodeType.HEADING.value):
        if key:
            level = min(int(parent.metadata.get("level", 0) or 0) + 1, 6)
            return HierarchyNode(NodeType.HEADING, key, metadata={"level": level})
        root = parent
        while root.parent is not None:
            root = root.parent
        count = sum(1 for n in root.depth_first() if n.type == NodeType.CONTENT.value)
        return HierarchyNode(NodeType.CONTENT, f"content-{count + 1}",
                             value="" if value is None else str(value), metadata={"type": "paragraph"})
    if parent.type == NodeType.ELEMENT.value:
        return HierarchyNode(NodeType.ELEMENT, key or "item", value=value)
    name = str(len(parent.children)) if parent.type == NodeType.ARRAY.value else (key or "")
    return data_to_node(value, name)


def _swap_element(root: Optional[VisualElement], old: VisualElement, new: VisualElement) -> None:
    if root is None:
        return
    for element in root.iter_elements():
        for i, child in enumerate(element.children):
            if child is old:
                element.children[i] = new
                return
