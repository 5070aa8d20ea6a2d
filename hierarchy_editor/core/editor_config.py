from __future__ import annotations

"""Construction options of :class:`~hierarchy_editor.editor.HierarchyEditor`.

Options are resolved in three layers: packaged ``editor_defaults.yml``, the
user's override file of the same name (both through
:class:`~hierarchy_editor.config.ConfigManager`), then keyword arguments.
camelCase spellings (``indentSize``, ``requiredPaths``, ...) are accepted
as aliases of the snake_case field names.
"""

import logging
import math
import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Optional

from hierarchy_editor.core.models import EditorMode

logger = logging.getLogger(__name__)

__all__ = ["EditorConfig", "PATCHABLE_FIELDS"]

Validator = Callable[[Any], Any]

# Fields that update_config() may change after construction
PATCHABLE_FIELDS = frozenset({
    "editable",
    "theme",
    "indent_size",
    "indent_char",
    "validators",
    "required_paths",
    "shortcuts",
    "export_formats",
    "import_parsers",
    "slow_operation_threshold",
    "track_errors",
    "realtime_validation",
    "error_handler",
    "show_error_suggestions",
})

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass
class EditorConfig:
    format: str = "json"
    editable: bool = True
    default_mode: str = EditorMode.TREE.value
    theme: str = "light"
    indent_size: int = 2
    indent_char: str = " "
    validators: Dict[str, Validator] = field(default_factory=dict)
    required_paths: List[str] = field(default_factory=list)
    plugins: List[Any] = field(default_factory=list)
    shortcuts: Dict[str, str] = field(default_factory=dict)
    export_formats: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)
    import_parsers: Dict[str, Callable[[str], Any]] = field(default_factory=dict)
    slow_operation_threshold: float = 500.0
    track_errors: bool = False
    realtime_validation: bool = False
    error_handler: Optional[Callable[[Any], Any]] = None
    persist_expansion: bool = False
    persist_key: Optional[str] = None
    persist_debounce: float = 0.0
    show_error_suggestions: bool = False
    default_expanded: bool = True
    max_depth: float = math.inf
    path_delimiter: str = "."
    undo_history: int = 50

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_options(cls, defaults: Optional[Dict[str, Any]] = None, **options: Any) -> "EditorConfig":
        """Overlay ``options`` on ``defaults`` (packaged + user YAML when omitted) and validate."""
        if defaults is None:
            from hierarchy_editor.config import ConfigManager
            defaults = ConfigManager().get_editor_defaults()
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for source in (defaults, options):
            for key, value in (source or {}).items():
                name = _normalize_key(key)
                if name not in known:
                    logger.warning("Ignoring unknown editor option: %s", key)
                    continue
                values[name] = value
        config = cls(**values)
        config.validate()
        return config

    def patch(self, **changes: Any) -> "EditorConfig":
        """Return a validated copy with ``changes`` applied; only patchable fields are accepted."""
        normalized = {_normalize_key(k): v for k, v in changes.items()}
        rejected = sorted(set(normalized) - PATCHABLE_FIELDS)
        if rejected:
            raise ValueError(f"Options cannot be changed after construction: {', '.join(rejected)}")
        updated = replace(self, **normalized)
        updated.validate()
        return updated

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise ``ValueError`` listing every invalid field; normalizes a few types in place."""
        problems: List[str] = []
        if self.default_mode not in (EditorMode.TREE.value, EditorMode.SOURCE.value):
            problems.append(f"default_mode must be 'tree' or 'source', got {self.default_mode!r}")
        if not isinstance(self.format, str) or not self.format:
            problems.append("format must be a non-empty string")
        if not isinstance(self.indent_size, int) or isinstance(self.indent_size, bool) or self.indent_size < 0:
            problems.append(f"indent_size must be a non-negative integer, got {self.indent_size!r}")
        if not isinstance(self.indent_char, str):
            problems.append("indent_char must be a string")
        if not isinstance(self.slow_operation_threshold, (int, float)) or self.slow_operation_threshold < 0:
            problems.append("slow_operation_threshold must be a non-negative number of milliseconds")
        if not isinstance(self.validators, dict) or not all(callable(v) for v in self.validators.values()):
            problems.append("validators must map paths to callables")
        if self.error_handler is not None and not callable(self.error_handler):
            problems.append("error_handler must be callable")
        for name in ("export_formats", "import_parsers"):
            adapters = getattr(self, name)
            if not isinstance(adapters, dict) or not all(callable(v) for v in adapters.values()):
                problems.append(f"{name} must map format names to callables")
        if not isinstance(self.path_delimiter, str) or not self.path_delimiter:
            problems.append("path_delimiter must be a non-empty string")
        if problems:
            raise ValueError("Invalid editor configuration: " + "; ".join(problems))

        self.format = self.format.lower()
        self.required_paths = list(self.required_paths or [])
        self.plugins = list(self.plugins or [])
        self.shortcuts = {str(k).lower(): v for k, v in (self.shortcuts or {}).items()}
        if self.max_depth is None:
            self.max_depth = math.inf

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _normalize_key(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()
