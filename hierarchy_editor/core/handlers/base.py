from __future__ import annotations

"""Format handler contract and registry.

A format handler converts between source text of one syntax and the
canonical :class:`~hierarchy_editor.core.models.HierarchyNode` tree. The
editor only talks to handlers through :class:`FormatHandler`; concrete
syntaxes live in sibling modules and are wired up by
:func:`create_default_registry`.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from hierarchy_editor.core.exceptions import ParseError, UnsupportedFormatError
from hierarchy_editor.core.models import EditableFields, HierarchyNode

logger = logging.getLogger(__name__)

__all__ = [
    "FormatHandler",
    "ValidationResult",
    "FormatMatch",
    "FormatRegistry",
    "create_default_registry",
]


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str]

    def __bool__(self) -> bool:
        return self.valid


@dataclass(frozen=True)
class FormatMatch:
    """Outcome of :meth:`FormatRegistry.detect`."""

    format: str
    confidence: float


class FormatHandler(ABC):
    """Base class for syntax-specific parsers/serializers.

    Subclasses set ``format_name`` and implement :meth:`detect`,
    :meth:`parse` and :meth:`serialize`. The remaining methods have working
    defaults built on those three.
    """

    format_name: str = "unknown"
    display_name: str = ""
    file_extensions: List[str] = []
    mime_types: List[str] = []

    def __init__(self, indent_size: int = 2) -> None:
        self.indent_size = indent_size

    @abstractmethod
    def detect(self, text: str) -> bool:
        """Return True if ``text`` looks like this format. Must be cheap and never raise."""

    def get_confidence(self, text: str) -> float:
        return 1.0 if self.detect(text) else 0.0

    @abstractmethod
    def parse(self, text: str) -> HierarchyNode:
        """Build a fresh tree from ``text``; raises :class:`ParseError` on bad input."""

    @abstractmethod
    def serialize(self, root: Optional[HierarchyNode], indent: Optional[str] = None) -> str:
        """Render ``root`` back to text; raises :class:`SerializationError` on unsupported trees."""

    def validate(self, text: str) -> ValidationResult:
        try:
            self.parse(text)
        except ParseError as e:
            return ValidationResult(False, [e.message])
        return ValidationResult(True, [])

    def get_editable_fields(self) -> EditableFields:
        return EditableFields()

    def get_display_name(self) -> str:
        return self.display_name or self.format_name.upper()

    def reformat(self, text: str) -> str:
        """Parse and re-serialize ``text``; unparseable input is returned unchanged."""
        try:
            return self.serialize(self.parse(text))
        except ParseError:
            return text

    def _indent(self, indent: Optional[str]) -> str:
        return indent if indent is not None else " " * self.indent_size

    def __repr__(self) -> str:
        return f"{type(self).__name__}(format={self.format_name!r})"


HandlerFactory = Callable[[], FormatHandler]


class FormatRegistry:
    """Name -> handler factory mapping with priority-ordered detection.

    Detection asks handlers in ascending ``priority`` (ties keep registration
    order) and returns the first match, so strict syntaxes (JSON, XML) are
    consulted before permissive ones (YAML, Markdown).
    """

    def __init__(self, fallback: str = "json") -> None:
        self._factories: Dict[str, HandlerFactory] = {}
        self._priorities: Dict[str, int] = {}
        self._instances: Dict[str, FormatHandler] = {}
        self.fallback = fallback

    def register(self, name: str, factory: HandlerFactory, priority: int = 100) -> None:
        key = name.lower()
        self._factories[key] = factory
        self._priorities[key] = priority
        self._instances.pop(key, None)
        logger.debug("Registered format handler %s (priority %d)", key, priority)

    def unregister(self, name: str) -> bool:
        key = name.lower()
        self._instances.pop(key, None)
        self._priorities.pop(key, None)
        return self._factories.pop(key, None) is not None

    def is_supported(self, name: Optional[str]) -> bool:
        return bool(name) and name.lower() in self._factories

    def get_formats(self) -> List[str]:
        return sorted(self._factories, key=lambda n: self._priorities[n])

    def get(self, name: str) -> FormatHandler:
        key = (name or "").lower()
        if key not in self._factories:
            raise UnsupportedFormatError(name, self.get_formats())
        if key not in self._instances:
            self._instances[key] = self._factories[key]()
        return self._instances[key]

    def create(self, name: str) -> FormatHandler:
        """Fresh handler instance, independent of the cached one."""
        key = (name or "").lower()
        if key not in self._factories:
            raise UnsupportedFormatError(name, self.get_formats())
        return self._factories[key]()

    def detect(self, text: str) -> Optional[FormatMatch]:
        for name in self.get_formats():
            handler = self.get(name)
            try:
                if handler.detect(text):
                    return FormatMatch(name, handler.get_confidence(text))
            except Exception as e:
                logger.warning("Format detection by %s failed: %s", name, e)
        return None


def create_default_registry(indent_size: int = 2) -> FormatRegistry:
    """Registry with the bundled JSON, XML, YAML and Markdown handlers."""
    from hierarchy_editor.core.handlers.json_handler import JsonHandler
    from hierarchy_editor.core.handlers.markdown_handler import MarkdownHandler
    from hierarchy_editor.core.handlers.xml_handler import XmlHandler
    from hierarchy_editor.core.handlers.yaml_handler import YamlHandler

    registry = FormatRegistry(fallback="json")
    handler_classes: List[Type[FormatHandler]] = [JsonHandler, XmlHandler, YamlHandler, MarkdownHandler]
    for priority, cls in enumerate(handler_classes):
        registry.register(cls.format_name, lambda cls=cls: cls(indent_size=indent_size), priority=priority * 10)
    return registry
