from __future__ import annotations

"""Bundled format handlers and the registry used for detection."""

from .base import FormatHandler, FormatMatch, FormatRegistry, ValidationResult, create_default_registry  # noqa: F401
from .json_handler import JsonHandler  # noqa: F401
from .markdown_handler import MarkdownHandler  # noqa: F401
from .xml_handler import XmlHandler  # noqa: F401
from .yaml_handler import YamlHandler  # noqa: F401

__all__: list[str] = [
    "FormatHandler",
    "FormatMatch",
    "FormatRegistry",
    "ValidationResult",
    "create_default_registry",
    "JsonHandler",
    "XmlHandler",
    "YamlHandler",
    "MarkdownHandler",
]
