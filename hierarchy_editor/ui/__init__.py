from __future__ import annotations

"""Render surfaces. ``TreeviewSurface`` is imported lazily since it needs tkinter."""

from .surface import InMemorySurface, RenderSurface  # noqa: F401

__all__: list[str] = [
    "InMemorySurface",
    "RenderSurface",
]
