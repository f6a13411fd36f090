"""Shared helpers for the fixture_tree test suite."""

from .layout import Key, LayoutBuilder, list_names, write_layout  # noqa: F401

__all__ = [
    "Key",
    "LayoutBuilder",
    "list_names",
    "write_layout",
]
