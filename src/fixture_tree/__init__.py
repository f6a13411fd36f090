"""Build directory trees from nested mappings for use as test fixtures."""

from __future__ import annotations

from .errors import FixtureDataError, FixtureTreeConfigError, FixtureTreeError
from .nodes import Directory, FixtureNode, Leaf, build_node
from .tree import FixtureTree

__all__ = [
    "FixtureTree",
    "FixtureNode",
    "Leaf",
    "Directory",
    "build_node",
    "FixtureTreeError",
    "FixtureDataError",
    "FixtureTreeConfigError",
    "register_fixture_tree",
]


def __getattr__(name: str):
    # Imported lazily so the core API does not require pytest at import time.
    if name == "register_fixture_tree":
        from .pytest_plugin import register_fixture_tree

        return register_fixture_tree
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
