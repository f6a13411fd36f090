"""Normalized representation of fixture descriptions.

Callers describe a hierarchy with plain Python values: ``str`` or ``bytes``
for file contents and mappings for directories. :func:`build_node` converts
that input into a tree of :class:`Leaf` and :class:`Directory` nodes once, so
the filesystem code only ever deals with two well-defined shapes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union

from .errors import FixtureDataError

__all__ = [
    "Leaf",
    "Directory",
    "FixtureNode",
    "LEAF_TYPES",
    "build_node",
    "normalize_key",
]

LEAF_TYPES: tuple[type, ...] = (str, bytes)


@dataclass(frozen=True)
class Leaf:
    """File contents, written verbatim."""

    content: Union[str, bytes]


@dataclass(frozen=True)
class Directory:
    """A directory whose entries map names to nested nodes."""

    entries: Mapping[str, "FixtureNode"]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "entries", MappingProxyType(dict(self.entries))
        )


FixtureNode = Union[Leaf, Directory]


def normalize_key(key: Any) -> str:
    """Return the path segment for a description key.

    Strings pass through. Enum members act as symbolic names and use their
    value when it is a string, otherwise their name. Path-like objects are
    converted with :func:`os.fspath`.
    """

    if isinstance(key, Enum):
        return key.value if isinstance(key.value, str) else key.name
    if isinstance(key, str):
        return key
    if isinstance(key, os.PathLike):
        return os.fsdecode(os.fspath(key))
    raise FixtureDataError(
        f"Unsupported fixture key {key!r} of type {type(key).__name__}; "
        "expected str, Enum or path-like."
    )


def build_node(data: Any) -> FixtureNode:
    """Convert a fixture description into a :data:`FixtureNode`.

    Already-built nodes are returned unchanged and may appear anywhere inside
    a mapping. Anything other than ``str``, ``bytes`` or a mapping raises
    :class:`~fixture_tree.errors.FixtureDataError`.
    """

    return _build(data, "<root>")


def _build(data: Any, where: str) -> FixtureNode:
    if isinstance(data, (Leaf, Directory)):
        return data
    if isinstance(data, LEAF_TYPES):
        return Leaf(data)
    if isinstance(data, Mapping):
        entries: dict[str, FixtureNode] = {}
        for key, value in data.items():
            name = normalize_key(key)
            if name in entries:
                raise FixtureDataError(
                    f"Duplicate fixture entry at {where}/{name}: {key!r} "
                    "names the same path as an earlier key."
                )
            entries[name] = _build(value, f"{where}/{name}")
        return Directory(entries)
    raise FixtureDataError(
        f"Unsupported fixture value at {where}: {type(data).__name__}. "
        "Use str or bytes for files and a mapping for directories."
    )
