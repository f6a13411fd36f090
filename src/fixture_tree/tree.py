"""Materialize nested fixture descriptions onto the real filesystem.

Typical use inside a test::

    with FixtureTree.create() as tree:
        tree.merge({"one": "two", "five": {"six": "seven"}})
        assert (tree.path / "five" / "six").read_text() == "seven"

Keys may be strings or Enum members, values are ``str``/``bytes`` for files
or mappings for directories. The temporary directory backing the tree is
removed when the ``with`` block exits.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from .core.config import TreeSettings, active_settings
from .nodes import Directory, FixtureNode, Leaf, build_node

__all__ = ["FixtureTree", "Snapshot", "remove_temp_dir"]

logger = logging.getLogger(__name__)

Snapshot = Union[str, bytes, dict, None]


class FixtureTree:
    """Handle pairing a filesystem path with operations that rewrite it.

    A tree created directly is not cleaned up automatically; delete it (or
    its parent temporary directory) when done. Use :meth:`create` or
    :meth:`mkdtemp` for ephemeral trees.
    """

    __slots__ = ("_path",)

    def __init__(self, path: Union[str, os.PathLike[str]]) -> None:
        self._path = Path(path).absolute()

    @property
    def path(self) -> Path:
        """Absolute path backing this tree."""

        return self._path

    def __fspath__(self) -> str:
        return str(self._path)

    def __repr__(self) -> str:
        return f"FixtureTree({str(self._path)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FixtureTree):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash((FixtureTree, self._path))

    @classmethod
    @contextmanager
    def create(
        cls, settings: Optional[TreeSettings] = None
    ) -> Iterator["FixtureTree"]:
        """Yield an ephemeral tree, removing its temp dir when the block exits.

        Cleanup also runs when the block raises. A temp dir that was already
        removed inside the block is left alone.
        """

        temp_dir, tree = cls.mkdtemp(settings)
        try:
            yield tree
        finally:
            remove_temp_dir(temp_dir)

    @classmethod
    def mkdtemp(
        cls, settings: Optional[TreeSettings] = None
    ) -> tuple[Path, "FixtureTree"]:
        """Return ``(temp_dir, tree)`` for a fresh ephemeral tree.

        The tree lives at ``temp_dir / settings.root_name`` and does not exist
        on disk until it is merged into. Removing ``temp_dir`` is the caller's
        responsibility.
        """

        settings = settings or active_settings()
        base_dir = None
        if settings.base_dir is not None:
            settings.base_dir.mkdir(parents=True, exist_ok=True)
            base_dir = str(settings.base_dir)
        temp_dir = Path(
            tempfile.mkdtemp(prefix=settings.temp_prefix, dir=base_dir)
        ).absolute()
        logger.debug(
            "Allocated fixture tree temp dir",
            extra={"event": "mkdtemp", "path": temp_dir},
        )
        return temp_dir, cls(temp_dir / settings.root_name)

    def merge(self, data: Any) -> "FixtureTree":
        """Merge a file or directory description into this tree.

        A mapping turns this path into a directory (replacing a file found
        there) and merges each entry into the matching child; entries already
        on disk but absent from ``data`` are kept. A ``str``/``bytes`` value
        replaces whatever is at this path with a file holding exactly that
        content.
        """

        self._apply(build_node(data))
        return self

    def replace(self, data: Any) -> "FixtureTree":
        """Delete this tree, then merge ``data`` into the empty path."""

        node = build_node(data)
        self.delete()
        self._apply(node)
        return self

    def delete(self) -> "FixtureTree":
        """Remove this tree from disk. Missing paths are ignored."""

        path = self._path
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            return self
        logger.debug(
            "Deleted fixture tree", extra={"event": "delete", "path": path}
        )
        return self

    def join(self, relative: Union[str, os.PathLike[str]]) -> "FixtureTree":
        """Return a view on ``relative`` below this tree.

        ``tree.join("foo/bar").merge({"baz": "qux"})`` has the same effect as
        ``tree.merge({"foo": {"bar": {"baz": "qux"}}})``.
        """

        return FixtureTree(self._path / relative)

    def snapshot(self) -> Snapshot:
        """Read the tree back in description form.

        Files come back as ``str`` (or ``bytes`` when they are not valid
        UTF-8), directories as dicts with sorted keys, and a missing path as
        ``None``.
        """

        return _read(self._path)

    def _apply(self, node: FixtureNode) -> None:
        if isinstance(node, Directory):
            self._merge_directory(node)
        elif isinstance(node, Leaf):
            self._write_leaf(node)
        else:  # pragma: no cover - build_node only yields the two node types
            raise TypeError(f"Unexpected fixture node {node!r}")

    def _merge_directory(self, node: Directory) -> None:
        if not self._path.is_dir():
            self.delete()
        self._path.mkdir(parents=True, exist_ok=True)
        for name, child in node.entries.items():
            self.join(name)._apply(child)

    def _write_leaf(self, node: Leaf) -> None:
        self.delete()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(node.content, bytes):
            self._path.write_bytes(node.content)
        else:
            with self._path.open("w", encoding="utf-8", newline="") as handle:
                handle.write(node.content)
        logger.debug(
            "Wrote fixture file",
            extra={"event": "write", "path": self._path},
        )


def remove_temp_dir(temp_dir: Path) -> None:
    """Recursively remove ``temp_dir`` if it still exists."""

    if not temp_dir.exists():
        return
    shutil.rmtree(temp_dir)
    logger.debug(
        "Removed fixture tree temp dir",
        extra={"event": "cleanup", "path": temp_dir},
    )


def _read(path: Path) -> Snapshot:
    if path.is_dir():
        return {child.name: _read(child) for child in sorted(path.iterdir())}
    if not path.exists():
        return None
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw
