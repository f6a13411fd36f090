"""pytest integration for fixture trees.

The plugin is registered through the ``pytest11`` entry point, so installing
the package is enough. It provides:

* the ``fixture_tree`` fixture, an empty ephemeral tree for each test;
* :func:`register_fixture_tree` for declaring named trees in a module, class
  or ``conftest.py``::

      example_tree = register_fixture_tree("example_tree", data={"foo": "bar"})

      def test_foo(example_tree):
          assert (example_tree.path / "foo").read_text() == "bar"

      class TestMore:
          example_tree = register_fixture_tree(
              "example_tree", merge=True, data={"baz": "qux"}
          )

          def test_both(self, example_tree):
              assert example_tree.snapshot() == {"baz": "qux", "foo": "bar"}

  With ``merge=True`` the inner declaration adds to the tree of the enclosing
  scope instead of starting from an empty one. ``eager=True`` builds the tree
  before every test in scope even when no test asks for it.

Temporary directories are removed after each test by whichever declaration
created them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

import pytest

from .core.config import (
    SettingsOverrides,
    TreeSettings,
    load_settings,
    use_settings,
)
from .core.logging import configure_logger, release_logger
from .errors import FixtureTreeConfigError, FixtureTreeError
from .nodes import FixtureNode, build_node
from .tree import FixtureTree, remove_temp_dir

__all__ = [
    "FixtureTreeRegistration",
    "TreeLease",
    "fixture_tree",
    "register_fixture_tree",
]

LOGGER_NAME = "fixture_tree"

logger = logging.getLogger(__name__)

_previous_settings_key = pytest.StashKey[TreeSettings]()
_logging_enabled_key = pytest.StashKey[bool]()


@dataclass
class TreeLease:
    """A resolved tree plus the temp dir it owns, if any."""

    tree: FixtureTree
    temp_dir: Optional[Path] = None

    @property
    def owns_root(self) -> bool:
        return self.temp_dir is not None

    def release(self) -> None:
        """Remove the owned temp dir once; borrowed trees are left alone."""

        temp_dir, self.temp_dir = self.temp_dir, None
        if temp_dir is not None:
            remove_temp_dir(temp_dir)


@dataclass(frozen=True)
class FixtureTreeRegistration:
    """Declaration of a named tree fixture."""

    name: str
    data: Optional[FixtureNode] = None
    merge: bool = False
    eager: bool = False

    def resolve(self, request: pytest.FixtureRequest) -> FixtureTree:
        lease = self.acquire(request)
        request.addfinalizer(lease.release)
        if self.data is not None:
            lease.tree.merge(self.data)
        return lease.tree

    def acquire(self, request: pytest.FixtureRequest) -> TreeLease:
        if self.merge:
            parent = _enclosing_tree(request, self.name)
            if parent is not None:
                logger.debug(
                    "Reusing enclosing fixture tree",
                    extra={"event": "reuse", "fixture": self.name},
                )
                return TreeLease(parent)
        temp_dir, tree = FixtureTree.mkdtemp()
        return TreeLease(tree, temp_dir)

    def as_fixture(self) -> Any:
        registration = self

        # ``*_bound`` absorbs the test instance when declared in a class body.
        def _registered_tree(
            *_bound: Any, request: pytest.FixtureRequest
        ) -> FixtureTree:
            return registration.resolve(request)

        _registered_tree.__name__ = self.name
        _registered_tree.__qualname__ = self.name
        return pytest.fixture(name=self.name, autouse=self.eager)(
            _registered_tree
        )


def register_fixture_tree(
    name: str,
    *,
    data: Any = None,
    merge: bool = False,
    eager: bool = False,
) -> Any:
    """Declare a per-test fixture tree called ``name``.

    Bind the result to an attribute of the module, class or conftest that
    should see the fixture. Each test that requests ``name`` gets a tree in a
    fresh temp dir (seeded with ``data`` when given) that is removed after
    the test. With ``merge=True`` and a same-named fixture in an enclosing
    scope, that fixture's tree is reused and ``data`` merged into it. With
    ``eager=True`` the fixture is autouse.
    """

    if not isinstance(name, str) or not name.isidentifier():
        raise FixtureTreeError(
            f"Fixture tree name must be a valid identifier, got {name!r}."
        )
    node = build_node(data) if data is not None else None
    registration = FixtureTreeRegistration(
        name=name, data=node, merge=merge, eager=eager
    )
    return registration.as_fixture()


@pytest.fixture
def fixture_tree() -> Iterator[FixtureTree]:
    """An empty ephemeral tree, removed after the test."""

    with FixtureTree.create() as tree:
        yield tree


def _enclosing_tree(
    request: pytest.FixtureRequest, name: str
) -> Optional[FixtureTree]:
    # From inside the overriding fixture, pytest resolves the same name one
    # level up and raises FixtureLookupError when nothing is left. A lookup
    # error for any other name comes from the parent's own dependencies.
    try:
        parent = request.getfixturevalue(name)
    except pytest.FixtureLookupError as exc:
        if exc.argname != name:
            raise
        return None
    if not isinstance(parent, FixtureTree):
        raise FixtureTreeError(
            f"Cannot merge into enclosing fixture '{name}': expected a "
            f"FixtureTree, got {type(parent).__name__}."
        )
    return parent


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("fixture-tree")
    group.addoption(
        "--fixture-tree-config",
        dest="fixture_tree_config",
        default=None,
        help="TOML file with fixture_tree settings.",
    )
    group.addoption(
        "--fixture-tree-log-dir",
        dest="fixture_tree_log_dir",
        default=None,
        help="Write JSON logs of fixture tree operations to this directory.",
    )
    group.addoption(
        "--fixture-tree-log-level",
        dest="fixture_tree_log_level",
        default=None,
        help="Level for the fixture tree log file (default WARNING).",
    )
    parser.addini(
        "fixture_tree_config",
        "TOML file with fixture_tree settings.",
        default="",
    )
    parser.addini(
        "fixture_tree_temp_prefix",
        "Prefix for fixture tree temp directories.",
        default="",
    )
    parser.addini(
        "fixture_tree_base_dir",
        "Directory to create fixture tree temp directories in.",
        default="",
    )


def pytest_configure(config: pytest.Config) -> None:
    # ini values are relative to the ini file, command line values to the cwd.
    ini_dir = config.inipath.parent if config.inipath else config.rootpath
    cwd = config.invocation_params.dir
    config_path: Optional[Path] = None
    if config.getoption("fixture_tree_config"):
        config_path = cwd / config.getoption("fixture_tree_config")
    elif config.getini("fixture_tree_config"):
        config_path = ini_dir / config.getini("fixture_tree_config")
    log_dir = config.getoption("fixture_tree_log_dir")
    base_dir = config.getini("fixture_tree_base_dir")
    overrides = SettingsOverrides(
        temp_prefix=config.getini("fixture_tree_temp_prefix") or None,
        base_dir=ini_dir / base_dir if base_dir else None,
        log_level=config.getoption("fixture_tree_log_level"),
        log_dir=cwd / log_dir if log_dir else None,
    )
    try:
        settings = load_settings(config_path=config_path, overrides=overrides)
    except FixtureTreeConfigError as exc:
        raise pytest.UsageError(str(exc)) from exc

    config.stash[_previous_settings_key] = use_settings(settings)
    config.stash[_logging_enabled_key] = settings.log_dir is not None
    if settings.log_dir is not None:
        configure_logger(
            LOGGER_NAME,
            log_dir=settings.log_dir,
            level=settings.log_level,
            verbose=settings.verbose,
        )


def pytest_unconfigure(config: pytest.Config) -> None:
    previous = config.stash.get(_previous_settings_key, None)
    if previous is not None:
        use_settings(previous)
    if config.stash.get(_logging_enabled_key, False):
        release_logger(LOGGER_NAME)
