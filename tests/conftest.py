from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from fixtures import LayoutBuilder  # noqa: E402

from fixture_tree.core import config as config_mod  # noqa: E402


@pytest.fixture
def layout(tmp_path: Path) -> LayoutBuilder:
    """Arrange files below a per-test directory without using FixtureTree."""

    return LayoutBuilder(tmp_path / "existing")


@pytest.fixture
def isolated_settings(tmp_path: Path) -> Iterator[config_mod.TreeSettings]:
    """Point ephemeral trees at a per-test base dir for the test's duration."""

    settings = config_mod.TreeSettings(base_dir=tmp_path / "temp-roots")
    previous = config_mod.use_settings(settings)
    yield settings
    config_mod.use_settings(previous)


@pytest.fixture(autouse=True)
def _clear_fixture_tree_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        config_mod.CONFIG_ENV,
        "FIXTURE_TREE_TEMP_PREFIX",
        "FIXTURE_TREE_ROOT_NAME",
        "FIXTURE_TREE_BASE_DIR",
        "FIXTURE_TREE_LOG_LEVEL",
        "FIXTURE_TREE_LOG_DIR",
        "FIXTURE_TREE_VERBOSE",
    ):
        monkeypatch.delenv(key, raising=False)
