"""End-to-end checks of the pytest plugin using ``pytester`` runs."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def roots(pytester: pytest.Pytester) -> Path:
    """Base dir that inner runs allocate their temp roots in."""

    pytester.makeini(
        """
        [pytest]
        fixture_tree_base_dir = roots
        """
    )
    return pytester.path / "roots"


def _leftovers(roots: Path) -> list[str]:
    if not roots.exists():
        return []
    return sorted(child.name for child in roots.iterdir())


def test_registered_tree_is_seeded_and_cleaned(pytester, roots) -> None:
    pytester.makepyfile(
        """
        from fixture_tree import FixtureTree, register_fixture_tree

        example_tree = register_fixture_tree(
            "example_tree", data={"foo": "bar", "nested": {"a": "b"}}
        )

        def test_seeded(example_tree):
            assert isinstance(example_tree, FixtureTree)
            assert (example_tree.path / "foo").read_text() == "bar"
            assert (example_tree.path / "nested" / "a").read_text() == "b"

        def test_fresh_tree_per_test(example_tree):
            example_tree.merge({"extra": "x"})
            assert sorted(p.name for p in example_tree.path.iterdir()) == [
                "extra", "foo", "nested",
            ]

        def test_not_shared_between_tests(example_tree):
            assert not (example_tree.path / "extra").exists()
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=3)
    assert _leftovers(roots) == []


def test_registered_tree_without_data_is_empty(pytester, roots) -> None:
    pytester.makepyfile(
        """
        from fixture_tree import register_fixture_tree

        blank = register_fixture_tree("blank")

        def test_blank(blank):
            assert not blank.path.exists()
            assert blank.path.parent.is_dir()
            assert blank.path.name == "fixture"
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)
    assert _leftovers(roots) == []


def test_cleanup_runs_after_failing_test(pytester, roots) -> None:
    pytester.makepyfile(
        """
        from fixture_tree import register_fixture_tree

        example_tree = register_fixture_tree("example_tree", data={"a": "b"})

        def test_fails(example_tree):
            assert example_tree.snapshot() == {"a": "something else"}
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(failed=1)
    assert _leftovers(roots) == []


def test_nested_scope_merges_with_enclosing_tree(pytester, roots) -> None:
    pytester.makepyfile(
        """
        from fixture_tree import register_fixture_tree

        example_tree = register_fixture_tree("example_tree", data={"foo": "bar"})

        def test_outer(example_tree):
            assert example_tree.snapshot() == {"foo": "bar"}

        class TestMerged:
            example_tree = register_fixture_tree(
                "example_tree", merge=True, data={"baz": "qux"}
            )

            def test_both_entries(self, example_tree):
                assert example_tree.snapshot() == {"baz": "qux", "foo": "bar"}

            def test_single_temp_root(self, example_tree):
                roots = example_tree.path.parent.parent
                assert len(list(roots.iterdir())) == 1

        class TestReplaced:
            example_tree = register_fixture_tree(
                "example_tree", data={"baz": "qux"}
            )

            def test_only_inner_entries(self, example_tree):
                assert example_tree.snapshot() == {"baz": "qux"}
        """
    )

    result = pytester.runpytest("-v")

    result.assert_outcomes(passed=4)
    assert _leftovers(roots) == []


def test_merge_chain_through_conftest_and_class(pytester, roots) -> None:
    pytester.makeconftest(
        """
        from fixture_tree import register_fixture_tree

        layered = register_fixture_tree("layered", data={"base": "1"})
        """
    )
    pytester.makepyfile(
        """
        from fixture_tree import register_fixture_tree

        layered = register_fixture_tree("layered", merge=True, data={"mod": "2"})

        class TestTop:
            layered = register_fixture_tree(
                "layered", merge=True, data={"cls": "3"}
            )

            def test_all_layers(self, layered):
                assert layered.snapshot() == {"base": "1", "cls": "3", "mod": "2"}
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)
    assert _leftovers(roots) == []


def test_merge_without_enclosing_tree_creates_one(pytester, roots) -> None:
    pytester.makepyfile(
        """
        from fixture_tree import register_fixture_tree

        lonely = register_fixture_tree("lonely", merge=True, data={"a": "b"})

        def test_lonely(lonely):
            assert lonely.snapshot() == {"a": "b"}
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)
    assert _leftovers(roots) == []


def test_merge_into_non_tree_fixture_is_an_error(pytester, roots) -> None:
    pytester.makeconftest(
        """
        import pytest

        @pytest.fixture
        def example_tree():
            return "not a tree"
        """
    )
    pytester.makepyfile(
        """
        from fixture_tree import register_fixture_tree

        example_tree = register_fixture_tree("example_tree", merge=True)

        def test_uses(example_tree):
            pass
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(["*expected a FixtureTree, got str*"])


def test_parent_dependency_error_propagates(pytester, roots) -> None:
    pytester.makeconftest(
        """
        import pytest

        from fixture_tree import FixtureTree

        @pytest.fixture
        def example_tree(tmp_path, missing_dependency):
            return FixtureTree(tmp_path / "outer").merge({"outer": "1"})
        """
    )
    pytester.makepyfile(
        """
        from fixture_tree import register_fixture_tree

        example_tree = register_fixture_tree(
            "example_tree", merge=True, data={"inner": "2"}
        )

        def test_uses(example_tree):
            assert example_tree.snapshot() == {"inner": "2", "outer": "1"}
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(["*fixture 'missing_dependency' not found*"])
    assert _leftovers(roots) == []


def test_eager_tree_exists_without_being_requested(pytester, roots) -> None:
    pytester.makepyfile(
        f"""
        from pathlib import Path

        from fixture_tree import register_fixture_tree

        ROOTS = Path({str(roots)!r})

        eager_tree = register_fixture_tree(
            "eager_tree", data={{"x": "y"}}, eager=True
        )

        def test_never_asks():
            (root,) = ROOTS.iterdir()
            assert (root / "fixture" / "x").read_text() == "y"
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)
    assert _leftovers(roots) == []


def test_lazy_tree_is_not_built_unless_requested(pytester, roots) -> None:
    pytester.makepyfile(
        f"""
        from pathlib import Path

        from fixture_tree import register_fixture_tree

        ROOTS = Path({str(roots)!r})

        lazy_tree = register_fixture_tree("lazy_tree", data={{"x": "y"}})

        def test_never_asks():
            assert not ROOTS.exists() or list(ROOTS.iterdir()) == []
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)


def test_invalid_data_fails_at_collection(pytester, roots) -> None:
    pytester.makepyfile(
        """
        from fixture_tree import register_fixture_tree

        broken = register_fixture_tree("broken", data={"count": 3})

        def test_never_runs(broken):
            pass
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(["*FixtureDataError*<root>/count*"])


def test_invalid_name_is_rejected(pytester, roots) -> None:
    pytester.makepyfile(
        """
        import pytest

        from fixture_tree import FixtureTreeError, register_fixture_tree

        def test_bad_name():
            with pytest.raises(FixtureTreeError, match="valid identifier"):
                register_fixture_tree("not a name")
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)


def test_builtin_fixture_tree_is_ephemeral(pytester, roots) -> None:
    pytester.makepyfile(
        """
        def test_builtin(fixture_tree):
            fixture_tree.merge({"one": "two"})
            assert (fixture_tree.path / "one").read_text() == "two"
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)
    assert _leftovers(roots) == []


def test_ini_temp_prefix_is_applied(pytester) -> None:
    roots = pytester.path / "prefixed"
    pytester.makeini(
        """
        [pytest]
        fixture_tree_base_dir = prefixed
        fixture_tree_temp_prefix = custom-
        """
    )
    pytester.makepyfile(
        """
        def test_prefix(fixture_tree):
            assert fixture_tree.path.parent.name.startswith("custom-")
        """
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)
    assert _leftovers(roots) == []


def test_config_file_option_is_loaded(pytester) -> None:
    config_file = pytester.makefile(
        ".toml",
        fixture_tree="""
        [tree]
        root_name = "data"
        base_dir = "from-config"
        """,
    )
    pytester.makepyfile(
        """
        def test_root_name(fixture_tree):
            assert fixture_tree.path.name == "data"
            assert fixture_tree.path.parent.parent.name == "from-config"
        """
    )

    result = pytester.runpytest(f"--fixture-tree-config={config_file}")

    result.assert_outcomes(passed=1)


def test_missing_config_file_is_a_usage_error(pytester) -> None:
    pytester.makepyfile("def test_nothing():\n    pass\n")

    result = pytester.runpytest("--fixture-tree-config=absent.toml")

    assert result.ret == pytest.ExitCode.USAGE_ERROR
    result.stderr.fnmatch_lines(["*Config file not found*"])


def test_log_dir_option_writes_json_log(pytester) -> None:
    log_dir = pytester.path / "logs"
    pytester.makepyfile(
        """
        def test_logged(fixture_tree):
            fixture_tree.merge({"one": "two"})
        """
    )

    result = pytester.runpytest(
        f"--fixture-tree-log-dir={log_dir}", "--fixture-tree-log-level=DEBUG"
    )

    result.assert_outcomes(passed=1)
    contents = (log_dir / "fixture_tree.log").read_text(encoding="utf-8")
    assert '"event": "write"' in contents
    assert '"event": "cleanup"' in contents
