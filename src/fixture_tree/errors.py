"""Exception types raised by fixture_tree."""

from __future__ import annotations

__all__ = [
    "FixtureTreeError",
    "FixtureDataError",
    "FixtureTreeConfigError",
]


class FixtureTreeError(RuntimeError):
    """Base class for errors raised by fixture_tree itself."""


class FixtureDataError(FixtureTreeError, TypeError):
    """Raised when a fixture description holds an unsupported value or key."""


class FixtureTreeConfigError(FixtureTreeError):
    """Raised when settings cannot be loaded or fail validation."""
