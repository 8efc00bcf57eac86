"""Tests for clientgen.backends.registry."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from clientgen.backends.elm import ElmBackend
from clientgen.backends.python import PythonBackend
from clientgen.backends.registry import (
    TargetLanguage,
    available_backends,
    get_backend,
)
from clientgen.exceptions import BackendError
from clientgen.exit_codes import EXIT_BACKEND_ERROR

ENTRY_POINTS = "clientgen.backends.registry._entry_points"


def _entry_point(loaded: object) -> MagicMock:
    ep = MagicMock()
    ep.load.return_value = loaded
    ep.value = "plugin_pkg:Backend"
    return ep


# ---------------------------------------------------------------------------
# Built-in targets
# ---------------------------------------------------------------------------


class TestBuiltins:
    """Built-in tags resolve without entry points."""

    def test_by_enum(self) -> None:
        assert isinstance(get_backend(TargetLanguage.PYTHON), PythonBackend)

    @pytest.mark.parametrize("tag", ["elm", "ELM", "  Elm "])
    def test_tag_is_normalised(self, tag: str) -> None:
        assert isinstance(get_backend(tag), ElmBackend)

    def test_builtin_wins_over_entry_point(self) -> None:
        with patch(ENTRY_POINTS, return_value={"elm": _entry_point(PythonBackend)}):
            assert isinstance(get_backend("elm"), ElmBackend)

    def test_unknown_target(self) -> None:
        with patch(ENTRY_POINTS, return_value={}):
            with pytest.raises(BackendError) as exc_info:
                get_backend("cobol")
        assert str(exc_info.value) == "Unknown target 'cobol'. Available targets: elm, python"
        assert exc_info.value.exit_code == EXIT_BACKEND_ERROR


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


class TestEntryPoints:
    """Third-party backends from the clientgen.backends group."""

    def test_available_backends_includes_plugins(self) -> None:
        with patch(ENTRY_POINTS, return_value={"kotlin": _entry_point(ElmBackend)}):
            assert available_backends() == ["elm", "kotlin", "python"]

    def test_plugin_is_loaded(self) -> None:
        with patch(ENTRY_POINTS, return_value={"kotlin": _entry_point(ElmBackend)}):
            assert isinstance(get_backend("kotlin"), ElmBackend)

    def test_plugin_not_a_backend(self) -> None:
        with patch(ENTRY_POINTS, return_value={"kotlin": _entry_point(dict)}):
            with pytest.raises(BackendError, match="does not provide a LanguageBackend"):
                get_backend("kotlin")

    def test_plugin_fails_to_load(self) -> None:
        ep = MagicMock()
        ep.load.side_effect = ImportError("no module named kotlin_backend")
        with patch(ENTRY_POINTS, return_value={"kotlin": ep}):
            with pytest.raises(BackendError, match="Failed to load backend 'kotlin'"):
                get_backend("kotlin")
