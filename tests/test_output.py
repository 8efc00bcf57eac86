"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose rules, including per-module status lines
- JSON and plain table output
- Logging handler installation
- Global instance management
"""

from __future__ import annotations

import json
import logging

import pytest

from clientgen import output as output_module
from clientgen.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    configure_logging,
    get_output,
    reset_logging,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("clientgen.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("clientgen.output._is_tty", lambda: True)


@pytest.fixture()
def plain() -> OutputManager:
    return OutputManager(format=OutputFormat.PLAIN, no_color=True)


@pytest.fixture()
def root_level():
    """Restore the root logger level after a test changes it."""
    root = logging.getLogger()
    level = root.level
    yield root
    reset_logging()
    root.setLevel(level)


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    """AUTO resolves from the environment."""

    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        mgr = OutputManager(format=OutputFormat.AUTO, no_color=True)
        assert mgr.format == OutputFormat.PLAIN

    def test_explicit_format_is_kept(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON
        assert OutputManager(format=OutputFormat.RICH).format == OutputFormat.RICH


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False

    def test_env_disables_manager_color(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert OutputManager(format=OutputFormat.PLAIN).no_color is True


# ------------------------------------------------------------------ #
# stdout vs stderr
# ------------------------------------------------------------------ #


class TestStreams:
    """Data goes to stdout, diagnostics to stderr."""

    def test_print_data_goes_to_stdout(self, capsys, plain):
        plain.print_data("hello")
        captured = capsys.readouterr()
        assert captured.out == "hello\n"
        assert captured.err == ""

    def test_status_goes_to_stderr(self, capsys, plain):
        plain.status("WRITE", "generated/Petstore/Schemas.elm", "green")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == "[WRITE] generated/Petstore/Schemas.elm\n"

    def test_error_prefix(self, capsys, plain):
        plain.error("boom")
        assert capsys.readouterr().err == "Error: boom\n"

    def test_suggest_arrow(self, capsys, plain):
        plain.suggest("Use --force to overwrite")
        assert capsys.readouterr().err == "→ Use --force to overwrite\n"

    def test_print_source_is_unchanged_in_plain_mode(self, capsys, plain):
        plain.print_source("module {{ module_name }}\n", "jinja")
        assert capsys.readouterr().out == "module {{ module_name }}\n"


class TestQuietAndVerbose:
    def test_quiet_suppresses_info_and_status(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("hidden")
        mgr.success("hidden")
        mgr.status("SAME", "x", "dim")
        assert capsys.readouterr().err == ""

    def test_quiet_keeps_failures(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.status("FAIL", "elm", "red")
        mgr.error("bad")
        assert capsys.readouterr().err == "[FAIL] elm\nError: bad\n"

    def test_debug_only_when_verbose(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("hidden")
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("shown")
        assert capsys.readouterr().err == "[debug] shown\n"


# ------------------------------------------------------------------ #
# Structured data
# ------------------------------------------------------------------ #


class TestStructuredData:
    def test_plain_table(self, capsys, plain):
        plain.print_table(["TARGET", "MODULE"], [["elm", "Api.Schemas"], ["python", "api.schemas"]])
        assert capsys.readouterr().out == "TARGET\tMODULE\nelm\tApi.Schemas\npython\tapi.schemas\n"

    def test_json_table(self, capsys):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(["TARGET", "MODULE"], [["elm", "Api.Schemas"]])
        assert json.loads(capsys.readouterr().out) == [{"TARGET": "elm", "MODULE": "Api.Schemas"}]

    def test_plain_dict(self, capsys, plain):
        plain.format_data({"title": "Petstore", "targets": ["elm", "python"]})
        assert capsys.readouterr().out == "title\tPetstore\ntargets\telm, python\n"

    def test_json_data(self, capsys):
        OutputManager(format=OutputFormat.JSON, no_color=True).format_data({"operations": 6})
        assert json.loads(capsys.readouterr().out) == {"operations": 6}


# ------------------------------------------------------------------ #
# Logging
# ------------------------------------------------------------------ #


class TestConfigureLogging:
    def _installed(self, root: logging.Logger) -> list[logging.Handler]:
        return [h for h in root.handlers if getattr(h, "_clientgen", False)]

    def test_installs_single_handler(self, plain, root_level):
        configure_logging(plain)
        configure_logging(plain)
        assert len(self._installed(root_level)) == 1
        assert root_level.level == logging.WARNING

    def test_verbose_sets_debug(self, root_level):
        configure_logging(OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True))
        assert root_level.level == logging.DEBUG

    def test_reset_removes_handler(self, plain, root_level):
        configure_logging(plain)
        reset_logging()
        assert self._installed(root_level) == []


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_output_is_used_by_helpers(self, capsys, plain):
        set_output(plain)
        output_module.error("via helper")
        output_module.format_data("data")
        captured = capsys.readouterr()
        assert captured.err == "Error: via helper\n"
        assert captured.out == "data\n"
