"""Shared test fixtures for clientgen.

Provides reusable fixtures for loading the petstore documents, resolving
them into the IR, creating isolated config environments, managing output
state, and running CLI commands. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from clientgen.ir import ModuleDescriptor
from clientgen.output import OutputFormat, OutputManager, reset_logging, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"

FIXED_TIMESTAMP = "2024-01-01 00:00:00"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and logging handler after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file"). Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()
    reset_logging()


# ---------------------------------------------------------------------------
# Document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_yaml_path() -> Path:
    return FIXTURES_DIR / "petstore.yaml"


@pytest.fixture
def petstore_json_path() -> Path:
    return FIXTURES_DIR / "petstore.json"


@pytest.fixture
def petstore_document(petstore_yaml_path: Path) -> dict[str, Any]:
    """The petstore document as loaded from YAML."""
    from clientgen.parser.loader import load_document

    return load_document(str(petstore_yaml_path))


@pytest.fixture
def petstore_module(petstore_document: dict[str, Any]) -> ModuleDescriptor:
    """The petstore document resolved with a fixed timestamp."""
    from clientgen.parser.resolver import resolve

    return resolve(petstore_document, "Petstore", generation_timestamp=FIXED_TIMESTAMP)


@pytest.fixture
def make_document() -> Callable[..., dict[str, Any]]:
    """Factory for small documents.

    Builds a document from a ``components/schemas`` mapping and an optional
    ``paths`` mapping. Without paths, a single ``GET /ping`` operation
    returning the first schema is added so the document resolves.
    """

    def _make(
        schemas: Optional[dict[str, Any]] = None,
        paths: Optional[dict[str, Any]] = None,
        **extra: Any,
    ) -> dict[str, Any]:
        schemas = schemas or {}
        if paths is None:
            response: dict[str, Any] = {"description": "ok"}
            if schemas:
                first = next(iter(schemas))
                response["content"] = {
                    "application/json": {"schema": {"$ref": f"#/components/schemas/{first}"}}
                }
            paths = {"/ping": {"get": {"operationId": "ping", "responses": {"200": response}}}}
        document: dict[str, Any] = {
            "openapi": "3.0.3",
            "info": {"title": "Test API", "version": "1.0"},
            "paths": paths,
            "components": {"schemas": schemas},
        }
        document.update(extra)
        return document

    return _make


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_DATA_HOME to a subdirectory of tmp_path so that crash logs
    never touch the real user data directory. Clears all CLIENTGEN_*
    environment variables and SOURCE_DATE_EPOCH, and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "CLIENTGEN_TARGETS",
        "CLIENTGEN_MODULE_PREFIX",
        "CLIENTGEN_OUTPUT",
        "CLIENTGEN_FORCE",
        "CLIENTGEN_TIMESTAMP",
        "SOURCE_DATE_EPOCH",
        "NO_COLOR",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
