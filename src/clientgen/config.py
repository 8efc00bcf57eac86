"""Configuration with XDG paths, atomic writes, and precedence resolution.

This module handles:

* **Directory layout** -- crash logs live in the XDG data directory on
  Linux/BSD and under ``~/.clientgen/`` on macOS and Windows. See
  :func:`get_data_dir`.
* **Project config** -- an optional ``./clientgen.json`` holding
  :class:`~clientgen.models.GeneratorConfig` fields.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  ``CLIENTGEN_*`` environment variables, the project file and model
  defaults into the effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so a crash never leaves a half-written file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from clientgen.exceptions import ConfigError
from clientgen.models import GeneratorConfig

_APP_NAME = "clientgen"
PROJECT_CONFIG_FILENAME = "clientgen.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_data_dir() -> Path:
    """Return the data directory, creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/clientgen/`` (default
    ``~/.local/share/clientgen/``). On macOS/Windows: ``~/.clientgen/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_log_dir() -> Path:
    """Return ``<data_dir>/logs/``, where crash logs are written."""
    path = get_data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up. Parent directories are created as needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
            newline="",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Project-local config ---


def load_project_config(directory: Optional[Path] = None) -> Optional[dict[str, Any]]:
    """Load ``clientgen.json`` from *directory* (default: the working directory).

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = (directory or Path.cwd()) / PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Environment ---


def _env_bool(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid boolean for {name}: {raw!r}")


def _env_overrides() -> dict[str, Any]:
    """Read ``CLIENTGEN_*`` variables into GeneratorConfig fields."""
    overrides: dict[str, Any] = {}
    targets = os.environ.get("CLIENTGEN_TARGETS")
    if targets:
        overrides["targets"] = [t.strip() for t in targets.split(",") if t.strip()]
    prefix = os.environ.get("CLIENTGEN_MODULE_PREFIX")
    if prefix:
        overrides["module_prefix"] = prefix
    output = os.environ.get("CLIENTGEN_OUTPUT")
    if output:
        overrides["output_dir"] = output
    force = _env_bool("CLIENTGEN_FORCE")
    if force is not None:
        overrides["overwrite"] = force
    timestamp = os.environ.get("CLIENTGEN_TIMESTAMP")
    if timestamp:
        overrides["generation_timestamp"] = timestamp
    return overrides


# --- Precedence resolution ---


def resolve_config(
    cli_targets: Optional[list[str]] = None,
    cli_module_prefix: Optional[str] = None,
    cli_output: Optional[str] = None,
    cli_overwrite: Optional[bool] = None,
    cli_templates: Optional[dict[str, str]] = None,
    cli_timestamp: Optional[str] = None,
    cli_prune: Optional[bool] = None,
    project_dir: Optional[Path] = None,
) -> GeneratorConfig:
    """Resolve the generator configuration with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (any ``cli_*`` argument that is not ``None``)
        2. Environment variables (``CLIENTGEN_TARGETS``,
           ``CLIENTGEN_MODULE_PREFIX``, ``CLIENTGEN_OUTPUT``,
           ``CLIENTGEN_FORCE``, ``CLIENTGEN_TIMESTAMP``)
        3. Project config (``./clientgen.json``)
        4. Defaults declared on :class:`~clientgen.models.GeneratorConfig`

    Template paths merge per target, with CLI entries winning.

    Raises:
        ConfigError: If the project file or an environment variable is
            invalid, or the merged values fail validation.
    """
    # 4 + 3. Defaults, then the project file
    data: dict[str, Any] = dict(load_project_config(project_dir) or {})

    # 2. Environment variables
    data.update(_env_overrides())

    # 1. CLI flags (highest precedence)
    cli = {
        "targets": cli_targets or None,
        "module_prefix": cli_module_prefix,
        "output_dir": cli_output,
        "overwrite": cli_overwrite,
        "generation_timestamp": cli_timestamp,
        "prune_unused": cli_prune,
    }
    data.update({key: value for key, value in cli.items() if value is not None})
    if cli_templates:
        data["templates"] = {**data.get("templates", {}), **cli_templates}

    try:
        return GeneratorConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
