"""Backend registry -- built-in targets plus entry-point discovery.

Built-in backends are keyed by :class:`TargetLanguage`. Third-party
packages add targets by declaring an entry point in the
``clientgen.backends`` group that resolves to a
:class:`~clientgen.backends.base.LanguageBackend` subclass::

    [project.entry-points."clientgen.backends"]
    kotlin = "clientgen_kotlin:KotlinBackend"

Built-in tags win over entry points with the same name.
"""

from __future__ import annotations

import enum
import importlib.metadata
import logging
from typing import Union

from clientgen.backends.base import LanguageBackend
from clientgen.backends.elm import ElmBackend
from clientgen.backends.python import PythonBackend
from clientgen.exceptions import BackendError

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "clientgen.backends"
"""The entry-point group name used for backend discovery."""


class TargetLanguage(str, enum.Enum):
    """Tags of the backends shipped with clientgen."""

    ELM = "elm"
    PYTHON = "python"


_BUILTIN: dict[TargetLanguage, type[LanguageBackend]] = {
    TargetLanguage.ELM: ElmBackend,
    TargetLanguage.PYTHON: PythonBackend,
}


def _entry_points() -> dict[str, importlib.metadata.EntryPoint]:
    eps = importlib.metadata.entry_points().select(group=ENTRY_POINT_GROUP)
    return {ep.name: ep for ep in eps}


def available_backends() -> list[str]:
    """Return every target tag that :func:`get_backend` accepts, sorted.

    Entry points are listed without being imported.
    """
    names = {t.value for t in TargetLanguage}
    names.update(_entry_points())
    return sorted(names)


def get_backend(target: Union[str, TargetLanguage]) -> LanguageBackend:
    """Instantiate the backend registered for *target*.

    Args:
        target: A :class:`TargetLanguage` or the tag of an entry-point
            backend.

    Raises:
        BackendError: If no backend is registered for *target*, or the
            entry point fails to load or does not yield a
            :class:`LanguageBackend`.
    """
    tag = target.value if isinstance(target, TargetLanguage) else str(target).strip().lower()
    try:
        return _BUILTIN[TargetLanguage(tag)]()
    except ValueError:
        pass

    ep = _entry_points().get(tag)
    if ep is None:
        raise BackendError(
            f"Unknown target '{tag}'. Available targets: {', '.join(available_backends())}"
        )
    try:
        backend_cls = ep.load()
        backend = backend_cls()
    except Exception as exc:
        logger.warning("Failed to load backend '%s': %s", tag, exc)
        raise BackendError(f"Failed to load backend '{tag}': {exc}") from exc
    if not isinstance(backend, LanguageBackend):
        raise BackendError(f"Entry point '{tag}' does not provide a LanguageBackend")
    logger.debug("Loaded backend '%s' from %s", tag, ep.value)
    return backend
