"""Language backends that render descriptors into source modules.

Sub-modules:

* :mod:`~clientgen.backends.base` -- The :class:`LanguageBackend` contract.
* :mod:`~clientgen.backends.registry` -- Target lookup and entry-point
  discovery.
* :mod:`~clientgen.backends.elm` -- Elm 0.19 backend.
* :mod:`~clientgen.backends.python` -- Python / ``httpx`` backend.
* :mod:`~clientgen.backends.templates` -- Module templates.
"""

from clientgen.backends.base import Fragment, LanguageArtifact, LanguageBackend, ModuleContext
from clientgen.backends.registry import TargetLanguage, available_backends, get_backend

__all__ = [
    "Fragment",
    "LanguageArtifact",
    "LanguageBackend",
    "ModuleContext",
    "TargetLanguage",
    "available_backends",
    "get_backend",
]
