"""Canonical Pydantic models for configuration and shared enumerations.

The IR produced by the schema resolver lives in :mod:`clientgen.ir`; this
module holds everything else that crosses module boundaries:

**Configuration models** -- loaded from ``./clientgen.json``, environment
variables and CLI flags:
    :class:`GeneratorConfig` and :class:`ConnectionConfig`.

**Shared enumerations** -- used by both the resolver and the generators:
    :class:`HTTPMethod`, :class:`ParameterLocation` and :class:`ContentKind`.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Generator Config ---


class GeneratorConfig(BaseModel):
    """Effective configuration for one generation run.

    Built by :func:`~clientgen.config.resolve_config` from CLI flags,
    ``CLIENTGEN_*`` environment variables, the project file and the
    defaults declared here.

    Example::

        GeneratorConfig(
            targets=["elm", "python"],
            module_prefix="Petstore",
            templates={"elm": "templates/Schemas.elm.j2"},
        )
    """

    model_config = ConfigDict(extra="forbid")

    targets: list[str] = Field(
        default_factory=lambda: ["elm"],
        description="Backend target tags to generate, e.g. elm, python",
    )
    module_prefix: Optional[str] = Field(
        default=None,
        description="Module name prefix; each backend's default (Api) when unset",
    )
    output_dir: str = Field(
        default="generated", description="Directory generated modules are written under"
    )
    overwrite: bool = Field(
        default=False, description="Replace existing output files"
    )
    templates: dict[str, str] = Field(
        default_factory=dict,
        description="Custom template path per backend target",
    )
    generation_timestamp: Optional[str] = Field(
        default=None,
        description="Fixed timestamp to embed; SOURCE_DATE_EPOCH or the epoch when unset",
    )
    prune_unused: bool = Field(
        default=False,
        description="Drop types that no operation references",
    )
    max_workers: int = Field(
        default=4, ge=1, description="Backends generated in parallel"
    )


# --- Connection Config ---


class ConnectionConfig(BaseModel):
    """Connection settings every generated request function takes.

    Mirrors the ``Config`` record emitted into generated modules and is used
    by :class:`~clientgen.generator.request.RequestDescriptor` helpers to
    define how headers are assembled.
    """

    base_url: str = Field(description="Scheme, host and base path of the API")
    api_key: Optional[str] = None
    api_key_header: str = Field(
        default="X-API-Key", description="Header carrying the API key"
    )
    bearer_token: Optional[str] = None
    basic_auth: Optional[tuple[str, str]] = Field(
        default=None, description="(username, password) for HTTP basic auth"
    )
    extra_headers: dict[str, str] = Field(default_factory=dict)
    timeout: Optional[float] = Field(
        default=None, description="Request timeout in seconds"
    )


# --- Shared Enumerations ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised by OpenAPI 3.x path-item objects.

    Declaration order is the order operations of one path are emitted in.
    """

    GET = "get"
    PUT = "put"
    POST = "post"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"
    PATCH = "patch"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field.

    Cookie parameters are recognised so they can be skipped explicitly.
    """

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class ContentKind(str, enum.Enum):
    """How a request body is serialised on the wire."""

    JSON = "json"
    FORM = "form"
    TEXT = "text"
    BINARY = "binary"
