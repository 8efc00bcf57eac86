"""Derive request descriptors for IR operations.

A :class:`RequestDescriptor` is everything a backend needs to emit one typed
request function: its name, the parsed path template, parameter and body
descriptors, responses in match order, and the success and error types.

The descriptor also carries executable helpers (:meth:`~RequestDescriptor.render_path`,
:meth:`~RequestDescriptor.build_query`, :meth:`~RequestDescriptor.build_headers`,
:meth:`~RequestDescriptor.select_response` and
:meth:`~RequestDescriptor.resolve_response`). Generated code in every target
language implements exactly these semantics, and the test suite checks them
here once instead of per language.
"""

from __future__ import annotations

import base64
import enum
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import quote

from clientgen.exceptions import ClientCallError, DecodeError
from clientgen.generator.codec import ABSENT, CodecTable
from clientgen.generator.naming import NamingPolicy
from clientgen.generator.type_mapper import TypeDescriptor
from clientgen.ir import ModuleDescriptor, OperationNode, TypeNodeRef
from clientgen.models import ConnectionConfig, ContentKind, HTTPMethod, ParameterLocation

_PATH_PARAM = re.compile(r"\{([^{}/]+)\}")

# Argument names every generated request function already uses.
RESERVED_ARGUMENTS = ("config", "body", "headers")


@dataclass(frozen=True)
class PathSegment:
    """A literal piece of a path template, or a parameter placeholder."""

    text: str
    parameter: Optional[str] = None

    @property
    def is_parameter(self) -> bool:
        return self.parameter is not None


@dataclass(frozen=True)
class ParameterDescriptor:
    wire_name: str
    name: str
    location: ParameterLocation
    type_id: TypeNodeRef
    expression: str
    required: bool
    nullable: bool = False
    default: Any = None
    description: Optional[str] = None


@dataclass(frozen=True)
class BodyDescriptor:
    type_id: TypeNodeRef
    expression: str
    encoder_name: Optional[str]
    content_type: str
    content_kind: ContentKind
    required: bool
    nullable: bool = False


@dataclass(frozen=True)
class ResponseDescriptor:
    """One declared response, with the error or success case it maps to."""

    status: str
    type_id: Optional[TypeNodeRef]
    expression: Optional[str]
    constructor: str
    is_success: bool
    nullable: bool = False
    description: Optional[str] = None

    @property
    def is_exact(self) -> bool:
        return self.status.isdigit()

    @property
    def status_code(self) -> Optional[int]:
        return int(self.status) if self.is_exact else None

    @property
    def status_class(self) -> Optional[int]:
        """Leading digit of a ``4XX``-style pattern."""
        if self.status.endswith("XX"):
            return int(self.status[0])
        return None


def _precedence(response: ResponseDescriptor) -> int:
    if response.is_exact:
        return 0
    if response.status_class is not None:
        return 1
    return 2


def parse_path(path: str) -> tuple[PathSegment, ...]:
    """Split a path template into literal and parameter segments.

    Example::

        >>> [s.text for s in parse_path("/pets/{petId}/toys")]
        ['/pets/', 'petId', '/toys']
    """
    segments: list[PathSegment] = []
    position = 0
    for match in _PATH_PARAM.finditer(path):
        if match.start() > position:
            segments.append(PathSegment(path[position:match.start()]))
        segments.append(PathSegment(match.group(1), parameter=match.group(1)))
        position = match.end()
    if position < len(path):
        segments.append(PathSegment(path[position:]))
    return tuple(segments)


def stringify(value: Any) -> str:
    """Render a parameter value the way it appears on the wire."""
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(v) for v in value)
    return str(value)


def _is_missing(value: Any) -> bool:
    return value is None or value is ABSENT


@dataclass(frozen=True)
class RequestDescriptor:
    """Backend-neutral description of one request function."""

    operation_id: str
    function_name: str
    method: HTTPMethod
    path: str
    segments: tuple[PathSegment, ...]
    parameters: tuple[ParameterDescriptor, ...]
    body: Optional[BodyDescriptor]
    responses: tuple[ResponseDescriptor, ...]
    success_type: Optional[str]
    success_union: Optional[str]
    error_type: str
    summary: Optional[str] = None
    description: Optional[str] = None
    deprecated: bool = False

    # --- Views ---

    def parameters_in(self, location: ParameterLocation) -> list[ParameterDescriptor]:
        return [p for p in self.parameters if p.location == location]

    @property
    def success_responses(self) -> list[ResponseDescriptor]:
        return [r for r in self.responses if r.is_success]

    @property
    def error_responses(self) -> list[ResponseDescriptor]:
        return [r for r in self.responses if not r.is_success]

    # --- Executable semantics ---

    def render_path(self, values: Mapping[str, Any]) -> str:
        """Substitute path parameters into the template.

        Each value is percent-encoded, ``/`` included, so a value can never
        introduce a new path segment.

        Raises:
            ValueError: If a path parameter has no value.
        """
        parts: list[str] = []
        for segment in self.segments:
            if not segment.is_parameter:
                parts.append(segment.text)
                continue
            value = values.get(segment.parameter, ABSENT)
            if _is_missing(value):
                raise ValueError(f"Missing value for path parameter '{segment.parameter}'")
            parts.append(quote(stringify(value), safe=""))
        return "".join(parts)

    def build_query(self, values: Mapping[str, Any]) -> list[tuple[str, str]]:
        """Return query pairs in declaration order.

        Missing, :data:`~clientgen.generator.codec.ABSENT` and ``None`` values
        are omitted; list values explode into one pair per item.
        """
        pairs: list[tuple[str, str]] = []
        for param in self.parameters_in(ParameterLocation.QUERY):
            value = values.get(param.wire_name, ABSENT)
            if _is_missing(value):
                continue
            if isinstance(value, (list, tuple)):
                pairs.extend((param.wire_name, stringify(item)) for item in value)
            else:
                pairs.append((param.wire_name, stringify(value)))
        return pairs

    def build_headers(
        self,
        config: ConnectionConfig,
        values: Mapping[str, Any],
        overrides: Optional[Mapping[str, str]] = None,
    ) -> dict[str, str]:
        """Assemble request headers.

        Later sources win: API key, ``Authorization`` (bearer before basic),
        extra headers from *config*, header parameters, then *overrides*.
        """
        headers: dict[str, str] = {}
        if config.api_key:
            headers[config.api_key_header] = config.api_key
        if config.bearer_token:
            headers["Authorization"] = f"Bearer {config.bearer_token}"
        elif config.basic_auth:
            username, password = config.basic_auth
            token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
            headers["Authorization"] = f"Basic {token}"
        headers.update(config.extra_headers)
        for param in self.parameters_in(ParameterLocation.HEADER):
            value = values.get(param.wire_name, ABSENT)
            if not _is_missing(value):
                headers[param.wire_name] = stringify(value)
        headers.update(overrides or {})
        return headers

    def select_response(self, status_code: int) -> Optional[ResponseDescriptor]:
        """Pick the declared response for *status_code*.

        An exact code beats a class pattern (``4XX``), which beats ``default``.
        """
        for response in self.responses:
            if response.status_code == status_code:
                return response
        for response in self.responses:
            if response.status_class == status_code // 100:
                return response
        for response in self.responses:
            if response.status == "default":
                return response
        return None

    def resolve_response(
        self,
        status_code: Optional[int],
        payload: Any,
        codecs: CodecTable,
    ) -> tuple[ResponseDescriptor, Any]:
        """Decode a received response.

        Args:
            status_code: HTTP status, or ``None`` when no response arrived.
            payload: Parsed JSON body (``None`` for an empty body).
            codecs: Codec table of the module.

        Returns:
            The matched response and the decoded body. Callers branch on
            ``response.is_success``.

        Raises:
            ClientCallError: ``network`` without a status,
                ``unexpected_status`` when no response is declared for the
                status, ``decode`` when the body does not match.
        """
        if status_code is None:
            raise ClientCallError("network", "No response received")
        response = self.select_response(status_code)
        if response is None:
            raise ClientCallError(
                "unexpected_status",
                f"{self.operation_id}: unexpected status {status_code}",
                status_code,
            )
        if response.type_id is None or (payload is None and response.nullable):
            return response, None
        try:
            return response, codecs[response.type_id].decode(payload)
        except DecodeError as exc:
            raise ClientCallError(
                "decode",
                f"{self.operation_id}: cannot decode {status_code} response: {exc}",
                status_code,
            ) from exc


def generate_request(
    operation: OperationNode,
    module: ModuleDescriptor,
    types: dict[TypeNodeRef, TypeDescriptor],
    codecs: CodecTable,
    policy: NamingPolicy,
) -> RequestDescriptor:
    """Build the :class:`RequestDescriptor` for one operation.

    Responses are ordered by match precedence (exact codes, class patterns,
    ``default``) and keep document order within each group. ``default`` is
    an error case.
    """
    op_id = operation.operation_id
    function_name = policy.function_name(f"op:{op_id}", op_id)
    param_scope = f"params:{op_id}"
    policy.reserve(f"fields:{param_scope}", RESERVED_ARGUMENTS)

    parameters = tuple(
        ParameterDescriptor(
            wire_name=p.name,
            name=policy.field_name(param_scope, f"{p.location.value}:{p.name}", p.name),
            location=p.location,
            type_id=p.type,
            expression=types[p.type].expression,
            required=p.required,
            nullable=p.nullable,
            default=p.default,
            description=p.description,
        )
        for p in operation.parameters
    )

    body = None
    if operation.body is not None:
        body = BodyDescriptor(
            type_id=operation.body.type,
            expression=types[operation.body.type].expression,
            encoder_name=codecs[operation.body.type].encoder_name,
            content_type=operation.body.content_type,
            content_kind=operation.body.content_kind,
            required=operation.body.required,
            nullable=operation.body.nullable,
        )

    error_type = policy.type_name(f"error:{op_id}", f"{op_id} Error")
    success_name = f"{op_id} Success"
    responses = []
    for r in operation.responses:
        owner = success_name if r.is_success else f"{op_id} Error"
        responses.append(
            ResponseDescriptor(
                status=r.status,
                type_id=r.type,
                expression=types[r.type].expression if r.type else None,
                constructor=policy.type_name(f"response:{op_id}:{r.status}", f"{owner} {r.status}"),
                is_success=r.is_success,
                nullable=r.nullable,
                description=r.description,
            )
        )
    responses.sort(key=_precedence)

    success_types = list(dict.fromkeys(r.expression for r in responses if r.is_success))
    success_type: Optional[str] = None
    success_union: Optional[str] = None
    if len(success_types) == 1:
        success_type = success_types[0]
    elif len(success_types) > 1:
        success_union = policy.type_name(f"success:{op_id}", success_name)
        success_type = success_union

    return RequestDescriptor(
        operation_id=op_id,
        function_name=function_name,
        method=operation.method,
        path=operation.path,
        segments=parse_path(operation.path),
        parameters=parameters,
        body=body,
        responses=tuple(responses),
        success_type=success_type,
        success_union=success_union,
        error_type=error_type,
        summary=operation.summary,
        description=operation.description,
        deprecated=operation.deprecated,
    )


def generate_requests(
    module: ModuleDescriptor,
    types: dict[TypeNodeRef, TypeDescriptor],
    codecs: CodecTable,
    policy: NamingPolicy,
) -> tuple[RequestDescriptor, ...]:
    """Build request descriptors for every operation, in operation order."""
    return tuple(generate_request(op, module, types, codecs, policy) for op in module.operations)
