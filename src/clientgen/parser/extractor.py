"""Extract operations, servers and security schemes from an OpenAPI document.

This module walks the ``paths`` object and turns every path + HTTP method
combination into an :class:`~clientgen.ir.OperationNode`. Schemas found on
parameters, request bodies and responses are resolved through the shared
:class:`~clientgen.parser.resolver.SchemaResolver` so that they land in the
same node arena as ``components/schemas``.

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they
share the same ``name`` and ``in`` values.

Structural problems are fatal. An operation without responses, a parameter
without ``name``/``in``, or a path template that disagrees with its
declared path parameters raises a
:class:`~clientgen.exceptions.ResolutionError` subclass naming the
operation.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import TYPE_CHECKING, Any, Optional

from clientgen.exceptions import (
    EmptyOperationsError,
    MalformedOperationError,
    PathParameterMismatchError,
)
from clientgen.ir import (
    BodyNode,
    OperationNode,
    ParameterNode,
    ResponseNode,
    SecuritySchemeNode,
)
from clientgen.models import ContentKind, HTTPMethod, ParameterLocation
from clientgen.parser.pointer import child_pointer

if TYPE_CHECKING:
    from clientgen.parser.resolver import SchemaResolver

logger = logging.getLogger(__name__)

_PATH_TEMPLATE = re.compile(r"\{([^{}/]+)\}")
_STATUS_PATTERN = re.compile(r"^[1-5](\d\d|XX)$")

# Preference order when an operation offers several media types.
_MEDIA_PREFERENCE = (
    "application/json",
    "application/x-www-form-urlencoded",
    "multipart/form-data",
    "text/plain",
    "application/octet-stream",
)


def extract_info(document: dict[str, Any]) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Return ``(title, description, version)`` from the ``info`` object."""
    info = document.get("info") or {}
    if not isinstance(info, dict):
        return None, None, None
    version = info.get("version")
    return (
        info.get("title"),
        info.get("description"),
        str(version) if version is not None else None,
    )


def extract_servers(document: dict[str, Any]) -> list[str]:
    """Return server URLs with their variables replaced by default values.

    Returns an empty list when no servers are declared.
    """
    urls: list[str] = []
    for server in document.get("servers") or []:
        if not isinstance(server, dict) or not server.get("url"):
            continue
        url = str(server["url"])
        for name, variable in (server.get("variables") or {}).items():
            if isinstance(variable, dict) and "default" in variable:
                url = url.replace("{" + name + "}", str(variable["default"]))
        urls.append(url.rstrip("/") or url)
    return urls


def extract_security_schemes(document: dict[str, Any]) -> list[SecuritySchemeNode]:
    """Extract security scheme definitions from ``components/securitySchemes``."""
    components = document.get("components") or {}
    schemes_raw = components.get("securitySchemes") or {} if isinstance(components, dict) else {}
    schemes: list[SecuritySchemeNode] = []

    for name, scheme_data in schemes_raw.items():
        if not isinstance(scheme_data, dict):
            continue
        schemes.append(
            SecuritySchemeNode(
                name=name,
                type=scheme_data.get("type", ""),
                scheme=scheme_data.get("scheme"),
                location=scheme_data.get("in"),
                param_name=scheme_data.get("name"),
            )
        )

    return schemes


def extract_operations(document: dict[str, Any], resolver: SchemaResolver) -> list[OperationNode]:
    """Extract all operations from the document's ``paths`` object.

    Paths are visited in document order and methods in
    :class:`~clientgen.models.HTTPMethod` declaration order, which fixes the
    order request functions are emitted in.

    Security requirements follow the OpenAPI override rule: an
    operation-level ``security`` array replaces the global one.

    Args:
        document: The Document Model.
        resolver: Resolver shared with ``components/schemas``.

    Returns:
        One :class:`~clientgen.ir.OperationNode` per path + method.

    Raises:
        EmptyOperationsError: If the document declares no operations.
        MalformedOperationError: For structurally invalid operations.
        PathParameterMismatchError: If a path template and its path
            parameters disagree.
    """
    paths = document.get("paths") or {}
    if not isinstance(paths, dict):
        raise MalformedOperationError("'paths' must be a mapping", "#/paths")

    global_security = document.get("security") or []
    operations: list[OperationNode] = []
    explicit_ids = _explicit_operation_ids(paths, resolver)
    seen_explicit: set[str] = set()
    assigned: set[str] = set()

    for path, path_item in paths.items():
        item_pointer, path_item = resolver.raw(path_item, child_pointer("#/paths", path))
        if not isinstance(path_item, dict):
            raise MalformedOperationError(f"Path item for '{path}' must be a mapping", item_pointer)

        path_params = _indexed(path_item.get("parameters"), child_pointer(item_pointer, "parameters"))

        for method in HTTPMethod:
            operation = path_item.get(method.value)
            if operation is None:
                continue
            op_pointer = child_pointer(item_pointer, method.value)
            if not isinstance(operation, dict):
                raise MalformedOperationError(
                    f"{method.value.upper()} {path} must be a mapping", op_pointer
                )

            explicit_id = operation.get("operationId")
            if explicit_id:
                operation_id = str(explicit_id)
                if operation_id in seen_explicit:
                    raise MalformedOperationError(
                        f"Duplicate operationId '{operation_id}'", op_pointer
                    )
                seen_explicit.add(operation_id)
            else:
                operation_id = _unique_id(
                    _derive_operation_id(method, path), explicit_ids | assigned
                )
            assigned.add(operation_id)

            op_params = _indexed(operation.get("parameters"), child_pointer(op_pointer, "parameters"))
            parameters = _extract_parameters(
                _merge_parameters(path_params, op_params, resolver, operation_id),
                resolver,
                operation_id,
            )
            _check_path_parameters(path, parameters, op_pointer, operation_id)

            security = operation.get("security")
            if security is None:
                security = global_security

            operations.append(
                OperationNode(
                    operation_id=operation_id,
                    method=method,
                    path=path,
                    parameters=tuple(parameters),
                    body=_extract_request_body(operation, op_pointer, resolver, operation_id),
                    responses=tuple(_extract_responses(operation, op_pointer, resolver, operation_id)),
                    summary=operation.get("summary"),
                    description=operation.get("description"),
                    deprecated=bool(operation.get("deprecated", False)),
                    tags=tuple(str(t) for t in operation.get("tags") or []),
                    security=tuple(
                        dict.fromkeys(
                            name
                            for requirement in security
                            if isinstance(requirement, dict)
                            for name in requirement
                        )
                    ),
                )
            )

    if not operations:
        raise EmptyOperationsError("Document declares no operations", "#/paths")

    logger.debug("Extracted %d operations from %d paths", len(operations), len(paths))
    return operations


def _derive_operation_id(method: HTTPMethod, path: str) -> str:
    """Build an id such as ``get_pets_petId`` for operations without one."""
    words = re.sub(r"[^A-Za-z0-9]+", "_", path).strip("_")
    return f"{method.value}_{words}" if words else method.value


def _unique_id(base: str, taken: set[str]) -> str:
    """Return *base*, or *base* with the first free ``_2``, ``_3``... suffix."""
    candidate = base
    counter = 2
    while candidate in taken:
        candidate = f"{base}_{counter}"
        counter += 1
    return candidate


def _explicit_operation_ids(paths: dict[str, Any], resolver: SchemaResolver) -> set[str]:
    """Collect every declared ``operationId`` up front.

    Derived ids must avoid explicit ones, including those declared on
    operations that come later in the document. Malformed entries are
    skipped here and reported by the main walk.
    """
    ids: set[str] = set()
    for path, path_item in paths.items():
        _, path_item = resolver.raw(path_item, child_pointer("#/paths", path))
        if not isinstance(path_item, dict):
            continue
        for method in HTTPMethod:
            operation = path_item.get(method.value)
            if isinstance(operation, dict) and operation.get("operationId"):
                ids.add(str(operation["operationId"]))
    return ids


def _indexed(params: Any, pointer: str) -> list[tuple[str, Any]]:
    if not params:
        return []
    if not isinstance(params, list):
        raise MalformedOperationError("'parameters' must be a list", pointer)
    return [(child_pointer(pointer, i), p) for i, p in enumerate(params)]


def _merge_parameters(
    path_params: list[tuple[str, Any]],
    op_params: list[tuple[str, Any]],
    resolver: SchemaResolver,
    operation_id: str,
) -> list[tuple[str, dict[str, Any]]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field), per the OpenAPI spec. ``$ref``
    parameters are followed first so the override key is the real one.

    Returns:
        ``(pointer, parameter)`` pairs; the pointer locates the parameter
        object and anchors its schema's node id.
    """

    def _follow(entries: list[tuple[str, Any]]) -> list[tuple[str, dict[str, Any]]]:
        followed = []
        for pointer, param in entries:
            pointer, param = resolver.raw(param, pointer)
            if not isinstance(param, dict) or not param.get("name") or not param.get("in"):
                raise MalformedOperationError(
                    "Parameter must declare 'name' and 'in'", pointer, operation_id
                )
            followed.append((pointer, param))
        return followed

    resolved_path = _follow(path_params)
    resolved_op = _follow(op_params)

    op_keys = {(p["name"], p["in"]) for _, p in resolved_op}
    merged = [(ptr, p) for ptr, p in resolved_path if (p["name"], p["in"]) not in op_keys]
    merged.extend(resolved_op)
    return merged


def _extract_parameters(
    params: list[tuple[str, dict[str, Any]]],
    resolver: SchemaResolver,
    operation_id: str,
) -> list[ParameterNode]:
    """Convert merged parameter objects into :class:`~clientgen.ir.ParameterNode` models.

    Path parameters are always required regardless of the ``required``
    field in the source. Cookie parameters are skipped with a warning.
    """
    parameters: list[ParameterNode] = []

    for pointer, param in params:
        name = str(param["name"])
        try:
            location = ParameterLocation(param["in"])
        except ValueError:
            raise MalformedOperationError(
                f"Parameter '{name}' has unknown location '{param['in']}'",
                pointer,
                operation_id,
            ) from None

        if location == ParameterLocation.COOKIE:
            logger.warning(
                "Skipping cookie parameter '%s' of operation '%s'", name, operation_id
            )
            continue

        schema_pointer = child_pointer(pointer, "schema")
        schema = param.get("schema")
        if schema is None and isinstance(param.get("content"), dict) and param["content"]:
            media_type, media = next(iter(param["content"].items()))
            schema_pointer = child_pointer(pointer, "content", media_type, "schema")
            schema = media.get("schema") if isinstance(media, dict) else None
        if schema is None:
            schema = {"type": "string"}

        type_ref, nullable = resolver.resolve_at(schema_pointer, schema, f"{operation_id} {name}")
        required = bool(param.get("required", False)) or location == ParameterLocation.PATH

        parameters.append(
            ParameterNode(
                name=name,
                location=location,
                type=type_ref,
                required=required,
                nullable=nullable,
                default=schema.get("default") if isinstance(schema, dict) else None,
                description=param.get("description"),
            )
        )

    return parameters


def _check_path_parameters(
    path: str,
    parameters: list[ParameterNode],
    pointer: str,
    operation_id: str,
) -> None:
    template = Counter(_PATH_TEMPLATE.findall(path))
    declared = Counter(p.name for p in parameters if p.location == ParameterLocation.PATH)
    if template != declared or any(count > 1 for count in template.values()):
        raise PathParameterMismatchError(
            f"Path template {sorted(template)} does not match declared "
            f"path parameters {sorted(declared)}",
            pointer,
            operation_id,
        )


def select_media_type(content: dict[str, Any]) -> tuple[str, Any]:
    """Pick the media type to generate for from a ``content`` map.

    JSON variants win over the rest of the preference list; otherwise the
    first declared entry is used.
    """
    lowered = {str(ct).split(";")[0].strip().lower(): ct for ct in content}
    for preferred in _MEDIA_PREFERENCE:
        if preferred in lowered:
            key = lowered[preferred]
            return key, content[key]
        if preferred == "application/json":
            for plain, key in lowered.items():
                if plain.endswith("+json") or plain.endswith("/json"):
                    return key, content[key]
    key = next(iter(content))
    return key, content[key]


def content_kind(content_type: str) -> ContentKind:
    """Map a media type to how its body is serialised."""
    plain = content_type.split(";")[0].strip().lower()
    if plain.endswith("json"):
        return ContentKind.JSON
    if plain in ("application/x-www-form-urlencoded", "multipart/form-data"):
        return ContentKind.FORM
    if plain.startswith("text/"):
        return ContentKind.TEXT
    return ContentKind.BINARY


def _extract_request_body(
    operation: dict[str, Any],
    op_pointer: str,
    resolver: SchemaResolver,
    operation_id: str,
) -> Optional[BodyNode]:

    if operation.get("requestBody") is None:
        return None

    pointer, body = resolver.raw(operation["requestBody"], child_pointer(op_pointer, "requestBody"))
    content = body.get("content") if isinstance(body, dict) else None
    if not isinstance(content, dict) or not content:
        raise MalformedOperationError("Request body declares no content", pointer, operation_id)

    content_type, media = select_media_type(content)
    schema = media.get("schema", {}) if isinstance(media, dict) else {}
    type_ref, nullable = resolver.resolve_at(
        child_pointer(pointer, "content", content_type, "schema"),
        schema,
        f"{operation_id} Request",
    )
    return BodyNode(
        type=type_ref,
        content_type=content_type,
        content_kind=content_kind(content_type),
        required=bool(body.get("required", False)),
        nullable=nullable,
        description=body.get("description"),
    )


def normalize_status(status: Any) -> Optional[str]:
    """Normalise a response key to ``"200"``, ``"4XX"`` or ``"default"``.

    Returns ``None`` for keys that are not valid status patterns.
    """
    text = str(status).strip()
    if text.lower() == "default":
        return "default"
    text = text.upper()
    return text if _STATUS_PATTERN.match(text) else None


def _extract_responses(
    operation: dict[str, Any],
    op_pointer: str,
    resolver: SchemaResolver,
    operation_id: str,
) -> list[ResponseNode]:

    responses_pointer = child_pointer(op_pointer, "responses")
    responses = operation.get("responses")
    if not isinstance(responses, dict) or not responses:
        raise MalformedOperationError("Operation declares no responses", responses_pointer, operation_id)

    result: list[ResponseNode] = []
    for key, response in responses.items():
        status = normalize_status(key)
        if status is None:
            raise MalformedOperationError(
                f"Invalid response status '{key}'", responses_pointer, operation_id
            )
        pointer, response = resolver.raw(response, child_pointer(responses_pointer, key))
        if not isinstance(response, dict):
            raise MalformedOperationError(
                f"Response '{key}' must be a mapping", pointer, operation_id
            )

        content = response.get("content")
        type_ref: Optional[str] = None
        content_type: Optional[str] = None
        nullable = False
        if isinstance(content, dict) and content:
            content_type, media = select_media_type(content)
            schema = media.get("schema") if isinstance(media, dict) else None
            if schema is not None:
                type_ref, nullable = resolver.resolve_at(
                    child_pointer(pointer, "content", content_type, "schema"),
                    schema,
                    f"{operation_id} Response {status}",
                )

        result.append(
            ResponseNode(
                status=status,
                type=type_ref,
                content_type=content_type,
                nullable=nullable,
                description=response.get("description"),
            )
        )

    return result
