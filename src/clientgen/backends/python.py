"""Python backend: one ``<prefix>/schemas.py`` module per API.

The generated module needs Python 3.9+ and ``httpx``. It contains:

* ``@dataclass`` records, ``str`` enums and ``typing.Union`` aliases.
* ``decode_*`` / ``encode_*`` functions. Optional fields absent on the
  wire decode to ``UNSET``; an explicit ``null`` decodes to ``None``.
* A ``Config`` dataclass and one function per operation that sends the
  request with :class:`httpx.Client` and returns the decoded success body.
* ``ClientError`` for transport, status and decode failures, and one
  ``ApiError`` subclass per operation for declared error responses.

Generated helpers are private (``_`` prefix); document-derived names never
start with an underscore, so the two cannot collide.
"""

from __future__ import annotations

import ast
import builtins
import json
import keyword
from collections import Counter
from pathlib import Path
from typing import Optional

from clientgen.backends.base import Fragment, ImportRule, LanguageBackend
from clientgen.backends.templates import load_default_template
from clientgen.exceptions import BackendError, OutputValidationError
from clientgen.generator.descriptors import DescriptorSet
from clientgen.generator.naming import NamingRules, convert_case, split_words
from clientgen.generator.request import ParameterDescriptor, RequestDescriptor, ResponseDescriptor
from clientgen.generator.type_mapper import FieldDescriptor, TypeDescriptor, TypeSyntax
from clientgen.ir import NodeKind, PrimitiveKind
from clientgen.models import ContentKind, ParameterLocation

# Names the module template imports or the prelude defines.
_MODULE_NAMES = (
    "Config", "ClientError", "ApiError", "DecodeError", "UNSET", "Any", "Callable",
    "Dict", "List", "Optional", "Tuple", "Union", "annotations", "base64", "enum",
    "json", "dataclass", "field", "quote", "httpx",
)

# The request and codec helpers use every one of these.
PYTHON_IMPORTS = (
    ImportRule("import base64"),
    ImportRule("import enum"),
    ImportRule("import json"),
    ImportRule("from dataclasses import dataclass, field"),
    ImportRule("from typing import Any, Callable, Dict, List, Optional, Tuple, Union"),
    ImportRule("from urllib.parse import quote"),
    ImportRule("import httpx", group=1),
)

PYTHON_NAMING = NamingRules(
    type_case="pascal",
    value_case="snake",
    member_case="upper_snake",
    reserved=frozenset(keyword.kwlist),
    builtin_names=frozenset(_MODULE_NAMES).union(
        name for name in dir(builtins) if not name.startswith("_")
    ),
    digit_prefix="N",
    qualified_members=False,
)

PYTHON_SYNTAX = TypeSyntax(
    primitives={
        PrimitiveKind.STRING: "str",
        PrimitiveKind.INTEGER: "int",
        PrimitiveKind.NUMBER: "float",
        PrimitiveKind.BOOLEAN: "bool",
        PrimitiveKind.ANY: "Any",
    },
    list_template="List[{}]",
    optional_template="Optional[{}]",
)

_PRIMITIVE_NAMES = frozenset(PYTHON_SYNTAX.primitives.values())

_DECODERS = {
    PrimitiveKind.STRING: "_decode_str",
    PrimitiveKind.INTEGER: "_decode_int",
    PrimitiveKind.NUMBER: "_decode_float",
    PrimitiveKind.BOOLEAN: "_decode_bool",
    PrimitiveKind.ANY: "_decode_any",
}


def py_string(text: str) -> str:
    """Render *text* as a Python string literal."""
    return json.dumps(text, ensure_ascii=False)


def _escape_docstring(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


def _docstring(text: Optional[str], indent: str) -> list[str]:
    if not text or not text.strip():
        return []
    lines = _escape_docstring(text.strip()).splitlines()
    if len(lines) == 1:
        return [f'{indent}"""{lines[0]}"""']
    body = [f"{indent}{line}" if line.strip() else "" for line in lines[1:]]
    return [f'{indent}"""{lines[0]}', *body, f'{indent}"""']


def _comment(text: Optional[str]) -> list[str]:
    if not text or not text.strip():
        return []
    return [f"# {line}".rstrip() for line in text.strip().splitlines()]


def _forward(expression: str) -> str:
    """Quote *expression* unless it is a builtin type, for runtime alias values."""
    return expression if expression in _PRIMITIVE_NAMES else py_string(expression)


class _PythonCode:
    """Expression builders over one descriptor set."""

    def __init__(self, descriptors: DescriptorSet):
        self.ds = descriptors
        self.module = descriptors.module

    def decoder(self, ref: str) -> str:
        node = self.module.node(ref)
        if node.kind == NodeKind.REFERENCE:
            return self.ds.codec_of(self.module.deref(ref).id).decoder_name
        codec = self.ds.codec_of(ref)
        if codec.decoder_name:
            return codec.decoder_name
        t = self.ds.type_of(ref)
        if t.kind == NodeKind.ARRAY:
            return f"_decode_list({self.decoder(t.element)})"
        if t.kind == NodeKind.PRIMITIVE:
            return _DECODERS[t.primitive]
        raise BackendError(f"Node '{ref}' is neither declared nor inline")

    # --- Types ---

    def field_annotation(self, f: FieldDescriptor) -> str:
        if f.required:
            return f"Optional[{f.expression}]" if f.nullable else f.expression
        if f.nullable:
            return f"Union[{f.expression}, None, _Unset]"
        return f"Union[{f.expression}, _Unset]"

    def type_fragment(self, t: TypeDescriptor) -> Fragment:
        if t.kind == NodeKind.OBJECT:
            lines = ["@dataclass", f"class {t.name}:"]
            doc = _docstring(t.description, "    ")
            lines += doc
            if doc and t.fields:
                lines.append("")
            # Dataclass fields without a default must come first.
            ordered = [f for f in t.fields if f.required] + [f for f in t.fields if not f.required]
            for f in ordered:
                default = "" if f.required else " = UNSET"
                lines.append(f"    {f.name}: {self.field_annotation(f)}{default}")
            if not doc and not t.fields:
                lines.append("    pass")
        elif t.kind == NodeKind.ENUM:
            lines = [f"class {t.name}(str, enum.Enum):"]
            doc = _docstring(t.description, "    ")
            lines += doc + ([""] if doc else [])
            lines += [f"    {m.name} = {py_string(m.value)}" for m in t.members]
        elif t.kind == NodeKind.UNION:
            variants = ", ".join(_forward(v.expression) for v in t.variants)
            lines = _comment(t.description) + [f"{t.name} = Union[{variants}]"]
        elif t.kind == NodeKind.ARRAY:
            element = self.ds.type_of(t.element).expression
            lines = _comment(t.description) + [f"{t.name} = List[{_forward(element)}]"]
        else:
            lines = _comment(t.description) + [f"{t.name} = {t.definition}"]
        return Fragment(t.name, "\n".join(lines))

    # --- Codecs ---

    def codec_fragments(self, t: TypeDescriptor) -> list[Fragment]:
        codec = self.ds.codec_of(t.node_id)
        head = f"def {codec.decoder_name}(data: Any, path: str = \"\") -> {t.name}:"
        if t.kind == NodeKind.OBJECT:
            body = ["    obj = _expect_object(data, path)", f"    return {t.name}("]
            for f in t.fields:
                helper = "_required" if f.required else "_optional"
                nullable = ", nullable=True" if f.nullable else ""
                body.append(
                    f"        {f.name}={helper}(obj, {py_string(f.wire_name)}, path, "
                    f"{self.decoder(f.type_id)}{nullable}),"
                )
            body.append("    )")
        elif t.kind == NodeKind.ENUM:
            body = [f"    return _decode_enum({t.name}, data, path)"]
        elif t.kind == NodeKind.UNION and t.discriminator is not None:
            body = [f"    return _decode_tagged(data, path, {py_string(t.discriminator)}, {{"]
            body += [
                f"        {py_string(v.tag)}: ({py_string(v.constructor)}, {self.decoder(v.type_id)}),"
                for v in t.variants
            ]
            body.append("    })")
        elif t.kind == NodeKind.UNION:
            body = ["    return _decode_first(data, path, ["]
            body += [
                f"        ({py_string(v.constructor)}, {self.decoder(v.type_id)}),"
                for v in t.variants
            ]
            body.append("    ])")
        elif t.kind == NodeKind.ARRAY:
            body = [f"    return _decode_list({self.decoder(t.element)})(data, path)"]
        else:
            body = [f"    return {_DECODERS[t.primitive]}(data, path)"]
        decoder = "\n".join([head, *body])

        encoder_head = f"def {codec.encoder_name}(value: {t.name}) -> Any:"
        if t.kind == NodeKind.OBJECT and t.fields:
            encoder_body = ["    return _encode_fields(", "        ["]
            encoder_body += [
                f"            ({py_string(f.wire_name)}, value.{f.name})," for f in t.fields
            ]
            encoder_body += ["        ]", "    )"]
        elif t.kind == NodeKind.OBJECT:
            encoder_body = ["    return {}"]
        else:
            encoder_body = ["    return _encode_value(value)"]
        encoder = "\n".join([encoder_head, *encoder_body])
        return [Fragment(codec.decoder_name, decoder), Fragment(codec.encoder_name, encoder)]

    # --- Requests ---

    def param_annotation(self, p: ParameterDescriptor) -> str:
        if not p.required or p.nullable:
            return f"Optional[{p.expression}]"
        return p.expression

    def response_entry(self, response: ResponseDescriptor) -> str:
        decoder = self.decoder(response.type_id) if response.type_id else "None"
        return (
            f"({py_string(response.status)}, {py_string(response.constructor)}, {decoder}, "
            f"{response.is_success}, {response.nullable}),"
        )

    def path_expression(self, r: RequestDescriptor) -> str:
        by_wire = {p.wire_name: p for p in r.parameters_in(ParameterLocation.PATH)}
        parts = [
            f"_path_value({by_wire[s.parameter].name})" if s.is_parameter else py_string(s.text)
            for s in r.segments
        ]
        return " + ".join(parts) if parts else py_string("/")

    def body_arguments(self, r: RequestDescriptor) -> list[str]:
        body = r.body
        if body is None:
            return []
        value = "_encode_value(body)" if body.content_kind in (ContentKind.JSON, ContentKind.FORM) else "body"
        if not body.required:
            value = f"UNSET if body is None else {value}"
        return [
            f"body={value},",
            f"content_type={py_string(body.content_type)},",
            f"kind={py_string(body.content_kind.value)},",
        ]

    def request_fragment(self, r: RequestDescriptor) -> Fragment:
        required = [p for p in r.parameters if p.required]
        optional = [p for p in r.parameters if not p.required]

        signature = ["    config: Config,"]
        signature += [f"    {p.name}: {self.param_annotation(p)}," for p in required]
        if r.body is not None and r.body.required:
            annotation = f"Optional[{r.body.expression}]" if r.body.nullable else r.body.expression
            signature.append(f"    body: {annotation},")
        signature.append("    *,")
        signature += [f"    {p.name}: {self.param_annotation(p)} = None," for p in optional]
        if r.body is not None and not r.body.required:
            signature.append(f"    body: Optional[{r.body.expression}] = None,")
        signature.append("    headers: Optional[Dict[str, str]] = None,")

        returns = r.success_type or "None"
        if r.success_union is None and r.success_type and any(s.nullable for s in r.success_responses):
            returns = f"Optional[{returns}]"

        doc_parts = [part for part in (r.summary, r.description) if part]
        doc_parts.append(f"``{r.method.value.upper()} {r.path}``")
        if r.deprecated:
            doc_parts.append("Deprecated.")
        raises = ["Raises:"]
        if r.error_responses:
            statuses = ", ".join(resp.status for resp in r.error_responses)
            raises.append(f"    {r.error_type}: On a declared error response ({statuses}).")
        raises.append("    ClientError: On a network failure, an undeclared status or an")
        raises.append("        undecodable body.")
        doc_parts.append("\n".join(raises))

        query = [
            f"({py_string(p.wire_name)}, {p.name})" for p in r.parameters_in(ParameterLocation.QUERY)
        ]
        header_values = [
            f"({py_string(p.wire_name)}, {p.name})" for p in r.parameters_in(ParameterLocation.HEADER)
        ]
        error_type = r.error_type if r.error_responses else "ApiError"

        lines = [f"def {r.function_name}(", *signature, f") -> {returns}:"]
        lines += _docstring("\n\n".join(doc_parts), "    ")
        lines += [
            "    return _resolve(",
            "        _send(",
            "            config,",
            f"            {py_string(r.method.value.upper())},",
            f"            {self.path_expression(r)},",
            f"            _query([{', '.join(query)}]),",
            f"            _headers(config, [{', '.join(header_values)}], headers),",
        ]
        lines += [f"            {argument}" for argument in self.body_arguments(r)]
        lines += ["        ),", "        ["]
        lines += [f"            {self.response_entry(resp)}" for resp in r.responses]
        lines += ["        ],", f"        {error_type},", "    )"]
        return Fragment(r.function_name, "\n".join(lines))


# ---------------------------------------------------------------------------
# Fixed Python text
# ---------------------------------------------------------------------------

_UNSET = '''\
class _Unset:
    """Marker for an optional field that is absent on the wire."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()'''

_CONFIG = '''\
@dataclass
class Config:
    """Connection settings passed to every request function.

    A bearer token takes precedence over basic auth. ``timeout`` is in
    seconds; ``None`` disables it.
    """

    base_url: str = {base_url}
    api_key: Optional[str] = None
    api_key_header: str = {api_key_header}
    bearer_token: Optional[str] = None
    basic_auth: Optional[Tuple[str, str]] = None
    extra_headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None'''

_ERRORS = (
    Fragment(
        "DecodeError",
        '''\
class DecodeError(ValueError):
    """A JSON value does not match the expected shape."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path or '<root>'}: {reason}")
        self.path = path
        self.reason = reason''',
    ),
    Fragment(
        "ClientError",
        '''\
class ClientError(Exception):
    """A request failed without producing a declared response.

    ``kind`` is ``network``, ``unexpected_status`` or ``decode``.
    """

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code''',
    ),
    Fragment(
        "ApiError",
        '''\
class ApiError(Exception):
    """A declared error response. ``body`` holds the decoded payload."""

    def __init__(self, status_code: int, response: str, body: Any = None) -> None:
        super().__init__(f"{response} (HTTP {status_code})")
        self.status_code = status_code
        self.response = response
        self.body = body''',
    ),
)

_CODEC_HELPERS = '''\
def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _mismatch(path: str, expected: str, value: Any) -> DecodeError:
    return DecodeError(path, f"expected {expected}, got {_json_type(value)}")


def _decode_any(value: Any, path: str) -> Any:
    return value


def _decode_str(value: Any, path: str) -> str:
    if isinstance(value, str):
        return value
    raise _mismatch(path, "string", value)


def _decode_int(value: Any, path: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise _mismatch(path, "integer", value)


def _decode_float(value: Any, path: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    raise _mismatch(path, "number", value)


def _decode_bool(value: Any, path: str) -> bool:
    if isinstance(value, bool):
        return value
    raise _mismatch(path, "boolean", value)


def _decode_list(decoder: Callable[[Any, str], Any]) -> Callable[[Any, str], List[Any]]:
    def decode(value: Any, path: str) -> List[Any]:
        if not isinstance(value, list):
            raise _mismatch(path, "array", value)
        return [decoder(item, f"{path}[{i}]") for i, item in enumerate(value)]

    return decode


def _decode_enum(cls: Any, value: Any, path: str) -> Any:
    if not isinstance(value, str):
        raise _mismatch(path, "string", value)
    try:
        return cls(value)
    except ValueError:
        expected = ", ".join(member.value for member in cls)
        raise DecodeError(path, f"invalid enum value {value!r}, expected one of {expected}") from None


def _expect_object(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise _mismatch(path, "object", value)
    return value


def _present_value(value: Any, path: str, decoder: Callable[[Any, str], Any], nullable: bool) -> Any:
    if value is None:
        if nullable:
            return None
        raise DecodeError(path, "null is not allowed")
    return decoder(value, path)


def _required(
    obj: Dict[str, Any], key: str, path: str, decoder: Callable[[Any, str], Any], nullable: bool = False
) -> Any:
    if key not in obj:
        raise DecodeError(f"{path}.{key}", "missing required field")
    return _present_value(obj[key], f"{path}.{key}", decoder, nullable)


def _optional(
    obj: Dict[str, Any], key: str, path: str, decoder: Callable[[Any, str], Any], nullable: bool = False
) -> Any:
    if key not in obj:
        return UNSET
    return _present_value(obj[key], f"{path}.{key}", decoder, nullable)


def _decode_tagged(
    value: Any, path: str, discriminator: str, variants: Dict[str, Tuple[str, Callable[[Any, str], Any]]]
) -> Any:
    obj = _expect_object(value, path)
    tag = obj.get(discriminator)
    if not isinstance(tag, str) or tag not in variants:
        known = ", ".join(f"{name} ({key!r})" for key, (name, _) in variants.items())
        raise DecodeError(
            f"{path}.{discriminator}", f"unknown discriminator value {tag!r}; variants: {known}"
        )
    return variants[tag][1](obj, path)


def _decode_first(value: Any, path: str, variants: List[Tuple[str, Callable[[Any, str], Any]]]) -> Any:
    failures = []
    for name, decoder in variants:
        try:
            return decoder(value, path)
        except DecodeError as exc:
            failures.append(f"{name}: {exc}")
    raise DecodeError(path, "no union variant matched (" + "; ".join(failures) + ")")


def _encode_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    encoder = _ENCODERS.get(type(value))
    if encoder is not None:
        return encoder(value)
    if isinstance(value, (list, tuple)):
        return [_encode_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _encode_value(item) for key, item in value.items()}
    return value


def _encode_fields(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    return {key: _encode_value(item) for key, item in pairs if item is not UNSET}'''

_REQUEST_HELPERS = '''\
_Response = Tuple[str, str, Optional[Callable[[Any, str], Any]], bool, bool]


def _present(value: Any) -> bool:
    return value is not None and value is not UNSET


def _stringify(value: Any) -> str:
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    if isinstance(value, (str, int, float)):
        return str(value)
    return json.dumps(_encode_value(value), separators=(",", ":"))


def _path_value(value: Any) -> str:
    if not _present(value):
        raise ValueError("Missing value for path parameter")
    return quote(_stringify(value), safe="")


def _query(values: List[Tuple[str, Any]]) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for name, value in values:
        if not _present(value):
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((name, _stringify(item)) for item in value)
        else:
            pairs.append((name, _stringify(value)))
    return pairs


def _headers(
    config: Config, values: List[Tuple[str, Any]], overrides: Optional[Dict[str, str]]
) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if config.api_key:
        headers[config.api_key_header] = config.api_key
    if config.bearer_token:
        headers["Authorization"] = f"Bearer {config.bearer_token}"
    elif config.basic_auth:
        username, password = config.basic_auth
        token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        headers["Authorization"] = f"Basic {token}"
    headers.update(config.extra_headers)
    for name, value in values:
        if _present(value):
            headers[name] = _stringify(value)
    headers.update(overrides or {})
    return headers


def _form_value(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _send(
    config: Config,
    method: str,
    path: str,
    query: List[Tuple[str, str]],
    headers: Dict[str, str],
    body: Any = UNSET,
    content_type: str = "application/json",
    kind: str = "json",
) -> httpx.Response:
    request_headers = {"Accept": "application/json", **headers}
    options: Dict[str, Any] = {}
    if body is not UNSET:
        if kind == "form" and content_type.startswith("multipart/"):
            options["files"] = {key: (None, _form_value(item)) for key, item in body.items()}
        elif kind == "form":
            options["data"] = {key: _form_value(item) for key, item in body.items()}
        else:
            if kind == "json":
                options["content"] = json.dumps(body).encode("utf-8")
            elif isinstance(body, bytes):
                options["content"] = body
            else:
                options["content"] = _stringify(body).encode("utf-8")
            request_headers.setdefault("Content-Type", content_type)
    try:
        with httpx.Client(
            base_url=config.base_url, timeout=config.timeout, follow_redirects=True
        ) as client:
            return client.request(method, path, params=query, headers=request_headers, **options)
    except httpx.HTTPError as exc:
        raise ClientError("network", f"{method} {path}: {exc}") from exc


def _select(status: int, responses: List[_Response]) -> Optional[_Response]:
    for response in responses:
        if response[0] == str(status):
            return response
    for response in responses:
        if response[0].endswith("XX") and response[0][0] == str(status // 100):
            return response
    for response in responses:
        if response[0] == "default":
            return response
    return None


def _resolve(response: httpx.Response, responses: List[_Response], error_type: Any) -> Any:
    status = response.status_code
    match = _select(status, responses)
    if match is None:
        raise ClientError("unexpected_status", f"unexpected status {status}", status)
    _, name, decoder, is_success, nullable = match
    payload = None
    if decoder is not None:
        try:
            data = response.json() if response.content else None
            if data is not None or not nullable:
                payload = decoder(data, "")
        except ValueError as exc:
            raise ClientError("decode", f"cannot decode {status} response: {exc}", status) from exc
    if not is_success:
        raise error_type(status, name, payload)
    return payload'''


class PythonBackend(LanguageBackend):
    """Generates a typed Python client module built on ``httpx``."""

    import_rules = PYTHON_IMPORTS

    @property
    def name(self) -> str:
        return "python"

    @property
    def file_extension(self) -> str:
        return "py"

    @property
    def naming_rules(self) -> NamingRules:
        return PYTHON_NAMING

    @property
    def type_syntax(self) -> TypeSyntax:
        return PYTHON_SYNTAX

    @property
    def default_template(self) -> str:
        return load_default_template("python.j2")

    def _prefix_parts(self, prefix: str) -> list[str]:
        parts = [p for p in prefix.split(".") if p] or [self.default_module_prefix]
        return [convert_case(split_words(p) or ["api"], "snake") for p in parts]

    def module_name(self, prefix: str) -> str:
        return ".".join(self._prefix_parts(prefix) + ["schemas"])

    def output_path(self, base: Path, prefix: str) -> Path:
        return Path(base).joinpath(*self._prefix_parts(prefix), "schemas.py")

    def escape_doc(self, text: str) -> str:
        return _escape_docstring(text)

    # --- Fragments ---

    def generate_types(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        code = _PythonCode(descriptors)
        module = descriptors.module
        config = _CONFIG.format(
            base_url=py_string(module.default_base_url),
            api_key_header=py_string(module.api_key_header),
        )
        fragments = [Fragment("UNSET", _UNSET), Fragment("Config", config)]
        fragments.extend(code.type_fragment(t) for t in descriptors.declared)
        return tuple(fragments)

    def generate_codecs(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        code = _PythonCode(descriptors)
        fragments = [Fragment("helpers", _CODEC_HELPERS)]
        for t in descriptors.declared:
            fragments.extend(code.codec_fragments(t))

        records = [
            (t.name, descriptors.codec_of(t.node_id).encoder_name)
            for t in descriptors.declared
            if t.kind == NodeKind.OBJECT
        ]
        lines = ["_ENCODERS: Dict[Any, Callable[[Any], Any]] = {"]
        lines += [f"    {name}: {encoder}," for name, encoder in records]
        lines.append("}")
        fragments.append(Fragment("_ENCODERS", "\n".join(lines)))
        return tuple(fragments)

    def generate_requests(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        code = _PythonCode(descriptors)
        fragments = [Fragment("helpers", _REQUEST_HELPERS)]
        fragments.extend(code.request_fragment(r) for r in descriptors.requests)

        exported = ["UNSET", "Config", "DecodeError", "ClientError", "ApiError"]
        for t in descriptors.declared:
            codec = descriptors.codec_of(t.node_id)
            exported += [t.name, codec.decoder_name, codec.encoder_name]
        for r in descriptors.requests:
            if r.success_union:
                exported.append(r.success_union)
            if r.error_responses:
                exported.append(r.error_type)
            exported.append(r.function_name)
        lines = ["__all__ = ["] + [f"    {py_string(name)}," for name in exported] + ["]"]
        fragments.append(Fragment("__all__", "\n".join(lines)))
        return tuple(fragments)

    def generate_error_types(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        fragments = list(_ERRORS)
        for r in descriptors.requests:
            if r.success_union:
                members = []
                for response in r.success_responses:
                    member = "None" if response.expression is None else _forward(response.expression)
                    if member not in members:
                        members.append(member)
                fragments.append(
                    Fragment(r.success_union, f"{r.success_union} = Union[{', '.join(members)}]")
                )
            if r.error_responses:
                statuses = ", ".join(resp.status for resp in r.error_responses)
                text = "\n".join(
                    [
                        f"class {r.error_type}(ApiError):",
                        f'    """Declared error responses of ``{r.function_name}``: {statuses}."""',
                    ]
                )
                fragments.append(Fragment(r.error_type, text))
        return tuple(fragments)

    # --- Output ---

    def validate_output(self, text: str) -> None:
        try:
            tree = ast.parse(text)
        except SyntaxError as exc:
            raise OutputValidationError(self.name, f"not valid Python: {exc.msg} (line {exc.lineno})") from exc
        defined = Counter(
            node.name for node in tree.body if isinstance(node, (ast.FunctionDef, ast.ClassDef))
        )
        duplicates = sorted(name for name, count in defined.items() if count > 1)
        if duplicates:
            raise OutputValidationError(self.name, f"duplicate definition(s): {', '.join(duplicates)}")
        for node in tree.body:
            if isinstance(node, ast.Assign) and any(
                isinstance(target, ast.Name) and target.id == "__all__" for target in node.targets
            ):
                return
        raise OutputValidationError(self.name, "missing top-level __all__")
