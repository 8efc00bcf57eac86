"""Elm backend: one ``<Prefix>.Schemas`` module per API.

Generated code targets Elm 0.19 with ``elm/http`` 2.x, ``elm/json`` and
``elm/url``.

**Conventions:**

* Objects become record type aliases. A record (or list) that a reference
  cycle points back to becomes a single-constructor custom type instead,
  because Elm rejects recursive type aliases.
* Enums and unions become custom types whose constructors carry the type
  name (``StatusActive``, ``PetCat``).
* Decoders use the ``Decode.succeed Ctor |> andMap ...`` pipeline and go
  through ``Decode.lazy`` at every back-reference.
* Each operation becomes a function returning
  ``Task (ClientError e) a`` built with ``Http.task``.

Local names inside generated bodies end with ``_``. Names derived from the
document only do so when escaping a reserved word, so locals never shadow
a top-level value.
"""

from __future__ import annotations

import re
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

ELM_RESERVED = frozenset(
    {
        "if", "then", "else", "case", "of", "let", "in", "type", "module", "where",
        "import", "exposing", "as", "port", "alias", "infix", "effect", "command",
        "subscription",
    }
)

ELM_FORMATS = {
    "date-time": "DateTime",
    "date": "Date",
    "time": "Time",
    "uuid": "Uuid",
    "uri": "Uri",
    "uri-reference": "UriReference",
    "email": "Email",
    "hostname": "Hostname",
    "ipv4": "IPv4",
    "ipv6": "IPv6",
    "byte": "Base64String",
    "binary": "BinaryString",
    "password": "Password",
}

# Types and constructors the module itself declares or imports unqualified.
_BUILTIN_TYPES = (
    "Config", "ClientError", "BadUrl", "Timeout", "NetworkError", "UnexpectedStatus",
    "DecodeFailure", "ApiError", "Int", "Float", "Bool", "String", "Char", "List",
    "Maybe", "Just", "Nothing", "Result", "Ok", "Err", "Never", "Order", "LT", "EQ",
    "GT", "Task", "Cmd", "Sub", "Program", "Decode", "Encode", "Http", "Url",
)

# Top-level helpers, request arguments and prelude functions.
_BUILTIN_VALUES = (
    "defaultConfig", "andMap", "optionalField", "encodeNullable", "buildHeaders",
    "decodeBody", "resolveWith", "boolToString", "formBody", "formValue", "config",
    "params", "body", "identity", "always", "never", "not", "min", "max", "compare",
)

ELM_NAMING = NamingRules(
    type_case="pascal",
    value_case="camel",
    member_case="pascal",
    reserved=ELM_RESERVED,
    builtin_names=frozenset(_BUILTIN_TYPES + _BUILTIN_VALUES + tuple(ELM_FORMATS.values())),
    qualified_members=True,
)

ELM_SYNTAX = TypeSyntax(
    primitives={
        PrimitiveKind.STRING: "String",
        PrimitiveKind.INTEGER: "Int",
        PrimitiveKind.NUMBER: "Float",
        PrimitiveKind.BOOLEAN: "Bool",
        PrimitiveKind.ANY: "Decode.Value",
    },
    formats=ELM_FORMATS,
    list_template="List {}",
    optional_template="Maybe {}",
    parenthesize=True,
)

_DECODERS = {
    PrimitiveKind.STRING: "Decode.string",
    PrimitiveKind.INTEGER: "Decode.int",
    PrimitiveKind.NUMBER: "Decode.float",
    PrimitiveKind.BOOLEAN: "Decode.bool",
    PrimitiveKind.ANY: "Decode.value",
}

_ENCODERS = {
    PrimitiveKind.STRING: "Encode.string",
    PrimitiveKind.INTEGER: "Encode.int",
    PrimitiveKind.NUMBER: "Encode.float",
    PrimitiveKind.BOOLEAN: "Encode.bool",
    PrimitiveKind.ANY: "identity",
}

# ``None`` means the value already is a String.
_TO_STRING: dict[PrimitiveKind, Optional[str]] = {
    PrimitiveKind.STRING: None,
    PrimitiveKind.INTEGER: "String.fromInt",
    PrimitiveKind.NUMBER: "String.fromFloat",
    PrimitiveKind.BOOLEAN: "boolToString",
    PrimitiveKind.ANY: "(Encode.encode 0)",
}

_MODULE_HEADER = re.compile(r"^module\s+[A-Z][\w.]*\s+exposing\s*\(", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"\{-.*?-\}", re.DOTALL)
_ANNOTATION = re.compile(r"^([a-z]\w*) :", re.MULTILINE)

ELM_IMPORTS = (
    ImportRule("import Http", re.compile(r"\bHttp\.")),
    ImportRule("import Json.Decode as Decode", re.compile(r"\bDecode\.")),
    ImportRule("import Json.Encode as Encode", re.compile(r"\bEncode\.")),
    ImportRule("import Task exposing (Task)", re.compile(r"\bTask\b")),
    # Bare Url only for percentEncode; Url.Builder is its own module.
    ImportRule("import Url", re.compile(r"\bUrl\.(?!Builder\.)")),
    ImportRule("import Url.Builder", re.compile(r"\bUrl\.Builder\.")),
)


def elm_string(text: str) -> str:
    """Render *text* as an Elm string literal."""
    out = []
    for ch in text:
        if ch == "\\":
            out.append("\\\\")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ord(ch) < 0x20 or ch == "\x7f":
            out.append(f"\\u{{{ord(ch):04X}}}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def _escape_comment(text: str) -> str:
    for marker, safe in (("{-", "{ -"), ("-}", "- }"), ("{{", "{ {"), ("{%", "{ %")):
        text = text.replace(marker, safe)
    return text


def _doc(text: Optional[str]) -> list[str]:
    if not text or not text.strip():
        return []
    return [f"{{-| {_escape_comment(text.strip())}", "-}"]


def _wrapped(t: TypeDescriptor) -> bool:
    """Whether *t* is declared as a custom type wrapping its record or list."""
    return t.recursive and t.kind in (NodeKind.OBJECT, NodeKind.ARRAY)


class _ElmCode:
    """Expression builders over one descriptor set."""

    def __init__(self, descriptors: DescriptorSet):
        self.ds = descriptors
        self.module = descriptors.module
        self.syntax = ELM_SYNTAX
        self.helpers: set[str] = set()
        self.to_string_names: dict[str, str] = {}
        for t in descriptors.declared:
            if t.kind == NodeKind.ENUM:
                self.to_string_names[t.node_id] = descriptors.policy.function_name(
                    f"tostring:{t.node_id}", f"{t.name} to string"
                )

    def arg(self, expression: str) -> str:
        return self.syntax.argument(expression)

    def apply(self, function: Optional[str], value: str) -> str:
        return value if function is None else f"{function} {self.arg(value)}"

    # --- Type expressions ---

    def field_type(self, f: FieldDescriptor) -> str:
        expression = f.expression
        if f.nullable:
            expression = self.syntax.optional(expression)
        if not f.required:
            expression = self.syntax.optional(expression)
        return expression

    def param_is_maybe(self, p: ParameterDescriptor) -> bool:
        return not p.required or p.nullable

    def record_lines(self, fields: tuple[FieldDescriptor, ...], indent: str) -> list[str]:
        if not fields:
            return [f"{indent}{{}}"]
        lines = [
            f"{indent}{'{' if i == 0 else ','} {f.name} : {self.field_type(f)}"
            for i, f in enumerate(fields)
        ]
        lines.append(f"{indent}}}")
        return lines

    # --- Codec expressions ---

    def decoder(self, ref: str) -> str:
        node = self.module.node(ref)
        if node.kind == NodeKind.REFERENCE:
            target = self.ds.codec_of(self.module.deref(ref).id)
            return f"(Decode.lazy (\\_ -> {target.decoder_name}))"
        codec = self.ds.codec_of(ref)
        if codec.decoder_name:
            return codec.decoder_name
        t = self.ds.type_of(ref)
        if t.kind == NodeKind.ARRAY:
            return f"(Decode.list {self.arg(self.decoder(t.element))})"
        if t.kind == NodeKind.PRIMITIVE:
            return _DECODERS[t.primitive]
        raise BackendError(f"Node '{ref}' is neither declared nor inline")

    def encoder(self, ref: str) -> str:
        node = self.module.node(ref)
        if node.kind == NodeKind.REFERENCE:
            return self.ds.codec_of(self.module.deref(ref).id).encoder_name
        codec = self.ds.codec_of(ref)
        if codec.encoder_name:
            return codec.encoder_name
        t = self.ds.type_of(ref)
        if t.kind == NodeKind.ARRAY:
            return f"(Encode.list {self.arg(self.encoder(t.element))})"
        if t.kind == NodeKind.PRIMITIVE:
            return _ENCODERS[t.primitive]
        raise BackendError(f"Node '{ref}' is neither declared nor inline")

    def to_string(self, ref: str) -> Optional[str]:
        """Function rendering a value of node *ref* as a URL or header string."""
        t = self.ds.resolved(ref)
        if t.kind == NodeKind.ENUM:
            return self.to_string_names[t.node_id]
        if t.kind == NodeKind.PRIMITIVE:
            if t.primitive == PrimitiveKind.BOOLEAN:
                self.helpers.add("boolToString")
            return _TO_STRING[t.primitive]
        if t.kind == NodeKind.ARRAY and not _wrapped(t):
            element = self.to_string(t.element)
            if element is None:
                return '(String.join ",")'
            return f'(String.join "," << List.map {element})'
        return f"(Encode.encode 0 << {self.encoder(t.node_id)})"

    # --- Declarations ---

    def type_fragment(self, t: TypeDescriptor) -> Fragment:
        lines = _doc(t.description)
        if t.kind == NodeKind.OBJECT and _wrapped(t):
            lines += [f"type {t.name}", f"    = {t.name}"]
            lines += self.record_lines(t.fields, "        ")
        elif t.kind == NodeKind.OBJECT:
            lines.append(f"type alias {t.name} =")
            lines += self.record_lines(t.fields, "    ")
        elif t.kind == NodeKind.ENUM:
            lines.append(f"type {t.name}")
            lines += [f"    {'=' if i == 0 else '|'} {m.name}" for i, m in enumerate(t.members)]
        elif t.kind == NodeKind.UNION:
            lines.append(f"type {t.name}")
            lines += [
                f"    {'=' if i == 0 else '|'} {v.constructor} {self.arg(v.expression)}"
                for i, v in enumerate(t.variants)
            ]
        elif _wrapped(t):
            lines += [f"type {t.name}", f"    = {t.name} {self.arg(t.definition)}"]
        else:
            lines += [f"type alias {t.name} =", f"    {t.definition}"]
        return Fragment(t.name, "\n".join(lines))

    def codec_fragments(self, t: TypeDescriptor) -> list[Fragment]:
        codec = self.ds.codec_of(t.node_id)
        if t.kind == NodeKind.OBJECT:
            decoder, encoder = self.object_decoder(t), self.object_encoder(t)
        elif t.kind == NodeKind.ENUM:
            return self.enum_codecs(t)
        elif t.kind == NodeKind.UNION:
            decoder, encoder = self.union_decoder(t), self.union_encoder(t)
        else:
            decoder, encoder = self.alias_decoder(t), self.alias_encoder(t)
        return [Fragment(codec.decoder_name, decoder), Fragment(codec.encoder_name, encoder)]

    def field_decoder(self, f: FieldDescriptor) -> str:
        decoder = self.decoder(f.type_id)
        if f.nullable:
            decoder = f"(Decode.nullable {self.arg(decoder)})"
        accessor = "Decode.field" if f.required else "optionalField"
        return f"{accessor} {elm_string(f.wire_name)} {self.arg(decoder)}"

    def object_decoder(self, t: TypeDescriptor) -> str:
        name = self.ds.codec_of(t.node_id).decoder_name
        if _wrapped(t):
            if t.fields:
                args = " ".join(f"v{i + 1}_" for i in range(len(t.fields)))
                assigns = ", ".join(f"{f.name} = v{i + 1}_" for i, f in enumerate(t.fields))
                constructor = f"(\\{args} -> {t.name} {{ {assigns} }})"
            else:
                constructor = f"({t.name} {{}})"
        else:
            constructor = t.name if t.fields else "{}"
        lines = [
            f"{name} : Decode.Decoder {t.name}",
            f"{name} =",
            f"    Decode.succeed {constructor}",
        ]
        lines += [f"        |> andMap {self.arg(self.field_decoder(f))}" for f in t.fields]
        return "\n".join(lines)

    def field_pair(self, f: FieldDescriptor, value: str) -> str:
        encoder = self.encoder(f.type_id)
        if f.nullable:
            encoder = f"(encodeNullable {self.arg(encoder)})"
        return f"( {elm_string(f.wire_name)}, {self.apply(encoder, value)} )"

    def object_encoder(self, t: TypeDescriptor) -> str:
        name = self.ds.codec_of(t.node_id).encoder_name
        head = f"{name} ({t.name} value_) =" if _wrapped(t) else f"{name} value_ ="
        lines = [f"{name} : {t.name} -> Encode.Value", head]
        if not t.fields:
            lines.append("    Encode.object []")
        elif all(f.required for f in t.fields):
            lines.append("    Encode.object")
            lines += [
                f"        {'[' if i == 0 else ','} {self.field_pair(f, f'value_.{f.name}')}"
                for i, f in enumerate(t.fields)
            ]
            lines.append("        ]")
        else:
            lines += ["    Encode.object", "        (List.filterMap identity"]
            for i, f in enumerate(t.fields):
                if f.required:
                    entry = f"Just {self.field_pair(f, f'value_.{f.name}')}"
                else:
                    entry = f"Maybe.map (\\v_ -> {self.field_pair(f, 'v_')}) value_.{f.name}"
                lines.append(f"            {'[' if i == 0 else ','} {entry}")
            lines += ["            ]", "        )"]
        return "\n".join(lines)

    def enum_codecs(self, t: TypeDescriptor) -> list[Fragment]:
        codec = self.ds.codec_of(t.node_id)
        to_string = self.to_string_names[t.node_id]
        expected = ", ".join(m.value for m in t.members)

        lines = [f"{to_string} : {t.name} -> String", f"{to_string} value_ =", "    case value_ of"]
        for i, m in enumerate(t.members):
            if i:
                lines.append("")
            lines += [f"        {m.name} ->", f"            {elm_string(m.value)}"]
        to_string_text = "\n".join(lines)

        lines = [
            f"{codec.decoder_name} : Decode.Decoder {t.name}",
            f"{codec.decoder_name} =",
            "    Decode.string",
            "        |> Decode.andThen",
            "            (\\value_ ->",
            "                case value_ of",
        ]
        for m in t.members:
            lines += [
                f"                    {elm_string(m.value)} ->",
                f"                        Decode.succeed {m.name}",
                "",
            ]
        message = elm_string(f", expected one of {expected}")
        lines += [
            "                    _ ->",
            f'                        Decode.fail ("invalid enum value " ++ value_ ++ {message})',
            "            )",
        ]
        decoder_text = "\n".join(lines)

        encoder_text = "\n".join(
            [
                f"{codec.encoder_name} : {t.name} -> Encode.Value",
                f"{codec.encoder_name} =",
                f"    Encode.string << {to_string}",
            ]
        )
        return [
            Fragment(to_string, to_string_text),
            Fragment(codec.decoder_name, decoder_text),
            Fragment(codec.encoder_name, encoder_text),
        ]

    def union_decoder(self, t: TypeDescriptor) -> str:
        name = self.ds.codec_of(t.node_id).decoder_name
        lines = [f"{name} : Decode.Decoder {t.name}", f"{name} ="]
        if t.discriminator is None:
            lines.append("    Decode.oneOf")
            lines += [
                f"        {'[' if i == 0 else ','} Decode.map {v.constructor} {self.arg(self.decoder(v.type_id))}"
                for i, v in enumerate(t.variants)
            ]
            lines.append("        ]")
            return "\n".join(lines)

        lines += [
            f"    Decode.field {elm_string(t.discriminator)} Decode.string",
            "        |> Decode.andThen",
            "            (\\tag_ ->",
            "                case tag_ of",
        ]
        for v in t.variants:
            lines += [
                f"                    {elm_string(v.tag)} ->",
                f"                        Decode.map {v.constructor} {self.arg(self.decoder(v.type_id))}",
                "",
            ]
        known = ", ".join(f"{v.constructor} ('{v.tag}')" for v in t.variants)
        prefix = elm_string("unknown discriminator value ")
        suffix = elm_string(f"; variants: {known}")
        lines += [
            "                    _ ->",
            f"                        Decode.fail ({prefix} ++ tag_ ++ {suffix})",
            "            )",
        ]
        return "\n".join(lines)

    def union_encoder(self, t: TypeDescriptor) -> str:
        name = self.ds.codec_of(t.node_id).encoder_name
        lines = [f"{name} : {t.name} -> Encode.Value", f"{name} value_ =", "    case value_ of"]
        for i, v in enumerate(t.variants):
            if i:
                lines.append("")
            lines += [
                f"        {v.constructor} inner_ ->",
                f"            {self.apply(self.encoder(v.type_id), 'inner_')}",
            ]
        return "\n".join(lines)

    def alias_decoder(self, t: TypeDescriptor) -> str:
        name = self.ds.codec_of(t.node_id).decoder_name
        if t.kind == NodeKind.ARRAY:
            body = f"Decode.list {self.arg(self.decoder(t.element))}"
            if _wrapped(t):
                body = f"Decode.map {t.name} ({body})"
        else:
            body = _DECODERS[t.primitive]
        return "\n".join([f"{name} : Decode.Decoder {t.name}", f"{name} =", f"    {body}"])

    def alias_encoder(self, t: TypeDescriptor) -> str:
        name = self.ds.codec_of(t.node_id).encoder_name
        lines = [f"{name} : {t.name} -> Encode.Value"]
        if _wrapped(t):
            lines += [
                f"{name} ({t.name} items_) =",
                f"    Encode.list {self.arg(self.encoder(t.element))} items_",
            ]
        elif t.kind == NodeKind.ARRAY:
            lines += [f"{name} =", f"    Encode.list {self.arg(self.encoder(t.element))}"]
        else:
            lines += [f"{name} =", f"    {_ENCODERS[t.primitive]}"]
        return "\n".join(lines)

    # --- Requests ---

    def success_type(self, r: RequestDescriptor) -> str:
        if r.success_union:
            return r.success_union
        if r.success_type is None:
            return "()"
        if any(resp.nullable for resp in r.success_responses):
            return self.syntax.optional(r.success_type)
        return r.success_type

    def response_payload(self, response: ResponseDescriptor) -> str:
        expression = response.expression
        return self.syntax.optional(expression) if response.nullable else expression

    def response_decoder(self, response: ResponseDescriptor, nullable: bool) -> str:
        decoder = self.decoder(response.type_id)
        if nullable:
            decoder = f"(Decode.nullable {self.arg(decoder)})"
        return decoder

    def response_branch(self, r: RequestDescriptor, response: ResponseDescriptor) -> str:
        if response.is_success:
            if r.success_union:
                if response.type_id is None:
                    return f"Ok {response.constructor}"
                decoder = self.response_decoder(response, response.nullable)
                return f"Result.map {response.constructor} (decodeBody {decoder} body_)"
            if response.type_id is None:
                return "Ok ()"
            nullable = any(resp.nullable for resp in r.success_responses)
            return f"decodeBody {self.response_decoder(response, nullable)} body_"
        if response.type_id is None:
            return f"Err (ApiError {response.constructor})"
        decoder = self.response_decoder(response, response.nullable)
        return (
            f"Result.andThen (Err << ApiError << {response.constructor}) "
            f"(decodeBody {decoder} body_)"
        )

    def resolver_lines(self, r: RequestDescriptor, indent: str) -> list[str]:
        branches = []
        fallback = "Err (UnexpectedStatus status_ body_)"
        for response in r.responses:
            if response.is_exact:
                branches.append((f"status_ == {response.status}", self.response_branch(r, response)))
            elif response.status_class is not None:
                branches.append(
                    (f"status_ // 100 == {response.status_class}", self.response_branch(r, response))
                )
            else:
                fallback = self.response_branch(r, response)

        inner = indent + "    "
        lines = [f"{indent}(\\status_ body_ ->"]
        if not branches:
            lines.append(f"{inner}{fallback}")
        for i, (condition, branch) in enumerate(branches):
            keyword = "if" if i == 0 else "else if"
            if i:
                lines.append("")
            lines += [f"{inner}{keyword} {condition} then", f"{inner}    {branch}"]
        if branches:
            lines += ["", f"{inner}else", f"{inner}    {fallback}"]
        lines.append(f"{indent})")
        return lines

    def path_segments(self, r: RequestDescriptor) -> str:
        by_wire = {p.wire_name: p for p in r.parameters_in(ParameterLocation.PATH)}
        groups: list[list[str]] = [[]]
        for segment in r.segments:
            if segment.is_parameter:
                groups[-1].append(self.path_value(by_wire[segment.parameter]))
                continue
            for i, piece in enumerate(segment.text.split("/")):
                if i:
                    groups.append([])
                if piece:
                    groups[-1].append(elm_string(piece))
        rendered = [" ++ ".join(g) for g in groups if g]
        return f"[ {', '.join(rendered)} ]" if rendered else "[]"

    def path_value(self, p: ParameterDescriptor) -> str:
        access = f"params.{p.name}"
        function = self.to_string(p.type_id)
        if self.param_is_maybe(p):
            mapped = f"Maybe.map {function} {access}" if function else access
            value = f'Maybe.withDefault "" ({mapped})' if function else f'Maybe.withDefault "" {access}'
        else:
            value = self.apply(function, access)
        return f"Url.percentEncode {self.arg(value)}"

    def query_item(self, p: ParameterDescriptor) -> str:
        access = f"params.{p.name}"
        maybe = self.param_is_maybe(p)
        value = "value_" if maybe else access
        key = elm_string(p.wire_name)
        t = self.ds.resolved(p.type_id)
        if t.kind == NodeKind.ARRAY and not _wrapped(t):
            item = self.apply(self.to_string(t.element), "v_")
            expression = f"List.map (\\v_ -> Url.Builder.string {key} {self.arg(item)}) {value}"
        else:
            item = self.apply(self.to_string(p.type_id), value)
            expression = f"[ Url.Builder.string {key} {self.arg(item)} ]"
        if maybe:
            return f"Maybe.withDefault [] (Maybe.map (\\value_ -> {expression}) {access})"
        return expression

    def header_item(self, p: ParameterDescriptor) -> str:
        access = f"params.{p.name}"
        function = self.to_string(p.type_id)
        if self.param_is_maybe(p):
            value = f"Maybe.map {function} {access}" if function else access
        else:
            value = f"Just {self.arg(self.apply(function, access))}"
        return f"( {elm_string(p.wire_name)}, {value} )"

    def body_type(self, r: RequestDescriptor) -> str:
        body = r.body
        if not body.required or body.nullable:
            return self.syntax.optional(body.expression)
        return body.expression

    def body_value(self, r: RequestDescriptor, value: str) -> str:
        body = r.body
        content_type = elm_string(body.content_type)
        if body.content_kind == ContentKind.JSON:
            return f"Http.jsonBody ({self.apply(self.encoder(body.type_id), value)})"
        if body.content_kind == ContentKind.FORM:
            self.helpers.add("formBody")
            return f"formBody {content_type} ({self.apply(self.encoder(body.type_id), value)})"
        return f"Http.stringBody {content_type} {self.arg(self.apply(self.to_string(body.type_id), value))}"

    def body_expression(self, r: RequestDescriptor) -> str:
        body = r.body
        if body is None:
            return "Http.emptyBody"
        if body.required and body.nullable and body.content_kind == ContentKind.JSON:
            encoder = self.encoder(body.type_id)
            return f"Http.jsonBody (encodeNullable {self.arg(encoder)} body)"
        if not body.required or body.nullable:
            present = self.body_value(r, "body_")
            return f"Maybe.withDefault Http.emptyBody (Maybe.map (\\body_ -> {present}) body)"
        return self.body_value(r, "body")

    def params_record(self, r: RequestDescriptor) -> str:
        fields = []
        for p in r.parameters:
            expression = p.expression
            if self.param_is_maybe(p):
                expression = self.syntax.optional(expression)
            fields.append(f"{p.name} : {expression}")
        return "{ " + ", ".join(fields) + " }"

    def request_fragment(self, r: RequestDescriptor) -> Fragment:
        argument_types = ["Config"]
        arguments = ["config"]
        if r.parameters:
            argument_types.append(self.params_record(r))
            arguments.append("params")
        if r.body is not None:
            argument_types.append(self.body_type(r))
            arguments.append("body")
        error = r.error_type if r.error_responses else "Never"
        result = f"Task (ClientError {error}) {self.arg(self.success_type(r))}"

        query = [self.query_item(p) for p in r.parameters_in(ParameterLocation.QUERY)]
        headers = [self.header_item(p) for p in r.parameters_in(ParameterLocation.HEADER)]
        header_list = f"[ {', '.join(headers)} ]" if headers else "[]"

        summary = [part for part in (r.summary, r.description) if part]
        summary.append(f"{r.method.value.upper()} {r.path}")
        if r.deprecated:
            summary.append("Deprecated.")

        lines = _doc("\n\n".join(summary))
        lines += [
            f"{r.function_name} : {' -> '.join(argument_types)} -> {result}",
            f"{r.function_name} {' '.join(arguments)} =",
            "    Http.task",
            f"        {{ method = {elm_string(r.method.value.upper())}",
            f"        , headers = buildHeaders config {header_list}",
            "        , url =",
            "            Url.Builder.crossOrigin config.baseUrl",
            f"                {self.path_segments(r)}",
        ]
        if query:
            lines.append("                (List.concat")
            lines += [
                f"                    {'[' if i == 0 else ','} {item}" for i, item in enumerate(query)
            ]
            lines += ["                    ]", "                )"]
        else:
            lines.append("                []")
        lines += [
            f"        , body = {self.body_expression(r)}",
            "        , resolver =",
            "            Http.stringResolver",
            "                (resolveWith",
        ]
        lines += self.resolver_lines(r, "                    ")
        lines += [
            "                )",
            "        , timeout = config.timeout",
            "        }",
        ]
        return Fragment(r.function_name, "\n".join(lines))


# ---------------------------------------------------------------------------
# Fixed Elm text
# ---------------------------------------------------------------------------

_CONFIG_TYPE = """\
{-| Connection settings passed to every request.

`basicCredentials` is the base64 encoding of `user:password`; a bearer
token takes precedence over it.

-}
type alias Config =
    { baseUrl : String
    , apiKey : Maybe String
    , apiKeyHeader : String
    , bearerToken : Maybe String
    , basicCredentials : Maybe String
    , extraHeaders : List ( String, String )
    , timeout : Maybe Float
    }"""

_CLIENT_ERROR = """\
{-| Failure of a request. `ApiError` carries a declared error response.
-}
type ClientError e
    = BadUrl String
    | Timeout
    | NetworkError
    | UnexpectedStatus Int String
    | DecodeFailure String
    | ApiError e"""

_CODEC_HELPERS = (
    Fragment(
        "andMap",
        """\
andMap : Decode.Decoder a -> Decode.Decoder (a -> b) -> Decode.Decoder b
andMap =
    Decode.map2 (|>)""",
    ),
    Fragment(
        "optionalField",
        """\
{-| Decode a field that may be absent. A present field must decode.
-}
optionalField : String -> Decode.Decoder a -> Decode.Decoder (Maybe a)
optionalField name_ decoder_ =
    Decode.maybe (Decode.field name_ Decode.value)
        |> Decode.andThen
            (\\present_ ->
                case present_ of
                    Just _ ->
                        Decode.field name_ (Decode.map Just decoder_)

                    Nothing ->
                        Decode.succeed Nothing
            )""",
    ),
    Fragment(
        "encodeNullable",
        """\
encodeNullable : (a -> Encode.Value) -> Maybe a -> Encode.Value
encodeNullable encoder_ value_ =
    case value_ of
        Just inner_ ->
            encoder_ inner_

        Nothing ->
            Encode.null""",
    ),
)

_REQUEST_HELPERS = (
    Fragment(
        "buildHeaders",
        """\
buildHeaders : Config -> List ( String, Maybe String ) -> List Http.Header
buildHeaders config params =
    let
        apiKey_ =
            config.apiKey
                |> Maybe.map (\\key_ -> [ ( config.apiKeyHeader, key_ ) ])
                |> Maybe.withDefault []

        authorization_ =
            case ( config.bearerToken, config.basicCredentials ) of
                ( Just token_, _ ) ->
                    [ ( "Authorization", "Bearer " ++ token_ ) ]

                ( Nothing, Just credentials_ ) ->
                    [ ( "Authorization", "Basic " ++ credentials_ ) ]

                ( Nothing, Nothing ) ->
                    []

        parameters_ =
            List.filterMap (\\( name_, value_ ) -> Maybe.map (Tuple.pair name_) value_) params
    in
    List.map (\\( name_, value_ ) -> Http.header name_ value_)
        (apiKey_ ++ authorization_ ++ config.extraHeaders ++ parameters_)""",
    ),
    Fragment(
        "decodeBody",
        """\
decodeBody : Decode.Decoder a -> String -> Result (ClientError e) a
decodeBody decoder_ body_ =
    Decode.decodeString decoder_ body_
        |> Result.mapError (Decode.errorToString >> DecodeFailure)""",
    ),
    Fragment(
        "resolveWith",
        """\
resolveWith : (Int -> String -> Result (ClientError e) a) -> Http.Response String -> Result (ClientError e) a
resolveWith resolveStatus_ response_ =
    case response_ of
        Http.BadUrl_ url_ ->
            Err (BadUrl url_)

        Http.Timeout_ ->
            Err Timeout

        Http.NetworkError_ ->
            Err NetworkError

        Http.BadStatus_ metadata_ body_ ->
            resolveStatus_ metadata_.statusCode body_

        Http.GoodStatus_ metadata_ body_ ->
            resolveStatus_ metadata_.statusCode body_""",
    ),
)

_OPTIONAL_HELPERS = {
    "boolToString": (
        Fragment(
            "boolToString",
            """\
boolToString : Bool -> String
boolToString value_ =
    if value_ then
        "true"

    else
        "false\"""",
        ),
    ),
    "formBody": (
        Fragment(
            "formBody",
            """\
formBody : String -> Encode.Value -> Http.Body
formBody contentType_ value_ =
    let
        pairs_ =
            Decode.decodeValue (Decode.keyValuePairs Decode.value) value_
                |> Result.withDefault []
                |> List.map (\\( key_, item_ ) -> ( key_, formValue item_ ))
    in
    if contentType_ == "multipart/form-data" then
        Http.multipartBody (List.map (\\( key_, text_ ) -> Http.stringPart key_ text_) pairs_)

    else
        pairs_
            |> List.map (\\( key_, text_ ) -> Url.percentEncode key_ ++ "=" ++ Url.percentEncode text_)
            |> String.join "&"
            |> Http.stringBody contentType_""",
        ),
        Fragment(
            "formValue",
            """\
formValue : Decode.Value -> String
formValue item_ =
    case Decode.decodeValue Decode.string item_ of
        Ok text_ ->
            text_

        Err _ ->
            Encode.encode 0 item_""",
        ),
    ),
}


class ElmBackend(LanguageBackend):
    """Generates an Elm 0.19 module of types, codecs and ``Http.task`` requests."""

    import_rules = ELM_IMPORTS

    @property
    def name(self) -> str:
        return "elm"

    @property
    def file_extension(self) -> str:
        return "elm"

    @property
    def naming_rules(self) -> NamingRules:
        return ELM_NAMING

    @property
    def type_syntax(self) -> TypeSyntax:
        return ELM_SYNTAX

    @property
    def default_template(self) -> str:
        return load_default_template("elm.j2")

    def _prefix_parts(self, prefix: str) -> list[str]:
        parts = [p for p in prefix.split(".") if p] or [self.default_module_prefix]
        return [convert_case(split_words(p) or ["Api"], "pascal") for p in parts]

    def module_name(self, prefix: str) -> str:
        return ".".join(self._prefix_parts(prefix) + ["Schemas"])

    def output_path(self, base: Path, prefix: str) -> Path:
        return Path(base).joinpath(*self._prefix_parts(prefix), "Schemas.elm")

    def escape_doc(self, text: str) -> str:
        return _escape_comment(text)

    # --- Fragments ---

    def generate_types(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        code = _ElmCode(descriptors)
        module = descriptors.module
        config = "\n".join(
            [
                _CONFIG_TYPE,
                "",
                "",
                "defaultConfig : Config",
                "defaultConfig =",
                f"    {{ baseUrl = {elm_string(module.default_base_url)}",
                "    , apiKey = Nothing",
                f"    , apiKeyHeader = {elm_string(module.api_key_header)}",
                "    , bearerToken = Nothing",
                "    , basicCredentials = Nothing",
                "    , extraHeaders = []",
                "    , timeout = Nothing",
                "    }",
            ]
        )
        fragments = [Fragment("Config", config)]

        used_formats = {
            t.format for t in descriptors.types.values() if t.kind == NodeKind.PRIMITIVE and t.format
        }
        for fmt, alias in ELM_FORMATS.items():
            if fmt in used_formats:
                fragments.append(Fragment(alias, f"type alias {alias} =\n    String"))

        fragments.extend(code.type_fragment(t) for t in descriptors.declared)
        return tuple(fragments)

    def generate_codecs(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        code = _ElmCode(descriptors)
        fragments = list(_CODEC_HELPERS)
        for t in descriptors.declared:
            fragments.extend(code.codec_fragments(t))
        return tuple(fragments)

    def generate_requests(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        code = _ElmCode(descriptors)
        requests = [code.request_fragment(r) for r in descriptors.requests]
        fragments = list(_REQUEST_HELPERS)
        for helper in sorted(code.helpers):
            fragments.extend(_OPTIONAL_HELPERS[helper])
        return tuple(fragments + requests)

    def generate_error_types(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        code = _ElmCode(descriptors)
        fragments = [Fragment("ClientError", _CLIENT_ERROR)]
        for r in descriptors.requests:
            if r.success_union:
                lines = [f"type {r.success_union}"]
                for i, response in enumerate(r.success_responses):
                    payload = f" {code.arg(code.response_payload(response))}" if response.type_id else ""
                    lines.append(f"    {'=' if i == 0 else '|'} {response.constructor}{payload}")
                fragments.append(Fragment(r.success_union, "\n".join(lines)))
            if r.error_responses:
                lines = _doc(f"Error responses of `{r.function_name}`.")
                lines.append(f"type {r.error_type}")
                for i, response in enumerate(r.error_responses):
                    payload = f" {code.arg(code.response_payload(response))}" if response.type_id else ""
                    lines.append(f"    {'=' if i == 0 else '|'} {response.constructor}{payload}")
                fragments.append(Fragment(r.error_type, "\n".join(lines)))
        return tuple(fragments)

    # --- Output ---

    def validate_output(self, text: str) -> None:
        if not _MODULE_HEADER.search(text):
            raise OutputValidationError(self.name, "missing 'module ... exposing' header")
        for marker in ("{{", "{%"):
            if marker in text:
                raise OutputValidationError(self.name, f"unrendered template syntax '{marker}'")
        annotated = Counter(_ANNOTATION.findall(_BLOCK_COMMENT.sub("", text)))
        duplicates = sorted(name for name, count in annotated.items() if count > 1)
        if duplicates:
            raise OutputValidationError(self.name, f"duplicate definition(s): {', '.join(duplicates)}")
