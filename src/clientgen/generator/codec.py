"""Derive JSON codecs for IR type nodes.

Each node gets a :class:`CodecDescriptor`. It carries the decoder and
encoder function names a backend emits, plus executable ``decode`` and
``encode`` callables over the generic JSON value model (``dict``, ``list``,
``str``, ``int``, ``float``, ``bool``, ``None``). These callables fix the
semantics every backend's generated code must follow:

* Object fields missing from input decode to :data:`ABSENT`, which is
  distinct from ``None`` (an explicit ``null``). ``null`` on a field that
  is not nullable fails. Unknown extra keys are ignored.
* Booleans are never accepted as integers or numbers.
* Discriminated unions dispatch on the tag field; other unions try their
  variants in declared order and the first success wins.
* Children are looked up in the shared codec table at call time, so
  recursive types decode without infinite descriptor construction.

Failures raise :class:`~clientgen.exceptions.DecodeError` with the field
path of the offending value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from clientgen.exceptions import DecodeDescriptorError, DecodeError
from clientgen.generator.naming import NamingPolicy
from clientgen.generator.type_mapper import TypeDescriptor
from clientgen.ir import (
    ArrayNode,
    EnumNode,
    ModuleDescriptor,
    ObjectNode,
    PrimitiveKind,
    PrimitiveNode,
    ReferenceNode,
    TypeNode,
    TypeNodeRef,
    UnionNode,
    child_refs,
)


class _Absent:
    """Marker for an optional field that was not present on the wire."""

    _instance: Optional[_Absent] = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()
"""Value of an optional field that was omitted, as opposed to ``None``."""


@dataclass(frozen=True)
class UnionValue:
    """A decoded union value: which variant matched, and its decoded payload."""

    index: int
    variant: str
    value: Any


CodecTable = dict[TypeNodeRef, "CodecDescriptor"]


@dataclass(frozen=True)
class CodecDescriptor:
    """Names and executable semantics of one node's codec.

    ``decoder_name`` and ``encoder_name`` are ``None`` for inline nodes,
    whose codecs backends emit as expressions rather than functions.
    """

    node_id: TypeNodeRef
    decoder_name: Optional[str]
    encoder_name: Optional[str]
    decoder: Callable[[Any, str], Any]
    encoder: Callable[[Any], Any]

    def decode(self, value: Any) -> Any:
        """Decode a JSON value.

        Raises:
            DecodeError: If *value* does not match the node's shape.
        """
        return self.decoder(value, "")

    def decode_at(self, value: Any, path: str) -> Any:
        return self.decoder(value, path)

    def encode(self, value: Any) -> Any:
        """Encode a decoded value back into a JSON value."""
        return self.encoder(value)


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


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------


def _primitive_decoder(kind: PrimitiveKind) -> Callable[[Any, str], Any]:
    def decode(value: Any, path: str) -> Any:
        if kind == PrimitiveKind.ANY:
            return value
        if kind == PrimitiveKind.STRING:
            if isinstance(value, str):
                return value
        elif kind == PrimitiveKind.BOOLEAN:
            if isinstance(value, bool):
                return value
        elif isinstance(value, bool):
            pass
        elif kind == PrimitiveKind.INTEGER:
            if isinstance(value, int):
                return value
            if isinstance(value, float) and value.is_integer():
                return int(value)
        elif isinstance(value, (int, float)):
            return value
        raise _mismatch(path, kind.value, value)

    return decode


def _enum_decoder(node: EnumNode) -> Callable[[Any, str], Any]:
    allowed = set(node.values)

    def decode(value: Any, path: str) -> Any:
        if not isinstance(value, str):
            raise _mismatch(path, "string", value)
        if value not in allowed:
            raise DecodeError(
                path, f"invalid enum value {value!r}, expected one of {', '.join(node.values)}"
            )
        return value

    return decode


def _array_decoder(node: ArrayNode, table: CodecTable) -> Callable[[Any, str], Any]:
    def decode(value: Any, path: str) -> Any:
        if not isinstance(value, list):
            raise _mismatch(path, "array", value)
        element = table[node.element]
        return [element.decode_at(item, f"{path}[{i}]") for i, item in enumerate(value)]

    return decode


def _object_decoder(node: ObjectNode, table: CodecTable) -> Callable[[Any, str], Any]:
    def decode(value: Any, path: str) -> Any:
        if not isinstance(value, dict):
            raise _mismatch(path, "object", value)
        result: dict[str, Any] = {}
        for field in node.fields:
            field_path = f"{path}.{field.name}"
            if field.name not in value:
                if field.required:
                    raise DecodeError(field_path, "missing required field")
                result[field.name] = ABSENT
                continue
            raw = value[field.name]
            if raw is None:
                if not field.nullable:
                    raise DecodeError(field_path, "null is not allowed")
                result[field.name] = None
                continue
            result[field.name] = table[field.type].decode_at(raw, field_path)
        return result

    return decode


def _union_decoder(
    node: UnionNode, descriptor: TypeDescriptor, table: CodecTable
) -> Callable[[Any, str], Any]:
    constructors = [v.constructor for v in descriptor.variants]

    if node.discriminated:
        by_tag = {tag: i for i, tag in enumerate(node.tags)}

        def decode_tagged(value: Any, path: str) -> Any:
            if not isinstance(value, dict):
                raise _mismatch(path, "object", value)
            tag = value.get(node.discriminator)
            if not isinstance(tag, str) or tag not in by_tag:
                known = ", ".join(f"{c} ({t!r})" for c, t in zip(constructors, node.tags))
                raise DecodeError(
                    f"{path}.{node.discriminator}",
                    f"unknown discriminator value {tag!r}; variants: {known}",
                )
            index = by_tag[tag]
            decoded = table[node.variants[index]].decode_at(value, path)
            return UnionValue(index, constructors[index], decoded)

        return decode_tagged

    def decode_first(value: Any, path: str) -> Any:
        failures = []
        for index, ref in enumerate(node.variants):
            try:
                decoded = table[ref].decode_at(value, path)
            except DecodeError as exc:
                failures.append(f"{constructors[index]}: {exc}")
                continue
            return UnionValue(index, constructors[index], decoded)
        raise DecodeError(path, "no union variant matched (" + "; ".join(failures) + ")")

    return decode_first


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


def _identity(value: Any) -> Any:
    return value


def _array_encoder(node: ArrayNode, table: CodecTable) -> Callable[[Any], Any]:
    def encode(value: Any) -> Any:
        element = table[node.element]
        return [element.encode(item) for item in value]

    return encode


def _object_encoder(node: ObjectNode, table: CodecTable) -> Callable[[Any], Any]:
    def encode(value: Any) -> Any:
        result: dict[str, Any] = {}
        for field in node.fields:
            item = value.get(field.name, ABSENT)
            if item is ABSENT:
                continue
            result[field.name] = None if item is None else table[field.type].encode(item)
        return result

    return encode


def _union_encoder(node: UnionNode, table: CodecTable) -> Callable[[Any], Any]:
    def encode(value: Any) -> Any:
        if isinstance(value, UnionValue):
            return table[node.variants[value.index]].encode(value.value)
        return value

    return encode


def _reference_decoder(node: ReferenceNode, table: CodecTable) -> Callable[[Any, str], Any]:
    def decode(value: Any, path: str) -> Any:
        return table[node.target].decode_at(value, path)

    return decode


def _reference_encoder(node: ReferenceNode, table: CodecTable) -> Callable[[Any], Any]:
    def encode(value: Any) -> Any:
        return table[node.target].encode(value)

    return encode


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _check_children(node: TypeNode, module: ModuleDescriptor) -> None:
    missing = [ref for ref in child_refs(node) if ref not in module.nodes]
    if missing:
        raise DecodeDescriptorError(
            f"Node '{node.id}' points at unknown node(s): {', '.join(missing)}"
        )


def generate_codec(
    node: TypeNode,
    module: ModuleDescriptor,
    types: dict[TypeNodeRef, TypeDescriptor],
    table: CodecTable,
    *,
    decoder_name: Optional[str] = None,
    encoder_name: Optional[str] = None,
) -> CodecDescriptor:
    """Build the codec for one node.

    Args:
        node: The node to build a codec for.
        module: The module *node* belongs to.
        types: Type descriptors of the module, for variant constructor names.
        table: Codec table children are looked up in when the codec runs.
            It need not be complete yet.
        decoder_name: Name of the emitted decoder, for declared nodes.
        encoder_name: Name of the emitted encoder, for declared nodes.

    Raises:
        DecodeDescriptorError: If the node is structurally invalid (dangling
            child, tag count not matching variant count, unknown kind).
    """
    _check_children(node, module)

    if isinstance(node, PrimitiveNode):
        decoder, encoder = _primitive_decoder(node.primitive), _identity
    elif isinstance(node, EnumNode):
        decoder, encoder = _enum_decoder(node), _identity
    elif isinstance(node, ArrayNode):
        decoder, encoder = _array_decoder(node, table), _array_encoder(node, table)
    elif isinstance(node, ObjectNode):
        decoder, encoder = _object_decoder(node, table), _object_encoder(node, table)
    elif isinstance(node, UnionNode):
        if node.discriminated and (not node.discriminator or len(node.tags) != len(node.variants)):
            raise DecodeDescriptorError(
                f"Union '{node.id}' has {len(node.variants)} variants but {len(node.tags)} tags"
            )
        if node.id not in types:
            raise DecodeDescriptorError(f"Union '{node.id}' has no type descriptor")
        decoder, encoder = _union_decoder(node, types[node.id], table), _union_encoder(node, table)
    elif isinstance(node, ReferenceNode):
        decoder, encoder = _reference_decoder(node, table), _reference_encoder(node, table)
    else:
        raise DecodeDescriptorError(f"Cannot build a codec for node kind {type(node).__name__}")

    return CodecDescriptor(
        node_id=node.id,
        decoder_name=decoder_name,
        encoder_name=encoder_name,
        decoder=decoder,
        encoder=encoder,
    )


def generate_codecs(
    module: ModuleDescriptor,
    types: dict[TypeNodeRef, TypeDescriptor],
    policy: NamingPolicy,
) -> CodecTable:
    """Build codecs for every node of *module*.

    Declared types get decoder and encoder names (``decodePet`` /
    ``decode_pet``), assigned in declaration order.
    """
    table: CodecTable = {}
    for ref in module.declarations:
        name = types[ref].name or types[ref].expression
        policy.function_name(f"decode:{ref}", f"decode {name}")
        policy.function_name(f"encode:{ref}", f"encode {name}")

    for ref, node in module.nodes.items():
        declared = module.is_declared(ref)
        table[ref] = generate_codec(
            node,
            module,
            types,
            table,
            decoder_name=policy.function_name(f"decode:{ref}", "") if declared else None,
            encoder_name=policy.function_name(f"encode:{ref}", "") if declared else None,
        )
    return table
