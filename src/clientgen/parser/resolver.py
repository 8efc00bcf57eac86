"""Resolve an OpenAPI document into the clientgen IR.

:func:`resolve` is the entry point: it walks ``components/schemas`` and
every operation, converting each schema object into an immutable
:data:`~clientgen.ir.TypeNode` and packaging the result as a
:class:`~clientgen.ir.ModuleDescriptor`.

Schemas are memoized by their location, a canonical JSON pointer such as
``#/components/schemas/Pet``. A schema reached through several ``$ref``
paths is therefore converted once, and its location doubles as the node
id. Cycles are detected with an active-resolution stack: re-entering a
location that is still being resolved yields a
:class:`~clientgen.ir.ReferenceNode` back-pointer instead of recursing.

Only **internal** references (those starting with ``#/``) are supported.
External file or URL references raise
:class:`~clientgen.exceptions.UnresolvedReferenceError`.
"""

from __future__ import annotations

import datetime
import logging
import os
from typing import Any, Optional

from clientgen.exceptions import (
    AmbiguousMergeError,
    ResolutionError,
    UnresolvedReferenceError,
)
from clientgen.ir import (
    DEFAULT_TITLE,
    ArrayNode,
    EnumNode,
    FieldNode,
    ModuleDescriptor,
    ObjectNode,
    PrimitiveKind,
    PrimitiveNode,
    ReferenceNode,
    TypeNode,
    TypeNodeRef,
    UnionNode,
    reachable_refs,
)
from clientgen.parser.extractor import (
    extract_info,
    extract_operations,
    extract_security_schemes,
    extract_servers,
)
from clientgen.parser.pointer import (
    canonical_pointer,
    child_pointer,
    lookup_pointer,
    split_pointer,
)

logger = logging.getLogger(__name__)

SCHEMAS_POINTER = "#/components/schemas"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_PRIMITIVES = {
    "string": PrimitiveKind.STRING,
    "integer": PrimitiveKind.INTEGER,
    "number": PrimitiveKind.NUMBER,
    "boolean": PrimitiveKind.BOOLEAN,
}

_UNION_LABELS = {"oneOf": "Option", "anyOf": "Variant"}

# Resolved result: the node id plus whether the referencing site may be null.
Resolved = tuple[TypeNodeRef, bool]


def resolve(
    document: dict[str, Any],
    module_prefix: str = "Api",
    *,
    generation_timestamp: Optional[str] = None,
    prune_unused: bool = False,
) -> ModuleDescriptor:
    """Resolve *document* into a :class:`~clientgen.ir.ModuleDescriptor`.

    Args:
        document: The Document Model, as returned by
            :func:`~clientgen.parser.loader.load_document`.
        module_prefix: Module name prefix recorded on the descriptor.
        generation_timestamp: Timestamp to embed in generated modules.
            Defaults to ``SOURCE_DATE_EPOCH`` or the Unix epoch so that
            reruns stay byte-identical.
        prune_unused: Drop schemas no operation reaches.

    Returns:
        The fully resolved, immutable module descriptor.

    Raises:
        ResolutionError: On the first unresolved reference, ambiguous
            ``allOf`` merge, path/parameter mismatch, malformed operation,
            or when the document declares no operations.
    """
    if not isinstance(document, dict):
        raise ResolutionError("Document must be a mapping")

    resolver = SchemaResolver(document)

    components = document.get("components") or {}
    schemas = components.get("schemas") or {} if isinstance(components, dict) else {}
    if not isinstance(schemas, dict):
        raise ResolutionError("components.schemas must be a mapping", SCHEMAS_POINTER)

    roots: list[TypeNodeRef] = []
    for name, schema in schemas.items():
        ref, _ = resolver.resolve_at(child_pointer(SCHEMAS_POINTER, name), schema, name)
        if ref not in roots:
            roots.append(ref)

    operations = extract_operations(document, resolver)
    resolver.check_references()

    title, description, version = extract_info(document)
    nodes = resolver.nodes
    operation_refs = [ref for op in operations for ref in op.type_refs()]

    if prune_unused:
        reachable = reachable_refs(nodes, operation_refs)
        roots = [r for r in roots if r in reachable]
        nodes = {k: v for k, v in nodes.items() if k in reachable}
    else:
        reachable = reachable_refs(nodes, roots + operation_refs)

    root_set = set(roots)
    cycle_targets = {
        _concrete_node(nodes, n.target).id for n in nodes.values() if isinstance(n, ReferenceNode)
    }
    declarations = [
        ref
        for ref in resolver.entry_order
        if ref in nodes
        and ref in reachable
        and not isinstance(nodes[ref], ReferenceNode)
        and (
            isinstance(nodes[ref], (ObjectNode, EnumNode, UnionNode))
            or ref in root_set
            or ref in cycle_targets
        )
    ]

    logger.debug(
        "Resolved %d nodes (%d declared) and %d operations",
        len(nodes),
        len(declarations),
        len(operations),
    )

    return ModuleDescriptor(
        title=title or DEFAULT_TITLE,
        description=description,
        version=version,
        servers=tuple(extract_servers(document)),
        module_prefix=module_prefix,
        generation_timestamp=resolve_timestamp(generation_timestamp),
        nodes=nodes,
        roots=tuple(roots),
        declarations=tuple(declarations),
        operations=tuple(operations),
        security_schemes=tuple(extract_security_schemes(document)),
    )


def resolve_timestamp(explicit: Optional[str] = None) -> str:
    """Return the generation timestamp to embed in output.

    Uses *explicit* when given, else the ``SOURCE_DATE_EPOCH`` environment
    variable, else the Unix epoch. Wall-clock time is never used because
    output must be reproducible.
    """
    if explicit:
        return explicit
    epoch = os.environ.get("SOURCE_DATE_EPOCH", "").strip()
    seconds = int(epoch) if epoch.isdigit() else 0
    moment = datetime.datetime.fromtimestamp(seconds, tz=datetime.timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


# ---------------------------------------------------------------------------
# Name hints
# ---------------------------------------------------------------------------


def _hint_from_pointer(ref: str) -> str:
    """Derive a logical type name from a pointer such as ``#/components/schemas/Pet``."""
    segments = split_pointer(ref)
    if segments[:2] == ["components", "schemas"] and len(segments) > 2:
        words = [segments[2]]
        previous = ""
        for segment in segments[3:]:
            if segment == "items":
                words.append("Item")
            elif segment.isdigit() and previous in _UNION_LABELS:
                words.append(f"{_UNION_LABELS[previous]}{int(segment) + 1}")
            elif segment.isdigit() and previous == "allOf":
                words.append(f"Part{int(segment) + 1}")
            elif segment not in ("properties", "allOf", "oneOf", "anyOf"):
                words.append(segment)
            previous = segment
        return " ".join(words)
    if segments[0] == "components" and len(segments) > 2:
        return segments[2]
    return segments[-1]


# ---------------------------------------------------------------------------
# Schema resolution
# ---------------------------------------------------------------------------


class SchemaResolver:
    """Converts schema objects into memoized, immutable type nodes.

    One instance is used per :func:`resolve` call. Operations resolve their
    parameter, body and response schemas through the same instance so that
    every schema location produces exactly one node.

    Args:
        document: The Document Model all ``$ref`` pointers resolve against.
    """

    def __init__(self, document: dict[str, Any]) -> None:
        self._document = document
        self._nodes: dict[TypeNodeRef, TypeNode] = {}
        self._memo: dict[str, Resolved] = {}
        self._active: list[str] = []
        self._cycle_targets: set[str] = set()
        self._entry_order: list[str] = []

    @property
    def nodes(self) -> dict[TypeNodeRef, TypeNode]:
        return dict(self._nodes)

    @property
    def entry_order(self) -> list[str]:
        """Locations in the order resolution first entered them."""
        return list(self._entry_order)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def resolve_at(self, location: str, schema: Any, hint: str) -> Resolved:
        """Resolve *schema* found at *location*.

        Args:
            location: Canonical JSON pointer of *schema*; becomes the id of
                the node built for it.
            schema: The schema object.
            hint: Logical name for the node, before target-language naming.

        Returns:
            ``(node_id, nullable)``. ``node_id`` differs from *location*
            when the schema is an alias (a ``$ref`` or a single-member
            composition).
        """
        if location in self._memo:
            return self._memo[location]

        if location in self._active:
            # Re-entered while still resolving: break the cycle.
            self._cycle_targets.add(location)
            ref_id = f"{location}@ref"
            if ref_id not in self._nodes:
                self._insert(ReferenceNode(id=ref_id, target=location, name=hint))
            return ref_id, _schema_nullable(schema)

        self._active.append(location)
        self._entry_order.append(location)
        try:
            result = self._build(schema, location, hint)
        finally:
            self._active.pop()

        if result[0] != location and location in self._cycle_targets:
            # An alias was referenced mid-cycle; make its id resolvable.
            self._insert(ReferenceNode(id=location, target=result[0], name=hint))
        self._memo[location] = result
        return result

    def follow_ref(self, ref: str, at: Optional[str] = None) -> Resolved:
        """Resolve the schema a ``$ref`` points at.

        Args:
            ref: The ``$ref`` string.
            at: Location of the referencing schema, for error context.
        """
        try:
            target = lookup_pointer(ref, self._document)
            location = canonical_pointer(ref)
        except UnresolvedReferenceError as exc:
            raise UnresolvedReferenceError(exc.reason, schema_path=at or ref) from None
        return self.resolve_at(location, target, _hint_from_pointer(ref))

    def raw(self, obj: Any, pointer: str) -> tuple[str, Any]:
        """Follow ``$ref`` chains of non-schema objects (parameters, responses, ...).

        Returns:
            ``(pointer, object)`` of the final, non-reference object.
        """
        seen: set[str] = set()
        while isinstance(obj, dict) and "$ref" in obj:
            ref = obj["$ref"]
            if ref in seen:
                raise UnresolvedReferenceError(f"Circular $ref chain at '{ref}'", pointer)
            seen.add(ref)
            try:
                obj = lookup_pointer(ref, self._document)
                pointer = canonical_pointer(ref)
            except UnresolvedReferenceError as exc:
                raise UnresolvedReferenceError(exc.reason, schema_path=pointer) from None
        return pointer, obj

    def check_references(self) -> None:
        """Verify every :class:`~clientgen.ir.ReferenceNode` reaches a concrete node.

        Raises:
            UnresolvedReferenceError: For a dangling target or a cycle made
                only of ``$ref`` aliases.
        """
        for node in self._nodes.values():
            if not isinstance(node, ReferenceNode):
                continue
            seen = {node.id}
            target = node.target
            while True:
                if target not in self._nodes or target in seen:
                    raise UnresolvedReferenceError(
                        f"Reference to '{node.target}' does not resolve to a schema",
                        schema_path=node.id.removesuffix("@ref"),
                    )
                resolved = self._nodes[target]
                if not isinstance(resolved, ReferenceNode):
                    break
                seen.add(target)
                target = resolved.target

    # ------------------------------------------------------------------
    # Node construction
    # ------------------------------------------------------------------

    def _insert(self, node: TypeNode) -> TypeNodeRef:
        self._nodes[node.id] = node
        return node.id

    def _build(self, schema: Any, location: str, hint: str) -> Resolved:
        if schema is True or schema is None:
            schema = {}
        if not isinstance(schema, dict):
            raise ResolutionError(
                f"Schema must be an object, got {type(schema).__name__}", location
            )

        nullable = schema.get("nullable") is True
        types = _schema_types(schema)
        if "null" in types:
            nullable = True
            types = [t for t in types if t != "null"]
        description = schema.get("description") if isinstance(schema.get("description"), str) else None

        if "$ref" in schema:
            ref, ref_nullable = self.follow_ref(schema["$ref"], at=location)
            return ref, nullable or ref_nullable

        if "allOf" in schema:
            ref, merged_nullable = self._build_all_of(schema, location, hint, description)
            return ref, nullable or merged_nullable

        for keyword in ("oneOf", "anyOf"):
            if keyword in schema:
                ref, union_nullable = self._build_union(
                    schema, keyword, location, hint, description
                )
                return ref, nullable or union_nullable

        if "enum" in schema or "const" in schema:
            ref, enum_nullable = self._build_enum(schema, types, location, hint, description)
            return ref, nullable or enum_nullable

        if len(types) > 1:
            variants = []
            for i, type_name in enumerate(types):
                variant, _ = self.resolve_at(
                    child_pointer(location, "type", i),
                    {**schema, "type": type_name},
                    f"{hint} {type_name}",
                )
                variants.append(variant)
            union = UnionNode(id=location, name=hint, description=description, variants=tuple(variants))
            return self._insert(union), nullable

        type_name = types[0] if types else _infer_type(schema)

        if type_name == "object":
            properties = schema.get("properties")
            if not properties:
                # Free-form object: no declared shape to generate.
                return self._primitive(location, hint, PrimitiveKind.ANY, None, description), nullable
            fields = self._object_fields(schema, location, hint)
            obj = ObjectNode(id=location, name=hint, description=description, fields=tuple(fields))
            return self._insert(obj), nullable

        if type_name == "array":
            element, _ = self.resolve_at(
                child_pointer(location, "items"), schema.get("items", {}), f"{hint} Item"
            )
            array = ArrayNode(id=location, name=hint, description=description, element=element)
            return self._insert(array), nullable

        if type_name in _PRIMITIVES:
            fmt = schema.get("format")
            return self._primitive(
                location, hint, _PRIMITIVES[type_name], fmt if isinstance(fmt, str) else None, description
            ), nullable

        if type_name is not None:
            logger.warning("Unknown schema type '%s' at %s; treating as any", type_name, location)
        return self._primitive(location, hint, PrimitiveKind.ANY, None, description), nullable

    def _primitive(
        self,
        location: str,
        hint: str,
        kind: PrimitiveKind,
        fmt: Optional[str],
        description: Optional[str],
    ) -> TypeNodeRef:
        return self._insert(
            PrimitiveNode(id=location, name=hint, description=description, primitive=kind, format=fmt)
        )

    def _object_fields(self, schema: dict[str, Any], location: str, hint: str) -> list[FieldNode]:
        required = set(schema.get("required") or [])
        fields: list[FieldNode] = []
        for name, prop in (schema.get("properties") or {}).items():
            ref, nullable = self.resolve_at(
                child_pointer(location, "properties", name), prop, f"{hint} {name}"
            )
            prop_description = prop.get("description") if isinstance(prop, dict) else None
            fields.append(
                FieldNode(
                    name=name,
                    type=ref,
                    required=name in required,
                    nullable=nullable,
                    description=prop_description if isinstance(prop_description, str) else None,
                )
            )
        return fields

    def _build_enum(
        self,
        schema: dict[str, Any],
        types: list[str],
        location: str,
        hint: str,
        description: Optional[str],
    ) -> Resolved:
        values = list(schema["enum"]) if "enum" in schema else [schema["const"]]
        nullable = None in values
        values = [v for v in values if v is not None]

        if values and all(isinstance(v, str) for v in values):
            unique = tuple(dict.fromkeys(values))
            return self._insert(EnumNode(id=location, name=hint, description=description, values=unique)), nullable

        # Non-string enums keep their scalar type; the value set is not modelled.
        if types and types[0] in _PRIMITIVES:
            kind = _PRIMITIVES[types[0]]
        elif values and all(isinstance(v, bool) for v in values):
            kind = PrimitiveKind.BOOLEAN
        elif values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
            kind = PrimitiveKind.INTEGER
        elif values and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
            kind = PrimitiveKind.NUMBER
        else:
            kind = PrimitiveKind.ANY
        logger.debug("Enum at %s is not all strings; degrading to %s", location, kind.value)
        return self._primitive(location, hint, kind, None, description), nullable

    def _build_all_of(
        self,
        schema: dict[str, Any],
        location: str,
        hint: str,
        description: Optional[str],
    ) -> Resolved:
        members = schema["allOf"]
        if not isinstance(members, list) or not members:
            raise ResolutionError("allOf must be a non-empty list", location)

        if len(members) == 1 and not schema.get("properties"):
            return self.resolve_at(child_pointer(location, "allOf", 0), members[0], hint)

        merged: dict[str, FieldNode] = {}
        required: set[str] = set(schema.get("required") or [])
        nullable_members = 0

        for i, member in enumerate(members):
            member_location = child_pointer(location, "allOf", i)
            ref, member_nullable = self.resolve_at(member_location, member, f"{hint} Part{i + 1}")
            nullable_members += int(member_nullable)
            _, raw_member = self.raw(member, member_location)
            if isinstance(raw_member, dict):
                required.update(raw_member.get("required") or [])

            node = self._concrete(ref)
            if node is None:
                raise AmbiguousMergeError(
                    f"allOf member {i} is still being resolved (recursive allOf)", location
                )
            if isinstance(node, PrimitiveNode) and node.primitive == PrimitiveKind.ANY:
                continue
            if not isinstance(node, ObjectNode):
                raise AmbiguousMergeError(
                    f"allOf member {i} is {node.kind}; only objects can be merged", location
                )
            for field in node.fields:
                self._merge_field(merged, field, location)

        for field in self._object_fields(schema, location, hint):
            self._merge_field(merged, field, location)

        fields = tuple(
            f.model_copy(update={"required": f.required or f.name in required})
            for f in merged.values()
        )
        obj = ObjectNode(id=location, name=hint, description=description, fields=fields)
        return self._insert(obj), nullable_members == len(members)

    def _merge_field(self, merged: dict[str, FieldNode], field: FieldNode, location: str) -> None:
        existing = merged.get(field.name)
        if existing is None:
            merged[field.name] = field
            return
        if not self._same_type(existing.type, field.type):
            raise AmbiguousMergeError(
                f"Field '{field.name}' is defined with conflicting types in allOf",
                location,
            )
        merged[field.name] = existing.model_copy(
            update={
                "required": existing.required or field.required,
                "nullable": existing.nullable and field.nullable,
                "description": existing.description or field.description,
            }
        )

    def _build_union(
        self,
        schema: dict[str, Any],
        keyword: str,
        location: str,
        hint: str,
        description: Optional[str],
    ) -> Resolved:
        members = schema[keyword]
        if not isinstance(members, list) or not members:
            raise ResolutionError(f"{keyword} must be a non-empty list", location)

        label = _UNION_LABELS[keyword]
        nullable = False
        variants: list[TypeNodeRef] = []
        for i, member in enumerate(members):
            if _is_null_schema(member):
                nullable = True
                continue
            ref, member_nullable = self.resolve_at(
                child_pointer(location, keyword, i), member, f"{hint} {label}{i + 1}"
            )
            nullable = nullable or member_nullable
            variants.append(ref)

        if not variants:
            return self._primitive(location, hint, PrimitiveKind.ANY, None, description), True
        if len(variants) == 1:
            return variants[0], nullable

        discriminator, tags = self._discriminate(schema, variants)
        union = UnionNode(
            id=location,
            name=hint,
            description=description,
            variants=tuple(variants),
            discriminated=discriminator is not None,
            discriminator=discriminator,
            tags=tuple(tags),
        )
        return self._insert(union), nullable

    def _discriminate(
        self, schema: dict[str, Any], variants: list[TypeNodeRef]
    ) -> tuple[Optional[str], list[str]]:
        """Return the discriminator field and per-variant tags, or ``(None, [])``."""
        objects = [self._concrete(v) for v in variants]
        if not all(isinstance(o, ObjectNode) for o in objects):
            return None, []

        explicit = schema.get("discriminator")
        if isinstance(explicit, dict) and explicit.get("propertyName"):
            prop = explicit["propertyName"]
            by_variant: dict[TypeNodeRef, str] = {}
            for tag, target in (explicit.get("mapping") or {}).items():
                ref = target if str(target).startswith("#") else child_pointer(SCHEMAS_POINTER, target)
                target_id, _ = self.follow_ref(ref)
                by_variant.setdefault(target_id, str(tag))
            tags = []
            for ref, obj in zip(variants, objects):
                tag = by_variant.get(ref) or self._literal(obj, prop)
                if tag is None and ref.startswith(SCHEMAS_POINTER + "/"):
                    tag = split_pointer(ref)[-1]
                if tag is None:
                    return None, []
                tags.append(tag)
            return (prop, tags) if len(set(tags)) == len(tags) else (None, [])

        for field in objects[0].fields:
            tags = [self._literal(obj, field.name) for obj in objects]
            if all(t is not None for t in tags) and len(set(tags)) == len(tags):
                return field.name, tags
        return None, []

    def _literal(self, obj: Any, field_name: str) -> Optional[str]:
        field = obj.field(field_name) if isinstance(obj, ObjectNode) else None
        if field is None:
            return None
        node = self._concrete(field.type)
        if isinstance(node, EnumNode) and len(node.values) == 1:
            return node.values[0]
        return None

    def _concrete(self, ref: TypeNodeRef) -> Optional[TypeNode]:
        """Return the built node behind *ref*, or ``None`` if it is still in progress."""
        seen: set[str] = set()
        while ref in self._nodes and ref not in seen:
            seen.add(ref)
            node = self._nodes[ref]
            if not isinstance(node, ReferenceNode):
                return node
            ref = node.target
        return None

    def _same_type(
        self,
        a: TypeNodeRef,
        b: TypeNodeRef,
        seen: Optional[set[tuple[str, str]]] = None,
    ) -> bool:
        if a == b:
            return True
        seen = seen or set()
        if (a, b) in seen:
            return True
        seen.add((a, b))
        left, right = self._concrete(a), self._concrete(b)
        if left is None or right is None or left.kind != right.kind:
            return False
        if left.id == right.id:
            return True
        if isinstance(left, PrimitiveNode):
            return left.primitive == right.primitive
        if isinstance(left, ArrayNode):
            return self._same_type(left.element, right.element, seen)
        if isinstance(left, EnumNode):
            return left.values == right.values
        if isinstance(left, ObjectNode):
            return len(left.fields) == len(right.fields) and all(
                x.name == y.name
                and x.required == y.required
                and self._same_type(x.type, y.type, seen)
                for x, y in zip(left.fields, right.fields)
            )
        if isinstance(left, UnionNode):
            return len(left.variants) == len(right.variants) and all(
                self._same_type(x, y, seen) for x, y in zip(left.variants, right.variants)
            )
        return False


def _concrete_node(nodes: dict[TypeNodeRef, TypeNode], ref: TypeNodeRef) -> TypeNode:
    node = nodes[ref]
    while isinstance(node, ReferenceNode):
        node = nodes[node.target]
    return node


# ---------------------------------------------------------------------------
# Schema inspection helpers
# ---------------------------------------------------------------------------


def _schema_types(schema: dict[str, Any]) -> list[str]:
    """Return the declared type list, handling OpenAPI 3.1 type arrays."""
    value = schema.get("type")
    if isinstance(value, list):
        return [str(t) for t in value]
    if isinstance(value, str):
        return [value]
    return []


def _infer_type(schema: dict[str, Any]) -> Optional[str]:
    if "properties" in schema:
        return "object"
    if "items" in schema:
        return "array"
    return None


def _is_null_schema(schema: Any) -> bool:
    return isinstance(schema, dict) and _schema_types(schema) == ["null"]


def _schema_nullable(schema: Any) -> bool:
    if not isinstance(schema, dict):
        return False
    if schema.get("nullable") is True or "null" in _schema_types(schema):
        return True
    for keyword in ("oneOf", "anyOf"):
        members = schema.get(keyword)
        if isinstance(members, list) and any(_is_null_schema(m) for m in members):
            return True
    return False
