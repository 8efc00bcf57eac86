"""Intermediate representation (IR) of an OpenAPI document.

The schema resolver turns the raw document into a :class:`ModuleDescriptor`:
an arena of immutable :data:`TypeNode` objects keyed by a stable id derived
from each schema's location (a JSON pointer), plus one
:class:`OperationNode` per path and method. Edges between nodes are ids
(:data:`TypeNodeRef`), never object references, so cyclic schemas are
expressed with :class:`ReferenceNode` lookups instead of cyclic pointers.

Every model in this module is frozen; nothing is mutated once the resolver
has inserted it into the arena.
"""

from __future__ import annotations

import enum
from functools import cached_property
from typing import Annotated, Any, Iterable, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from clientgen.exceptions import UnresolvedReferenceError
from clientgen.models import ContentKind, HTTPMethod, ParameterLocation

TypeNodeRef = str
"""Id of a node in :attr:`ModuleDescriptor.nodes`."""

DEFAULT_TITLE = "Generated API Client"


class NodeKind(str, enum.Enum):
    """Discriminator values of the :data:`TypeNode` variants."""

    PRIMITIVE = "primitive"
    ARRAY = "array"
    OBJECT = "object"
    ENUM = "enum"
    UNION = "union"
    REFERENCE = "reference"


class PrimitiveKind(str, enum.Enum):
    """Scalar kinds. ``ANY`` stands for a free-form JSON value."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ANY = "any"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class _TypeNodeBase(_Frozen):
    id: TypeNodeRef = Field(description="JSON pointer of the schema location")
    name: Optional[str] = Field(
        default=None, description="Logical name hint, before target-language naming"
    )
    description: Optional[str] = None


class PrimitiveNode(_TypeNodeBase):
    kind: Literal["primitive"] = "primitive"
    primitive: PrimitiveKind
    format: Optional[str] = None


class ArrayNode(_TypeNodeBase):
    kind: Literal["array"] = "array"
    element: TypeNodeRef


class FieldNode(_Frozen):
    """One property of an :class:`ObjectNode`.

    ``required`` and ``nullable`` are independent: an optional field may
    be absent, a nullable field may be ``null``, and a field may be both.
    """

    name: str
    type: TypeNodeRef
    required: bool = False
    nullable: bool = False
    description: Optional[str] = None


class ObjectNode(_TypeNodeBase):
    kind: Literal["object"] = "object"
    fields: tuple[FieldNode, ...] = ()

    def field(self, name: str) -> Optional[FieldNode]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


class EnumNode(_TypeNodeBase):
    kind: Literal["enum"] = "enum"
    values: tuple[str, ...]


class UnionNode(_TypeNodeBase):
    """A ``oneOf``/``anyOf`` sum type.

    When ``discriminated`` is set, ``discriminator`` names the tag field and
    ``tags[i]`` is the literal value selecting ``variants[i]``. Otherwise
    variants are tried in declared order and the first match wins.
    """

    kind: Literal["union"] = "union"
    variants: tuple[TypeNodeRef, ...]
    discriminated: bool = False
    discriminator: Optional[str] = None
    tags: tuple[str, ...] = ()


class ReferenceNode(_TypeNodeBase):
    """Back-pointer to a node whose resolution was still in progress."""

    kind: Literal["reference"] = "reference"
    target: TypeNodeRef


TypeNode = Annotated[
    Union[PrimitiveNode, ArrayNode, ObjectNode, EnumNode, UnionNode, ReferenceNode],
    Field(discriminator="kind"),
]



def child_refs(node: TypeNode) -> list[TypeNodeRef]:
    """Return the ids *node* points at directly."""
    if isinstance(node, ArrayNode):
        return [node.element]
    if isinstance(node, ObjectNode):
        return [f.type for f in node.fields]
    if isinstance(node, UnionNode):
        return list(node.variants)
    if isinstance(node, ReferenceNode):
        return [node.target]
    return []


def reachable_refs(
    nodes: Mapping[TypeNodeRef, TypeNode], starts: Iterable[TypeNodeRef]
) -> set[TypeNodeRef]:
    """Return every id in *nodes* reachable from *starts*, inclusive.

    Ids missing from *nodes* are skipped rather than reported.
    """
    seen: set[TypeNodeRef] = set()
    stack = list(starts)
    while stack:
        ref = stack.pop()
        if ref in seen or ref not in nodes:
            continue
        seen.add(ref)
        stack.extend(child_refs(nodes[ref]))
    return seen


# --- Operations ---


class ParameterNode(_Frozen):
    name: str
    location: ParameterLocation
    type: TypeNodeRef
    required: bool = False
    nullable: bool = False
    default: Any = None
    description: Optional[str] = None


class BodyNode(_Frozen):
    type: TypeNodeRef
    content_type: str
    content_kind: ContentKind
    required: bool = False
    nullable: bool = False
    description: Optional[str] = None


class ResponseNode(_Frozen):
    """One declared response, keyed by status pattern.

    ``status`` is normalised to ``"200"``, ``"4XX"`` or ``"default"``.
    ``type`` is ``None`` when the response has no body.
    """

    status: str
    type: Optional[TypeNodeRef] = None
    content_type: Optional[str] = None
    nullable: bool = False
    description: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status.startswith("2")


class OperationNode(_Frozen):
    operation_id: str
    method: HTTPMethod
    path: str
    parameters: tuple[ParameterNode, ...] = ()
    body: Optional[BodyNode] = None
    responses: tuple[ResponseNode, ...] = ()
    summary: Optional[str] = None
    description: Optional[str] = None
    deprecated: bool = False
    tags: tuple[str, ...] = ()
    security: tuple[str, ...] = ()

    def parameters_in(self, location: ParameterLocation) -> list[ParameterNode]:
        return [p for p in self.parameters if p.location == location]

    def type_refs(self) -> list[TypeNodeRef]:
        """Return the type ids this operation uses directly."""
        refs = [p.type for p in self.parameters]
        if self.body is not None:
            refs.append(self.body.type)
        refs.extend(r.type for r in self.responses if r.type is not None)
        return refs


class SecuritySchemeNode(_Frozen):
    name: str
    type: str
    scheme: Optional[str] = None
    location: Optional[str] = None
    param_name: Optional[str] = None


# --- Module ---


class ModuleDescriptor(_Frozen):
    """The language-agnostic generation unit.

    ``roots`` lists component schema ids in document order. ``declarations``
    lists, in first-seen order, every node that becomes a named type in
    generated code; naming policies assign collision suffixes in this order.
    """

    title: str = DEFAULT_TITLE
    description: Optional[str] = None
    version: Optional[str] = None
    servers: tuple[str, ...] = ()
    module_prefix: str = "Api"
    generation_timestamp: str
    nodes: dict[TypeNodeRef, TypeNode]
    roots: tuple[TypeNodeRef, ...] = ()
    declarations: tuple[TypeNodeRef, ...] = ()
    operations: tuple[OperationNode, ...] = ()
    security_schemes: tuple[SecuritySchemeNode, ...] = ()

    def node(self, ref: TypeNodeRef) -> TypeNode:
        """Return the node stored under *ref*.

        Raises:
            UnresolvedReferenceError: If *ref* is not in the arena.
        """
        try:
            return self.nodes[ref]
        except KeyError:
            raise UnresolvedReferenceError(f"Unknown node id '{ref}'") from None

    def deref(self, ref: TypeNodeRef) -> TypeNode:
        """Return the node behind *ref*, following :class:`ReferenceNode` links."""
        node = self.node(ref)
        seen = {ref}
        while isinstance(node, ReferenceNode):
            if node.target in seen:
                raise UnresolvedReferenceError(
                    f"Reference cycle without a concrete node at '{ref}'"
                )
            seen.add(node.target)
            node = self.node(node.target)
        return node

    def is_declared(self, ref: TypeNodeRef) -> bool:
        return ref in self.declared_ids

    @cached_property
    def declared_ids(self) -> frozenset[TypeNodeRef]:
        return frozenset(self.declarations)

    @cached_property
    def recursive_targets(self) -> frozenset[TypeNodeRef]:
        """Ids of the concrete nodes some :class:`ReferenceNode` points back to."""
        return frozenset(
            self.deref(n.target).id
            for n in self.nodes.values()
            if isinstance(n, ReferenceNode)
        )

    @property
    def api_description(self) -> str:
        """Title, description and version joined into one block of prose."""
        parts = [self.title or DEFAULT_TITLE]
        if self.description:
            parts.append(self.description.strip())
        if self.version:
            parts.append(f"Version: {self.version}")
        return "\n\n".join(parts)

    @property
    def default_base_url(self) -> str:
        return self.servers[0] if self.servers else "https://api.example.com"

    @property
    def api_key_header(self) -> str:
        """Header of the first header-located ``apiKey`` scheme, else ``X-API-Key``."""
        for scheme in self.security_schemes:
            if scheme.type == "apiKey" and scheme.location == "header" and scheme.param_name:
                return scheme.param_name
        return "X-API-Key"
