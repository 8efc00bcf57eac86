"""Map IR type nodes to target-language type descriptors.

:func:`map_type` is a pure function of a node, the module it belongs to, a
:class:`~clientgen.generator.naming.NamingPolicy` and the backend's
:class:`TypeSyntax`. Every backend shares it; only the syntax table and the
naming rules differ between languages.

**Mapping rules:**

* Declared nodes (objects, enums, unions and component roots, see
  :attr:`~clientgen.ir.ModuleDescriptor.declarations`) get a type name and
  are referred to by it.
* Inline primitives and arrays become type expressions, e.g. ``List Int``
  or ``list[int]``.
* Known ``format`` values map through :attr:`TypeSyntax.formats`; unknown
  formats degrade to the base primitive.
* :class:`~clientgen.ir.ReferenceNode` maps to the name of the node it
  points back to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from clientgen.generator.naming import NamingPolicy
from clientgen.ir import (
    ArrayNode,
    EnumNode,
    ModuleDescriptor,
    NodeKind,
    ObjectNode,
    PrimitiveKind,
    PrimitiveNode,
    ReferenceNode,
    TypeNode,
    TypeNodeRef,
    UnionNode,
)


@dataclass(frozen=True)
class TypeSyntax:
    """How a backend spells type expressions.

    Attributes:
        primitives: Type for each :class:`~clientgen.ir.PrimitiveKind`.
        formats: Type for known string ``format`` values.
        list_template: ``str.format`` template taking the element type.
        optional_template: ``str.format`` template taking the wrapped type.
        parenthesize: Wrap multi-word arguments in parentheses (Elm's
            ``List (Maybe Int)``).
    """

    primitives: dict[PrimitiveKind, str]
    formats: dict[str, str] = field(default_factory=dict)
    list_template: str = "List {}"
    optional_template: str = "Maybe {}"
    parenthesize: bool = False

    def argument(self, expression: str) -> str:
        if self.parenthesize and " " in expression and not expression.startswith("("):
            return f"({expression})"
        return expression

    def list_of(self, expression: str) -> str:
        return self.list_template.format(self.argument(expression))

    def optional(self, expression: str) -> str:
        return self.optional_template.format(self.argument(expression))

    def primitive(self, kind: PrimitiveKind, fmt: Optional[str] = None) -> str:
        if fmt and kind == PrimitiveKind.STRING and fmt in self.formats:
            return self.formats[fmt]
        return self.primitives[kind]


@dataclass(frozen=True)
class FieldDescriptor:
    wire_name: str
    name: str
    type_id: TypeNodeRef
    expression: str
    required: bool
    nullable: bool
    description: Optional[str] = None


@dataclass(frozen=True)
class VariantDescriptor:
    type_id: TypeNodeRef
    constructor: str
    expression: str
    tag: Optional[str] = None


@dataclass(frozen=True)
class EnumMember:
    value: str
    name: str


@dataclass(frozen=True)
class TypeDescriptor:
    """Target-language view of one IR node.

    ``expression`` is what other types write to refer to this one: the
    declared name for declared nodes, an inline expression otherwise.
    ``name`` is set only for declared nodes. ``definition`` is the inline
    expression behind a primitive or array, which a declared alias expands
    to.
    """

    node_id: TypeNodeRef
    kind: NodeKind
    expression: str
    name: Optional[str] = None
    definition: Optional[str] = None
    primitive: Optional[PrimitiveKind] = None
    format: Optional[str] = None
    element: Optional[TypeNodeRef] = None
    target: Optional[TypeNodeRef] = None
    fields: tuple[FieldDescriptor, ...] = ()
    variants: tuple[VariantDescriptor, ...] = ()
    members: tuple[EnumMember, ...] = ()
    discriminator: Optional[str] = None
    recursive: bool = False
    description: Optional[str] = None

    @property
    def declared(self) -> bool:
        return self.name is not None


def declared_name(node: TypeNode, policy: NamingPolicy) -> str:
    """Return the type name for a declared node, assigning it on first use."""
    return policy.type_name(node.id, node.name or "Anonymous")


def type_expression(
    ref: TypeNodeRef, module: ModuleDescriptor, policy: NamingPolicy, syntax: TypeSyntax
) -> str:
    """Return the expression other code uses to refer to node *ref*."""
    node = module.node(ref)
    if isinstance(node, ReferenceNode):
        return type_expression(module.deref(ref).id, module, policy, syntax)
    if module.is_declared(ref):
        return declared_name(node, policy)
    if isinstance(node, PrimitiveNode):
        return syntax.primitive(node.primitive, node.format)
    if isinstance(node, ArrayNode):
        return syntax.list_of(type_expression(node.element, module, policy, syntax))
    # Object, enum or union the resolver left undeclared (unreachable).
    return declared_name(node, policy)


def map_type(
    node: TypeNode,
    module: ModuleDescriptor,
    policy: NamingPolicy,
    syntax: TypeSyntax,
) -> TypeDescriptor:
    """Map one IR node to a :class:`TypeDescriptor`.

    Args:
        node: The node to map.
        module: The module the node belongs to; used to resolve child ids.
        policy: Naming policy of the current backend run.
        syntax: Type syntax table of the current backend.

    Returns:
        The descriptor. Total over every node kind.
    """
    expression = type_expression(node.id, module, policy, syntax)
    declared = module.is_declared(node.id) or isinstance(node, (ObjectNode, EnumNode, UnionNode))
    name = expression if declared and not isinstance(node, ReferenceNode) else None
    common = dict(
        node_id=node.id,
        kind=NodeKind(node.kind),
        expression=expression,
        name=name,
        description=node.description,
        recursive=node.id in module.recursive_targets,
    )

    if isinstance(node, PrimitiveNode):
        return TypeDescriptor(
            primitive=node.primitive,
            format=node.format,
            definition=syntax.primitive(node.primitive, node.format),
            **common,
        )

    if isinstance(node, ArrayNode):
        return TypeDescriptor(
            element=node.element,
            definition=syntax.list_of(type_expression(node.element, module, policy, syntax)),
            **common,
        )

    if isinstance(node, ReferenceNode):
        return TypeDescriptor(target=module.deref(node.id).id, **common)

    if isinstance(node, ObjectNode):
        fields = tuple(
            FieldDescriptor(
                wire_name=f.name,
                name=policy.field_name(node.id, f.name, f.name),
                type_id=f.type,
                expression=type_expression(f.type, module, policy, syntax),
                required=f.required,
                nullable=f.nullable,
                description=f.description,
            )
            for f in node.fields
        )
        return TypeDescriptor(fields=fields, **common)

    if isinstance(node, EnumNode):
        members = tuple(
            EnumMember(value=v, name=policy.member_name(node.id, expression, v, v))
            for v in node.values
        )
        return TypeDescriptor(members=members, **common)

    variants = []
    for i, ref in enumerate(node.variants):
        variant_expression = type_expression(ref, module, policy, syntax)
        target = module.deref(ref)
        if module.is_declared(target.id):
            label = variant_expression
        elif isinstance(target, PrimitiveNode):
            label = target.primitive.value
        else:
            label = f"{target.kind} {i + 1}"
        variants.append(
            VariantDescriptor(
                type_id=ref,
                constructor=policy.member_name(node.id, expression, str(i), label),
                expression=variant_expression,
                tag=node.tags[i] if node.discriminated and i < len(node.tags) else None,
            )
        )
    return TypeDescriptor(
        variants=tuple(variants),
        discriminator=node.discriminator if node.discriminated else None,
        **common,
    )


def map_types(
    module: ModuleDescriptor, policy: NamingPolicy, syntax: TypeSyntax
) -> dict[TypeNodeRef, TypeDescriptor]:
    """Map every node of *module*.

    Declared nodes are named first, in declaration order, so collision
    suffixes depend only on the document and never on traversal details.
    """
    for ref in module.declarations:
        declared_name(module.node(ref), policy)
    return {ref: map_type(node, module, policy, syntax) for ref, node in module.nodes.items()}
