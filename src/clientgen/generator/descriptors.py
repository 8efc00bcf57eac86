"""Run the type, codec and request generators for one backend.

:func:`build_descriptors` is what a backend invocation starts from. It owns
a fresh :class:`~clientgen.generator.naming.NamingPolicy`, so concurrent
backends never share mutable naming state, and it fixes the order names are
handed out in: declared types, then codecs, then requests.
"""

from __future__ import annotations

from dataclasses import dataclass

from clientgen.generator.codec import CodecDescriptor, CodecTable, generate_codecs
from clientgen.generator.naming import NamingPolicy, NamingRules
from clientgen.generator.request import RequestDescriptor, generate_requests
from clientgen.generator.type_mapper import TypeDescriptor, TypeSyntax, map_types
from clientgen.ir import ModuleDescriptor, TypeNodeRef


@dataclass(frozen=True)
class DescriptorSet:
    """Everything a backend renders for one module."""

    module: ModuleDescriptor
    types: dict[TypeNodeRef, TypeDescriptor]
    codecs: CodecTable
    requests: tuple[RequestDescriptor, ...]
    policy: NamingPolicy

    @property
    def declared(self) -> list[TypeDescriptor]:
        """Declared types in declaration order."""
        return [self.types[ref] for ref in self.module.declarations]

    def type_of(self, ref: TypeNodeRef) -> TypeDescriptor:
        return self.types[ref]

    def codec_of(self, ref: TypeNodeRef) -> CodecDescriptor:
        return self.codecs[ref]

    def resolved(self, ref: TypeNodeRef) -> TypeDescriptor:
        """Descriptor of the concrete node behind *ref*."""
        return self.types[self.module.deref(ref).id]


def build_descriptors(
    module: ModuleDescriptor, rules: NamingRules, syntax: TypeSyntax
) -> DescriptorSet:
    """Map types, derive codecs and requests for *module*."""
    policy = NamingPolicy(rules)
    types = map_types(module, policy, syntax)
    codecs = generate_codecs(module, types, policy)
    requests = generate_requests(module, types, codecs, policy)
    return DescriptorSet(module=module, types=types, codecs=codecs, requests=requests, policy=policy)
