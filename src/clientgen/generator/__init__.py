"""Language-neutral generators: naming, type mapping, codecs and requests.

Backends build on this sub-package; none of it emits source text.

Sub-modules:

* :mod:`~clientgen.generator.naming` -- Identifier sanitization and
  collision suffixing.
* :mod:`~clientgen.generator.type_mapper` -- IR nodes to
  :class:`~clientgen.generator.type_mapper.TypeDescriptor`.
* :mod:`~clientgen.generator.codec` -- Executable JSON codecs per node.
* :mod:`~clientgen.generator.request` -- Request descriptors per operation.
* :mod:`~clientgen.generator.descriptors` -- Runs all of the above for one
  backend.
"""

from clientgen.generator.codec import ABSENT, CodecDescriptor, UnionValue
from clientgen.generator.descriptors import DescriptorSet, build_descriptors
from clientgen.generator.naming import NamingPolicy, NamingRules
from clientgen.generator.request import RequestDescriptor
from clientgen.generator.type_mapper import TypeDescriptor, TypeSyntax

__all__ = [
    "ABSENT",
    "CodecDescriptor",
    "DescriptorSet",
    "NamingPolicy",
    "NamingRules",
    "RequestDescriptor",
    "TypeDescriptor",
    "TypeSyntax",
    "UnionValue",
    "build_descriptors",
]
