"""OpenAPI document parser -- load a document and resolve it into the IR.

This sub-package is the first half of the clientgen pipeline: it turns a raw
OpenAPI 3.x document (JSON or YAML, local file or remote URL) into a
:class:`~clientgen.ir.ModuleDescriptor` the generators consume.

Typical usage::

    from clientgen.parser import load_document, validate_openapi_version, resolve

    document = load_document("petstore.yaml")
    validate_openapi_version(document)
    module = resolve(document, module_prefix="Petstore")

Sub-modules:

* :mod:`~clientgen.parser.loader` -- I/O layer (URL, file, stdin) plus format
  detection and OpenAPI version validation.
* :mod:`~clientgen.parser.pointer` -- JSON pointer parsing and lookup.
* :mod:`~clientgen.parser.resolver` -- Schema resolution into memoized IR
  nodes with cycle detection.
* :mod:`~clientgen.parser.extractor` -- Walks ``paths`` and produces
  :class:`~clientgen.ir.OperationNode` objects.
"""

from clientgen.parser.loader import load_document, validate_openapi_version
from clientgen.parser.resolver import resolve

__all__ = ["load_document", "validate_openapi_version", "resolve"]
