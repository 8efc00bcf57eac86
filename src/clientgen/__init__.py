"""clientgen -- Generate typed API client modules from OpenAPI 3.0/3.1 documents.

This package resolves an OpenAPI document into a language-agnostic graph of
types and operations, then renders one self-contained source module per
target language: type declarations, JSON codecs, and one request function
per operation.

Typical workflow::

    clientgen generate -i openapi.yaml -o src/ -t elm -t python
    clientgen inspect -i openapi.yaml      # list the types and operations

Modules:
    app: Typer application and CLI entry point.
    engine: Programmatic entry point, :func:`~clientgen.engine.generate`.
    ir: The immutable intermediate representation.
    models: Pydantic configuration models and shared enumerations.
    config: XDG paths, atomic writes, and configuration precedence.
    writer: Conflict-aware module writer.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
