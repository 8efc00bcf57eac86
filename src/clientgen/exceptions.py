"""Exception hierarchy for clientgen.

All exceptions inherit from :class:`ClientgenError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`clientgen.exit_codes`.
The top-level error handler in :func:`clientgen.app.main` catches
``ClientgenError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_INTERNAL_ERROR`.

Subclass hierarchy::

    ClientgenError                  (exit 1)
    +-- InvalidUsageError           (exit 2)
    +-- SpecParseError              (exit 3)
    +-- ResolutionError             (exit 4)
    |   +-- UnresolvedReferenceError
    |   +-- AmbiguousMergeError
    |   +-- PathParameterMismatchError
    |   +-- MalformedOperationError
    |   +-- EmptyOperationsError
    +-- TemplateError               (exit 5)
    +-- OutputValidationError       (exit 6)
    +-- WriteConflictError          (exit 7)
    +-- BackendError                (exit 10)
    +-- ConfigError                 (exit 1)
    +-- DecodeError                 (exit 1)
    +-- ClientCallError             (exit 1)
    +-- DecodeDescriptorError       (exit 70)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from clientgen.exit_codes import (
    EXIT_BACKEND_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INTERNAL_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_RESOLUTION_ERROR,
    EXIT_SPEC_PARSE_ERROR,
    EXIT_TEMPLATE_ERROR,
    EXIT_VALIDATION_ERROR,
    EXIT_WRITE_CONFLICT,
)


class ClientgenError(Exception):
    """Base exception for all clientgen errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`clientgen.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ClientgenError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class SpecParseError(ClientgenError):
    """Raised when the OpenAPI document cannot be loaded or parsed."""

    exit_code = EXIT_SPEC_PARSE_ERROR


# --- Resolution ---


class ResolutionError(ClientgenError):
    """Raised when the document cannot be turned into a complete IR.

    Resolution stops at the first error; no partial IR is ever returned.
    The location of the problem is carried as structured context so the
    message is actionable without re-running in verbose mode.

    Args:
        message: Human-readable description of the problem.
        schema_path: JSON pointer of the schema being resolved, if any.
        operation_id: Operation being resolved, if any.
    """

    exit_code = EXIT_RESOLUTION_ERROR

    def __init__(
        self,
        message: str,
        schema_path: Optional[str] = None,
        operation_id: Optional[str] = None,
    ):
        context = []
        if operation_id:
            context.append(f"operation '{operation_id}'")
        if schema_path:
            context.append(f"at {schema_path}")
        full = f"{message} ({', '.join(context)})" if context else message
        super().__init__(full)
        self.reason = message
        self.schema_path = schema_path
        self.operation_id = operation_id


class UnresolvedReferenceError(ResolutionError):
    """Raised when a ``$ref`` points outside the document or at a missing key."""


class AmbiguousMergeError(ResolutionError):
    """Raised when ``allOf`` members define the same field with different types."""


class PathParameterMismatchError(ResolutionError):
    """Raised when path template segments and declared path parameters differ."""


class MalformedOperationError(ResolutionError):
    """Raised for structurally invalid operations (bad parameters, no responses, ...)."""


class EmptyOperationsError(ResolutionError):
    """Raised when the document declares no operations at all."""


# --- Generation ---


class DecodeDescriptorError(ClientgenError):
    """Raised when a codec is requested for a structurally invalid node.

    Resolution guarantees a complete graph, so this indicates a bug rather
    than a problem with the input document.
    """

    exit_code = EXIT_INTERNAL_ERROR


class DecodeError(ClientgenError):
    """Raised when a JSON value does not match the shape a codec expects.

    Args:
        path: Field path of the offending value, e.g. ``.items[2].name``.
            The empty string denotes the root value.
        reason: What was wrong at *path*.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path or '<root>'}: {reason}")
        self.path = path
        self.reason = reason


class ClientCallError(ClientgenError):
    """Uniform client-side failure of a request/response exchange.

    Args:
        kind: One of ``network``, ``unexpected_status`` or ``decode``.
        message: Human-readable description.
        status_code: HTTP status of the response, when one was received.
    """

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class TemplateError(ClientgenError):
    """Raised when a module template is unreadable or uses invalid placeholders."""

    exit_code = EXIT_TEMPLATE_ERROR


class OutputValidationError(ClientgenError):
    """Raised when a backend rejects the module text it generated.

    Args:
        target: Name of the backend that produced the text.
        reason: Why the text was rejected.
    """

    exit_code = EXIT_VALIDATION_ERROR

    def __init__(self, target: str, reason: str):
        super().__init__(f"{target} output failed validation: {reason}")
        self.target = target
        self.reason = reason


class WriteConflictError(ClientgenError):
    """Raised when an output file exists and overwriting was not allowed.

    Args:
        path: The existing file that would have been replaced.
    """

    exit_code = EXIT_WRITE_CONFLICT

    def __init__(self, path: Union[str, Path]):
        super().__init__(f"Refusing to overwrite existing file: {path}")
        self.path = Path(path)


class BackendError(ClientgenError):
    """Raised when a language backend is unknown or fails to load."""

    exit_code = EXIT_BACKEND_ERROR


class ConfigError(ClientgenError):
    """Raised for configuration problems (invalid project file, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
