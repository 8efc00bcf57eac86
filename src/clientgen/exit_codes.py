"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~clientgen.exceptions.ClientgenError` subclass.
CI jobs that regenerate clients can inspect the exit code to tell a broken
schema apart from an output conflict without parsing stderr.

Example::

    $ clientgen generate -i openapi.yaml -o src/
    $ echo $?
    7   # EXIT_WRITE_CONFLICT -- rerun with --force to replace the module
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SPEC_PARSE_ERROR = 3
"""The OpenAPI document could not be loaded or parsed."""

EXIT_RESOLUTION_ERROR = 4
"""The OpenAPI document could not be resolved into a complete IR."""

EXIT_TEMPLATE_ERROR = 5
"""A module template was missing, unreadable, or used unknown placeholders."""

EXIT_VALIDATION_ERROR = 6
"""A backend rejected the module text it produced."""

EXIT_WRITE_CONFLICT = 7
"""An output file already exists and overwriting was not allowed."""

EXIT_BACKEND_ERROR = 10
"""A language backend failed to load or is not registered."""

EXIT_INTERNAL_ERROR = 70
"""An internal invariant was violated (a bug in clientgen)."""
