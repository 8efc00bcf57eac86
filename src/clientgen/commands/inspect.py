"""Inspect commands -- examine what a document resolves to.

Provides ``clientgen inspect`` (declared types and operations of one
document, as named by one backend) and ``clientgen targets`` (the
registered backends). Both are read-only and print tables to stdout.
"""

from __future__ import annotations

from typing import Optional

import typer

from clientgen.exceptions import ClientgenError
from clientgen.output import error, format_data, get_output, info


def inspect_command(
    source: str = typer.Option(
        ...,
        "--input",
        "-i",
        help="OpenAPI document URL or file path (use '-' for stdin).",
    ),
    target: str = typer.Option(
        "elm", "--target", "-t", help="Backend whose naming is shown."
    ),
    module_prefix: Optional[str] = typer.Option(
        None, "--module-prefix", "-m", help="Module name prefix."
    ),
    prune: bool = typer.Option(
        False, "--prune", help="Drop schemas no operation references."
    ),
) -> None:
    """Show the declared types and operations of a document.

    Names are those the chosen backend would emit, collision suffixes
    included, so this is the quickest way to see what a schema rename will
    do to generated code.

    Example::

        clientgen inspect -i openapi.yaml
        clientgen inspect -i openapi.yaml -t python --json
    """
    from clientgen.backends import get_backend
    from clientgen.parser import load_document, resolve, validate_openapi_version

    try:
        document = load_document(source)
        validate_openapi_version(document)
        backend = get_backend(target)
        prefix = module_prefix or backend.default_module_prefix
        module = resolve(document, prefix, prune_unused=prune)
        descriptors = backend.describe(module)
    except ClientgenError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    output = get_output()
    format_data({
        "title": module.title,
        "version": module.version or "-",
        "module": backend.module_name(prefix),
        "servers": list(module.servers),
        "types": len(descriptors.declared),
        "operations": len(descriptors.requests),
    })

    type_rows = [
        [t.name or t.expression, t.kind.value, t.node_id, "yes" if t.recursive else ""]
        for t in descriptors.declared
    ]
    output.print_table(
        ["Type", "Kind", "Source", "Recursive"],
        type_rows,
        title=f"Types ({len(type_rows)})",
    )

    op_rows = []
    for req in descriptors.requests:
        statuses = " ".join(r.status for r in req.responses)
        op_rows.append([
            req.function_name,
            req.method.value.upper(),
            req.path,
            statuses,
            "yes" if req.deprecated else "",
        ])
    output.print_table(
        ["Function", "Method", "Path", "Responses", "Deprecated"],
        op_rows,
        title=f"Operations ({len(op_rows)})",
    )


def targets_command() -> None:
    """List the registered backend targets.

    Built-in backends and those contributed through the
    ``clientgen.backends`` entry-point group are listed together.

    Example::

        clientgen targets
    """
    from clientgen.backends import available_backends, get_backend

    rows: list[list[str]] = []
    for tag in available_backends():
        try:
            backend = get_backend(tag)
        except ClientgenError as exc:
            rows.append([tag, "-", "-", f"unavailable: {exc}"])
            continue
        rows.append([
            tag,
            backend.file_extension,
            backend.module_name(backend.default_module_prefix),
            "",
        ])

    if not rows:
        info("No backends registered.")
        return
    get_output().print_table(["Target", "Extension", "Default module", "Status"], rows, title="Targets")
