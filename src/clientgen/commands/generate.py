"""Generate command -- render client modules from an OpenAPI document.

Implements the ``clientgen generate`` top-level command: load the
document, resolve the effective :class:`~clientgen.models.GeneratorConfig`
from flags, environment and ``clientgen.json``, then hand both to
:func:`~clientgen.engine.generate` and report one status line per target
module on stderr.
"""

from __future__ import annotations

from typing import Optional

import typer

from clientgen.engine import GenerationResult, ResultStatus, generate
from clientgen.exceptions import ClientgenError, InvalidUsageError
from clientgen.output import debug, error, get_output, info, success, suggest

_STATUS_TAGS = {
    ResultStatus.WRITTEN: ("WRITE", "green"),
    ResultStatus.UNCHANGED: ("SAME", "dim"),
    ResultStatus.CONFLICT: ("SKIP", "yellow"),
    ResultStatus.FAILED: ("FAIL", "red"),
}


def parse_template_options(values: Optional[list[str]]) -> dict[str, str]:
    """Parse repeated ``--template target=path`` values into a mapping.

    Raises:
        InvalidUsageError: If a value has no ``=`` or an empty side.
    """
    templates: dict[str, str] = {}
    for value in values or []:
        target, sep, path = value.partition("=")
        if not sep or not target.strip() or not path.strip():
            raise InvalidUsageError(f"Invalid --template value '{value}'; expected TARGET=PATH")
        templates[target.strip().lower()] = path.strip()
    return templates


def summarize(results: list[GenerationResult]) -> int:
    """Print a status line per result and return the process exit code.

    The exit code is that of the most significant failure: any failed
    module outranks a write conflict.
    """
    output = get_output()
    for result in results:
        tag, style = _STATUS_TAGS[result.status]
        where = str(result.path) if result.path is not None else result.target
        if result.error is not None and result.status == ResultStatus.FAILED:
            output.status(tag, f"{where}: {result.error}", style)
        else:
            output.status(tag, where, style)

    failed = [r for r in results if r.status == ResultStatus.FAILED]
    conflicts = [r for r in results if r.status == ResultStatus.CONFLICT]
    if conflicts:
        suggest("Rerun with --force to replace existing modules.")
    if failed:
        return max(r.exit_code for r in failed)
    if conflicts:
        return conflicts[0].exit_code
    return 0


def generate_command(
    source: str = typer.Option(
        ...,
        "--input",
        "-i",
        help="OpenAPI document URL or file path (use '-' for stdin).",
    ),
    output_dir: Optional[str] = typer.Option(
        None, "--output", "-o", help="Directory to write generated modules under."
    ),
    targets: Optional[list[str]] = typer.Option(
        None, "--target", "-t", help="Target language (repeatable), e.g. elm, python."
    ),
    module_prefix: Optional[str] = typer.Option(
        None, "--module-prefix", "-m", help="Module name prefix, e.g. Petstore."
    ),
    templates: Optional[list[str]] = typer.Option(
        None, "--template", help="Custom module template as TARGET=PATH (repeatable)."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Replace existing output files."
    ),
    prune: bool = typer.Option(
        False, "--prune", help="Drop schemas no operation references."
    ),
    timestamp: Optional[str] = typer.Option(
        None, "--timestamp", help="Generation timestamp to embed in the module header."
    ),
) -> None:
    """Generate client modules from an OpenAPI document.

    Writes one module per target. Existing files are left untouched unless
    ``--force`` is given and are reported as ``[SKIP]``. With ``--force``, a
    module whose content would not change is reported as ``[SAME]``.

    Example::

        clientgen generate -i openapi.yaml -o src/ -t elm -m Petstore
        clientgen generate -i https://api.example.com/openapi.json -t python -f
        curl -s https://api.example.com/openapi.json | clientgen generate -i - -t python
    """
    from clientgen.config import resolve_config
    from clientgen.parser import load_document, validate_openapi_version

    try:
        config = resolve_config(
            cli_targets=targets,
            cli_module_prefix=module_prefix,
            cli_output=output_dir,
            cli_overwrite=force or None,
            cli_templates=parse_template_options(templates),
            cli_timestamp=timestamp,
            cli_prune=prune or None,
        )
        debug(f"Effective config: {config.model_dump(mode='json')}")

        document = load_document(source)
        version = validate_openapi_version(document)
        info(f"Loaded {source} (OpenAPI {version})")

        results = generate(document, config)
    except ClientgenError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    code = summarize(results)
    if code:
        raise typer.Exit(code=code)
    success(f"Generated {len(results)} module(s) in {config.output_dir}")
