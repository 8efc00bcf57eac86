"""Template commands -- view and check module templates.

Provides the ``clientgen template`` sub-command group. ``show`` prints a
backend's built-in template, which is the usual starting point for a
custom one; ``check`` validates a custom template against the closed
placeholder set without generating anything.
"""

from __future__ import annotations

import typer

from clientgen.exceptions import ClientgenError
from clientgen.output import error, get_output, success

template_app = typer.Typer(no_args_is_help=True)

_SYNTAX_NAMES = {"py": "python", "elm": "elm"}


@template_app.command("show")
def template_show(
    target: str = typer.Argument(help="Backend target, e.g. elm or python."),
) -> None:
    """Print a backend's default module template.

    Example::

        clientgen template show elm > Schemas.elm.j2
    """
    from clientgen.backends import get_backend

    try:
        backend = get_backend(target)
    except ClientgenError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    language = _SYNTAX_NAMES.get(backend.file_extension, "jinja")
    get_output().print_source(backend.default_template, language)


@template_app.command("check")
def template_check(
    path: str = typer.Argument(help="Path of the template to validate."),
) -> None:
    """Validate a custom module template.

    Checks the template syntax and that it references ``module_name``, at
    least one fragment slot, and nothing outside the allowed placeholders.

    Example::

        clientgen template check templates/Schemas.elm.j2
    """
    from clientgen.backends.templates import PLACEHOLDERS, load_template, validate_template

    try:
        source = load_template(path)
        names = validate_template(source)
    except ClientgenError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    unused = sorted(PLACEHOLDERS - names)
    success(f"{path}: valid ({', '.join(sorted(names))})")
    if unused:
        get_output().info(f"Not referenced: {', '.join(unused)}")
