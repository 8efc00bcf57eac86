"""Typer application and CLI entry point for clientgen.

This module wires together the top-level Typer application and registers
the built-in commands (``generate``, ``inspect``, ``targets``,
``template``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
A :class:`~clientgen.exceptions.ClientgenError` that escapes a command
exits with the error's code; any other exception is written to a crash log
under the data directory.

See Also:
    :mod:`clientgen.config`: Configuration precedence and the log directory.
    :mod:`clientgen.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from clientgen import __version__
from clientgen.commands.generate import generate_command
from clientgen.commands.inspect import inspect_command, targets_command
from clientgen.commands.template import template_app
from clientgen.exit_codes import EXIT_INTERNAL_ERROR


app = typer.Typer(
    name="clientgen",
    help="Generate typed API client modules from OpenAPI 3.0/3.1 documents.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("generate")(generate_command)
app.command("inspect")(inspect_command)
app.command("targets")(targets_command)
app.add_typer(template_app, name="template", help="Show and check module templates.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"clientgen {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~clientgen.output.OutputManager` and the
    logging handler from CLI flags, and stores shared options in the Typer
    context.
    """
    from clientgen.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    configure_logging(output)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to the log directory and return its path."""
    from clientgen.config import get_log_dir

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = get_log_dir() / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        encoding="utf-8",
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``clientgen`` console script.

    Unhandled :class:`~clientgen.exceptions.ClientgenError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and exit with
    :data:`~clientgen.exit_codes.EXIT_INTERNAL_ERROR`.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from clientgen.exceptions import ClientgenError
        from clientgen.output import error

        if isinstance(exc, ClientgenError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_INTERNAL_ERROR)
