"""Built-in CLI sub-commands for clientgen.

This package groups the Typer command modules registered on the root app:

* :mod:`~clientgen.commands.generate` -- render client modules.
* :mod:`~clientgen.commands.inspect` -- list the types and operations a
  document resolves to, and the registered backend targets.
* :mod:`~clientgen.commands.template` -- show and check module templates.

Single commands export a plain callback function registered directly on the
root app; command groups export a :class:`typer.Typer` sub-application.
"""
