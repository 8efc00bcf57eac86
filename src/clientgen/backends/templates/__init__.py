"""Module templates: the closed placeholder set, validation and rendering.

A module template is a Jinja2 template that lays out one generated source
file. It may reference only the names in :data:`PLACEHOLDERS`; anything
else is rejected by :func:`validate_template` before rendering, so a typo in
a custom template fails fast instead of producing a silently broken module.

The built-in templates live next to this module as ``*.j2`` files and are
read with :func:`load_default_template`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Union

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError, meta

from clientgen.exceptions import TemplateError

TEMPLATE_DIR = Path(__file__).parent
"""Directory holding the built-in ``*.j2`` module templates."""

FRAGMENT_SLOTS = ("types", "codecs", "requests", "error_types")
"""Placeholders receiving generated code."""

PLACEHOLDERS = frozenset(
    {"module_name", "api_description", "generation_timestamp", "imports", *FRAGMENT_SLOTS}
)
"""Every name a module template may reference."""


def _create_jinja_env() -> Environment:
    """Create the Jinja2 environment used for module templates.

    Autoescape is off because the output is source code, not HTML.
    ``StrictUndefined`` turns any unresolved name into an error.
    """
    return Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def validate_template(source: str) -> set[str]:
    """Check that *source* only uses known placeholders.

    Args:
        source: Template text.

    Returns:
        The placeholders the template references.

    Raises:
        TemplateError: On a syntax error, an unknown placeholder, a missing
            ``module_name``, or when no fragment slot is referenced.
    """
    env = _create_jinja_env()
    try:
        parsed = env.parse(source)
    except TemplateSyntaxError as exc:
        raise TemplateError(f"Template syntax error on line {exc.lineno}: {exc.message}") from exc

    names = set(meta.find_undeclared_variables(parsed))
    unknown = sorted(names - PLACEHOLDERS)
    if unknown:
        raise TemplateError(
            f"Unknown template placeholder(s): {', '.join(unknown)}. "
            f"Allowed: {', '.join(sorted(PLACEHOLDERS))}"
        )
    if "module_name" not in names:
        raise TemplateError("Template must reference 'module_name'")
    if not names.intersection(FRAGMENT_SLOTS):
        raise TemplateError(
            f"Template must reference at least one of: {', '.join(FRAGMENT_SLOTS)}"
        )
    return names


def render_template(source: str, context: Mapping[str, Any]) -> str:
    """Validate *source* and render it with *context*.

    Raises:
        TemplateError: If validation or rendering fails.
    """
    validate_template(source)
    env = _create_jinja_env()
    try:
        return env.from_string(source).render(**context)
    except UndefinedError as exc:
        raise TemplateError(f"Template references an unset placeholder: {exc}") from exc


def load_template(path: Union[str, Path]) -> str:
    """Read a custom template from disk.

    Raises:
        TemplateError: If the file cannot be read.
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateError(f"Cannot read template {path}: {exc}") from exc


def load_default_template(filename: str) -> str:
    """Read a built-in template shipped in :data:`TEMPLATE_DIR`."""
    return (TEMPLATE_DIR / filename).read_text(encoding="utf-8")
