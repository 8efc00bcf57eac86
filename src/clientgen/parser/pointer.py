"""JSON pointer helpers for local ``$ref`` values (RFC 6901).

Pointers double as node ids in the IR, so every pointer clientgen builds
goes through :func:`child_pointer` and every ``$ref`` it reads goes through
:func:`canonical_pointer`; two spellings of one location always compare
equal.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import unquote

from clientgen.exceptions import UnresolvedReferenceError


def split_pointer(ref: Any) -> list[str]:
    """Split a local ``$ref`` into unescaped segments.

    Handles ``~0``/``~1`` escaping and percent-encoded URI fragments.

    Raises:
        UnresolvedReferenceError: If *ref* is not a local ``#/`` pointer.
    """
    if not isinstance(ref, str) or not ref.startswith("#/"):
        raise UnresolvedReferenceError(
            f"External $ref not supported: {ref!r}. "
            "Only internal references (#/...) are handled."
        )
    return [
        unquote(segment).replace("~1", "/").replace("~0", "~")
        for segment in ref[2:].split("/")
    ]


def child_pointer(base: str, *segments: Any) -> str:
    """Append escaped *segments* to the pointer *base*."""
    escaped = [str(s).replace("~", "~0").replace("/", "~1") for s in segments]
    return "/".join([base, *escaped])


def canonical_pointer(ref: str) -> str:
    """Return the canonical spelling of *ref*."""
    return child_pointer("#", *split_pointer(ref))


def lookup_pointer(ref: str, root: dict[str, Any]) -> Any:
    """Resolve a single ``$ref`` string against the document root.

    Args:
        ref: The ``$ref`` value, e.g. ``'#/components/schemas/Pet'``.
        root: The full document dictionary.

    Returns:
        The value found at the referenced location.

    Raises:
        UnresolvedReferenceError: If the reference is external, or any
            segment does not exist in the document.
    """
    current: Any = root
    for segment in split_pointer(ref):
        if isinstance(current, dict):
            if segment not in current:
                raise UnresolvedReferenceError(
                    f"Cannot resolve $ref '{ref}': key '{segment}' not found"
                )
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                raise UnresolvedReferenceError(
                    f"Cannot resolve $ref '{ref}': invalid array index '{segment}'"
                ) from None
        else:
            raise UnresolvedReferenceError(
                f"Cannot resolve $ref '{ref}': cannot navigate into "
                f"{type(current).__name__}"
            )
    return current
