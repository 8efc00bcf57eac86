"""Deterministic identifier naming for generated code.

A backend describes its identifier conventions with :class:`NamingRules`;
a :class:`NamingPolicy` applies them for one generation run. The policy
remembers every name it hands out, per scope, so:

* the same ``(scope, key)`` always yields the same identifier, and
* two keys whose sanitized spellings collide get numeric suffixes
  (``UserId``, ``UserId2``, ``UserId3``) in the order they were first
  requested.

Callers request names in declaration order, which makes the suffixes stable
across runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

CASES = ("pascal", "camel", "snake", "upper_snake")

_WORD = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")
_SEPARATORS = re.compile(r"[^0-9A-Za-z]+")


@dataclass(frozen=True)
class NamingRules:
    """Identifier conventions of one target language.

    Attributes:
        type_case: Case of type names (and of union/enum constructors when
            ``qualified_members`` is set).
        value_case: Case of functions and record fields.
        member_case: Case of enum members.
        reserved: Words that must be escaped with ``reserved_suffix``.
        builtin_names: Names already taken in the type, value and member
            scopes (prelude types, helpers emitted by the backend itself).
            Field scopes start empty.
        digit_prefix: Prefix for identifiers that would start with a digit.
        qualified_members: Whether enum members and union constructors share
            the module-wide type scope and are prefixed with their type name.
    """

    type_case: str = "pascal"
    value_case: str = "camel"
    member_case: str = "pascal"
    reserved: frozenset[str] = frozenset()
    reserved_suffix: str = "_"
    builtin_names: frozenset[str] = frozenset()
    digit_prefix: str = "N"
    qualified_members: bool = False

    def __post_init__(self) -> None:
        for case in (self.type_case, self.value_case, self.member_case):
            if case not in CASES:
                raise ValueError(f"Unknown identifier case '{case}'; expected one of {CASES}")


def split_words(raw: str) -> list[str]:
    """Split *raw* into words on separators and camelCase boundaries.

    Example::

        >>> split_words("HTTPServer-v2_status")
        ['HTTP', 'Server', 'v', '2', 'status']
    """
    words: list[str] = []
    for part in _SEPARATORS.split(raw):
        words.extend(_WORD.findall(part))
    return words


def convert_case(words: list[str], case: str) -> str:
    """Join *words* in the given *case* (one of :data:`CASES`)."""
    if case == "pascal":
        return "".join(w[:1].upper() + w[1:] for w in words)
    if case == "camel":
        head, tail = words[0], words[1:]
        return head.lower() + "".join(w[:1].upper() + w[1:] for w in tail)
    if case == "snake":
        return "_".join(w.lower() for w in words)
    if case == "upper_snake":
        return "_".join(w.upper() for w in words)
    raise ValueError(f"Unknown identifier case '{case}'")


@dataclass
class NamingPolicy:
    """Hands out collision-free identifiers for one generation run.

    One policy is created per backend invocation and is not shared between
    threads.
    """

    rules: NamingRules
    _assigned: dict[tuple[str, str], str] = field(default_factory=dict, init=False, repr=False)
    _taken: dict[str, set[str]] = field(default_factory=dict, init=False, repr=False)

    def identifier(self, raw: str, case: str) -> str:
        """Sanitize *raw* into an identifier in *case*, without collision handling."""
        words = split_words(raw) or ["value"]
        name = convert_case(words, case)
        if name[0].isdigit():
            prefix = self.rules.digit_prefix
            name = (prefix.lower() if case in ("camel", "snake") else prefix) + name
        if name in self.rules.reserved:
            name += self.rules.reserved_suffix
        return name

    def reserve(self, scope: str, names: Iterable[str]) -> None:
        """Mark *names* as taken in *scope* without assigning them to a key."""
        self._scope(scope).update(names)

    def name(self, scope: str, key: str, raw: str, case: str) -> str:
        """Return the identifier for *key* within *scope*.

        Args:
            scope: Namespace the identifier lives in (``"type"``, ``"value"``,
                or a per-record scope for field names).
            key: Stable identity of the named thing, e.g. a node id.
            raw: Source spelling to derive the identifier from.
            case: One of :data:`CASES`.
        """
        assigned = self._assigned.get((scope, key))
        if assigned is not None:
            return assigned

        base = self.identifier(raw, case)
        taken = self._scope(scope)
        candidate = base
        suffix = 2
        while candidate in taken:
            candidate = f"{base}{suffix}"
            suffix += 1

        taken.add(candidate)
        self._assigned[(scope, key)] = candidate
        return candidate

    # --- Convenience wrappers ---

    def type_name(self, key: str, raw: str) -> str:
        return self.name("type", key, raw, self.rules.type_case)

    def function_name(self, key: str, raw: str) -> str:
        return self.name("value", key, raw, self.rules.value_case)

    def field_name(self, owner: str, key: str, raw: str) -> str:
        return self.name(f"fields:{owner}", key, raw, self.rules.value_case)

    def member_name(self, owner: str, owner_name: str, key: str, raw: str) -> str:
        """Name an enum member or union constructor belonging to *owner*."""
        if self.rules.qualified_members:
            return self.name("type", f"{owner}#{key}", f"{owner_name} {raw}", self.rules.type_case)
        return self.name(f"members:{owner}", key, raw, self.rules.member_case)

    def _scope(self, scope: str) -> set[str]:
        if scope not in self._taken:
            # Record fields live in their own namespace and never meet builtins.
            seed = () if scope.startswith("fields:") else self.rules.builtin_names
            self._taken[scope] = set(seed)
        return self._taken[scope]
