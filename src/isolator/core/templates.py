"""Path templates with ``$NAME`` placeholders.

A template is resolved by plain sequential text replacement: each
``(name, value)`` pair rewrites every ``$name`` in the current text, in the
order given.  Because later pairs see the output of earlier ones, a value
that contains another key's token is rewritten again::

    >>> resolve("$A", [("A", "$B"), ("B", "X")])
    'X'

There is no escaping syntax.  A ``$`` that does not start a configured name
is left as-is, so an undefined placeholder survives into the resolved path
and shows up later as a bind or connect failure.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

Substitution = tuple[str, str]
"""A ``(name, value)`` pair referenced in templates as ``$name``."""


def resolve_text(template: str, substitutions: Iterable[Substitution]) -> str:
    """Apply ``substitutions`` to ``template`` in order and return the text."""
    result = template
    for name, value in substitutions:
        result = result.replace(f"${name}", value)
    return result


def resolve(template: str, substitutions: Sequence[Substitution]) -> Path:
    """Resolve ``template`` into a filesystem path.

    Never fails: unknown placeholders remain literal text.
    """
    return Path(resolve_text(template, substitutions))


def parse_substitution(raw: str) -> Substitution:
    """Parse a ``NAME=VALUE`` command-line pair.

    The value may itself contain ``=``; only the first one separates.

    Raises:
        ValueError: If there is no ``=`` or the name is empty.
    """
    name, sep, value = raw.partition("=")
    if not sep:
        raise ValueError(f"invalid NAME=VALUE: no `=` found in `{raw}`")
    if not name:
        raise ValueError(f"invalid NAME=VALUE: empty name in `{raw}`")
    return name, value


__all__ = ["Substitution", "parse_substitution", "resolve", "resolve_text"]
