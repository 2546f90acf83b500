"""
Qualified variable names.

A qualified name is a dot separated list of parts, each part optionally
carrying integer subscripts:

    x
    vehicle.engine.temp
    a.b[2]
    pos[1,2].x

Modelica quoted identifiers ('my var') are accepted as parts.
"""

import re
from dataclasses import dataclass

from flatocp.errors import ParseDomainError

_PART = re.compile(r"""^(?P<name>[A-Za-z_][A-Za-z0-9_]*|'[^']+')(\[(?P<subs>\d+(\s*,\s*\d+)*)\])?$""")


@dataclass(frozen=True)
class QualifiedNamePart:
    """One part of a qualified name, e.g. ``arr[2]``."""

    name: str
    subscripts: tuple[int, ...] = ()

    def __str__(self) -> str:
        if self.subscripts:
            return f"{self.name}[{','.join(str(s) for s in self.subscripts)}]"
        return self.name


def _split_parts(name: str) -> list[str]:
    """Split on dots that are neither inside brackets nor quotes."""
    parts = []
    depth = 0
    quoted = False
    current = []
    for ch in name:
        if ch == "'":
            quoted = not quoted
        elif not quoted and ch == "[":
            depth += 1
        elif not quoted and ch == "]":
            depth -= 1
        if ch == "." and depth == 0 and not quoted:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def parse_qualified_name(name: str) -> tuple[QualifiedNamePart, ...]:
    """Parse a qualified name into its parts.

    Raises:
        ParseDomainError: if the name is malformed.
    """
    if not name:
        raise ParseDomainError("Empty qualified name")
    parts = []
    for text in _split_parts(name):
        match = _PART.match(text.strip())
        if match is None:
            raise ParseDomainError(f"Malformed qualified name: '{name}'")
        subs = match.group("subs")
        subscripts = tuple(int(s) for s in subs.split(",")) if subs else ()
        parts.append(QualifiedNamePart(match.group("name"), subscripts))
    return tuple(parts)


def format_qualified_name(parts: tuple[QualifiedNamePart, ...]) -> str:
    """Join parts back into the canonical string form."""
    return ".".join(str(p) for p in parts)


def canonical_name(name: str) -> str:
    """Validate a qualified name and return its canonical form."""
    return format_qualified_name(parse_qualified_name(name))
