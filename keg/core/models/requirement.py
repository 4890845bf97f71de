"""
Version and Requirement — constraint matching for installed packages (pure).

Versions are dotted numeric strings (``"1.2.10"``). Requirements are one
or more comma-separated ``<op> <version>`` clauses, all of which must hold:

    "> 0"            any version
    ">= 1.2, < 2"    range
    "~> 1.2"         >= 1.2, < 2.0
    "~> 1.2.3"       >= 1.2.3, < 1.3
    "1.4"            exactly 1.4

No I/O.
"""

from __future__ import annotations

import re
from functools import total_ordering

from keg.core.errors import InvalidVersionError

_VERSION_RE = re.compile(r"^\d+(\.\d+)*$")
_CLAUSE_RE = re.compile(r"^\s*(=|!=|>=|<=|>|<|~>)?\s*(\S+)\s*$")

DEFAULT_REQUIREMENT = "> 0"


@total_ordering
class Version:
    """A comparable dotted version. Missing trailing segments count as 0."""

    def __init__(self, text: str):
        text = str(text).strip()
        if not _VERSION_RE.match(text):
            raise InvalidVersionError(f"Malformed version: {text!r}")
        self.text = text
        self.segments = tuple(int(x) for x in text.split("."))

    def _key(self) -> tuple[int, ...]:
        segs = list(self.segments)
        while len(segs) > 1 and segs[-1] == 0:
            segs.pop()
        return tuple(segs)

    def bump(self) -> Version:
        """Next release for ``~>``: drop the last segment, increment the new last."""
        segs = list(self.segments[:-1]) if len(self.segments) > 1 else list(self.segments)
        segs[-1] += 1
        return Version(".".join(str(s) for s in segs))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: Version) -> bool:
        return self.segments_padded(len(other.segments)) < other.segments_padded(len(self.segments))

    def segments_padded(self, length: int) -> tuple[int, ...]:
        return self.segments + (0,) * max(0, length - len(self.segments))

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Version({self.text!r})"


_OPS = {
    "=": lambda v, r: v == r,
    "!=": lambda v, r: v != r,
    ">": lambda v, r: v > r,
    "<": lambda v, r: v < r,
    ">=": lambda v, r: v >= r,
    "<=": lambda v, r: v <= r,
    "~>": lambda v, r: r <= v < r.bump(),
}


class Requirement:
    """A set of version clauses that must all be satisfied."""

    def __init__(self, text: str = DEFAULT_REQUIREMENT):
        self.text = (text or DEFAULT_REQUIREMENT).strip()
        self.clauses: list[tuple[str, Version]] = []
        for part in self.text.split(","):
            match = _CLAUSE_RE.match(part)
            if not match:
                raise InvalidVersionError(f"Malformed requirement: {self.text!r}")
            op, version = match.group(1) or "=", match.group(2)
            self.clauses.append((op, Version(version)))

    def satisfied_by(self, version: str | Version) -> bool:
        if not isinstance(version, Version):
            version = Version(version)
        return all(_OPS[op](version, ref) for op, ref in self.clauses)

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Requirement({self.text!r})"
