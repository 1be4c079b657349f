"""Anchored pattern matching for rules."""

from __future__ import annotations

import re
from dataclasses import dataclass
from re import _parser


@dataclass(frozen=True, slots=True)
class Match:
    """A successful anchored match.

    ``groups`` holds one ``(start, end)`` pair per capture group, or None for
    groups that did not participate. Offsets are absolute.
    """

    start: int
    end: int
    groups: tuple[tuple[int, int] | None, ...]

    @property
    def length(self) -> int:
        return self.end - self.start


def compile_pattern(pattern: str, flags: int = 0) -> re.Pattern[str]:
    """Compile a rule pattern. Raises re.error on invalid syntax."""
    return re.compile(pattern, flags)


def min_width(compiled: re.Pattern[str]) -> int:
    """Return the fewest characters a match of ``compiled`` can consume.

    Lookarounds and anchors count as zero, so ``(?=a)`` has width 0 even
    though it does not match the empty string.
    """
    lo, _ = _parser.parse(compiled.pattern, compiled.flags).getwidth()
    return lo


def can_match_empty(compiled: re.Pattern[str]) -> bool:
    """Return True if the pattern can match somewhere without consuming input."""
    return min_width(compiled) == 0


def match_at(
    compiled: re.Pattern[str], source: str, offset: int, end: int | None = None
) -> Match | None:
    """Match ``compiled`` starting exactly at ``offset``, never searching ahead.

    ``end`` bounds the region visible to the pattern (``$`` and lookaheads
    stop there); it defaults to the end of ``source``.
    """
    m = compiled.match(source, offset, len(source) if end is None else end)
    if m is None:
        return None
    groups = tuple(
        None if m.start(i) == -1 else (m.start(i), m.end(i))
        for i in range(1, compiled.groups + 1)
    )
    return Match(m.start(), m.end(), groups)
