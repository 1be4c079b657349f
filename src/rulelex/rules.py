"""Rule table building blocks: rules, includes, emitters and mutators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from rulelex.tokens import TEXT, TokenType

# A ByGroups entry that consumes its group without emitting a token.
SKIP = None


@dataclass(frozen=True, slots=True)
class Using:
    """Re-lex the matched text with the same table, starting from ``state``."""

    state: str


GroupEmitter = Union[TokenType, Using, None]


@dataclass(frozen=True, slots=True, init=False)
class ByGroups:
    """Emit one token per capture group, each with its own classification."""

    emitters: tuple[GroupEmitter, ...]

    def __init__(self, *emitters: GroupEmitter) -> None:
        for emitter in emitters:
            if emitter is not None and not isinstance(emitter, (TokenType, Using)):
                raise TypeError(f"invalid group emitter: {emitter!r}")
        object.__setattr__(self, "emitters", tuple(emitters))


Emitter = Union[TokenType, ByGroups, Using]


@dataclass(frozen=True, slots=True, init=False)
class Push:
    """Push states onto the stack; the last name becomes the new top.

    With no names, the current state is pushed again.
    """

    states: tuple[str, ...]

    def __init__(self, *states: str) -> None:
        object.__setattr__(self, "states", tuple(states))


@dataclass(frozen=True, slots=True)
class Pop:
    """Pop ``count`` frames off the stack."""

    count: int = 1

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError(f"Pop count must be at least 1, got {self.count}")


Mutator = Union[Push, Pop]


@dataclass(frozen=True, slots=True)
class Rule:
    """One pattern with its emitter and optional stack mutation."""

    pattern: str
    emitter: Emitter
    mutator: Mutator | None = None


@dataclass(frozen=True, slots=True)
class Include:
    """Splice the named state's rules in place at table construction."""

    state: str


def Default(mutator: Mutator) -> Rule:
    """A zero-width rule that only changes the stack."""
    return Rule("", TEXT, mutator)


StateEntry = Union[Rule, Include]


def as_entry(entry: object) -> StateEntry:
    """Normalize a table entry, accepting ``(pattern, emitter[, mutator])`` tuples."""
    if isinstance(entry, (Rule, Include)):
        return entry
    if isinstance(entry, tuple) and len(entry) in (2, 3):
        pattern, emitter, *rest = entry
        mutator = rest[0] if rest else None
        if not isinstance(pattern, str):
            raise TypeError(f"rule pattern must be a string, got {pattern!r}")
        if not isinstance(emitter, (TokenType, ByGroups, Using)):
            raise TypeError(f"invalid rule emitter: {emitter!r}")
        if mutator is not None and not isinstance(mutator, (Push, Pop)):
            raise TypeError(f"invalid rule mutator: {mutator!r}")
        return Rule(pattern, emitter, mutator)
    raise TypeError(f"invalid state entry: {entry!r}")
