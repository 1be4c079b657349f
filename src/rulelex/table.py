"""State tables: include expansion, validation, and compiled immutable states.

A table is built once from a mapping of state names to ordered entries
(rules, includes, or ``(pattern, emitter[, mutator])`` tuples). Construction
validates everything up front and raises RuleTableError naming the state
and rule index at fault; after that the table is read-only and may be
shared freely between threads and sessions.

States may reference each other through Push in any shape, cycles included.
Include chains, however, must be acyclic because they are expanded here,
once, into flat rule lists.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from rulelex.errors import RuleTableError
from rulelex.logger import get_logger
from rulelex.matcher import can_match_empty, compile_pattern
from rulelex.rules import ByGroups, Include, Push, Rule, StateEntry, Using, as_entry

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CompiledRule:
    rule: Rule
    pattern: re.Pattern[str]

    @property
    def emitter(self):
        return self.rule.emitter

    @property
    def mutator(self):
        return self.rule.mutator


@dataclass(frozen=True, slots=True)
class CompiledState:
    name: str
    rules: tuple[CompiledRule, ...]


def _normalize(definitions: Mapping[str, Sequence[object]]) -> dict[str, tuple[StateEntry, ...]]:
    if not definitions:
        raise RuleTableError("rule table defines no states")
    normalized: dict[str, tuple[StateEntry, ...]] = {}
    for name, entries in definitions.items():
        if not isinstance(name, str) or not name:
            raise RuleTableError(f"invalid state name {name!r}")
        if isinstance(entries, (str, bytes)) or not isinstance(entries, Sequence):
            raise RuleTableError("state entries must be a list", name)
        converted = []
        for index, entry in enumerate(entries):
            try:
                converted.append(as_entry(entry))
            except (TypeError, ValueError) as exc:
                raise RuleTableError(str(exc), name, index) from exc
        normalized[name] = tuple(converted)
    return normalized


def _resolve(normalized: Mapping[str, tuple[StateEntry, ...]]) -> dict[str, tuple[Rule, ...]]:
    memo: dict[str, tuple[Rule, ...]] = {}

    def resolve(name: str, chain: tuple[str, ...]) -> tuple[Rule, ...]:
        if name in memo:
            return memo[name]
        if name in chain:
            cycle = " -> ".join(chain[chain.index(name) :] + (name,))
            raise RuleTableError(f"cyclic include: {cycle}", name)
        rules: list[Rule] = []
        for index, entry in enumerate(normalized[name]):
            if isinstance(entry, Include):
                if entry.state not in normalized:
                    raise RuleTableError(f"include of unknown state {entry.state!r}", name, index)
                rules.extend(resolve(entry.state, chain + (name,)))
            else:
                rules.append(entry)
        memo[name] = tuple(rules)
        return memo[name]

    # Declaration order, not the order the recursion finishes in.
    return {name: resolve(name, ()) for name in normalized}


def resolve_includes(definitions: Mapping[str, Sequence[object]]) -> dict[str, tuple[Rule, ...]]:
    """Expand every Include into the referenced state's resolved rules.

    Pure and idempotent: resolving the result again returns an equal mapping.
    """
    return _resolve(_normalize(definitions))


def _referenced_states(rule: Rule) -> list[str]:
    names: list[str] = []
    if isinstance(rule.emitter, Using):
        names.append(rule.emitter.state)
    elif isinstance(rule.emitter, ByGroups):
        names.extend(e.state for e in rule.emitter.emitters if isinstance(e, Using))
    if isinstance(rule.mutator, Push):
        names.extend(rule.mutator.states)
    return names


def _compile_rule(
    rule: Rule, state: str, index: int, names: Mapping[str, object], flags: int
) -> re.Pattern[str]:
    try:
        compiled = compile_pattern(rule.pattern, flags)
    except re.error as exc:
        raise RuleTableError(f"invalid pattern {rule.pattern!r}: {exc}", state, index) from exc

    if rule.mutator is None and can_match_empty(compiled):
        raise RuleTableError(
            f"pattern {rule.pattern!r} can match the empty string without a stack mutation",
            state,
            index,
        )

    if isinstance(rule.emitter, ByGroups) and len(rule.emitter.emitters) != compiled.groups:
        raise RuleTableError(
            f"pattern {rule.pattern!r} has {compiled.groups} groups "
            f"but {len(rule.emitter.emitters)} group emitters",
            state,
            index,
        )

    for ref in _referenced_states(rule):
        if ref not in names:
            raise RuleTableError(f"reference to unknown state {ref!r}", state, index)

    return compiled


class RuleTable(Mapping[str, CompiledState]):
    """An immutable, validated mapping of state name to compiled state."""

    def __init__(self, definitions: Mapping[str, Sequence[object]], *, flags: int = re.MULTILINE) -> None:
        normalized = _normalize(definitions)

        patterns: dict[Rule, re.Pattern[str]] = {}
        for name, entries in normalized.items():
            for index, entry in enumerate(entries):
                if isinstance(entry, Rule) and entry not in patterns:
                    patterns[entry] = _compile_rule(entry, name, index, normalized, flags)

        resolved = _resolve(normalized)
        self._flags = flags
        self._states: Mapping[str, CompiledState] = MappingProxyType(
            {
                name: CompiledState(name, tuple(CompiledRule(r, patterns[r]) for r in rules))
                for name, rules in resolved.items()
            }
        )
        logger.debug(
            "built rule table: %d states, %d resolved rules",
            len(self._states),
            sum(len(s.rules) for s in self._states.values()),
        )

    @property
    def flags(self) -> int:
        return self._flags

    def __getitem__(self, name: str) -> CompiledState:
        return self._states[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __repr__(self) -> str:
        return f"RuleTable({', '.join(self._states)})"
