"""Load lexers from TOML rule-table files.

A rule-table file has a ``[lexer]`` table of metadata and one array of
tables per state::

    [lexer]
    name = "INI"
    aliases = ["ini"]
    filenames = ["*.ini"]

    [[states.root]]
    include = "comments"

    [[states.root]]
    pattern = '(\\w+)(\\s*)(=)'
    groups = ["NameAttribute", "skip", "Punctuation"]

    [[states.root]]
    pattern = '\\['
    token = "Punctuation"
    push = "section"

Each rule entry takes exactly one of ``token``, ``groups``, ``using``; a
group entry is a token type name, ``"skip"``, or ``{ using = "state" }``.
Mutators are ``push`` (a name or list of names; an empty list re-pushes the
current state) or ``pop`` (a count). ``include = "state"`` splices another
state, and ``default = true`` with a mutator makes a zero-width rule.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from rulelex.errors import RuleTableError
from rulelex.lexer import Lexer, LexerConfig
from rulelex.rules import SKIP, ByGroups, Default, Include, Pop, Push, Rule, StateEntry, Using
from rulelex.tokens import token_type

_CONFIG_KEYS = {
    "name",
    "aliases",
    "filenames",
    "mime_types",
    "case_insensitive",
    "dot_all",
    "not_multiline",
    "priority",
}
_RULE_KEYS = {"pattern", "token", "groups", "using", "push", "pop", "include", "default"}


def load_lexer(path: str | Path) -> Lexer:
    """Read a TOML rule-table file and build a validated Lexer."""
    path = Path(path)
    return loads_lexer(path.read_text(encoding="utf-8"), default_name=path.stem)


def loads_lexer(text: str, default_name: str = "custom") -> Lexer:
    """Build a Lexer from TOML rule-table text."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise RuleTableError(f"invalid TOML: {exc}") from exc

    config = _parse_config(data.get("lexer", {}), default_name)

    states = data.get("states")
    if not isinstance(states, dict) or not states:
        raise RuleTableError("rule table needs a [states] table with at least one state")

    definitions: dict[str, list[StateEntry]] = {}
    for name, entries in states.items():
        if not isinstance(entries, list):
            raise RuleTableError("state must be an array of tables ([[states.NAME]])", name)
        definitions[name] = [_parse_entry(entry, name, i) for i, entry in enumerate(entries)]

    return Lexer(config, definitions)


def _parse_config(raw: Any, default_name: str) -> LexerConfig:
    if not isinstance(raw, dict):
        raise RuleTableError("[lexer] must be a table")
    unknown = set(raw) - _CONFIG_KEYS
    if unknown:
        raise RuleTableError(f"unknown [lexer] keys: {', '.join(sorted(unknown))}")
    return LexerConfig(
        name=str(raw.get("name", default_name)),
        aliases=tuple(str(a) for a in raw.get("aliases", [])),
        filenames=tuple(str(f) for f in raw.get("filenames", [])),
        mime_types=tuple(str(m) for m in raw.get("mime_types", [])),
        case_insensitive=bool(raw.get("case_insensitive", False)),
        dot_all=bool(raw.get("dot_all", False)),
        not_multiline=bool(raw.get("not_multiline", False)),
        priority=float(raw.get("priority", 0.0)),
    )


def _parse_entry(entry: Any, state: str, index: int) -> StateEntry:
    if not isinstance(entry, dict):
        raise RuleTableError("rule entry must be a table", state, index)
    unknown = set(entry) - _RULE_KEYS
    if unknown:
        raise RuleTableError(f"unknown rule keys: {', '.join(sorted(unknown))}", state, index)

    if "include" in entry:
        if len(entry) != 1:
            raise RuleTableError("include entries take no other keys", state, index)
        return Include(str(entry["include"]))

    mutator = _parse_mutator(entry, state, index)

    if entry.get("default"):
        if mutator is None:
            raise RuleTableError("default rules need push or pop", state, index)
        return Default(mutator)

    if "pattern" not in entry:
        raise RuleTableError("rule entry needs a pattern", state, index)

    emitters = [key for key in ("token", "groups", "using") if key in entry]
    if len(emitters) != 1:
        raise RuleTableError("rule entry needs exactly one of token, groups, using", state, index)

    if "token" in entry:
        emitter = token_type(str(entry["token"]))
    elif "using" in entry:
        emitter = Using(str(entry["using"]))
    else:
        groups = entry["groups"]
        if not isinstance(groups, list):
            raise RuleTableError("groups must be a list", state, index)
        emitter = ByGroups(*(_parse_group(g, state, index) for g in groups))

    return Rule(str(entry["pattern"]), emitter, mutator)


def _parse_group(raw: Any, state: str, index: int):
    if isinstance(raw, dict) and set(raw) == {"using"}:
        return Using(str(raw["using"]))
    if isinstance(raw, str):
        return SKIP if raw == "skip" else token_type(raw)
    raise RuleTableError(f"invalid group emitter {raw!r}", state, index)


def _parse_mutator(entry: dict[str, Any], state: str, index: int) -> Push | Pop | None:
    if "push" in entry and "pop" in entry:
        raise RuleTableError("a rule cannot both push and pop", state, index)
    if "push" in entry:
        names = entry["push"]
        if isinstance(names, str):
            names = [names]
        return Push(*(str(n) for n in names))
    if "pop" in entry:
        count = entry["pop"]
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise RuleTableError(f"pop must be a positive integer, got {count!r}", state, index)
        return Pop(count)
    return None
