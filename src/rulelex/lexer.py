"""Rule-table lexer engine: converts source text into a lazy token stream."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass

from rulelex.errors import Diagnostic, LexError, RuleTableError
from rulelex.logger import get_logger
from rulelex.matcher import Match, match_at
from rulelex.rules import SKIP, ByGroups, Emitter, Mutator, Pop, Push, Using
from rulelex.table import CompiledRule, RuleTable
from rulelex.tokens import ERROR, TEXT, Position, Span, Token, TokenType

logger = get_logger(__name__)

DEFAULT_MAX_ZERO_WIDTH_STEPS = 100


def _locate(source: str, offset: int, mark: Position) -> Position:
    """Advance ``mark`` to ``offset`` (which must not be behind it)."""
    newlines = source.count("\n", mark.offset, offset)
    if newlines == 0:
        return Position(mark.line, mark.column + offset - mark.offset, offset)
    last = source.rindex("\n", mark.offset, offset)
    return Position(mark.line + newlines, offset - last, offset)


class LexSession:
    """One lexing call over one input.

    The session owns the cursor, the state stack and the diagnostics; the
    rule table it reads is shared and never modified. Iterating the session
    lexes lazily from the start, so iterating it again reproduces the same
    tokens. After iteration, ``stack``, ``depth`` and ``diagnostics`` describe
    where lexing ended.

    Thread Safety:
        A session must be consumed by one thread at a time. Create one
        session per call; tables can be shared.
    """

    def __init__(
        self,
        table: RuleTable,
        source: str,
        start: str = "root",
        *,
        strict: bool = False,
        max_zero_width_steps: int = DEFAULT_MAX_ZERO_WIDTH_STEPS,
        region: tuple[int, int] | None = None,
        origin: Position | None = None,
    ) -> None:
        if start not in table:
            raise RuleTableError(f"unknown start state {start!r}", start)
        self._table = table
        self._source = source
        self._start = start
        self._strict = strict
        self._max_zero_width_steps = max_zero_width_steps
        self._begin, self._end = region if region is not None else (0, len(source))
        if origin is None:
            origin = _locate(source, self._begin, Position(1, 1, 0))
        self._origin = origin
        self._reset()

    def _reset(self) -> None:
        self._pos = self._begin
        self._mark = self._origin
        self._stack: list[str] = [self._start]
        self._diagnostics: list[Diagnostic] = []

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def stack(self) -> tuple[str, ...]:
        return tuple(self._stack)

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(self._diagnostics)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[Token]:
        return self._run()

    def _run(self) -> Iterator[Token]:
        self._reset()
        source = self._source
        end = self._end
        zero_width_steps = 0
        underflow_at = -1

        while self._pos < end:
            found = self._select()
            if found is None:
                yield self._gap(f"no rule in state {self._stack[-1]!r} matches")
                zero_width_steps = 0
                continue

            rule, m = found
            if m.length == 0:
                zero_width_steps += 1
                if zero_width_steps > self._max_zero_width_steps:
                    logger.warning(
                        "zero-width rules looped %d times at offset %d (stack: %s)",
                        zero_width_steps - 1,
                        self._pos,
                        " > ".join(self._stack),
                    )
                    yield self._gap("zero-width rules made no progress")
                    zero_width_steps = 0
                    continue
            else:
                zero_width_steps = 0

            mutator = rule.mutator
            if isinstance(mutator, Pop) and mutator.count >= len(self._stack):
                if m.length == 0 and underflow_at == self._pos:
                    # The reset stack led back to the same empty underflow.
                    yield self._gap("zero-width rules made no progress")
                    zero_width_steps = 0
                    continue
                underflow_at = self._pos
                yield from self._underflow(mutator, m)
                self._pos = m.end
                continue

            yield from self._emit(rule.emitter, m)
            self._pos = m.end
            self._mutate(mutator)

    def _select(self) -> tuple[CompiledRule, Match] | None:
        """Return the first rule of the current state that matches here."""
        state = self._table[self._stack[-1]]
        for rule in state.rules:
            m = match_at(rule.pattern, self._source, self._pos, self._end)
            if m is not None:
                return rule, m
        return None

    def _mutate(self, mutator: Mutator | None) -> None:
        if isinstance(mutator, Push):
            self._stack.extend(mutator.states or (self._stack[-1],))
        elif isinstance(mutator, Pop):
            del self._stack[-mutator.count :]

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _position(self, offset: int) -> Position:
        if offset < self._mark.offset:
            self._mark = self._origin
        self._mark = _locate(self._source, offset, self._mark)
        return self._mark

    def _token(
        self, tt: TokenType, start: int, end: int, diagnostic: Diagnostic | None = None
    ) -> Token:
        span = Span(self._position(start), self._position(end))
        return Token(tt, self._source[start:end], span, diagnostic)

    def _emit(self, emitter: Emitter, m: Match) -> Iterator[Token]:
        if isinstance(emitter, TokenType):
            if m.length:
                yield self._token(emitter, m.start, m.end)
        elif isinstance(emitter, Using):
            yield from self._sublex(emitter.state, m.start, m.end)
        else:
            yield from self._emit_groups(emitter, m)

    def _emit_groups(self, emitter: ByGroups, m: Match) -> Iterator[Token]:
        cursor = m.start
        for group_emitter, span in zip(emitter.emitters, m.groups):
            if span is None:
                continue
            # Groups inside a lookahead may reach past the match; only
            # text up to m.end belongs to this rule.
            start, stop = max(span[0], cursor), min(span[1], m.end)
            # Groups nested inside one already emitted are covered by it.
            if start >= stop:
                continue
            if start > cursor:
                yield self._token(TEXT, cursor, start)
            if isinstance(group_emitter, Using):
                yield from self._sublex(group_emitter.state, start, stop)
            elif group_emitter is not SKIP:
                yield self._token(group_emitter, start, stop)
            cursor = stop
        if cursor < m.end:
            yield self._token(TEXT, cursor, m.end)

    def _sublex(self, state: str, start: int, end: int) -> Iterator[Token]:
        if start == end:
            return
        nested = LexSession(
            self._table,
            self._source,
            state,
            strict=self._strict,
            max_zero_width_steps=self._max_zero_width_steps,
            region=(start, end),
            origin=self._position(start),
        )
        yield from nested
        self._diagnostics.extend(nested.diagnostics)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def _gap(self, message: str) -> Token:
        """Consume one character as an Error token."""
        start = self._pos
        if self._strict:
            raise LexError(f"{message} {self._source[start]!r}", self._position(start), self._source)
        self._pos += 1
        return self._token(ERROR, start, start + 1)

    def _underflow(self, mutator: Pop, m: Match) -> Iterator[Token]:
        """Report a Pop past the bottom of the stack and reset to the start state."""
        message = f"Pop({mutator.count}) underflows a stack of depth {len(self._stack)}"
        if self._strict:
            raise LexError(message, self._position(m.start), self._source)
        diagnostic = Diagnostic(message, m.start, tuple(self._stack))
        logger.warning("%s", diagnostic)
        self._diagnostics.append(diagnostic)
        if m.length:
            yield self._token(ERROR, m.start, m.end, diagnostic)
        self._stack[:] = [self._start]


@dataclass(frozen=True, slots=True)
class LexerConfig:
    """Lexer metadata and the regex flags its patterns compile with."""

    name: str
    aliases: tuple[str, ...] = ()
    filenames: tuple[str, ...] = ()
    mime_types: tuple[str, ...] = ()
    case_insensitive: bool = False
    dot_all: bool = False
    not_multiline: bool = False
    priority: float = 0.0

    @property
    def flags(self) -> int:
        flags = 0
        if not self.not_multiline:
            flags |= re.MULTILINE
        if self.dot_all:
            flags |= re.DOTALL
        if self.case_insensitive:
            flags |= re.IGNORECASE
        return flags


class Lexer:
    """A named rule table."""

    def __init__(self, config: LexerConfig, rules: Mapping[str, Sequence[object]]) -> None:
        self.config = config
        self.table = rules if isinstance(rules, RuleTable) else RuleTable(rules, flags=config.flags)

    @property
    def name(self) -> str:
        return self.config.name

    def tokenize(self, source: str, start: str = "root", *, strict: bool = False) -> LexSession:
        """Return a lazy session over ``source``."""
        return LexSession(self.table, source, start, strict=strict)

    def __repr__(self) -> str:
        return f"<Lexer {self.config.name}>"


def lex(
    table: RuleTable,
    source: str,
    start: str = "root",
    *,
    strict: bool = False,
    max_zero_width_steps: int = DEFAULT_MAX_ZERO_WIDTH_STEPS,
) -> LexSession:
    """Convenience function: lex ``source`` with ``table`` from ``start``."""
    return LexSession(
        table, source, start, strict=strict, max_zero_width_steps=max_zero_width_steps
    )
