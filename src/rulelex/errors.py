"""Error types with formatted source context."""

from __future__ import annotations

from dataclasses import dataclass

from rulelex.tokens import Position


class RuleTableError(Exception):
    """Raised when a rule table fails validation, before any lexing."""

    def __init__(self, message: str, state: str | None = None, rule_index: int | None = None) -> None:
        self.message = message
        self.state = state
        self.rule_index = rule_index
        super().__init__(self.format())

    @property
    def location(self) -> str:
        if self.state is None:
            return "<table>"
        if self.rule_index is None:
            return self.state
        return f"{self.state}[{self.rule_index}]"

    def format(self) -> str:
        return f"error: {self.message}\n  --> {self.location}"


class LexError(Exception):
    """Raised in strict mode on the first lexical gap or stack underflow."""

    def __init__(self, message: str, position: Position, source: str) -> None:
        self.message = message
        self.position = position
        self.source = source
        super().__init__(self.format())

    def format(self, filename: str = "<input>") -> str:
        lines = self.source.splitlines(keepends=True)
        line_idx = self.position.line - 1
        col = self.position.column

        # Build the source line (strip trailing newline for display)
        if 0 <= line_idx < len(lines):
            source_line = lines[line_idx].rstrip("\n").rstrip("\r")
        else:
            source_line = ""

        pad = " " * (col - 1)

        line_num = str(self.position.line)
        gutter_width = len(line_num) + 1

        blank_gutter = " " * gutter_width + "|"
        line_gutter = f"{line_num:>{gutter_width - 1}} |"

        return (
            f"error: {self.message}\n"
            f"{' ' * gutter_width}--> {filename}:{self.position.line}:{col}\n"
            f"{blank_gutter}\n"
            f"{line_gutter} {source_line}\n"
            f"{blank_gutter} {pad}^"
        )


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A recovered runtime anomaly, attached to the Error token it produced."""

    message: str
    offset: int
    stack: tuple[str, ...]

    def __str__(self) -> str:
        return f"{self.message} at offset {self.offset} (stack: {' > '.join(self.stack)})"
