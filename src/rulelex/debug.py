"""Token stream dumps for the CLI."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterable
from typing import TextIO

from rulelex.lexer import LexSession
from rulelex.tokens import Token


def dump_tokens(tokens: Iterable[Token], *, file: TextIO | None = None, fmt: str = "text") -> int:
    """Write tokens to *file* as text lines or a JSON array. Returns the count."""
    file = file if file is not None else sys.stdout
    if fmt == "json":
        records = [_record(tok) for tok in tokens]
        json.dump(records, file, indent=2)
        file.write("\n")
        return len(records)

    count = 0
    for tok in tokens:
        start = tok.span.start
        line = f"{start.line}:{start.column}\t{tok.type}\t{tok.value!r}"
        if tok.diagnostic is not None:
            line += f"\t# {tok.diagnostic.message}"
        file.write(line + "\n")
        count += 1
    return count


def _record(tok: Token) -> dict[str, object]:
    start = tok.span.start
    record: dict[str, object] = {
        "type": tok.type.name,
        "value": tok.value,
        "line": start.line,
        "column": start.column,
        "offset": start.offset,
    }
    if tok.diagnostic is not None:
        record["diagnostic"] = tok.diagnostic.message
    return record


def dump_session(session: LexSession, *, file: TextIO | None = None) -> None:
    """Print where a finished session ended: stack and diagnostics."""
    file = file if file is not None else sys.stderr
    file.write(f"final stack ({session.depth}): {' > '.join(session.stack)}\n")
    for diag in session.diagnostics:
        file.write(f"diagnostic: {diag}\n")
