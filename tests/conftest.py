"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from rulelex.lexers import TERRAFORM
from rulelex.tokens import TEXT, Token, TokenType


@pytest.fixture
def lex():
    """Return a helper that tokenizes Terraform source and returns the tokens."""

    def _lex(source: str, start: str = "root") -> list[Token]:
        return list(TERRAFORM.tokenize(source, start))

    return _lex


@pytest.fixture
def lex_significant(lex):
    """Like ``lex`` but drops whitespace-only Text tokens."""

    def _lex(source: str, start: str = "root") -> list[Token]:
        return [t for t in lex(source, start) if not (t.type == TEXT and t.value.isspace())]

    return _lex


def assert_types(tokens: list[Token], expected: list[TokenType]) -> None:
    """Assert that the token types match the expected list."""
    actual = [t.type for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_values(tokens: list[Token], expected: list[str]) -> None:
    """Assert that the token values match the expected list."""
    actual = [t.value for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def find_tokens(tokens: list[Token], tt: TokenType) -> list[Token]:
    """Return all tokens of the given type."""
    return [t for t in tokens if t.type == tt]


def joined(tokens: list[Token]) -> str:
    """Concatenate token values."""
    return "".join(t.value for t in tokens)
