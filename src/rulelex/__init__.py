"""Stack-based lexer engine driven by declarative rule tables."""

from __future__ import annotations

from rulelex.errors import Diagnostic, LexError, RuleTableError
from rulelex.lexer import Lexer, LexerConfig, LexSession, lex
from rulelex.rules import SKIP, ByGroups, Default, Include, Pop, Push, Rule, Using
from rulelex.table import RuleTable, resolve_includes
from rulelex.tokens import Token, TokenType, token_type

__version__ = "0.1.0"

__all__ = [
    "SKIP",
    "ByGroups",
    "Default",
    "Diagnostic",
    "Include",
    "LexError",
    "LexSession",
    "Lexer",
    "LexerConfig",
    "Pop",
    "Push",
    "Rule",
    "RuleTable",
    "RuleTableError",
    "Token",
    "TokenType",
    "Using",
    "lex",
    "resolve_includes",
    "token_type",
    "tokenize",
]


def tokenize(source: str, lexer: str = "terraform", *, strict: bool = False) -> list[Token]:
    """Tokenize source with a registered lexer and return the token list."""
    from rulelex.registry import get_lexer

    return list(get_lexer(lexer).tokenize(source, strict=strict))
