"""Token types, data structures, and the standard token-type hierarchy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rulelex.errors import Diagnostic


@dataclass(frozen=True, slots=True)
class TokenType:
    """A token classification.

    Types are identified by name and form a hierarchy through ``parent``:
    ``LiteralStringInterpol`` is a child of ``LiteralString``, which is a
    child of ``Literal``. The set is open; any rule table may introduce new
    types without touching the engine.
    """

    name: str
    parent: TokenType | None = field(default=None, compare=False, repr=False)

    def sub(self, suffix: str) -> TokenType:
        """Derive a child type named ``self.name + suffix``."""
        return TokenType(self.name + suffix, self)

    def is_a(self, other: TokenType) -> bool:
        """Return True if this type is ``other`` or one of its descendants."""
        node: TokenType | None = self
        while node is not None:
            if node == other:
                return True
            node = node.parent
        return False

    @property
    def category(self) -> TokenType:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def __str__(self) -> str:
        return self.name


# Generic
TEXT = TokenType("Text")
WHITESPACE = TEXT.sub("Whitespace")
ERROR = TokenType("Error")
OTHER = TokenType("Other")

# Keywords
KEYWORD = TokenType("Keyword")
KEYWORD_CONSTANT = KEYWORD.sub("Constant")
KEYWORD_DECLARATION = KEYWORD.sub("Declaration")
KEYWORD_NAMESPACE = KEYWORD.sub("Namespace")
KEYWORD_PSEUDO = KEYWORD.sub("Pseudo")
KEYWORD_RESERVED = KEYWORD.sub("Reserved")
KEYWORD_TYPE = KEYWORD.sub("Type")

# Names
NAME = TokenType("Name")
NAME_ATTRIBUTE = NAME.sub("Attribute")
NAME_BUILTIN = NAME.sub("Builtin")
NAME_CLASS = NAME.sub("Class")
NAME_CONSTANT = NAME.sub("Constant")
NAME_DECORATOR = NAME.sub("Decorator")
NAME_FUNCTION = NAME.sub("Function")
NAME_LABEL = NAME.sub("Label")
NAME_NAMESPACE = NAME.sub("Namespace")
NAME_TAG = NAME.sub("Tag")
NAME_VARIABLE = NAME.sub("Variable")

# Literals
LITERAL = TokenType("Literal")
LITERAL_DATE = LITERAL.sub("Date")
LITERAL_STRING = LITERAL.sub("String")
LITERAL_STRING_AFFIX = LITERAL_STRING.sub("Affix")
LITERAL_STRING_BACKTICK = LITERAL_STRING.sub("Backtick")
LITERAL_STRING_CHAR = LITERAL_STRING.sub("Char")
LITERAL_STRING_DELIMITER = LITERAL_STRING.sub("Delimiter")
LITERAL_STRING_DOC = LITERAL_STRING.sub("Doc")
LITERAL_STRING_DOUBLE = LITERAL_STRING.sub("Double")
LITERAL_STRING_ESCAPE = LITERAL_STRING.sub("Escape")
LITERAL_STRING_HEREDOC = LITERAL_STRING.sub("Heredoc")
LITERAL_STRING_INTERPOL = LITERAL_STRING.sub("Interpol")
LITERAL_STRING_NAME = LITERAL_STRING.sub("Name")
LITERAL_STRING_OTHER = LITERAL_STRING.sub("Other")
LITERAL_STRING_REGEX = LITERAL_STRING.sub("Regex")
LITERAL_STRING_SINGLE = LITERAL_STRING.sub("Single")
LITERAL_STRING_SYMBOL = LITERAL_STRING.sub("Symbol")
LITERAL_NUMBER = LITERAL.sub("Number")
LITERAL_NUMBER_BIN = LITERAL_NUMBER.sub("Bin")
LITERAL_NUMBER_FLOAT = LITERAL_NUMBER.sub("Float")
LITERAL_NUMBER_HEX = LITERAL_NUMBER.sub("Hex")
LITERAL_NUMBER_INTEGER = LITERAL_NUMBER.sub("Integer")
LITERAL_NUMBER_OCT = LITERAL_NUMBER.sub("Oct")

# Operators and punctuation
OPERATOR = TokenType("Operator")
OPERATOR_WORD = OPERATOR.sub("Word")
PUNCTUATION = TokenType("Punctuation")

# Comments
COMMENT = TokenType("Comment")
COMMENT_HASHBANG = COMMENT.sub("Hashbang")
COMMENT_MULTILINE = COMMENT.sub("Multiline")
COMMENT_PREPROC = COMMENT.sub("Preproc")
COMMENT_SINGLE = COMMENT.sub("Single")
COMMENT_SPECIAL = COMMENT.sub("Special")

STANDARD_TYPES: dict[str, TokenType] = {
    tt.name: tt for tt in list(globals().values()) if isinstance(tt, TokenType)
}


def token_type(name: str) -> TokenType:
    """Resolve a type name, creating a new type for unknown names.

    A new type is parented on the longest standard type whose name prefixes
    it, so ``"NameVariableMagic"`` becomes a child of ``NameVariable``.
    """
    if not name:
        raise ValueError("token type name must not be empty")
    known = STANDARD_TYPES.get(name)
    if known is not None:
        return known
    parent = None
    for candidate in STANDARD_TYPES.values():
        if name.startswith(candidate.name) and (
            parent is None or len(candidate.name) > len(parent.name)
        ):
            parent = candidate
    return TokenType(name, parent)


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Token:
    """A classified span of source text."""

    type: TokenType
    value: str
    span: Span
    diagnostic: Diagnostic | None = None

    @property
    def offset(self) -> int:
        return self.span.start.offset
