"""Minimal LSP server for rulelex: semantic tokens and lexical diagnostics."""

from __future__ import annotations

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_SEMANTIC_TOKENS_FULL,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    SemanticTokens,
    SemanticTokensLegend,
    SemanticTokensParams,
    SemanticTokenTypes,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from rulelex import __version__
from rulelex.lexer import Lexer
from rulelex.registry import lexer_for_filename
from rulelex.tokens import (
    COMMENT,
    ERROR,
    KEYWORD,
    KEYWORD_TYPE,
    LITERAL_NUMBER,
    LITERAL_STRING,
    LITERAL_STRING_REGEX,
    NAME,
    NAME_ATTRIBUTE,
    NAME_CLASS,
    NAME_FUNCTION,
    NAME_NAMESPACE,
    OPERATOR,
    Token,
    TokenType,
)

# Most specific first; the first ancestor match decides.
SEMANTIC_TYPES: list[tuple[TokenType, SemanticTokenTypes]] = [
    (KEYWORD_TYPE, SemanticTokenTypes.Type),
    (KEYWORD, SemanticTokenTypes.Keyword),
    (NAME_FUNCTION, SemanticTokenTypes.Function),
    (NAME_ATTRIBUTE, SemanticTokenTypes.Property),
    (NAME_CLASS, SemanticTokenTypes.Class),
    (NAME_NAMESPACE, SemanticTokenTypes.Namespace),
    (NAME, SemanticTokenTypes.Variable),
    (LITERAL_STRING_REGEX, SemanticTokenTypes.Regexp),
    (LITERAL_STRING, SemanticTokenTypes.String),
    (LITERAL_NUMBER, SemanticTokenTypes.Number),
    (OPERATOR, SemanticTokenTypes.Operator),
    (COMMENT, SemanticTokenTypes.Comment),
]

LEGEND = SemanticTokensLegend(
    token_types=[str(t.value) for t in dict.fromkeys(st for _, st in SEMANTIC_TYPES)],
    token_modifiers=[],
)
_LEGEND_INDEX = {name: i for i, name in enumerate(LEGEND.token_types)}

server = LanguageServer("rulelex-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full)


def _lexer_for(uri: str) -> Lexer | None:
    filename = uri.rsplit("/", 1)[-1] if "/" in uri else uri
    try:
        return lexer_for_filename(filename)
    except LookupError:
        return None


def _semantic_index(tt: TokenType) -> int | None:
    for ancestor, semantic in SEMANTIC_TYPES:
        if tt.is_a(ancestor):
            return _LEGEND_INDEX[str(semantic.value)]
    return None


def encode_semantic_tokens(tokens: list[Token]) -> list[int]:
    """Encode tokens as LSP relative (line, start, length, type, modifiers) quintuples.

    Multi-line tokens are split into one entry per line.
    """
    data: list[int] = []
    prev_line = 0
    prev_char = 0
    for tok in tokens:
        index = _semantic_index(tok.type)
        if index is None:
            continue
        line = tok.span.start.line - 1
        char = tok.span.start.column - 1
        for i, piece in enumerate(tok.value.split("\n")):
            if i > 0:
                line += 1
                char = 0
            length = len(piece.rstrip("\r"))
            if length == 0:
                continue
            delta_line = line - prev_line
            delta_char = char - prev_char if delta_line == 0 else char
            data.extend((delta_line, delta_char, length, index, 0))
            prev_line, prev_char = line, char
    return data


def _range(start: Token, end: Token) -> Range:
    return Range(
        start=Position(line=start.span.start.line - 1, character=start.span.start.column - 1),
        end=Position(line=end.span.end.line - 1, character=end.span.end.column - 1),
    )


def collect_diagnostics(tokens: list[Token]) -> list[Diagnostic]:
    """One Warning per run of adjacent Error tokens, and one per stack underflow."""
    diagnostics: list[Diagnostic] = []
    run: list[Token] = []

    def flush() -> None:
        if run:
            text = "".join(t.value for t in run)
            diagnostics.append(
                Diagnostic(
                    range=_range(run[0], run[-1]),
                    message=f"unrecognized text {text!r}",
                    severity=DiagnosticSeverity.Warning,
                    source="rulelex",
                )
            )
            run.clear()

    for tok in tokens:
        if tok.type != ERROR:
            flush()
            continue
        if tok.diagnostic is not None:
            flush()
            diagnostics.append(
                Diagnostic(
                    range=_range(tok, tok),
                    message=tok.diagnostic.message,
                    severity=DiagnosticSeverity.Warning,
                    source="rulelex",
                )
            )
            continue
        if run and run[-1].span.end.offset != tok.offset:
            flush()
        run.append(tok)
    flush()
    return diagnostics


def _tokens(ls: LanguageServer, uri: str) -> list[Token]:
    lexer = _lexer_for(uri)
    if lexer is None:
        return []
    doc = ls.workspace.get_text_document(uri)
    return list(lexer.tokenize(doc.source))


def _validate(ls: LanguageServer, uri: str) -> None:
    """Lex the document and publish diagnostics for Error tokens."""
    diagnostics = collect_diagnostics(_tokens(ls, uri))
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


def _semantic_tokens(ls: LanguageServer, uri: str) -> SemanticTokens:
    return SemanticTokens(data=encode_semantic_tokens(_tokens(ls, uri)))


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_SEMANTIC_TOKENS_FULL, LEGEND)
def semantic_tokens_full(ls: LanguageServer, params: SemanticTokensParams) -> SemanticTokens:
    return _semantic_tokens(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
