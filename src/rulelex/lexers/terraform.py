"""Terraform (HCL) rule table."""

from __future__ import annotations

from rulelex.lexer import Lexer, LexerConfig
from rulelex.registry import register
from rulelex.rules import ByGroups, Include, Pop, Push
from rulelex.tokens import (
    COMMENT_MULTILINE,
    COMMENT_SINGLE,
    KEYWORD,
    KEYWORD_CONSTANT,
    KEYWORD_DECLARATION,
    KEYWORD_TYPE,
    LITERAL_STRING,
    LITERAL_STRING_DELIMITER,
    LITERAL_STRING_ESCAPE,
    LITERAL_STRING_HEREDOC,
    LITERAL_STRING_INTERPOL,
    LITERAL_STRING_NAME,
    NAME_ATTRIBUTE,
    NAME_FUNCTION,
    NAME_VARIABLE,
    OPERATOR,
    PUNCTUATION,
    TEXT,
)


def _arguments(*names: str) -> tuple:
    """Match ``name =`` for arguments the language itself defines."""
    return (
        rf"({'|'.join(names)})\b(\s*)(=)(?!=)(\s*)",
        ByGroups(KEYWORD, TEXT, PUNCTUATION, TEXT),
    )


def _declaration(name: str, block: str, kind=KEYWORD_DECLARATION) -> tuple:
    return (rf"({name})\b(\s*)", ByGroups(kind, TEXT), Push(block))


# Block types have two states each: the block itself, which matches the
# labels and the opening brace, and the body, which runs to the closing
# brace. The closing brace pops both.


def _block(body: str) -> list:
    return [Include("label"), (r"\{", PUNCTUATION, Push(body))]


def _body(*entries: object) -> list:
    return [(r"\}", PUNCTUATION, Pop(2)), *entries, Include("bodyContent")]


RULES = {
    "root": [
        Include("general"),
        _declaration("resource|data", "resourceBlock"),
        _declaration("module", "moduleBlock"),
        _declaration("variable", "variableBlock"),
        _declaration("output", "outputBlock"),
        _declaration("provider", "providerBlock"),
        _declaration("terraform", "terraformBlock"),
        Include("bodyContentLocals"),
        # Everything else lexes as ordinary body content; the top level is
        # more restrictive, but this keeps newer block types readable.
        Include("bodyContent"),
    ],
    "general": [
        (r"\s+", TEXT),
        (r"(?://|#).*", COMMENT_SINGLE),
        (r"/\*[\s\S]*?\*/", COMMENT_MULTILINE),
    ],
    "label": [
        Include("general"),
        (r'([-\w]+|"(?:[^"\\\n]|\\.)*")(\s*)', ByGroups(LITERAL_STRING_NAME, TEXT)),
    ],
    "bodyContent": [
        Include("general"),
        # Arguments have no end marker of their own, so bodies lex as
        # expressions throughout, picking out what look like assignments
        # and nested block headers.
        (r"([-\w]+)(\s*)(=)(?!=)(\s*)", ByGroups(NAME_ATTRIBUTE, TEXT, PUNCTUATION, TEXT)),
        (
            r'([-\w]+)([ \t]*)(?=\{|"|[-\w]+[ \t]*\{)',
            ByGroups(NAME_ATTRIBUTE, TEXT),
            Push("nestedBlock"),
        ),
        Include("expr"),
    ],
    "bodyContentLifecycle": [
        _declaration("lifecycle", "lifecycleBlock", KEYWORD),
    ],
    "bodyContentLocals": [
        _declaration("locals", "localsBlock", KEYWORD),
    ],
    "expr": [
        (r'"', LITERAL_STRING_DELIMITER, Push("templateQuoted")),
        (r"<<-?(\w+)\n(?:.*\n)*?[ \t]*\1\b", LITERAL_STRING_HEREDOC),
        (r"(\w+)(\()", ByGroups(NAME_FUNCTION, PUNCTUATION)),
        (r"(\.)(\w+)", ByGroups(PUNCTUATION, NAME_ATTRIBUTE)),
        (r"(true|false|null)\b", KEYWORD_CONSTANT),
        (r"\w+", NAME_VARIABLE),
        (r"\{", PUNCTUATION, Push("exprBrace")),
        (r"\.\.\.|[\[\]()},.:?]", PUNCTUATION),
        (r"=>|==|!=|<=|>=|&&|\|\||[-+*/%!<>]", OPERATOR),
        (r"=", PUNCTUATION),
    ],
    "typeExpr": [
        (r"(string|number|bool|list|set|map|tuple|object|any)\b", KEYWORD_TYPE),
    ],
    "exprBrace": [
        (r"\}", PUNCTUATION, Pop(1)),
        Include("general"),
        Include("expr"),
    ],
    "templateQuoted": [
        (r'"', LITERAL_STRING_DELIMITER, Pop(1)),
        (r"\$\$\{|%%\{", LITERAL_STRING_ESCAPE),
        (r"\$\{~?", LITERAL_STRING_INTERPOL, Push("templateInterp")),
        (r"%\{~?", LITERAL_STRING_INTERPOL, Push("templateControl")),
        (r"\\[\s\S]", LITERAL_STRING_ESCAPE),
        (r'(?:[^"\\$%]|\$(?!\{)|%(?!\{))+', LITERAL_STRING),
    ],
    "templateInterp": [
        (r"~?\}", PUNCTUATION, Pop(1)),
        Include("general"),
        Include("expr"),
    ],
    "templateControl": [
        (r"~?\}", PUNCTUATION, Pop(1)),
        Include("general"),
        (r"(if|else|endif|for|in|endfor)\b", KEYWORD),
        Include("expr"),
    ],
    "resourceBlock": _block("resourceBody"),
    "resourceBody": _body(
        _arguments("count", "for_each", "depends_on", "provider"),
        _declaration("provisioner", "provisionerBlock"),
        _declaration("connection", "connectionBlock"),
        Include("bodyContentLifecycle"),
        Include("bodyContentLocals"),
    ),
    "moduleBlock": _block("moduleBody"),
    "moduleBody": _body(
        _arguments("source", "version", "count", "for_each", "depends_on", "providers"),
        Include("bodyContentLifecycle"),
        Include("bodyContentLocals"),
    ),
    "variableBlock": _block("variableBody"),
    "variableBody": _body(
        _arguments("type", "default", "description", "sensitive", "nullable"),
        Include("typeExpr"),
    ),
    "outputBlock": _block("outputBody"),
    "outputBody": _body(
        _arguments("value", "description", "sensitive", "depends_on"),
    ),
    "providerBlock": _block("providerBody"),
    "providerBody": _body(
        _arguments("source", "version", "alias"),
        Include("bodyContentLifecycle"),
    ),
    "localsBlock": _block("localsBody"),
    "localsBody": _body(),
    "terraformBlock": _block("terraformBody"),
    "terraformBody": _body(
        _arguments("required_version", "experiments"),
        _declaration("backend|cloud", "backendBlock"),
        _declaration("required_providers", "nestedBlock", KEYWORD),
    ),
    "backendBlock": _block("backendBody"),
    "backendBody": _body(),
    "lifecycleBlock": _block("lifecycleBody"),
    "lifecycleBody": _body(
        _arguments(
            "create_before_destroy",
            "prevent_destroy",
            "ignore_changes",
            "replace_triggered_by",
        ),
    ),
    "provisionerBlock": _block("provisionerBody"),
    "provisionerBody": _body(
        _arguments("when", "on_failure"),
        _declaration("connection", "connectionBlock"),
    ),
    "connectionBlock": _block("connectionBody"),
    "connectionBody": _body(),
    # A block defined by a provider or module rather than the language.
    "nestedBlock": _block("nestedBody"),
    "nestedBody": _body(),
}

TERRAFORM = register(
    Lexer(
        LexerConfig(
            name="Terraform",
            aliases=("terraform", "tf"),
            filenames=("*.tf",),
            mime_types=("application/x-tf", "application/x-terraform"),
        ),
        RULES,
    )
)
