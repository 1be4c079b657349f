"""Lexer lookup by name, alias, filename, or MIME type."""

from __future__ import annotations

import fnmatch
import threading
from pathlib import PurePath

from rulelex.lexer import Lexer
from rulelex.logger import get_logger

logger = get_logger(__name__)


class LexerRegistry:
    """A set of lexers addressable by name, alias, filename glob and MIME type."""

    def __init__(self) -> None:
        self._lexers: dict[str, Lexer] = {}
        self._lock = threading.Lock()

    def register(self, lexer: Lexer) -> Lexer:
        """Add ``lexer``, replacing any lexer of the same name. Returns it."""
        key = lexer.name.lower()
        with self._lock:
            if key in self._lexers:
                logger.debug("replacing registered lexer %r", lexer.name)
            self._lexers[key] = lexer
        return lexer

    def get(self, name: str) -> Lexer:
        key = name.lower()
        lexers = self.all()
        for lexer in lexers:
            if lexer.name.lower() == key:
                return lexer
        for lexer in lexers:
            if key in (alias.lower() for alias in lexer.config.aliases):
                return lexer
        raise LookupError(f"no lexer named {name!r}")

    def for_filename(self, path: str | PurePath) -> Lexer:
        basename = PurePath(path).name
        matches = [
            lexer
            for lexer in self.all()
            if any(fnmatch.fnmatch(basename, glob) for glob in lexer.config.filenames)
        ]
        if not matches:
            raise LookupError(f"no lexer for filename {basename!r}")
        return max(matches, key=lambda lexer: lexer.config.priority)

    def for_mime_type(self, mime_type: str) -> Lexer:
        key = mime_type.lower()
        for lexer in self.all():
            if key in (m.lower() for m in lexer.config.mime_types):
                return lexer
        raise LookupError(f"no lexer for MIME type {mime_type!r}")

    def all(self) -> list[Lexer]:
        """Return registered lexers sorted by name."""
        with self._lock:
            return sorted(self._lexers.values(), key=lambda lexer: lexer.name.lower())


REGISTRY = LexerRegistry()


def _builtins() -> LexerRegistry:
    # Importing the package registers the bundled lexers.
    import rulelex.lexers  # noqa: F401

    return REGISTRY


def register(lexer: Lexer) -> Lexer:
    return REGISTRY.register(lexer)


def get_lexer(name: str) -> Lexer:
    """Look up a lexer by name or alias, case-insensitively."""
    return _builtins().get(name)


def lexer_for_filename(path: str | PurePath) -> Lexer:
    """Pick the lexer whose filename globs match ``path``, highest priority first."""
    return _builtins().for_filename(path)


def lexer_for_mime_type(mime_type: str) -> Lexer:
    return _builtins().for_mime_type(mime_type)


def all_lexers() -> list[Lexer]:
    return _builtins().all()
