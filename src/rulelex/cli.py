"""Command-line interface for rulelex."""

from __future__ import annotations

import argparse
import io
import logging
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rulelex.errors import LexError, RuleTableError

FORMATS = ("text", "json")


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_file: Path
    output_file: Path | None
    lexer_name: str | None
    rules_file: Path | None
    start: str
    fmt: str
    strict: bool
    debug: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="rulelex",
        description="Tokenize source files with declarative rule-table lexers",
    )
    p.add_argument("input", nargs="?", help="Input file")
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    which = p.add_mutually_exclusive_group()
    which.add_argument("-l", "--lexer", metavar="NAME", help="Lexer name or alias")
    which.add_argument("--rules", metavar="FILE", help="TOML rule-table file")
    p.add_argument("--start", metavar="STATE", help="Start state (default: root)")
    p.add_argument("--format", choices=FORMATS, default=None, help="Output format (default: text)")
    p.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Fail on the first unmatched character or stack underflow",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help="Config file (default: auto-discover rulelex.toml)",
    )
    p.add_argument("--list", action="store_true", help="List available lexers and exit")
    p.add_argument("--debug", action="store_true", help="Dump final stack and diagnostics to stderr")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return p


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / "rulelex.toml"

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise argparse.ArgumentTypeError(f"invalid config file {path}: {exc}") from exc


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.
    """
    if not args.input:
        raise argparse.ArgumentTypeError("an input file is required")
    input_file = Path(args.input)
    input_dir = input_file.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)
    cfg = config.get("lex")
    if not isinstance(cfg, dict):
        cfg = {}

    # Lexer choice: CLI --lexer/--rules replace anything configured
    lexer_name: str | None = None
    rules_file: Path | None = None
    if args.lexer or args.rules:
        lexer_name = args.lexer
        rules_file = Path(args.rules) if args.rules else None
    elif isinstance(cfg.get("rules"), str):
        rules_file = input_dir / cfg["rules"]
    elif isinstance(cfg.get("lexer"), str):
        lexer_name = cfg["lexer"]

    start = "root"
    if isinstance(cfg.get("start"), str):
        start = cfg["start"]
    if args.start:
        start = args.start

    fmt = "text"
    cfg_format = cfg.get("format")
    if cfg_format is not None:
        if cfg_format not in FORMATS:
            raise argparse.ArgumentTypeError(f"invalid format in config: {cfg_format!r}")
        fmt = cfg_format
    if args.format:
        fmt = args.format

    strict = bool(cfg.get("strict", False))
    if args.strict is not None:
        strict = args.strict

    output_file = Path(args.output) if args.output else None

    return CliOptions(
        input_file=input_file,
        output_file=output_file,
        lexer_name=lexer_name,
        rules_file=rules_file,
        start=start,
        fmt=fmt,
        strict=strict,
        debug=args.debug,
    )


def select_lexer(options: CliOptions):
    """Resolve the lexer: rule file, then name, then input filename."""
    from rulelex.loader import load_lexer
    from rulelex.registry import get_lexer, lexer_for_filename

    if options.rules_file is not None:
        return load_lexer(options.rules_file)
    if options.lexer_name is not None:
        return get_lexer(options.lexer_name)
    return lexer_for_filename(options.input_file)


def lex_file(options: CliOptions) -> str:
    """Read and tokenize a file, returning the rendered token dump."""
    from rulelex.debug import dump_session, dump_tokens

    lexer = select_lexer(options)
    source = options.input_file.read_text(encoding="utf-8")
    session = lexer.tokenize(source, options.start, strict=options.strict)

    out = io.StringIO()
    dump_tokens(session, file=out, fmt=options.fmt)

    if options.debug:
        dump_session(session)

    return out.getvalue()


def list_lexers() -> str:
    from rulelex.registry import all_lexers

    lines = []
    for lexer in all_lexers():
        cfg = lexer.config
        lines.append(f"{cfg.name}: aliases={', '.join(cfg.aliases)} filenames={', '.join(cfg.filenames)}")
    return "\n".join(lines) + "\n"


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)

    if args.list:
        sys.stdout.write(list_lexers())
        return 0

    try:
        options = resolve_options(args)
    except argparse.ArgumentTypeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    try:
        text = lex_file(options)
    except LexError as exc:
        print(exc.format(str(options.input_file)), file=sys.stderr)
        return 1
    except RuleTableError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except (LookupError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if options.output_file:
        options.output_file.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)

    return 0
