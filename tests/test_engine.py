"""Test the engine loop: rule priority, emission, stack discipline, recovery."""

from itertools import islice

import pytest

from rulelex import SKIP, ByGroups, Default, Include, Pop, Push, RuleTable, Using, lex
from rulelex.errors import LexError, RuleTableError
from rulelex.tokens import (
    ERROR,
    KEYWORD,
    LITERAL_NUMBER,
    NAME,
    NAME_FUNCTION,
    NAME_TAG,
    NAME_VARIABLE,
    PUNCTUATION,
    TEXT,
)
from .conftest import assert_types, assert_values, joined

KEYWORDS = RuleTable(
    {
        "root": [
            (r"if\b", KEYWORD),
            (r"\w+", NAME),
            (r"\s+", TEXT),
        ]
    }
)

BLOCKS = RuleTable(
    {
        "root": [Include("ws"), (r"\w+", NAME, Push("block"))],
        "ws": [(r"\s+", TEXT)],
        "block": [Include("ws"), (r"\{", PUNCTUATION, Push("body"))],
        "body": [
            Include("ws"),
            (r"\}", PUNCTUATION, Pop(2)),
            (r"\w+", NAME, Push("block")),
        ],
    }
)


class TestFirstMatch:
    def test_earlier_rule_shadows_later(self):
        tokens = list(lex(KEYWORDS, "if"))
        assert_types(tokens, [KEYWORD])
        assert tokens[0].value == "if"

    def test_later_rule_when_earlier_fails(self):
        tokens = list(lex(KEYWORDS, "iffy"))
        assert_types(tokens, [NAME])

    def test_order_is_load_bearing(self):
        table = RuleTable({"root": [(r"\w+", NAME), (r"if\b", KEYWORD)]})
        assert_types(list(lex(table, "if")), [NAME])

    def test_no_longest_match_across_rules(self):
        table = RuleTable({"root": [("a", KEYWORD), ("ab", NAME)]})
        tokens = list(lex(table, "ab"))
        assert_types(tokens, [KEYWORD, ERROR])
        assert_values(tokens, ["a", "b"])


class TestGroupEmission:
    TABLE = RuleTable(
        {
            "root": [
                (r"(\w+)(\s*)(=)(\s*)", ByGroups(NAME, TEXT, PUNCTUATION, TEXT)),
                (r"\w+", NAME_VARIABLE),
                (r"\s+", TEXT),
            ]
        }
    )

    def test_one_token_per_group(self):
        tokens = list(lex(self.TABLE, "a = b"))
        assert_types(tokens, [NAME, TEXT, PUNCTUATION, TEXT, NAME_VARIABLE])
        assert_values(tokens, ["a", " ", "=", " ", "b"])

    def test_empty_groups_emit_nothing(self):
        tokens = list(lex(self.TABLE, "a=b"))
        assert_types(tokens, [NAME, PUNCTUATION, NAME_VARIABLE])

    def test_group_offsets(self):
        tokens = list(lex(self.TABLE, "key = v"))
        assert [t.offset for t in tokens] == [0, 3, 4, 5, 6]

    def test_skip_group_consumed_without_token(self):
        table = RuleTable({"root": [(r"(\w+)(\s+)(\w+)", ByGroups(KEYWORD, SKIP, NAME))]})
        tokens = list(lex(table, "let x"))
        assert_types(tokens, [KEYWORD, NAME])
        assert tokens[1].offset == 4

    def test_non_participating_group(self):
        table = RuleTable({"root": [(r"(a)|(b)", ByGroups(KEYWORD, NAME))]})
        assert_types(list(lex(table, "ba")), [NAME, KEYWORD])

    def test_text_outside_groups_is_kept(self):
        table = RuleTable({"root": [(r"<(\w+)>", ByGroups(NAME_TAG))]})
        tokens = list(lex(table, "<p>"))
        assert_types(tokens, [TEXT, NAME_TAG, TEXT])
        assert joined(tokens) == "<p>"

    def test_nested_group_covered_by_outer(self):
        table = RuleTable({"root": [(r"((a)b)", ByGroups(KEYWORD, NAME))]})
        tokens = list(lex(table, "ab"))
        assert_types(tokens, [KEYWORD])

    def test_group_in_lookahead_stops_at_match_end(self):
        table = RuleTable(
            {
                "root": [
                    (r"(\w+)(?=(\())", ByGroups(NAME_FUNCTION, PUNCTUATION)),
                    (r"\(", PUNCTUATION),
                ]
            }
        )
        tokens = list(lex(table, "f("))
        assert_types(tokens, [NAME_FUNCTION, PUNCTUATION])
        assert joined(tokens) == "f("
        assert tokens[0].value == "ab"


class TestStackDiscipline:
    def test_balanced_blocks_return_to_start(self):
        session = lex(BLOCKS, "X { Y { } }")
        tokens = list(session)
        assert joined(tokens) == "X { Y { } }"
        assert session.stack == ("root",)
        assert session.depth == 1

    def test_unbalanced_block_leaves_residual_stack(self):
        session = lex(BLOCKS, "X { ")
        list(session)
        assert session.stack == ("root", "block", "body")
        assert session.diagnostics == ()

    def test_push_order_last_is_top(self):
        table = RuleTable(
            {
                "root": [("a", KEYWORD, Push("one", "two"))],
                "one": [("b", NAME)],
                "two": [("b", NAME_VARIABLE)],
            }
        )
        session = lex(table, "ab")
        assert_types(list(session), [KEYWORD, NAME_VARIABLE])
        assert session.stack == ("root", "one", "two")

    def test_empty_push_repeats_current_state(self):
        table = RuleTable(
            {
                "root": [(r"\(", PUNCTUATION, Push("paren"))],
                "paren": [(r"\(", PUNCTUATION, Push()), (r"\)", PUNCTUATION, Pop(1))],
            }
        )
        session = lex(table, "(((")
        list(session)
        assert session.stack == ("root", "paren", "paren", "paren")

    def test_mutual_recursion_between_states(self):
        table = RuleTable(
            {
                "root": [("a", KEYWORD, Push("b"))],
                "b": [("b", NAME, Push("root")), ("<", PUNCTUATION, Pop(1))],
            }
        )
        session = lex(table, "ababa<")
        list(session)
        assert session.depth == 5


class TestStackUnderflow:
    TABLE = RuleTable(
        {
            "root": [
                (r"\{", PUNCTUATION, Push("inner")),
                (r"\}", PUNCTUATION, Pop(1)),
                (r"\w+", NAME),
            ],
            "inner": [(r"\)", PUNCTUATION, Pop(5)), (r"\w+", NAME_VARIABLE)],
        }
    )

    def test_underflow_emits_flagged_error(self):
        session = lex(self.TABLE, "}")
        tokens = list(session)
        assert_types(tokens, [ERROR])
        assert tokens[0].diagnostic is not None
        assert session.diagnostics == (tokens[0].diagnostic,)
        assert session.diagnostics[0].offset == 0
        assert session.diagnostics[0].stack == ("root",)

    def test_deep_underflow_resets_to_start(self):
        session = lex(self.TABLE, "{a)b")
        tokens = list(session)
        assert_types(tokens, [PUNCTUATION, NAME_VARIABLE, ERROR, NAME])
        assert session.stack == ("root",)
        assert session.diagnostics[0].stack == ("root", "inner")

    def test_underflow_is_logged(self, caplog):
        with caplog.at_level("WARNING", logger="rulelex"):
            list(lex(self.TABLE, "}"))
        assert "underflows" in caplog.text

    def test_zero_width_underflow_reported_once(self, caplog):
        table = RuleTable({"root": [Default(Pop(1))]})
        with caplog.at_level("WARNING", logger="rulelex"):
            session = lex(table, "x")
            tokens = list(session)
        assert_values(tokens, ["x"])
        assert_types(tokens, [ERROR])
        assert len(session.diagnostics) == 1
        assert caplog.text.count("underflows") == 1

    def test_strict_underflow_raises(self):
        with pytest.raises(LexError, match="underflows"):
            list(lex(self.TABLE, "a}", strict=True))


class TestLexicalGaps:
    def test_one_error_per_unmatched_character(self):
        tokens = list(lex(KEYWORDS, "???"))
        assert_types(tokens, [ERROR, ERROR, ERROR])
        assert all(len(t.value) == 1 for t in tokens)

    def test_lexing_continues_after_gap(self):
        tokens = list(lex(KEYWORDS, "a?if"))
        assert_types(tokens, [NAME, ERROR, KEYWORD])

    def test_strict_gap_raises_with_position(self):
        with pytest.raises(LexError) as exc_info:
            list(lex(KEYWORDS, "ab\ncd ?", strict=True))
        assert exc_info.value.position.line == 2
        assert exc_info.value.position.column == 4


class TestZeroWidth:
    def test_default_rule_switches_state(self):
        table = RuleTable(
            {
                "root": [Default(Push("word"))],
                "word": [(r"\w+", NAME, Pop(1)), (r"\s+", TEXT, Pop(1))],
            }
        )
        tokens = list(lex(table, "ab cd"))
        assert_types(tokens, [NAME, TEXT, NAME])

    def test_lookahead_without_mutator_is_rejected(self):
        with pytest.raises(RuleTableError, match="empty string"):
            RuleTable({"root": [(r"(?=a)", KEYWORD), ("a", NAME)]})

    def test_lookahead_with_mutator_switches_state(self):
        table = RuleTable(
            {
                "root": [(r"(?=\d)", KEYWORD, Push("number")), (r"\w+", NAME)],
                "number": [(r"\d+", LITERAL_NUMBER, Pop(1))],
            }
        )
        tokens = list(lex(table, "a1"))
        assert_types(tokens, [NAME])
        tokens = list(lex(table, "1a"))
        assert_types(tokens, [LITERAL_NUMBER, NAME])

    def test_runaway_zero_width_push_terminates(self):
        table = RuleTable({"root": [Default(Push("root"))]})
        tokens = list(lex(table, "ab", max_zero_width_steps=5))
        assert_types(tokens, [ERROR, ERROR])


class TestUsing:
    TABLE = RuleTable(
        {
            "root": [
                (
                    r"(\w+)(\()([^)]*)(\))",
                    ByGroups(NAME_FUNCTION, PUNCTUATION, Using("args"), PUNCTUATION),
                ),
                (r"`([^`]*)`", Using("args")),
                (r"\s+", TEXT),
            ],
            "args": [
                (r"\w+$", KEYWORD),
                (r"\d+", LITERAL_NUMBER),
                (r",", PUNCTUATION),
                (r"\]", PUNCTUATION, Pop(1)),
                (r"\s+", TEXT),
            ],
        }
    )

    def test_group_relexed_with_other_state(self):
        tokens = list(lex(self.TABLE, "f(1, 2x)"))
        assert_types(
            tokens,
            [NAME_FUNCTION, PUNCTUATION, LITERAL_NUMBER, PUNCTUATION, TEXT, KEYWORD, PUNCTUATION],
        )
        assert tokens[5].value == "2x"
        assert tokens[5].offset == 5

    def test_nested_session_bounded_to_group(self):
        # ``$`` matches at the end of the group, not the end of input.
        tokens = list(lex(self.TABLE, "f(ab) "))
        assert tokens[2].type == KEYWORD

    def test_whole_match_relexed(self):
        tokens = list(lex(self.TABLE, "`1,2`"))
        assert joined(tokens) == "`1,2`"
        assert LITERAL_NUMBER in [t.type for t in tokens]

    def test_nested_diagnostics_reach_parent(self):
        session = lex(self.TABLE, "f(])")
        tokens = list(session)
        assert ERROR in [t.type for t in tokens]
        assert len(session.diagnostics) == 1
        assert session.stack == ("root",)


class TestPositions:
    def test_multiline_positions(self):
        tokens = list(lex(KEYWORDS, "a\n  bb"))
        last = tokens[-1]
        assert last.value == "bb"
        assert last.span.start.line == 2
        assert last.span.start.column == 3
        assert last.span.end.column == 5

    def test_multiline_token_end(self):
        tokens = list(lex(KEYWORDS, "a \n\n b"))
        ws = tokens[1]
        assert ws.span.start.line == 1
        assert ws.span.end.line == 3
        assert ws.span.end.column == 2


class TestSessions:
    def test_unknown_start_state(self):
        with pytest.raises(RuleTableError, match="unknown start state"):
            lex(KEYWORDS, "a", start="nope")

    def test_custom_start_state(self):
        session = lex(BLOCKS, "a { }", start="body")
        list(session)
        assert session.depth == 1

    def test_lazy(self):
        session = lex(KEYWORDS, "a " * 10_000)
        first = list(islice(session, 2))
        assert_types(first, [NAME, TEXT])

    def test_iterating_again_restarts(self):
        session = lex(TestStackUnderflow.TABLE, "}}")
        first = list(session)
        second = list(session)
        assert first == second
        assert len(session.diagnostics) == 2

    def test_repeated_calls_are_identical(self):
        source = "X { Y { } } Z {"
        assert list(lex(BLOCKS, source)) == list(lex(BLOCKS, source))
