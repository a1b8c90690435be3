from __future__ import annotations

import unittest

from tagged_jax.ast import Binary, Call, Literal, Member, Placeholder, Symbol, Unary
from tagged_jax.parser import ParseError, parse_formula


class FormulaParserTests(unittest.TestCase):
    def test_two_sided_formula(self) -> None:
        self.assertEqual(
            parse_formula("y ~ x + z"),
            Binary("~", Symbol("y"), Binary("+", Symbol("x"), Symbol("z"))),
        )

    def test_one_sided_formula(self) -> None:
        self.assertEqual(parse_formula("~ x"), Unary("~", Symbol("x")))

    def test_arithmetic_precedence(self) -> None:
        self.assertEqual(
            parse_formula("a + b * c"),
            Binary("+", Symbol("a"), Binary("*", Symbol("b"), Symbol("c"))),
        )
        self.assertEqual(
            parse_formula("(a + b) * c"),
            Binary("*", Binary("+", Symbol("a"), Symbol("b")), Symbol("c")),
        )

    def test_power_is_right_associative_and_binds_tighter_than_negation(self) -> None:
        self.assertEqual(
            parse_formula("2 ^ 3 ^ 2"),
            Binary("^", Literal(2), Binary("^", Literal(3), Literal(2))),
        )
        self.assertEqual(parse_formula("-x^2"), Unary("-", Binary("^", Symbol("x"), Literal(2))))

    def test_comparison_and_logical_operators(self) -> None:
        self.assertEqual(
            parse_formula("!a & b | c >= 1"),
            Binary(
                "|",
                Binary("&", Unary("!", Symbol("a")), Symbol("b")),
                Binary(">=", Symbol("c"), Literal(1)),
            ),
        )

    def test_literals(self) -> None:
        self.assertEqual(parse_formula("1.5e3"), Literal(1500.0))
        self.assertEqual(parse_formula("42"), Literal(42))
        self.assertEqual(parse_formula("'it\\'s'"), Literal("it's"))
        self.assertEqual(parse_formula("TRUE"), Literal(True))
        self.assertEqual(parse_formula("FALSE"), Literal(False))

    def test_placeholders(self) -> None:
        self.assertEqual(parse_formula("."), Placeholder("."))
        self.assertEqual(
            parse_formula(".x + .y"),
            Binary("+", Placeholder(".x"), Placeholder(".y")),
        )
        self.assertEqual(parse_formula("..3"), Placeholder("..3"))
        self.assertEqual(Placeholder(".y").key, "..2")

    def test_calls_and_member_access(self) -> None:
        self.assertEqual(
            parse_formula("f(1, .)$total"),
            Member(Call(Symbol("f"), (Literal(1), Placeholder("."))), "total"),
        )
        self.assertEqual(parse_formula("g()"), Call(Symbol("g"), ()))

    def test_dotted_names_are_symbols(self) -> None:
        self.assertEqual(parse_formula("data.frame"), Symbol("data.frame"))

    def test_comments_are_ignored(self) -> None:
        self.assertEqual(parse_formula("x # trailing"), Symbol("x"))

    def test_errors_report_spans(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse_formula("a +")
        self.assertEqual(ctx.exception.found, "EOF")
        self.assertEqual(ctx.exception.start, 3)

        with self.assertRaises(ParseError):
            parse_formula("f(1 2)")
        with self.assertRaises(ParseError):
            parse_formula("a ? b")
        with self.assertRaises(ParseError):
            parse_formula("'open")

    def test_only_one_tilde_per_formula(self) -> None:
        with self.assertRaises(ParseError):
            parse_formula("a ~ b ~ c")

    def test_invalid_placeholder_names(self) -> None:
        with self.assertRaises(ValueError):
            Placeholder(".z")
        with self.assertRaises(ValueError):
            Placeholder.nth(0)


if __name__ == "__main__":
    unittest.main()
