"""Recursive-descent parser for captured formula/expression source text."""

from __future__ import annotations

from dataclasses import dataclass

from .ast import Binary, Call, Expr, Literal, Member, Placeholder, Symbol, Unary
from .lexer import Token, tokenize

_KEYWORDS = {"TRUE": True, "FALSE": False}

# Binary precedence levels, loosest first; "!" sits between "&" and comparisons.
_OR_OPS = {"|"}
_AND_OPS = {"&"}
_COMPARISON_OPS = {"==", "!=", "<", "<=", ">", ">="}
_ADDITIVE_OPS = {"+", "-"}
_MULTIPLICATIVE_OPS = {"*", "/", "%%"}


class ParseError(SyntaxError):
    def __init__(
        self,
        message: str,
        start: int,
        end: int,
        expected: tuple[str, ...] = (),
        found: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.start = start
        self.end = end
        self.expected = expected
        self.found = found

    def __str__(self) -> str:
        expected_text = ""
        if self.expected:
            expected_text = f"; expected {', '.join(self.expected)}"
        found_text = ""
        if self.found is not None:
            found_text = f"; found {self.found}"
        return f"{self.message} at span [{self.start}, {self.end}){expected_text}{found_text}"


@dataclass
class _Parser:
    tokens: list[Token]
    index: int = 0

    def parse_expression_only(self) -> Expr:
        expr = self._parse_formula()
        self._expect("EOF")
        return expr

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def _expect(self, kind: str, text: str | None = None) -> Token:
        tok = self._peek()
        if tok.kind != kind or (text is not None and tok.text != text):
            self._error(tok, expected=(text or kind,))
        return self._advance()

    def _error(self, tok: Token | None = None, *, message: str | None = None, expected: tuple[str, ...] = ()) -> None:
        token = tok if tok is not None else self._peek()
        detail = message if message is not None else "Unexpected token"
        normalized_expected = tuple(dict.fromkeys(expected))
        if token.kind == "EOF":
            found = "EOF"
        elif token.text:
            found = f"{token.kind}({token.text})"
        else:
            found = token.kind
        raise ParseError(detail, token.pos, token.end, expected=normalized_expected, found=found)

    def _at_op(self, ops: set[str]) -> bool:
        tok = self._peek()
        return tok.kind == "OP" and tok.text in ops

    def _parse_formula(self) -> Expr:
        if self._at_op({"~"}):
            self._advance()
            return Unary("~", self._parse_or())
        left = self._parse_or()
        if self._at_op({"~"}):
            self._advance()
            return Binary("~", left, self._parse_or())
        return left

    def _parse_left_assoc(self, ops: set[str], operand) -> Expr:
        left = operand()
        while self._at_op(ops):
            op = self._advance().text
            left = Binary(op, left, operand())
        return left

    def _parse_or(self) -> Expr:
        return self._parse_left_assoc(_OR_OPS, self._parse_and)

    def _parse_and(self) -> Expr:
        return self._parse_left_assoc(_AND_OPS, self._parse_not)

    def _parse_not(self) -> Expr:
        if self._at_op({"!"}):
            self._advance()
            return Unary("!", self._parse_not())
        return self._parse_comparison()

    def _parse_comparison(self) -> Expr:
        return self._parse_left_assoc(_COMPARISON_OPS, self._parse_additive)

    def _parse_additive(self) -> Expr:
        return self._parse_left_assoc(_ADDITIVE_OPS, self._parse_multiplicative)

    def _parse_multiplicative(self) -> Expr:
        return self._parse_left_assoc(_MULTIPLICATIVE_OPS, self._parse_unary)

    def _parse_unary(self) -> Expr:
        if self._at_op({"-", "+"}):
            op = self._advance().text
            return Unary(op, self._parse_unary())
        return self._parse_power()

    def _parse_power(self) -> Expr:
        base = self._parse_postfix()
        if self._at_op({"^"}):
            self._advance()
            # right associative
            return Binary("^", base, self._parse_unary())
        return base

    def _parse_postfix(self) -> Expr:
        expr = self._parse_primary()
        while True:
            tok = self._peek()
            if tok.kind == "LPAREN":
                self._advance()
                expr = Call(expr, self._parse_arguments())
                continue
            if tok.kind == "DOLLAR":
                self._advance()
                name = self._peek()
                if name.kind not in {"NAME", "STRING"}:
                    self._error(name, message="Expected a field name after '$'", expected=("NAME", "STRING"))
                self._advance()
                expr = Member(expr, name.text)
                continue
            return expr

    def _parse_arguments(self) -> tuple[Expr, ...]:
        args: list[Expr] = []
        if self._peek().kind == "RPAREN":
            self._advance()
            return ()
        while True:
            args.append(self._parse_formula())
            tok = self._peek()
            if tok.kind == "COMMA":
                self._advance()
                continue
            if tok.kind == "RPAREN":
                self._advance()
                return tuple(args)
            self._error(tok, expected=("COMMA", "RPAREN"))

    def _parse_primary(self) -> Expr:
        tok = self._peek()
        if tok.kind == "NUMBER":
            self._advance()
            text = tok.text
            if any(ch in text for ch in ".eE"):
                return Literal(float(text))
            return Literal(int(text))
        if tok.kind == "STRING":
            self._advance()
            return Literal(tok.text)
        if tok.kind == "NAME":
            self._advance()
            if tok.text in _KEYWORDS:
                return Literal(_KEYWORDS[tok.text])
            return Symbol(tok.text)
        if tok.kind == "PLACEHOLDER":
            self._advance()
            return Placeholder(tok.text)
        if tok.kind == "LPAREN":
            self._advance()
            inner = self._parse_formula()
            self._expect("RPAREN")
            return inner
        self._error(tok, message="Expected an expression", expected=("NUMBER", "STRING", "NAME", "PLACEHOLDER", "LPAREN"))
        raise AssertionError("unreachable")


def parse_formula(source: str) -> Expr:
    try:
        tokens = tokenize(source)
    except SyntaxError as exc:
        if isinstance(exc, ParseError):
            raise
        raise ParseError(str(exc), 0, len(source)) from exc
    return _Parser(tokens).parse_expression_only()
