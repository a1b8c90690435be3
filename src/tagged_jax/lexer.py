"""Tokenization for captured formula/expression source text."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int
    end: int


_SINGLE_TOKENS = {
    "(": "LPAREN",
    ")": "RPAREN",
    ",": "COMMA",
    "$": "DOLLAR",
}

# Longest operators first so "<=" wins over "<".
_OPERATORS = ("%%", "==", "!=", "<=", ">=", "~", "+", "-", "*", "/", "^", "<", ">", "&", "|", "!")

_NUMBER_RE = re.compile(r"(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+\-]?[0-9]+)?")
_PLACEHOLDER_RE = re.compile(r"\.\.[1-9][0-9]*|\.[xy](?![A-Za-z0-9_.])|\.(?![A-Za-z0-9_.])")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")

_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'"}


def _scan_string(source: str, start: int) -> tuple[str, int]:
    quote = source[start]
    out: list[str] = []
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == quote:
            return "".join(out), i + 1
        if ch == "\\":
            if i + 1 >= len(source):
                raise SyntaxError("Escape sequence is incomplete at end of input")
            esc = source[i + 1]
            if esc not in _ESCAPES:
                raise SyntaxError(f"Unknown escape sequence \\{esc} at index {i}")
            out.append(_ESCAPES[esc])
            i += 2
            continue
        out.append(ch)
        i += 1
    raise SyntaxError(f"Unterminated string literal at index {start}")


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0
    while i < len(source):
        ch = source[i]

        if ch.isspace():
            i += 1
            continue

        if ch == "#":
            while i < len(source) and source[i] != "\n":
                i += 1
            continue

        if ch in _SINGLE_TOKENS:
            tokens.append(Token(_SINGLE_TOKENS[ch], ch, i, i + 1))
            i += 1
            continue

        if ch in "\"'":
            value, end = _scan_string(source, i)
            tokens.append(Token("STRING", value, i, end))
            i = end
            continue

        number = _NUMBER_RE.match(source, i)
        if number is not None:
            tokens.append(Token("NUMBER", number.group(0), i, number.end()))
            i = number.end()
            continue

        if ch == ".":
            placeholder = _PLACEHOLDER_RE.match(source, i)
            if placeholder is None:
                raise SyntaxError(f"Invalid placeholder at index {i}")
            tokens.append(Token("PLACEHOLDER", placeholder.group(0), i, placeholder.end()))
            i = placeholder.end()
            continue

        name = _NAME_RE.match(source, i)
        if name is not None:
            tokens.append(Token("NAME", name.group(0), i, name.end()))
            i = name.end()
            continue

        op = next((candidate for candidate in _OPERATORS if source.startswith(candidate, i)), None)
        if op is not None:
            tokens.append(Token("OP", op, i, i + len(op)))
            i += len(op)
            continue

        raise SyntaxError(f"Unexpected character {ch!r} at index {i}")

    tokens.append(Token("EOF", "", len(source), len(source)))
    return tokens
