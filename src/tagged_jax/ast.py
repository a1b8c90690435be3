"""Expression-tree nodes captured by deferred expressions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

_POSITIONAL_RE = re.compile(r"^\.\.([1-9][0-9]*)$")
_OPERAND_ALIASES = {".x": "..1", ".y": "..2"}


@dataclass(frozen=True)
class Literal:
    value: object


@dataclass(frozen=True)
class Symbol:
    name: str


@dataclass(frozen=True)
class Placeholder:
    """Reserved symbol filled from the substitutions given at resolution time.

    `.` is the whole incoming value, `.x`/`.y` the first and second operands
    and `..N` the Nth operand.
    """

    name: str

    def __post_init__(self) -> None:
        canonical_placeholder(self.name)

    @property
    def key(self) -> str:
        return canonical_placeholder(self.name)

    @classmethod
    def whole(cls) -> "Placeholder":
        return cls(".")

    @classmethod
    def first(cls) -> "Placeholder":
        return cls(".x")

    @classmethod
    def second(cls) -> "Placeholder":
        return cls(".y")

    @classmethod
    def nth(cls, index: int) -> "Placeholder":
        if index < 1:
            raise ValueError("operand positions start at 1")
        return cls(f"..{index}")


@dataclass(frozen=True)
class Member:
    value: "Expr"
    attr: str


@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Expr"


@dataclass(frozen=True)
class Binary:
    op: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Call:
    func: "Expr"
    args: tuple["Expr", ...] = ()


Expr = Union[Literal, Symbol, Placeholder, Member, Unary, Binary, Call]


def canonical_placeholder(name: str) -> str:
    if name == ".":
        return name
    name = _OPERAND_ALIASES.get(name, name)
    if _POSITIONAL_RE.match(name) is None:
        raise ValueError(f"{name!r} is not a placeholder; use '.', '.x', '.y' or '..N'")
    return name


def is_placeholder_name(name: str) -> bool:
    try:
        canonical_placeholder(name)
    except ValueError:
        return False
    return True
