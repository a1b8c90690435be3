"""Deferred expressions: a captured expression tree plus the environment it was captured in."""

from __future__ import annotations

import logging
import math
import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Final

import jax.numpy as jnp

from .ast import Binary, Call, Expr, Literal, Member, Placeholder, Symbol, Unary, canonical_placeholder
from .config import DEFAULT_CONFIG, RuntimeConfig
from .environment import Environment, admit_binding
from .errors import FormulaParseError, TaggedTypeError
from .parser import ParseError, parse_formula
from .store import Handle
from .values import VALUE_TYPES, Composite, Mode, Scalar, Value, Vector, as_value, deep_copy, format_value, vector

logger = logging.getLogger(__name__)

_FORMULA_CACHE_SIZE: Final[int] = 256
_EXPR_TYPES: Final = (Literal, Symbol, Placeholder, Member, Unary, Binary, Call)

_LOGICAL_RESULT_OPS: Final = frozenset({"==", "!=", "<", "<=", ">", ">=", "&", "|"})
_CHARACTER_OPS: Final = frozenset({"==", "!=", "<", "<=", ">", ">="})


@lru_cache(maxsize=_FORMULA_CACHE_SIZE)
def _parse_formula_cached(source: str) -> Expr:
    return parse_formula(source)


@dataclass(frozen=True, eq=False)
class DeferredExpr:
    """An unevaluated expression tree bound to its capture environment."""

    expr: Expr
    env: Environment

    @property
    def is_formula(self) -> bool:
        return isinstance(self.expr, (Unary, Binary)) and self.expr.op == "~"

    def __str__(self) -> str:
        return render(self.expr)

    def __repr__(self) -> str:
        return f"<DeferredExpr {render(self.expr)}>"


def capture(expr_or_source: Expr | str, env: Environment | None = None) -> DeferredExpr:
    """Wrap an expression without evaluating any part of it."""
    if isinstance(expr_or_source, str):
        try:
            expr = _parse_formula_cached(expr_or_source)
        except ParseError as err:
            raise FormulaParseError.from_parse_error(err) from err
    elif isinstance(expr_or_source, _EXPR_TYPES):
        expr = expr_or_source
    else:
        raise TaggedTypeError(f"capture() needs source text or an expression node, got {type(expr_or_source).__name__}")
    deferred = DeferredExpr(expr, Environment() if env is None else env)
    logger.debug("captured %s", deferred)
    return deferred


@dataclass
class _Resolution:
    substitutions: dict[str, object]
    limit: int


def _substitution_key(key: object) -> str:
    if isinstance(key, Placeholder):
        return key.key
    if isinstance(key, str):
        try:
            return canonical_placeholder(key)
        except ValueError as err:
            raise TaggedTypeError(str(err)) from err
    raise TaggedTypeError(f"substitution keys must be placeholders or str, not {type(key).__name__}")


def _normalize_substitutions(substitutions: Mapping[object, object] | None) -> dict[str, object]:
    if substitutions is None:
        return {}
    out: dict[str, object] = {}
    for key, value in substitutions.items():
        canonical = _substitution_key(key)
        out[canonical] = admit_binding(value, where=f"substitution for {canonical!r}")
    return out


def resolve(
    deferred: DeferredExpr,
    substitutions: Mapping[object, object] | None = None,
    *,
    config: RuntimeConfig | None = None,
) -> object:
    """Evaluate `deferred` in its captured environment.

    Placeholders are filled from `substitutions`; `.` and `..1` stand in for
    each other when only one of them is given. A `~` node evaluates to a new
    formula DeferredExpr rather than to a value.
    """
    if not isinstance(deferred, DeferredExpr):
        raise TaggedTypeError(f"resolve() needs a DeferredExpr, got {type(deferred).__name__}")
    state = _Resolution(_normalize_substitutions(substitutions), (config or DEFAULT_CONFIG).max_resolve_depth)
    logger.debug("resolving %s with %d substitution(s)", deferred, len(state.substitutions))
    return _resolve(deferred, state, 0)


def _resolve(deferred: DeferredExpr, state: _Resolution, depth: int) -> object:
    if depth > state.limit:
        raise RecursionError(f"deferred resolution nested deeper than {state.limit} levels")
    return _eval(deferred.expr, deferred.env, state, depth)


def _force(obj: object, state: _Resolution, depth: int) -> object:
    if isinstance(obj, Handle):
        return obj.value
    if isinstance(obj, DeferredExpr):
        # nested promises see only their own environment
        return _resolve(obj, _Resolution({}, state.limit), depth + 1)
    return obj


def _lookup_placeholder(node: Placeholder, state: _Resolution) -> object:
    key = node.key
    subs = state.substitutions
    if key in subs:
        return subs[key]
    if key == "." and "..1" in subs:
        return subs["..1"]
    if key == "..1" and "." in subs:
        return subs["."]
    raise NameError(f"placeholder {node.name!r} has no substitution")


def _eval(expr: Expr, env: Environment, state: _Resolution, depth: int) -> object:
    if isinstance(expr, Literal):
        if isinstance(expr.value, VALUE_TYPES) or callable(expr.value):
            return expr.value
        return as_value(expr.value)

    if isinstance(expr, Symbol):
        scope = env.find_scope(expr.name)
        if scope is None:
            raise NameError(f"name {expr.name!r} is not defined")
        return _force(scope.data[expr.name], state, depth)

    if isinstance(expr, Placeholder):
        return _force(_lookup_placeholder(expr, state), state, depth)

    if isinstance(expr, Member):
        base = _eval(expr.value, env, state, depth)
        if not isinstance(base, Composite):
            raise TaggedTypeError(f"$ needs a composite on the left, got {type(base).__name__}")
        return deep_copy(base[expr.attr])

    if isinstance(expr, Unary):
        if expr.op == "~":
            return DeferredExpr(expr, env)
        return _apply_unary(expr.op, _eval(expr.operand, env, state, depth))

    if isinstance(expr, Binary):
        if expr.op == "~":
            return DeferredExpr(expr, env)
        left = _eval(expr.left, env, state, depth)
        right = _eval(expr.right, env, state, depth)
        return _apply_binary(expr.op, left, right)

    if isinstance(expr, Call):
        fn = _eval(expr.func, env, state, depth)
        if not callable(fn):
            raise TaggedTypeError(f"{render(expr.func)} is not callable")
        args = [_eval(arg, env, state, depth) for arg in expr.args]
        return fn(*args)

    raise TaggedTypeError(f"Unsupported expression node: {type(expr).__name__}")


def _py_divide(a, b):
    if b == 0:
        if a == 0 or (isinstance(a, float) and math.isnan(a)):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _py_power(a, b):
    try:
        out = a**b
    except ZeroDivisionError:
        return math.inf
    if isinstance(out, complex):
        return math.nan
    return out


def _py_mod(a, b):
    if b == 0:
        return math.nan
    return a % b


_PY_BINARY_OPS: Final[dict[str, Callable]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _py_divide,
    "^": _py_power,
    "%%": _py_mod,
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "&": lambda a, b: bool(a) and bool(b),
    "|": lambda a, b: bool(a) or bool(b),
}

_ARRAY_BINARY_OPS: Final[dict[str, Callable]] = {
    "+": jnp.add,
    "-": jnp.subtract,
    "*": jnp.multiply,
    "/": jnp.true_divide,
    "^": jnp.power,
    "%%": jnp.mod,
    "==": jnp.equal,
    "!=": jnp.not_equal,
    "<": jnp.less,
    "<=": jnp.less_equal,
    ">": jnp.greater,
    ">=": jnp.greater_equal,
    "&": jnp.logical_and,
    "|": jnp.logical_or,
}


def _operand(value: object, op: str) -> Scalar | Vector:
    if isinstance(value, Handle):
        value = value.value
    if isinstance(value, (Scalar, Vector)):
        return value
    raise TaggedTypeError(f"operator {op!r} needs scalar or vector operands, got {type(value).__name__}")


def _numeric_array(value: Scalar | Vector, op: str):
    if isinstance(value, Scalar):
        arr = jnp.asarray([value.value])
    else:
        arr = value.data
    if op in {"&", "|"}:
        return arr.astype(jnp.bool_)
    if arr.dtype == jnp.bool_:
        arr = arr.astype(jnp.int32)
    if op in {"/", "^"} and jnp.issubdtype(arr.dtype, jnp.integer):
        arr = arr.astype(jnp.float32)
    return arr


def _recycle(left, right):
    n, m = left.shape[0], right.shape[0]
    if n == 0 or m == 0:
        return left[:0], right[:0]
    size = max(n, m)
    return jnp.resize(left, (size,)), jnp.resize(right, (size,))


def _recycle_list(left: list, right: list) -> tuple[list, list]:
    if not left or not right:
        return [], []
    size = max(len(left), len(right))
    return [left[i % len(left)] for i in range(size)], [right[i % len(right)] for i in range(size)]


def _apply_binary(op: str, left: object, right: object) -> Value:
    a = _operand(left, op)
    b = _operand(right, op)
    character = (a.mode is Mode.CHARACTER, b.mode is Mode.CHARACTER)
    if any(character):
        if op not in _CHARACTER_OPS or not all(character):
            raise TaggedTypeError(f"non-numeric argument to binary operator {op!r}")
        if isinstance(a, Scalar) and isinstance(b, Scalar):
            return Scalar(bool(_PY_BINARY_OPS[op](a.value, b.value)))
        xs, ys = _recycle_list(_as_list(a), _as_list(b))
        return vector([bool(_PY_BINARY_OPS[op](x, y)) for x, y in zip(xs, ys)], Mode.LOGICAL)

    if isinstance(a, Scalar) and isinstance(b, Scalar):
        x, y = a.value, b.value
        if op not in _LOGICAL_RESULT_OPS:
            x, y = _unbool(x), _unbool(y)
        out = _PY_BINARY_OPS[op](x, y)
        return Scalar(bool(out) if op in _LOGICAL_RESULT_OPS else out)

    x, y = _recycle(_numeric_array(a, op), _numeric_array(b, op))
    return vector(_ARRAY_BINARY_OPS[op](x, y))


def _as_list(value: Scalar | Vector) -> list:
    return [value.value] if isinstance(value, Scalar) else value.to_list()


def _unbool(x):
    return int(x) if isinstance(x, bool) else x


def _apply_unary(op: str, operand: object) -> Value:
    a = _operand(operand, op)
    if a.mode is Mode.CHARACTER:
        raise TaggedTypeError(f"invalid argument to unary operator {op!r}")
    if isinstance(a, Scalar):
        x = a.value
        if op == "!":
            return Scalar(not bool(x))
        x = _unbool(x)
        return Scalar(-x if op == "-" else x)
    if op == "!":
        return vector(jnp.logical_not(a.data.astype(jnp.bool_)))
    arr = _numeric_array(a, op)
    return vector(jnp.negative(arr) if op == "-" else arr)


def decompose(deferred: DeferredExpr) -> tuple[DeferredExpr | None, DeferredExpr]:
    """Split a binary capture into its sides; a one-sided formula has no left side."""
    expr = deferred.expr
    if isinstance(expr, Binary):
        return DeferredExpr(expr.left, deferred.env), DeferredExpr(expr.right, deferred.env)
    if isinstance(expr, Unary) and expr.op == "~":
        return None, DeferredExpr(expr.operand, deferred.env)
    raise TaggedTypeError(f"decompose() needs a binary-operator capture, got {render(expr)}")


def name(deferred: DeferredExpr) -> str:
    expr = deferred.expr
    if isinstance(expr, Symbol):
        return expr.name
    if isinstance(expr, Placeholder):
        return expr.name
    if isinstance(expr, Literal) and isinstance(expr.value, str):
        return expr.value
    raise TaggedTypeError(f"name() needs a bare symbol, got {render(expr)}")


def variables(deferred: DeferredExpr | Expr) -> tuple[str, ...]:
    """Symbol names in order of first appearance; function heads of calls are skipped."""
    expr = deferred.expr if isinstance(deferred, DeferredExpr) else deferred
    found: dict[str, None] = {}
    _collect_symbols(expr, found)
    return tuple(found)


def _collect_symbols(expr: Expr, found: dict[str, None]) -> None:
    if isinstance(expr, Symbol):
        found.setdefault(expr.name)
    elif isinstance(expr, Member):
        _collect_symbols(expr.value, found)
    elif isinstance(expr, Unary):
        _collect_symbols(expr.operand, found)
    elif isinstance(expr, Binary):
        _collect_symbols(expr.left, found)
        _collect_symbols(expr.right, found)
    elif isinstance(expr, Call):
        if not isinstance(expr.func, Symbol):
            _collect_symbols(expr.func, found)
        for arg in expr.args:
            _collect_symbols(arg, found)


_BINARY_PRECEDENCE: Final[dict[str, int]] = {
    "~": 1,
    "|": 2,
    "&": 3,
    "==": 5,
    "!=": 5,
    "<": 5,
    "<=": 5,
    ">": 5,
    ">=": 5,
    "+": 6,
    "-": 6,
    "*": 7,
    "/": 7,
    "%%": 7,
    "^": 9,
}
_UNARY_PRECEDENCE: Final[dict[str, int]] = {"~": 1, "!": 4, "-": 8, "+": 8}
_ATOM_PRECEDENCE: Final[int] = 10


def _precedence(expr: Expr) -> int:
    if isinstance(expr, Binary):
        return _BINARY_PRECEDENCE[expr.op]
    if isinstance(expr, Unary):
        return _UNARY_PRECEDENCE[expr.op]
    return _ATOM_PRECEDENCE


def _wrap(expr: Expr, parens: bool) -> str:
    text = render(expr)
    return f"({text})" if parens else text


def _render_literal(value: object) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
        return f'"{escaped}"'
    if isinstance(value, VALUE_TYPES):
        return format_value(value)
    if callable(value):
        return getattr(value, "__name__", repr(value))
    return repr(value)


def render(expr: Expr | DeferredExpr) -> str:
    """Deparse an expression tree back to source text."""
    if isinstance(expr, DeferredExpr):
        expr = expr.expr
    if isinstance(expr, Literal):
        return _render_literal(expr.value)
    if isinstance(expr, Symbol):
        return expr.name
    if isinstance(expr, Placeholder):
        return expr.name
    if isinstance(expr, Member):
        return f"{_wrap(expr.value, _precedence(expr.value) < _ATOM_PRECEDENCE)}${expr.attr}"
    if isinstance(expr, Call):
        head = _wrap(expr.func, _precedence(expr.func) < _ATOM_PRECEDENCE)
        return f"{head}({', '.join(render(arg) for arg in expr.args)})"
    if isinstance(expr, Unary):
        prec = _UNARY_PRECEDENCE[expr.op]
        operand_prec = _precedence(expr.operand)
        operand = _wrap(expr.operand, operand_prec <= prec if expr.op == "~" else operand_prec < prec)
        return f"{expr.op}{operand}"
    if isinstance(expr, Binary):
        prec = _BINARY_PRECEDENCE[expr.op]
        if expr.op == "^":
            left = _wrap(expr.left, _precedence(expr.left) <= prec)
            right = _wrap(expr.right, _precedence(expr.right) < prec)
            return f"{left}^{right}"
        left_prec = _precedence(expr.left)
        left = _wrap(expr.left, left_prec <= prec if expr.op == "~" else left_prec < prec)
        right = _wrap(expr.right, _precedence(expr.right) <= prec)
        return f"{left} {expr.op} {right}"
    raise TaggedTypeError(f"Unsupported expression node: {type(expr).__name__}")
