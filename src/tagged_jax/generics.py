"""Base-representation methods for the common generic operations."""

from __future__ import annotations

from collections.abc import Callable
from typing import Final

import jax.numpy as jnp

from .dispatch import DispatchRegistry
from .store import Handle
from .values import Composite, Mode, Scalar, Value, Vector, composite, format_value

_NUMERIC_TAGS: Final[tuple[str, ...]] = (
    "numeric-vector",
    "logical-vector",
    "numeric-scalar",
    "logical-scalar",
)
_SCALAR_TAGS: Final[tuple[str, ...]] = ("numeric-scalar", "logical-scalar", "character-scalar")
_VECTOR_TAGS: Final[tuple[str, ...]] = ("numeric-vector", "logical-vector", "character-vector")


def _plain(value: object) -> Value:
    if isinstance(value, Handle):
        return value.value
    return value


def _as_numeric_array(value: Scalar | Vector):
    data = jnp.asarray([value.value]) if isinstance(value, Scalar) else value.data
    if value.mode is Mode.LOGICAL:
        data = data.astype(jnp.int32)
    return data


def _scalar_result(arr) -> Scalar:
    return Scalar(arr.item())


def _reduction(kernel: Callable, *, empty: float | None) -> Callable[[object], Scalar]:
    def reduce(value: object) -> Scalar:
        data = _as_numeric_array(_plain(value))
        if data.shape[0] == 0:
            if empty is None:
                raise ValueError("reduction of an empty vector has no identity")
            return Scalar(empty)
        return _scalar_result(kernel(data))

    return reduce


def _length(value: object) -> int:
    return len(_plain(value))


def _format(value: object) -> str:
    return format_value(_plain(value))


def _summary_method(registry: DispatchRegistry) -> Callable[[object], Composite]:
    def summary(value: object) -> Composite:
        plain = _plain(value)
        if isinstance(plain, Composite):
            return composite({name: registry.dispatch("summary", item) for name, item in plain.fields.items()})
        if plain.mode is Mode.CHARACTER or len(plain) == 0:
            return composite(length=len(plain))
        return composite(
            length=len(plain),
            min=registry.dispatch("min", plain),
            mean=registry.dispatch("mean", plain),
            max=registry.dispatch("max", plain),
        )

    return summary


def register_base_methods(registry: DispatchRegistry) -> DispatchRegistry:
    """Populate ``registry`` with base-representation methods and defaults."""
    for tag in (*_SCALAR_TAGS, *_VECTOR_TAGS, "composite"):
        registry.register("length", tag, _length)
    registry.register_default("format", _format)

    reductions = {
        "sum": _reduction(jnp.sum, empty=0),
        "mean": _reduction(jnp.mean, empty=None),
        "min": _reduction(jnp.min, empty=None),
        "max": _reduction(jnp.max, empty=None),
    }
    for operation, impl in reductions.items():
        for tag in _NUMERIC_TAGS:
            registry.register(operation, tag, impl)

    summary = _summary_method(registry)
    for tag in (*_SCALAR_TAGS, *_VECTOR_TAGS, "composite"):
        registry.register("summary", tag, summary)
    return registry


def default_registry() -> DispatchRegistry:
    return register_base_methods(DispatchRegistry())
