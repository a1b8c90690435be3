"""Ordered attribute metadata attached to runtime values."""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from typing import TYPE_CHECKING, Final

from .errors import DimensionError, TaggedTypeError

if TYPE_CHECKING:
    from .values import Value

CLASS: Final[str] = "class"
DIM: Final[str] = "dim"


class AttributeSet(MutableMapping[str, "Value"]):
    """Insertion-ordered name -> Value mapping with two reserved keys.

    `class` holds the dispatch tags, most specific first. `dim` holds a shape
    whose product must equal the element count of the annotated value; it is
    checked whenever it is set and whenever the set is bound to a value.
    """

    def __init__(self, items: Iterable[tuple[str, object]] | Mapping[str, object] | None = None, *, extent: int | None = None) -> None:
        self._data: dict[str, Value] = {}
        self._extent = extent
        if items is not None:
            pairs = items.items() if isinstance(items, Mapping) else items
            for key, value in pairs:
                self[key] = value

    @property
    def extent(self) -> int | None:
        return self._extent

    def bind(self, extent: int) -> "AttributeSet":
        dim = self._data.get(DIM)
        if dim is not None:
            _check_dim(_dim_tuple(dim), extent)
        self._extent = extent
        return self

    def __getitem__(self, key: str) -> "Value":
        return self._data[key]

    def __setitem__(self, key: str, value: object) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Attribute name must be a str, not {type(key).__name__}")
        if key == CLASS:
            coerced = _coerce_class(value)
            if coerced is None:
                self._data.pop(CLASS, None)
                return
            self._data[CLASS] = coerced
            return
        if key == DIM:
            coerced = _coerce_dim(value)
            if self._extent is not None:
                _check_dim(_dim_tuple(coerced), self._extent)
            self._data[DIM] = coerced
            return
        from .values import as_value

        self._data[key] = as_value(value)

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AttributeSet):
            return NotImplemented
        from .values import values_equal

        if list(self._data) != list(other._data):
            return False
        return all(values_equal(self._data[key], other._data[key]) for key in self._data)

    __hash__ = None  # type: ignore[assignment]

    @property
    def class_tags(self) -> tuple[str, ...]:
        tags = self._data.get(CLASS)
        if tags is None:
            return ()
        return tuple(tags.data)

    @property
    def dim(self) -> tuple[int, ...] | None:
        dim = self._data.get(DIM)
        if dim is None:
            return None
        return _dim_tuple(dim)

    def copy(self, *, deep: bool = False) -> "AttributeSet":
        """Shallow by default; ``deep=True`` also copies every attribute Value."""
        clone = AttributeSet(extent=self._extent)
        if deep:
            from .values import deep_copy

            clone._data = {key: deep_copy(value) for key, value in self._data.items()}
        else:
            clone._data = dict(self._data)
        return clone

    def __repr__(self) -> str:
        from .values import format_value

        body = ", ".join(f"{key}={format_value(value)}" for key, value in self._data.items())
        return f"AttributeSet({body})"


def _coerce_class(value: object):
    from .values import Mode, Scalar, Vector, as_value, vector

    if isinstance(value, str):
        return vector([value])
    if isinstance(value, (list, tuple)) and not value:
        return None
    coerced = as_value(value)
    if isinstance(coerced, Vector) and coerced.mode is Mode.CHARACTER:
        return None if len(coerced) == 0 else coerced
    if isinstance(coerced, Scalar) and coerced.mode is Mode.CHARACTER:
        return vector([coerced.value])
    raise TaggedTypeError("'class' attribute must be a character vector")


def _coerce_dim(value: object):
    from .values import Mode, Scalar, Vector, as_value, vector

    coerced = as_value(value)
    if isinstance(coerced, Scalar):
        coerced = vector([coerced.value])
    if not isinstance(coerced, Vector) or coerced.mode is not Mode.NUMERIC:
        raise TaggedTypeError("'dim' attribute must be a numeric vector")
    entries = [float(x) for x in coerced.to_list()]
    for entry in entries:
        if entry < 0 or entry != int(entry):
            raise TaggedTypeError(f"'dim' entries must be non-negative integers, got {entry!r}")
    return vector([int(entry) for entry in entries])


def _dim_tuple(dim) -> tuple[int, ...]:
    return tuple(int(x) for x in dim.to_list())


def _check_dim(dim: tuple[int, ...], extent: int) -> None:
    product = math.prod(dim)
    if product != extent:
        raise DimensionError(
            f"prod(dim) == length ({product} != {extent})",
            message=f"dims [product {product}] do not match the length of object [{extent}]",
        )
