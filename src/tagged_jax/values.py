"""Runtime value model and validators for tagged values."""

from __future__ import annotations

import numbers
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

import jax
import jax.numpy as jnp

from .attributes import DIM, AttributeSet
from .errors import TaggedTypeError


class Mode(str, Enum):
    NUMERIC = "numeric"
    CHARACTER = "character"
    LOGICAL = "logical"


class ValueKind(str, Enum):
    SCALAR = "scalar"
    VECTOR = "vector"
    COMPOSITE = "composite"


@dataclass(frozen=True)
class ValueInfo:
    kind: ValueKind
    mode: Mode | None
    length: int
    classes: tuple[str, ...]
    base_tag: str


@dataclass(eq=False, repr=False)
class Scalar:
    """A single numeric, character or logical value."""

    value: bool | int | float | str
    attributes: AttributeSet = field(default_factory=AttributeSet)

    def __post_init__(self) -> None:
        self.attributes.bind(1)

    @property
    def mode(self) -> Mode:
        return _scalar_mode(self.value)

    def __len__(self) -> int:
        return 1

    def copy(self) -> "Scalar":
        return Scalar(self.value, self.attributes.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (Scalar, Vector, Composite)):
            return NotImplemented
        return values_equal(self, other)

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return format_value(self)

    def __repr__(self) -> str:
        return f"Scalar({format_value(self)})"


@dataclass(eq=False, repr=False)
class Vector:
    """Homogeneous ordered sequence of scalars.

    Numeric and logical data live in a 1-D jax array; character data is a
    tuple of str. Both are immutable, so copies share them freely.
    """

    data: object
    mode: Mode
    attributes: AttributeSet = field(default_factory=AttributeSet)

    def __post_init__(self) -> None:
        self.attributes.bind(len(self))

    def __len__(self) -> int:
        if isinstance(self.data, tuple):
            return len(self.data)
        return int(self.data.shape[0])

    def to_list(self) -> list:
        if isinstance(self.data, tuple):
            return list(self.data)
        return jax.device_get(self.data).tolist()

    def element(self, index: int) -> Scalar:
        index = _check_index(index, len(self))
        if isinstance(self.data, tuple):
            return Scalar(self.data[index])
        return Scalar(jax.device_get(self.data[index]).item())

    def with_element(self, index: int, item: object) -> "Vector":
        index = _check_index(index, len(self))
        item = scalar(item)
        if item.mode is not self.mode and not (self.mode is Mode.NUMERIC and item.mode is Mode.LOGICAL):
            raise TaggedTypeError(f"cannot store a {item.mode.value} element in a {self.mode.value} vector")
        if isinstance(self.data, tuple):
            data = self.data[:index] + (item.value,) + self.data[index + 1 :]
            return Vector(data, self.mode, self.attributes.copy())
        incoming = jnp.asarray(item.value)
        base = self.data.astype(jnp.result_type(self.data, incoming))
        return Vector(base.at[index].set(incoming), self.mode, self.attributes.copy())

    def copy(self) -> "Vector":
        return Vector(self.data, self.mode, self.attributes.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (Scalar, Vector, Composite)):
            return NotImplemented
        return values_equal(self, other)

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return format_value(self)

    def __repr__(self) -> str:
        return f"Vector({format_value(self)})"


@dataclass(eq=False, repr=False)
class Composite:
    """Ordered mapping from field name to Value."""

    fields: dict[str, "Value"]
    attributes: AttributeSet = field(default_factory=AttributeSet)

    def __post_init__(self) -> None:
        self.attributes.bind(len(self.fields))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __getitem__(self, name: str) -> "Value":
        try:
            return self.fields[name]
        except KeyError:
            raise KeyError(f"no field {name!r}; fields are {', '.join(self.fields) or '(none)'}") from None

    def with_field(self, name: str, value: object) -> "Composite":
        fields = dict(self.fields)
        fields[name] = as_value(value)
        return Composite(fields, self._attributes_for(len(fields)))

    def without_field(self, name: str) -> "Composite":
        self[name]
        fields = {key: item for key, item in self.fields.items() if key != name}
        return Composite(fields, self._attributes_for(len(fields)))

    def _attributes_for(self, count: int) -> AttributeSet:
        attributes = self.attributes.copy()
        if count != len(self.fields):
            # dim describes the old field count
            attributes.pop(DIM, None)
        return attributes

    def copy(self) -> "Composite":
        return Composite(dict(self.fields), self.attributes.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (Scalar, Vector, Composite)):
            return NotImplemented
        return values_equal(self, other)

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return format_value(self)

    def __repr__(self) -> str:
        return f"Composite({format_value(self)})"


Value = Union[Scalar, Vector, Composite]
VALUE_TYPES = (Scalar, Vector, Composite)


def _check_index(index: int, length: int) -> int:
    if not isinstance(index, numbers.Integral) or isinstance(index, bool):
        raise TaggedTypeError(f"vector index must be an integer, got {type(index).__name__}")
    if index < 0:
        index += length
    if not 0 <= index < length:
        raise IndexError(f"index {index} out of bounds for vector of length {length}")
    return int(index)


def _is_array(value: object) -> bool:
    return hasattr(value, "shape") and hasattr(value, "dtype")


def _python_scalar(value: object) -> object:
    if _is_array(value) and getattr(value, "ndim", None) == 0:
        return value.item()
    return value


def _scalar_mode(value: object) -> Mode:
    if isinstance(value, bool):
        return Mode.LOGICAL
    if isinstance(value, numbers.Real):
        return Mode.NUMERIC
    if isinstance(value, str):
        return Mode.CHARACTER
    raise TaggedTypeError(f"unsupported scalar type {type(value).__name__}")


def _array_mode(arr) -> Mode:
    if arr.dtype == jnp.bool_:
        return Mode.LOGICAL
    if jnp.issubdtype(arr.dtype, jnp.integer) or jnp.issubdtype(arr.dtype, jnp.floating):
        return Mode.NUMERIC
    raise TaggedTypeError(f"unsupported array dtype {arr.dtype}")


def scalar(value: object) -> Scalar:
    if isinstance(value, Scalar):
        return value.copy()
    raw = _python_scalar(value)
    _scalar_mode(raw)
    return Scalar(raw)


def vector(items: object, mode: Mode | str | None = None) -> Vector:
    """Build a Vector, inferring its mode from the elements."""
    wanted = None if mode is None else Mode(mode)
    if isinstance(items, Vector):
        if wanted is not None and wanted is not items.mode:
            raise TaggedTypeError(f"expected a {wanted.value} vector, got {items.mode.value}")
        return items.copy()
    if _is_array(items):
        arr = jnp.asarray(items)
        if arr.ndim > 1:
            raise TaggedTypeError(f"vector() needs rank 0 or 1 data, got shape {tuple(arr.shape)}")
        arr = arr.reshape(-1)
        inferred = _array_mode(arr)
        if wanted is not None and wanted is not inferred:
            raise TaggedTypeError(f"expected a {wanted.value} vector, got {inferred.value}")
        return Vector(arr, inferred)
    if isinstance(items, (str, Scalar)) or not isinstance(items, Iterable):
        items = [items]

    elements = [item.value if isinstance(item, Scalar) else _python_scalar(item) for item in items]
    modes = {_scalar_mode(element) for element in elements}
    if len(modes) > 1:
        names = " and ".join(sorted(m.value for m in modes))
        raise TaggedTypeError(f"vector elements must share one mode, got {names}")
    inferred = modes.pop() if modes else (wanted or Mode.NUMERIC)
    if wanted is not None and wanted is not inferred:
        raise TaggedTypeError(f"expected a {wanted.value} vector, got {inferred.value}")

    if inferred is Mode.CHARACTER:
        return Vector(tuple(elements), inferred)
    if inferred is Mode.LOGICAL:
        return Vector(jnp.asarray(elements, dtype=jnp.bool_).reshape(-1), inferred)
    if not elements:
        return Vector(jnp.zeros((0,), dtype=jnp.float32), inferred)
    return Vector(jnp.asarray(elements), inferred)


def composite(fields: Mapping[str, object] | None = None, **named: object) -> Composite:
    merged: dict[str, object] = {} if fields is None else dict(fields)
    merged.update(named)
    out: dict[str, Value] = {}
    for name, item in merged.items():
        if not isinstance(name, str):
            raise TaggedTypeError(f"field names must be str, not {type(name).__name__}")
        out[name] = as_value(item)
    return Composite(out)


def as_value(obj: object) -> Value:
    """Coerce Python data into a Value; Values pass through unchanged."""
    if isinstance(obj, VALUE_TYPES):
        return obj
    if _is_array(obj):
        arr = jnp.asarray(obj)
        if arr.ndim == 0:
            return scalar(arr)
        if arr.ndim == 1:
            return vector(arr)
        out = vector(arr.ravel())
        out.attributes[DIM] = [int(d) for d in arr.shape]
        return out
    if isinstance(obj, (bool, numbers.Real, str)):
        return scalar(obj)
    if isinstance(obj, Mapping):
        return composite(obj)
    if isinstance(obj, (list, tuple)):
        return vector(obj)
    raise TaggedTypeError(f"cannot convert {type(obj).__name__} to a runtime value")


def deep_copy(value: Value) -> Value:
    """Copy a value together with every Value reachable through fields and attributes.

    Array and tuple storage is immutable and stays shared.
    """
    if isinstance(value, Composite):
        fields = {name: deep_copy(item) for name, item in value.fields.items()}
        return Composite(fields, value.attributes.copy(deep=True))
    if isinstance(value, Vector):
        return Vector(value.data, value.mode, value.attributes.copy(deep=True))
    if isinstance(value, Scalar):
        return Scalar(value.value, value.attributes.copy(deep=True))
    raise TaggedTypeError(f"unsupported runtime type {type(value).__name__}")


def is_value(obj: object) -> bool:
    return isinstance(obj, VALUE_TYPES)


def kind_of(value: Value) -> ValueKind:
    if isinstance(value, Scalar):
        return ValueKind.SCALAR
    if isinstance(value, Vector):
        return ValueKind.VECTOR
    if isinstance(value, Composite):
        return ValueKind.COMPOSITE
    raise TaggedTypeError(f"unsupported runtime type {type(value).__name__}")


def base_representation_tag(value: Value) -> str:
    kind = kind_of(value)
    if kind is ValueKind.COMPOSITE:
        return "composite"
    return f"{value.mode.value}-{kind.value}"


def class_tags(value: Value) -> tuple[str, ...]:
    return value.attributes.class_tags


def length_of(value: Value) -> int:
    kind_of(value)
    return len(value)


def value_info(value: Value) -> ValueInfo:
    kind = kind_of(value)
    mode = None if kind is ValueKind.COMPOSITE else value.mode
    return ValueInfo(
        kind=kind,
        mode=mode,
        length=len(value),
        classes=class_tags(value),
        base_tag=base_representation_tag(value),
    )


def validate_value(value: object, *, where: str = "value") -> None:
    if isinstance(value, Scalar):
        _scalar_mode(value.value)
        return
    if isinstance(value, Vector):
        if value.mode is Mode.CHARACTER:
            if not isinstance(value.data, tuple) or not all(isinstance(x, str) for x in value.data):
                raise TaggedTypeError(f"{where} is a character vector with non-str storage")
            return
        if not _is_array(value.data) or value.data.ndim != 1:
            raise TaggedTypeError(f"{where} is a {value.mode.value} vector without 1-D array storage")
        if _array_mode(value.data) is not value.mode:
            raise TaggedTypeError(f"{where} has dtype {value.data.dtype} but mode {value.mode.value}")
        return
    if isinstance(value, Composite):
        for name, item in value.fields.items():
            validate_value(item, where=f"{where}${name}")
        return
    raise TaggedTypeError(f"{where} has unsupported runtime type {type(value).__name__}")


def values_equal(left: Value, right: Value) -> bool:
    if type(left) is not type(right):
        return False
    if left.attributes != right.attributes:
        return False
    if isinstance(left, Scalar):
        return left.mode is right.mode and left.value == right.value
    if isinstance(left, Vector):
        if left.mode is not right.mode or len(left) != len(right):
            return False
        if isinstance(left.data, tuple):
            return left.data == right.data
        return left.data.dtype == right.data.dtype and bool(jnp.array_equal(left.data, right.data))
    if left.names != right.names:
        return False
    return all(values_equal(left.fields[name], right.fields[name]) for name in left.names)


def to_python(value: Value) -> object:
    if isinstance(value, Scalar):
        return value.value
    if isinstance(value, Vector):
        return value.to_list()
    if isinstance(value, Composite):
        return {name: to_python(item) for name, item in value.fields.items()}
    raise TaggedTypeError(f"unsupported runtime type {type(value).__name__}")


def _format_element(item: object, mode: Mode) -> str:
    if mode is Mode.LOGICAL:
        return "true" if bool(item) else "false"
    if mode is Mode.CHARACTER:
        escaped = str(item).replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return str(item)


def format_value(value: Value) -> str:
    """Render a value without its attributes, e.g. `<10.1, 11.2>`."""
    if isinstance(value, Scalar):
        return _format_element(value.value, value.mode)
    if isinstance(value, Vector):
        host = value.data if isinstance(value.data, tuple) else jax.device_get(value.data)
        return "<" + ", ".join(_format_element(item, value.mode) for item in host) + ">"
    if isinstance(value, Composite):
        body = ", ".join(f"{name} = {format_value(item)}" for name, item in value.fields.items())
        return "{" + body + "}"
    raise TaggedTypeError(f"unsupported runtime type {type(value).__name__}")
