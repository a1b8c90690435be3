"""Lexical environments captured by deferred expressions."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping

from .errors import TaggedTypeError
from .store import Handle
from .values import VALUE_TYPES, as_value


def admit_binding(value: object, *, where: str = "binding") -> object:
    """Values, handles, deferred expressions and callables bind as-is; other data is coerced."""
    from .deferred import DeferredExpr

    if isinstance(value, (*VALUE_TYPES, Handle, DeferredExpr)) or callable(value):
        return value
    try:
        return as_value(value)
    except TaggedTypeError as err:
        raise TaggedTypeError(f"{where}: {err}") from err


class Environment(MutableMapping[str, object]):
    """Name bindings with a back-reference to the enclosing environment.

    Lookup walks outward through parents; assignment binds locally unless
    `set_existing` is used. A child never owns or tears down its parent.
    """

    def __init__(self, data: Mapping[str, object] | None = None, parent: "Environment | None" = None) -> None:
        self.data: dict[str, object] = {}
        self.parent = parent
        if data is not None:
            for key, value in data.items():
                self.data[key] = admit_binding(value, where=f"env[{key!r}]")

    def __getitem__(self, key: str) -> object:
        scope = self.find_scope(key)
        if scope is None:
            raise KeyError(key)
        return scope.data[key]

    def __setitem__(self, key: str, value: object) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Environment key must be a str, not {type(key).__name__}")
        self.data[key] = admit_binding(value, where=f"name {key!r}")

    def __delitem__(self, key: str) -> None:
        if key not in self.data:
            raise KeyError(key)
        del self.data[key]

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        current: Environment | None = self
        while current is not None:
            for key in current.data:
                if key not in seen:
                    seen.add(key)
                    yield key
            current = current.parent

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.find_scope(key) is not None

    def find_scope(self, key: str) -> "Environment | None":
        current: Environment | None = self
        while current is not None:
            if key in current.data:
                return current
            current = current.parent
        return None

    def define(self, key: str, value: object) -> None:
        self[key] = value

    def set_existing(self, key: str, value: object) -> None:
        scope = self.find_scope(key)
        if scope is None:
            raise NameError(f"Cannot update undefined name {key!r}")
        scope[key] = value

    def is_locally_defined(self, key: str) -> bool:
        return key in self.data

    def child(self, data: Mapping[str, object] | None = None, **bindings: object) -> "Environment":
        merged = {} if data is None else dict(data)
        merged.update(bindings)
        return Environment(merged, parent=self)

    @property
    def depth(self) -> int:
        depth = 0
        current = self.parent
        while current is not None:
            depth += 1
            current = current.parent
        return depth

    def __repr__(self) -> str:
        keys = ", ".join(self.data)
        parent = f", parent=#{id(self.parent):x}" if self.parent is not None else ""
        return f"<Environment bindings=[{keys}]{parent}>"
