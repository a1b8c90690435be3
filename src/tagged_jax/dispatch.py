"""Single dispatch on a value's ordered class tags."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final, Union

from .errors import NoApplicableMethodError, RegistryClosedError, TaggedTypeError
from .store import Handle
from .values import VALUE_TYPES, base_representation_tag

logger = logging.getLogger(__name__)


class _UniversalDefault:
    """Chain slot for an operation's fallback; never equal to a class tag."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<default>"

    __str__ = __repr__

    def __reduce__(self) -> str:
        return "DEFAULT"


DEFAULT: Final = _UniversalDefault()

Implementation = Callable[..., object]
Tag = Union[str, _UniversalDefault]


@dataclass(frozen=True)
class MethodEntry:
    operation: str
    tag: Tag
    implementation: Implementation


def dispatch_tags(value: object) -> tuple[tuple[str, ...], str]:
    """Return (class tags, base-representation tag) for a Value or Handle."""
    if isinstance(value, Handle):
        return value.class_tags, value.base_tag
    if isinstance(value, VALUE_TYPES):
        return value.attributes.class_tags, base_representation_tag(value)
    raise TaggedTypeError(f"cannot dispatch on {type(value).__name__}; expected a Value or Handle")


class DispatchRegistry:
    """Explicit (operation, tag) -> implementation table.

    Resolution walks the value's class tags in order, then its base
    representation tag, then the operation's universal default.
    """

    def __init__(self, entries: list[MethodEntry] | None = None) -> None:
        self._table: dict[tuple[str, Tag], Implementation] = {}
        self._closed = False
        for entry in entries or ():
            self.register(entry.operation, entry.tag, entry.implementation)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop accepting registrations; lookups stay available."""
        self._closed = True

    def register(self, operation: str, tag: Tag, implementation: Implementation) -> None:
        if self._closed:
            raise RegistryClosedError(f"registry is closed; cannot register {operation!r} for {tag!r}")
        if not (isinstance(tag, str) or tag is DEFAULT):
            raise TaggedTypeError(f"dispatch tag must be a str or DEFAULT, got {type(tag).__name__}")
        if not callable(implementation):
            raise TaggedTypeError(f"implementation for {operation!r}/{tag!r} is not callable")
        if (operation, tag) in self._table:
            logger.debug("overwriting method %s.%s", operation, tag)
        self._table[(operation, tag)] = implementation
        logger.debug("registered method %s.%s", operation, tag)

    def register_default(self, operation: str, implementation: Implementation) -> None:
        self.register(operation, DEFAULT, implementation)

    def method(self, operation: str, *tags: str) -> Callable[[Implementation], Implementation]:
        """Decorator form of register(); with no tags it registers the default."""

        def decorate(fn: Implementation) -> Implementation:
            for tag in tags or (DEFAULT,):
                self.register(operation, tag, fn)
            return fn

        return decorate

    def unregister(self, operation: str, tag: Tag) -> None:
        if self._closed:
            raise RegistryClosedError(f"registry is closed; cannot unregister {operation!r} for {tag!r}")
        try:
            del self._table[(operation, tag)]
        except KeyError:
            raise KeyError(f"no method {operation!r} registered for {tag!r}") from None

    def lookup(self, operation: str, tag: Tag) -> Implementation | None:
        return self._table.get((operation, tag))

    def __contains__(self, key: object) -> bool:
        return key in self._table

    def __len__(self) -> int:
        return len(self._table)

    def methods(self, operation: str | None = None) -> list[MethodEntry]:
        return [
            MethodEntry(op, tag, impl)
            for (op, tag), impl in self._table.items()
            if operation is None or op == operation
        ]

    def resolution_chain(self, value: object) -> tuple[Tag, ...]:
        tags, base = dispatch_tags(value)
        return (*dict.fromkeys((*tags, base)), DEFAULT)

    def resolve(self, operation: str, value: object, *, after: Tag | None = None) -> MethodEntry:
        chain = self.resolution_chain(value)
        start = 0
        if after is not None:
            if after not in chain:
                raise NoApplicableMethodError(
                    operation,
                    chain,
                    detail=f"{after!r} is not in the dispatch chain ({', '.join(map(str, chain))}) for {operation!r}",
                )
            start = chain.index(after) + 1
        for tag in chain[start:]:
            impl = self._table.get((operation, tag))
            if impl is not None:
                logger.debug("resolved %s for chain %s -> %s", operation, chain, tag)
                return MethodEntry(operation, tag, impl)
        raise NoApplicableMethodError(operation, chain)

    def dispatch(self, operation: str, value: object, *args, **kwargs) -> object:
        entry = self.resolve(operation, value)
        return entry.implementation(value, *args, **kwargs)

    def dispatch_next(self, operation: str, value: object, current_tag: Tag, *args, **kwargs) -> object:
        """Run the next applicable method after ``current_tag`` in the chain."""
        entry = self.resolve(operation, value, after=current_tag)
        return entry.implementation(value, *args, **kwargs)

    def generic(self, operation: str) -> "GenericFunction":
        return GenericFunction(self, operation)

    def copy(self) -> "DispatchRegistry":
        """An open registry holding the same entries."""
        clone = DispatchRegistry()
        clone._table = dict(self._table)
        return clone

    def __repr__(self) -> str:
        state = " closed" if self._closed else ""
        return f"<DispatchRegistry methods={len(self._table)}{state}>"


@dataclass(frozen=True)
class GenericFunction:
    """Callable front for one operation of a registry."""

    registry: DispatchRegistry
    name: str

    def __call__(self, value: object, *args, **kwargs) -> object:
        return self.registry.dispatch(self.name, value, *args, **kwargs)

    def next(self, value: object, current_tag: Tag, *args, **kwargs) -> object:
        return self.registry.dispatch_next(self.name, value, current_tag, *args, **kwargs)

    def __repr__(self) -> str:
        count = len(self.registry.methods(self.name))
        return f"<GenericFunction name={self.name!r} methods={count}>"
