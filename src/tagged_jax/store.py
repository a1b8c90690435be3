"""Reference-counted value storage with detach-on-write semantics."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Union

from .attributes import CLASS, AttributeSet
from .config import DEFAULT_CONFIG, RuntimeConfig
from .errors import ImmutableValueError, ReleasedHandleError, TaggedTypeError
from .values import Composite, Scalar, Value, Vector, as_value, base_representation_tag, deep_copy, validate_value

logger = logging.getLogger(__name__)

Path = tuple[str, ...]
MutationFn = Callable[[Value], Union[Value, None]]
Fingerprint = tuple


class _LeafCell:
    __slots__ = ("value", "refcount")

    def __init__(self, value: Scalar | Vector) -> None:
        self.value = value
        self.refcount = 1


class _CompositeCell:
    __slots__ = ("fields", "attributes", "refcount")

    def __init__(self, fields: dict[str, "_Cell"], attributes: AttributeSet) -> None:
        self.fields = fields
        self.attributes = attributes
        self.refcount = 1


_Cell = Union[_LeafCell, _CompositeCell]


@dataclass
class StoreStats:
    allocated: int = 0
    cloned: int = 0
    rewrites: int = 0
    freed: int = 0


class Handle:
    """A reference to shared storage owned by a CopyOnWriteStore."""

    __slots__ = ("_store", "_root", "_frozen", "_released")

    def __init__(self, store: "CopyOnWriteStore", root: _Cell) -> None:
        self._store = store
        self._root = root
        self._frozen = False
        self._released = False

    @property
    def store(self) -> "CopyOnWriteStore":
        return self._store

    @property
    def value(self) -> Value:
        return self._store.read(self)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def released(self) -> bool:
        return self._released

    @property
    def exclusive(self) -> bool:
        """True when no other handle shares the root storage."""
        return self._live_root().refcount == 1

    @property
    def class_tags(self) -> tuple[str, ...]:
        return _cell_attributes(self._live_root()).class_tags

    @property
    def base_tag(self) -> str:
        root = self._live_root()
        if isinstance(root, _CompositeCell):
            return "composite"
        return base_representation_tag(root.value)

    def _live_root(self) -> _Cell:
        if self._released:
            raise ReleasedHandleError("handle was released and no longer references storage")
        return self._root

    def __enter__(self) -> "Handle":
        return self

    def __exit__(self, *_exc) -> None:
        if not self._released:
            self._store.release(self)

    def __repr__(self) -> str:
        if self._released:
            return "<Handle released>"
        state = " frozen" if self._frozen else ""
        return f"<Handle #{id(self._root):x} refs={self._root.refcount}{state}>"


def _cell_attributes(cell: _Cell) -> AttributeSet:
    if isinstance(cell, _CompositeCell):
        return cell.attributes
    return cell.value.attributes


def _fingerprint(value: Value) -> Fingerprint:
    """Identity-based summary of a view; it changes whenever anything in it is rebound."""
    attrs = tuple((key, _fingerprint(item)) for key, item in value.attributes.items())
    if isinstance(value, Composite):
        fields = tuple((name, id(item), _fingerprint(item)) for name, item in value.fields.items())
        return ("composite", fields, attrs)
    if isinstance(value, Vector):
        return ("vector", id(value.data), value.mode, attrs)
    return ("scalar", type(value.value), value.value, attrs)


@dataclass(eq=False)
class CopyOnWriteStore:
    """Shares composite values between handles until one of them mutates.

    With structural sharing (the default) a mutation clones only the cells on
    the path from the root to the mutated field; siblings stay shared. Setting
    ``structural_sharing=False`` clones the whole tree instead, which is slower
    but simpler to reason about.
    """

    config: RuntimeConfig = DEFAULT_CONFIG
    structural_sharing: bool | None = None
    stats: StoreStats = field(default_factory=StoreStats)

    def __post_init__(self) -> None:
        if self.structural_sharing is None:
            self.structural_sharing = self.config.structural_sharing

    def new(self, value: object) -> Handle:
        coerced = as_value(value)
        validate_value(coerced)
        return Handle(self, self._intern(coerced))

    def alias(self, handle: Handle) -> Handle:
        root = self._checked(handle)._root
        root.refcount += 1
        return Handle(self, root)

    def freeze(self, handle: Handle) -> Handle:
        self._checked(handle)._frozen = True
        return handle

    def is_frozen(self, handle: Handle) -> bool:
        return self._checked(handle)._frozen

    def read(self, handle: Handle, path: Sequence[str] = ()) -> Value:
        """Materialize a fresh Value; editing it never touches storage."""
        cell = self._locate(self._checked(handle)._root, tuple(path))
        return self._materialize(cell)

    def refcount(self, handle: Handle, path: Sequence[str] = ()) -> int:
        return self._locate(self._checked(handle)._root, tuple(path)).refcount

    def storage_id(self, handle: Handle, path: Sequence[str] = ()) -> int:
        return id(self._locate(self._checked(handle)._root, tuple(path)))

    def release(self, handle: Handle) -> None:
        root = self._checked(handle)._root
        handle._released = True
        handle._root = None
        self._decref(root)

    def mutate(self, handle: Handle, mutation_fn: MutationFn, path: Sequence[str] = ()) -> Handle:
        """Apply ``mutation_fn`` to the value at ``path`` as seen through ``handle``.

        The function gets an exclusively owned copy and may edit it in place
        (returning None) or return a replacement. Every other handle keeps
        observing the content it had before the call.
        """
        self._checked(handle)
        if handle._frozen:
            raise ImmutableValueError("cannot mutate through a frozen handle")
        path = tuple(path)
        target = self._locate(handle._root, path)

        view, originals = self._mutable_view(target)
        result = mutation_fn(view)
        replacement = view if result is None else as_value(result)
        validate_value(replacement, where="mutation result")

        if not self.structural_sharing and handle._root.refcount > 1:
            self._detach_whole(handle)
        else:
            self._detach_path(handle, path)
        self._install(handle, path, replacement, originals)
        return handle

    def set_attribute(self, handle: Handle, name: str, value: object, path: Sequence[str] = ()) -> Handle:
        def assign(target: Value) -> None:
            target.attributes[name] = value

        return self.mutate(handle, assign, path)

    def remove_attribute(self, handle: Handle, name: str, path: Sequence[str] = ()) -> Handle:
        def remove(target: Value) -> None:
            target.attributes.pop(name, None)

        return self.mutate(handle, remove, path)

    def set_class(self, handle: Handle, tags: Sequence[str], path: Sequence[str] = ()) -> Handle:
        return self.set_attribute(handle, CLASS, list(tags), path)

    def _checked(self, handle: Handle) -> Handle:
        if not isinstance(handle, Handle):
            raise TaggedTypeError(f"expected a Handle, got {type(handle).__name__}")
        if handle._store is not self:
            raise ValueError("handle belongs to a different store")
        handle._live_root()
        return handle

    def _intern(self, value: Value) -> _Cell:
        self.stats.allocated += 1
        if isinstance(value, Composite):
            fields = {name: self._intern(item) for name, item in value.fields.items()}
            return _CompositeCell(fields, value.attributes.copy(deep=True))
        return _LeafCell(deep_copy(value))

    def _locate(self, root: _Cell, path: Path) -> _Cell:
        cell = root
        for depth, name in enumerate(path):
            if not isinstance(cell, _CompositeCell):
                where = "$".join(path[:depth]) or "root"
                raise TaggedTypeError(f"cannot descend into non-composite value at {where}")
            if name not in cell.fields:
                raise KeyError(f"no field {name!r} at path {'$'.join(path[: depth + 1])}")
            cell = cell.fields[name]
        return cell

    def _materialize(self, cell: _Cell) -> Value:
        if isinstance(cell, _LeafCell):
            return deep_copy(cell.value)
        fields = {name: self._materialize(child) for name, child in cell.fields.items()}
        return Composite(fields, cell.attributes.copy(deep=True))

    def _mutable_view(self, cell: _Cell) -> tuple[Value, dict[str, tuple[Value, Fingerprint]]]:
        if isinstance(cell, _LeafCell):
            return deep_copy(cell.value), {}
        fields = {name: self._materialize(child) for name, child in cell.fields.items()}
        originals = {name: (item, _fingerprint(item)) for name, item in fields.items()}
        return Composite(fields, cell.attributes.copy(deep=True)), originals

    def _clone_shallow(self, cell: _Cell) -> _Cell:
        self.stats.cloned += 1
        if isinstance(cell, _LeafCell):
            return _LeafCell(deep_copy(cell.value))
        for child in cell.fields.values():
            child.refcount += 1
        return _CompositeCell(dict(cell.fields), cell.attributes.copy(deep=True))

    def _clone_deep(self, cell: _Cell) -> _Cell:
        self.stats.cloned += 1
        if isinstance(cell, _LeafCell):
            return _LeafCell(deep_copy(cell.value))
        fields = {name: self._clone_deep(child) for name, child in cell.fields.items()}
        return _CompositeCell(fields, cell.attributes.copy(deep=True))

    def _detach_whole(self, handle: Handle) -> None:
        old = handle._root
        handle._root = self._clone_deep(old)
        self._decref(old)
        logger.debug("detached whole structure %#x -> %#x", id(old), id(handle._root))

    def _detach_path(self, handle: Handle, path: Path) -> None:
        root = handle._root
        if root.refcount > 1:
            clone = self._clone_shallow(root)
            root.refcount -= 1
            handle._root = clone
            logger.debug("detached root %#x -> %#x", id(root), id(clone))
        cell = handle._root
        for name in path:
            child = cell.fields[name]
            if child.refcount > 1:
                clone = self._clone_shallow(child)
                child.refcount -= 1
                cell.fields[name] = clone
                logger.debug("detached field %r %#x -> %#x", name, id(child), id(clone))
                child = clone
            cell = child

    def _install(self, handle: Handle, path: Path, replacement: Value, originals: dict[str, tuple[Value, Fingerprint]]) -> None:
        parent = None
        cell = handle._root
        for name in path:
            parent = cell
            cell = cell.fields[name]

        if isinstance(cell, _LeafCell) and not isinstance(replacement, Composite):
            cell.value = deep_copy(replacement)
            self.stats.rewrites += 1
            return

        if isinstance(cell, _CompositeCell) and isinstance(replacement, Composite):
            fields: dict[str, _Cell] = {}
            for name, item in replacement.fields.items():
                original, fingerprint = originals.get(name, (None, None))
                if original is item and _fingerprint(item) == fingerprint:
                    # untouched field keeps its (possibly shared) storage
                    fields[name] = cell.fields[name]
                else:
                    fields[name] = self._intern(item)
            kept = {id(child) for child in fields.values()}
            for child in cell.fields.values():
                if id(child) not in kept:
                    self._decref(child)
            cell.fields = fields
            cell.attributes = replacement.attributes.copy(deep=True)
            self.stats.rewrites += 1
            return

        fresh = self._intern(replacement)
        if parent is None:
            handle._root = fresh
        else:
            parent.fields[path[-1]] = fresh
        self._decref(cell)

    def _decref(self, cell: _Cell) -> None:
        cell.refcount -= 1
        if cell.refcount > 0:
            return
        self.stats.freed += 1
        if isinstance(cell, _CompositeCell):
            for child in cell.fields.values():
                self._decref(child)
