"""Constructor / validator / helper triple for user-defined classes.

Every class built here follows the same contract:

* ``construct`` (the constructor) always runs, does only cheap structural
  checks on the base representation and stamps the class tags. It fails fast
  with ``TaggedTypeError``.
* ``validate`` (the validator) runs the potentially expensive invariants and
  raises ``ValidationError`` naming the first one that fails. It never runs
  unless asked for.
* calling the ``ClassDef`` (the helper) normalizes flexible input, constructs,
  validates, and reports errors in terms of what the caller passed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from .attributes import CLASS
from .errors import TaggedTypeError, ValidationError
from .values import Scalar, Value, Vector, as_value, base_representation_tag, vector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Invariant:
    description: str
    predicate: Callable[[Value], bool]

    def holds(self, value: Value) -> bool:
        return bool(self.predicate(value))


def _collapse_arguments(*args: object) -> object:
    if not args:
        raise TaggedTypeError("expected at least one argument")
    if len(args) == 1:
        return args[0]
    if all(isinstance(arg, (Scalar, bool, int, float, str)) for arg in args):
        return vector(list(args))
    raise TaggedTypeError("separate arguments must all be scalars; pass one sequence instead")


@dataclass(frozen=True)
class ClassDef:
    """A named class with an expected base representation."""

    name: str
    representation: str | tuple[str, ...] | None = None
    parents: tuple[str, ...] = ()
    invariants: tuple[Invariant, ...] = ()
    normalize: Callable[..., object] | None = None
    defaults: dict[str, object] = field(default_factory=dict, hash=False)

    @property
    def tags(self) -> tuple[str, ...]:
        return (self.name, *self.parents)

    @property
    def representations(self) -> tuple[str, ...]:
        if self.representation is None:
            return ()
        if isinstance(self.representation, str):
            return (self.representation,)
        return tuple(self.representation)

    def construct(self, raw: object, **attributes: object) -> Value:
        value = as_value(raw).copy()
        expected = self.representations
        if expected:
            actual = base_representation_tag(value)
            if actual not in expected:
                raise TaggedTypeError(
                    f"{self.name}: expected base representation {' or '.join(expected)}, got {actual}"
                )
        for key, item in {**self.defaults, **attributes}.items():
            value.attributes[key] = item
        value.attributes[CLASS] = list(self.tags)
        return value

    def validate(self, value: Value) -> Value:
        for invariant in self.invariants:
            if not invariant.holds(value):
                raise ValidationError(invariant.description, class_name=self.name)
        return value

    def __call__(self, *args: object, **attributes: object) -> Value:
        try:
            raw = self.normalize(*args) if self.normalize is not None else _collapse_arguments(*args)
            value = self.construct(raw, **attributes)
        except TaggedTypeError as err:
            raise TaggedTypeError(f"{self.name}() could not build a value from {_describe(args)}: {err}") from err
        if self.invariants:
            try:
                self.validate(value)
            except ValidationError as err:
                logger.debug("helper %s rejected input: %s", self.name, err.predicate)
                raise ValidationError(
                    err.predicate,
                    class_name=self.name,
                    message=f"{self.name}() got {_describe(args)}, which breaks the invariant: {err.predicate}",
                ) from err
        return value

    def is_instance(self, value: object) -> bool:
        tags = getattr(value, "class_tags", None)
        if tags is None:
            attributes = getattr(value, "attributes", None)
            tags = () if attributes is None else attributes.class_tags
        return self.name in tags

    def extend(
        self,
        name: str,
        *,
        representation: str | tuple[str, ...] | None = None,
        invariants: Iterable[Invariant] = (),
        normalize: Callable[..., object] | None = None,
        defaults: dict[str, object] | None = None,
    ) -> "ClassDef":
        """A subclass whose class chain is ``(name, *self.tags)``."""
        return ClassDef(
            name=name,
            representation=self.representation if representation is None else representation,
            parents=self.tags,
            invariants=(*self.invariants, *invariants),
            normalize=self.normalize if normalize is None else normalize,
            defaults={**self.defaults, **(defaults or {})},
        )


def _describe(args: tuple[object, ...]) -> str:
    if len(args) == 1:
        arg = args[0]
        if isinstance(arg, (Scalar, Vector)):
            return f"{base_representation_tag(arg)} {arg}"
        return f"a {type(arg).__name__}"
    return f"{len(args)} arguments"
