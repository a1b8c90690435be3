"""Structured error types for the tagged-value runtime."""

from __future__ import annotations

from dataclasses import dataclass

from .parser import ParseError


class TaggedError(Exception):
    """Base class for structured tagged-jax errors."""


class TaggedTypeError(TaggedError, TypeError):
    """Structural mismatch detected by a constructor or an operator."""


class ValidationError(TaggedError, ValueError):
    """An explicitly requested invariant check failed."""

    def __init__(self, predicate: str, *, class_name: str | None = None, message: str | None = None) -> None:
        self.predicate = predicate
        self.class_name = class_name
        if message is None:
            owner = f"{class_name}: " if class_name else ""
            message = f"{owner}invariant violated: {predicate}"
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class DimensionError(ValidationError):
    """A `dim` attribute disagrees with the element count it annotates."""


class NoApplicableMethodError(TaggedError, LookupError):
    """Dispatch exhausted the class chain, the base representation and the default."""

    def __init__(self, operation: str, chain: tuple[object, ...], *, detail: str | None = None) -> None:
        self.operation = operation
        self.chain = chain
        message = detail
        if message is None:
            tags = ", ".join(repr(tag) for tag in chain)
            message = f"no applicable method for {operation!r} applied to an object of class ({tags})"
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ImmutableValueError(TaggedError):
    """Mutation attempted through a frozen handle."""


class ReleasedHandleError(TaggedError, RuntimeError):
    """A handle was used after it gave up its storage."""


class RegistryClosedError(TaggedError, RuntimeError):
    """Registration attempted after the registry was closed."""


@dataclass(frozen=True)
class FormulaParseError(TaggedError):
    """Wraps parser failures with explicit parse-stage typing."""

    message: str
    start: int
    end: int
    expected: tuple[str, ...] = ()
    found: str | None = None

    @classmethod
    def from_parse_error(cls, err: ParseError) -> "FormulaParseError":
        return cls(
            message=err.message,
            start=err.start,
            end=err.end,
            expected=err.expected,
            found=err.found,
        )

    def __str__(self) -> str:
        expected = ""
        if self.expected:
            expected = f"; expected {', '.join(self.expected)}"
        found = ""
        if self.found is not None:
            found = f"; found {self.found}"
        return f"{self.message} at span [{self.start}, {self.end}){expected}{found}"
