"""tagged-jax public API."""

from .ast import Placeholder
from .attributes import CLASS, DIM, AttributeSet
from .classes import ClassDef, Invariant
from .config import DEFAULT_CONFIG, RuntimeConfig
from .deferred import DeferredExpr, capture, decompose, name, render, resolve, variables
from .dispatch import DEFAULT, DispatchRegistry, GenericFunction, MethodEntry, dispatch_tags
from .environment import Environment
from .errors import (
    DimensionError,
    FormulaParseError,
    ImmutableValueError,
    NoApplicableMethodError,
    RegistryClosedError,
    ReleasedHandleError,
    TaggedError,
    TaggedTypeError,
    ValidationError,
)
from .generics import default_registry, register_base_methods
from .parser import ParseError, parse_formula
from .store import CopyOnWriteStore, Handle, StoreStats
from .values import (
    Composite,
    Mode,
    Scalar,
    Value,
    ValueInfo,
    ValueKind,
    Vector,
    as_value,
    base_representation_tag,
    class_tags,
    composite,
    deep_copy,
    format_value,
    scalar,
    to_python,
    validate_value,
    value_info,
    values_equal,
    vector,
)

__all__ = [
    "AttributeSet",
    "CLASS",
    "ClassDef",
    "Composite",
    "CopyOnWriteStore",
    "DEFAULT",
    "DEFAULT_CONFIG",
    "DeferredExpr",
    "DIM",
    "DimensionError",
    "DispatchRegistry",
    "Environment",
    "FormulaParseError",
    "GenericFunction",
    "Handle",
    "ImmutableValueError",
    "Invariant",
    "MethodEntry",
    "Mode",
    "NoApplicableMethodError",
    "ParseError",
    "Placeholder",
    "RegistryClosedError",
    "ReleasedHandleError",
    "RuntimeConfig",
    "Scalar",
    "StoreStats",
    "TaggedError",
    "TaggedTypeError",
    "ValidationError",
    "Value",
    "ValueInfo",
    "ValueKind",
    "Vector",
    "as_value",
    "base_representation_tag",
    "capture",
    "class_tags",
    "composite",
    "decompose",
    "deep_copy",
    "default_registry",
    "dispatch_tags",
    "format_value",
    "name",
    "parse_formula",
    "register_base_methods",
    "render",
    "resolve",
    "scalar",
    "to_python",
    "validate_value",
    "value_info",
    "values_equal",
    "variables",
    "vector",
]
