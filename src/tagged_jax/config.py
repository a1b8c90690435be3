"""Runtime configuration passed explicitly to the store and the resolver."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class RuntimeConfig:
    structural_sharing: bool = True
    max_resolve_depth: int = 64

    def __post_init__(self) -> None:
        if self.max_resolve_depth < 1:
            raise ValueError("max_resolve_depth must be at least 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RuntimeConfig":
        """Build a config from TAGGED_JAX_* variables (opt-in; never read implicitly)."""
        env = os.environ if environ is None else environ
        return cls(
            structural_sharing=env.get("TAGGED_JAX_DISABLE_STRUCTURAL_SHARING", "0") != "1",
            max_resolve_depth=max(1, int(env.get("TAGGED_JAX_MAX_RESOLVE_DEPTH", "64"))),
        )


DEFAULT_CONFIG: Final[RuntimeConfig] = RuntimeConfig()
