"""Compare structural sharing with whole-structure cloning on aliased composites."""

from __future__ import annotations

import argparse
import json
import math
import time
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

import jax.numpy as jnp

from tagged_jax import CopyOnWriteStore, composite, vector


@dataclass(frozen=True)
class Case:
    name: str
    structural_sharing: bool
    repeats: int


@dataclass(frozen=True)
class Row:
    name: str
    n: int
    mean_ms: float
    p50_ms: float
    p95_ms: float
    min_ms: float
    max_ms: float
    cloned_cells: int
    repeats: int
    samples: int


def _percentile(values: list[float], q: float) -> float:
    ordered = sorted(values)
    if len(ordered) == 1:
        return ordered[0]
    pos = (len(ordered) - 1) * q
    lo = int(math.floor(pos))
    hi = int(math.ceil(pos))
    if lo == hi:
        return ordered[lo]
    alpha = pos - lo
    return ordered[lo] * (1.0 - alpha) + ordered[hi] * alpha


def _wide_record(n: int):
    return composite(
        {f"f{i}": vector(jnp.arange(16, dtype=jnp.float32) + i) for i in range(n)},
    )


def _run_case(case: Case, n: int, *, samples: int) -> Row:
    record = _wide_record(n)

    def bump(field):
        return vector(field.data + 1.0)

    rows: list[float] = []
    cloned = 0
    for _ in range(samples):
        store = CopyOnWriteStore(structural_sharing=case.structural_sharing)
        original = store.new(record)
        start = time.perf_counter()
        for _ in range(case.repeats):
            alias = store.alias(original)
            store.mutate(alias, bump, path=("f0",))
            store.release(alias)
        end = time.perf_counter()
        rows.append((end - start) * 1e3 / case.repeats)
        cloned = store.stats.cloned
    return Row(
        name=case.name,
        n=n,
        mean_ms=sum(rows) / len(rows),
        p50_ms=_percentile(rows, 0.50),
        p95_ms=_percentile(rows, 0.95),
        min_ms=min(rows),
        max_ms=max(rows),
        cloned_cells=cloned,
        repeats=case.repeats,
        samples=samples,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--ns", default="8,64,256", help="comma-separated field counts")
    parser.add_argument("--samples", type=int, default=3, help="timing samples")
    parser.add_argument("--json-out", default="", help="optional output JSON")
    args = parser.parse_args()

    ns = [int(x.strip()) for x in args.ns.split(",") if x.strip()]
    cases = [
        Case("path_clone", structural_sharing=True, repeats=50),
        Case("whole_clone", structural_sharing=False, repeats=50),
    ]

    rows: list[Row] = []
    print("Copy-on-write mutation benchmark")
    for n in ns:
        for case in cases:
            row = _run_case(case, n, samples=args.samples)
            rows.append(row)
            print(
                f"{case.name:12} n={n:4d} mean={row.mean_ms:8.3f}ms p95={row.p95_ms:8.3f}ms cloned={row.cloned_cells}"
            )

    if args.json_out:
        outpath = Path(args.json_out)
        outpath.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "timestamp_utc": datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ"),
            "sizes": ns,
            "samples": args.samples,
            "rows": [asdict(row) for row in rows],
        }
        outpath.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Wrote JSON: {outpath}")


if __name__ == "__main__":
    main()
