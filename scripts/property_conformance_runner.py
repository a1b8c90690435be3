"""Check each named runtime property against the tests that exercise it."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from tagged_jax.conformance import (
    VIOLATED,
    default_properties,
    results_payload,
    results_to_markdown_table,
    summarize,
    verify_properties,
    write_json,
)


def _build_markdown(results, summary) -> str:
    lines = [
        "# Property Conformance Report",
        "",
        results_to_markdown_table(results),
        "",
        "## Summary",
        "",
        f"- Properties: {summary['properties']}",
        f"- Holding: {summary['holds']}",
        f"- Violated: {summary['violated']}",
        f"- Unverified: {summary['unverified']}",
        f"- Status: `{summary['status']}`",
    ]
    flagged = [row for row in results if row.broken or row.missing]
    if flagged:
        lines.extend(["", "## Details", ""])
        for row in flagged:
            lines.append(f"### `{row.name}`: {row.statement}")
            lines.extend(f"- failing: `{test_id}`" for test_id in row.broken)
            lines.extend(f"- missing: `{test_id}`" for test_id in row.missing)
    return "\n".join(lines)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--tests-dir",
        default="tests",
        help="directory containing unittest test files",
    )
    parser.add_argument(
        "--property",
        action="append",
        dest="properties",
        metavar="NAME",
        help="only check the named property (repeatable)",
    )
    parser.add_argument(
        "--json-out",
        default="benchmarks/output/conformance/property_conformance.json",
        help="where to write machine-readable results",
    )
    parser.add_argument(
        "--markdown-out",
        default="benchmarks/output/conformance/property_conformance.md",
        help="where to write markdown summary",
    )
    parser.add_argument("--verbose", action="store_true", help="show debug logging from the runtime")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    chosen = default_properties()
    if args.properties:
        known = {prop.name for prop in chosen}
        unknown = sorted(set(args.properties) - known)
        if unknown:
            parser.error(f"unknown properties: {', '.join(unknown)}; choose from {', '.join(sorted(known))}")
        chosen = tuple(prop for prop in chosen if prop.name in args.properties)

    results = verify_properties(chosen, tests_dir=Path(args.tests_dir))
    summary = summarize(results)

    report = _build_markdown(results, summary)
    print(report)

    write_json(Path(args.json_out), {"properties": results_payload(results), "summary": summary})
    Path(args.markdown_out).parent.mkdir(parents=True, exist_ok=True)
    Path(args.markdown_out).write_text(report + "\n", encoding="utf-8")

    return 1 if summary["status"] == VIOLATED else 0


if __name__ == "__main__":
    raise SystemExit(main())
