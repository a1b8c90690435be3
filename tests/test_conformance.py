from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from tagged_jax.conformance import (
    HOLDS,
    UNVERIFIED,
    VIOLATED,
    BehaviorProperty,
    PropertyResult,
    default_properties,
    index_tests,
    results_payload,
    results_to_markdown_table,
    summarize,
    verify_properties,
    write_json,
)

_SAMPLE_SUITE = """
import unittest


class Sample(unittest.TestCase):
    def test_ok(self):
        self.assertTrue(True)

    def test_bad(self):
        self.assertEqual(1, 2)

    def test_raises(self):
        raise RuntimeError("boom")

    @unittest.skip("not today")
    def test_skipped(self):
        pass
"""

_PREFIX = "test_property_sample.Sample."


def _result(name: str, status: str, **counts: int) -> PropertyResult:
    return PropertyResult(
        name=name,
        statement=f"{name} statement",
        checks=counts.get("checks", 1),
        passed=counts.get("passed", 1),
        failed=counts.get("failed", 0),
        errors=counts.get("errors", 0),
        skipped=counts.get("skipped", 0),
        missing=(),
        broken=(),
        status=status,
    )


class ConformanceReportingTests(unittest.TestCase):
    def test_every_property_names_existing_tests(self) -> None:
        index = index_tests(Path(__file__).parent)
        names = [prop.name for prop in default_properties()]
        self.assertEqual(len(names), len(set(names)))
        for prop in default_properties():
            self.assertTrue(prop.tests, prop.name)
            for test_id in prop.tests:
                self.assertIn(test_id, index, f"{prop.name}: {test_id}")

    def test_properties_are_judged_by_their_own_tests(self) -> None:
        properties = [
            BehaviorProperty("ok", "passes", (_PREFIX + "test_ok",)),
            BehaviorProperty("bad", "fails", (_PREFIX + "test_ok", _PREFIX + "test_bad")),
            BehaviorProperty("raises", "errors", (_PREFIX + "test_raises",)),
            BehaviorProperty("gap", "has a missing test", (_PREFIX + "test_ok", _PREFIX + "test_absent")),
            BehaviorProperty("skipped", "only skips", (_PREFIX + "test_skipped",)),
        ]
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "test_property_sample.py").write_text(_SAMPLE_SUITE, encoding="utf-8")
            results = {row.name: row for row in verify_properties(properties, tests_dir=root)}

        self.assertEqual(results["ok"].status, HOLDS)
        self.assertTrue(results["ok"].holds)
        self.assertEqual((results["ok"].checks, results["ok"].passed), (1, 1))

        self.assertEqual(results["bad"].status, VIOLATED)
        self.assertEqual((results["bad"].passed, results["bad"].failed), (1, 1))
        self.assertEqual(results["bad"].broken, (_PREFIX + "test_bad",))

        self.assertEqual(results["raises"].status, VIOLATED)
        self.assertEqual(results["raises"].errors, 1)

        self.assertEqual(results["gap"].status, UNVERIFIED)
        self.assertEqual(results["gap"].missing, (_PREFIX + "test_absent",))

        self.assertEqual(results["skipped"].status, UNVERIFIED)
        self.assertEqual(results["skipped"].skipped, 1)

        summary = summarize(list(results.values()))
        self.assertEqual(summary["properties"], 5)
        self.assertEqual((summary["holds"], summary["violated"], summary["unverified"]), (1, 2, 2))
        self.assertEqual(summary["status"], VIOLATED)

    def test_summary_without_violations(self) -> None:
        self.assertEqual(summarize([_result("a", HOLDS)])["status"], HOLDS)
        self.assertEqual(summarize([_result("a", HOLDS), _result("b", UNVERIFIED)])["status"], UNVERIFIED)
        self.assertEqual(summarize([])["status"], UNVERIFIED)

    def test_markdown_table_has_one_row_per_property(self) -> None:
        table = results_to_markdown_table([_result("copy_on_write", HOLDS, checks=3, passed=2, skipped=1)])
        self.assertIn("| `copy_on_write` | 3 | 2 | 1 | 0 | 0 | 0 | holds |", table)

    def test_write_json_creates_parent_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "nested" / "report.json"
            write_json(target, results_payload([_result("laziness", HOLDS)]))
            payload = json.loads(target.read_text(encoding="utf-8"))
        self.assertEqual(payload[0]["name"], "laziness")
        self.assertEqual(payload[0]["status"], HOLDS)
        self.assertEqual(payload[0]["missing"], [])


if __name__ == "__main__":
    unittest.main()
