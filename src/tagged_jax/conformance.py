"""Verify named behavioral properties against the unittest cases that exercise them."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Final
import io
import json
import unittest

HOLDS: Final[str] = "holds"
VIOLATED: Final[str] = "violated"
UNVERIFIED: Final[str] = "unverified"


@dataclass(frozen=True)
class BehaviorProperty:
    """A claim about the runtime plus the test ids that check it."""

    name: str
    statement: str
    tests: tuple[str, ...]


@dataclass(frozen=True)
class PropertyResult:
    name: str
    statement: str
    checks: int
    passed: int
    failed: int
    errors: int
    skipped: int
    missing: tuple[str, ...]
    broken: tuple[str, ...]
    status: str

    @property
    def holds(self) -> bool:
        return self.status == HOLDS


def _ids(module: str, case: str, *names: str) -> tuple[str, ...]:
    return tuple(f"{module}.{case}.{name}" for name in names)


_STORE = ("test_store", "CopyOnWriteStoreTests")
_DISPATCH = ("test_dispatch", "DispatchRegistryTests")
_E2E = ("test_end_to_end", "EndToEndTests")
_DEFERRED = ("test_deferred", "DeferredExprTests")

_PROPERTIES: Final[tuple[BehaviorProperty, ...]] = (
    BehaviorProperty(
        name="copy_on_write",
        statement="Mutating through one handle never changes what another handle observes",
        tests=_ids(
            *_STORE,
            "test_alias_observes_original_after_mutation",
            "test_vector_root_alias_keeps_its_elements",
            "test_scalar_root_alias_keeps_its_attributes",
            "test_attribute_values_are_not_shared_between_aliases",
            "test_composite_attribute_values_are_not_shared_between_aliases",
            "test_new_does_not_keep_the_callers_objects",
            "test_read_returns_detached_copies",
            "test_failed_mutation_leaves_storage_unchanged",
        )
        + _ids(*_E2E, "test_shared_polygon_survives_mutation_of_an_alias"),
    ),
    BehaviorProperty(
        name="in_place_edits",
        statement="Edits made in place on the mutable view are installed",
        tests=_ids(
            *_STORE,
            "test_in_place_edit_of_the_view_is_applied",
            "test_attribute_edit_on_untouched_field_object_is_kept",
            "test_nested_in_place_edit_is_applied",
        ),
    ),
    BehaviorProperty(
        name="structural_sharing",
        statement="A mutation clones only the path it touches; siblings keep shared storage",
        tests=_ids(
            *_STORE,
            "test_untouched_fields_keep_shared_storage",
            "test_untouched_fields_are_not_reinterned",
            "test_exclusive_handle_mutates_without_cloning",
            "test_whole_clone_fallback_gives_the_same_observations",
        ),
    ),
    BehaviorProperty(
        name="frozen_handles",
        statement="A frozen handle rejects mutation before the mutation function runs",
        tests=_ids(*_STORE, "test_frozen_handle_rejects_mutation_without_side_effects"),
    ),
    BehaviorProperty(
        name="handle_lifecycle",
        statement="Released handles drop their reference and cannot be read",
        tests=_ids(
            *_STORE,
            "test_release_drops_references",
            "test_handle_context_manager_releases_on_exit",
            "test_handles_are_bound_to_their_store",
        ),
    ),
    BehaviorProperty(
        name="dispatch_order",
        statement="Class tags are tried in order, then the base representation, then the default",
        tests=_ids(
            *_DISPATCH,
            "test_first_class_tag_wins",
            "test_class_tag_is_tried_before_the_base_representation",
            "test_falls_back_to_base_representation_then_default",
            "test_duplicate_tags_are_visited_once",
            "test_class_named_default_does_not_reach_the_fallback",
            "test_dispatch_on_handles_uses_stored_classes",
        ),
    ),
    BehaviorProperty(
        name="dispatch_next",
        statement="Each method in the chain runs at most once when deferring to the next one",
        tests=_ids(
            *_DISPATCH,
            "test_dispatch_next_continues_after_current_tag",
            "test_dispatch_next_skips_unregistered_tags",
            "test_dispatch_next_past_the_end_raises",
        )
        + _ids(*_E2E, "test_colored_polygon_to_string_runs_each_method_once_in_order")
        + _ids("test_generics", "GenericOperationTests", "test_class_method_can_defer_to_base_summary"),
    ),
    BehaviorProperty(
        name="dispatch_exhaustion",
        statement="An exhausted chain raises an error naming the operation and the chain",
        tests=_ids(*_DISPATCH, "test_exhaustion_raises_with_operation_and_chain")
        + _ids(*_E2E, "test_unregistered_operation_on_a_polygon_names_the_chain")
        + _ids("test_generics", "GenericOperationTests", "test_character_vectors_have_no_sum"),
    ),
    BehaviorProperty(
        name="helper_normalization",
        statement="Constructors check the representation, validators are explicit, helpers do both",
        tests=_ids(
            "test_classes",
            "ClassDefTests",
            "test_helper_accepts_separate_scalars_or_one_sequence",
            "test_constructor_fails_fast_on_wrong_representation",
            "test_constructor_does_not_run_invariants",
            "test_validator_is_opt_in_and_names_the_predicate",
            "test_helper_validates_and_reports_in_caller_terms",
        )
        + _ids(*_E2E, "test_helper_rejects_mismatched_coordinates"),
    ),
    BehaviorProperty(
        name="attribute_round_trip",
        statement="Attributes read back as set, and dim always matches the element count",
        tests=_ids(
            "test_attributes",
            "AttributeSetTests",
            "test_set_then_get_round_trips_and_keeps_insertion_order",
            "test_removal_leaves_name_absent",
            "test_dim_product_must_match_extent",
            "test_binding_checks_existing_dim",
        )
        + _ids("test_values", "ValueModelTests", "test_field_count_change_drops_dim"),
    ),
    BehaviorProperty(
        name="laziness",
        statement="Capturing evaluates nothing; resolution sees the capture environment",
        tests=_ids(
            *_DEFERRED,
            "test_capture_does_not_evaluate",
            "test_capture_of_undefined_names_fails_only_on_resolve",
            "test_resolution_sees_the_capture_environment",
            "test_handles_are_read_at_resolution_time",
            "test_environment_promises_are_resolved_on_lookup",
        ),
    ),
    BehaviorProperty(
        name="formula_decomposition",
        statement="Formulas split into sides that share the captured environment",
        tests=_ids(
            *_DEFERRED,
            "test_formula_evaluates_to_a_formula",
            "test_decompose_name_and_variables",
            "test_decomposed_sides_share_the_environment",
        )
        + _ids(
            "test_formula_parser",
            "FormulaParserTests",
            "test_two_sided_formula",
            "test_one_sided_formula",
            "test_only_one_tilde_per_formula",
        ),
    ),
)


def default_properties() -> tuple[BehaviorProperty, ...]:
    return _PROPERTIES


def _iter_cases(suite: unittest.TestSuite) -> Iterator[unittest.TestCase]:
    for item in suite:
        if isinstance(item, unittest.TestSuite):
            yield from _iter_cases(item)
        else:
            yield item


def index_tests(tests_dir: Path = Path("tests"), *, pattern: str = "test*.py") -> dict[str, unittest.TestCase]:
    """Map unittest ids (``module.Class.method``) to loaded test cases."""
    loader = unittest.TestLoader()
    suite = loader.discover(start_dir=str(tests_dir), pattern=pattern, top_level_dir=str(tests_dir))
    if loader.errors:
        raise ImportError(f"could not load tests from {tests_dir}:\n{loader.errors[0]}")
    return {case.id(): case for case in _iter_cases(suite)}


def _status(failed: int, errors: int, missing: int, executed: int) -> str:
    if failed or errors:
        return VIOLATED
    if missing or executed == 0:
        return UNVERIFIED
    return HOLDS


def verify_property(prop: BehaviorProperty, index: dict[str, unittest.TestCase]) -> PropertyResult:
    missing = tuple(test_id for test_id in prop.tests if test_id not in index)
    suite = unittest.TestSuite(index[test_id] for test_id in prop.tests if test_id in index)
    result = unittest.TextTestRunner(stream=io.StringIO(), verbosity=0).run(suite)

    failed = len(result.failures)
    errors = len(result.errors)
    skipped = len(result.skipped)
    executed = result.testsRun - skipped
    broken = tuple(case.id() for case, _ in (*result.failures, *result.errors))
    return PropertyResult(
        name=prop.name,
        statement=prop.statement,
        checks=result.testsRun,
        passed=executed - failed - errors,
        failed=failed,
        errors=errors,
        skipped=skipped,
        missing=missing,
        broken=broken,
        status=_status(failed, errors, len(missing), executed),
    )


def verify_properties(
    properties: Sequence[BehaviorProperty] | None = None,
    *,
    tests_dir: Path = Path("tests"),
) -> list[PropertyResult]:
    index = index_tests(tests_dir)
    chosen = default_properties() if properties is None else properties
    return [verify_property(prop, index) for prop in chosen]


def summarize(results: Sequence[PropertyResult]) -> dict[str, object]:
    counts = {status: sum(1 for r in results if r.status == status) for status in (HOLDS, VIOLATED, UNVERIFIED)}
    if counts[VIOLATED]:
        overall = VIOLATED
    elif counts[UNVERIFIED] or not results:
        overall = UNVERIFIED
    else:
        overall = HOLDS
    return {"properties": len(results), **counts, "status": overall}


def results_to_markdown_table(results: Sequence[PropertyResult]) -> str:
    lines = [
        "| Property | Checks | Passed | Skipped | Failed | Errors | Missing | Status |",
        "|---|---:|---:|---:|---:|---:|---:|---|",
    ]
    for row in results:
        lines.append(
            f"| `{row.name}` | {row.checks} | {row.passed} | {row.skipped} | {row.failed} | {row.errors} | {len(row.missing)} | {row.status} |"
        )
    return "\n".join(lines)


def write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def results_payload(results: Sequence[PropertyResult]) -> list[dict[str, object]]:
    return [asdict(row) for row in results]
