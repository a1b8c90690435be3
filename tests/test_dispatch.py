from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


def _tagged(tags):
    from tagged_jax import CLASS, vector

    value = vector([1.0, 2.0])
    value.attributes[CLASS] = list(tags)
    return value


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for dispatch tests")
class DispatchRegistryTests(unittest.TestCase):
    def test_first_class_tag_wins(self) -> None:
        from tagged_jax import DispatchRegistry

        registry = DispatchRegistry()
        registry.register("describe", "Colored", lambda v: "colored")
        registry.register("describe", "Shape", lambda v: "shape")

        self.assertEqual(registry.dispatch("describe", _tagged(["Colored", "Shape"])), "colored")
        self.assertEqual(registry.dispatch("describe", _tagged(["Shape"])), "shape")

    def test_falls_back_to_base_representation_then_default(self) -> None:
        from tagged_jax import DispatchRegistry, scalar

        registry = DispatchRegistry()
        registry.register("describe", "numeric-vector", lambda v: "numbers")
        registry.register_default("describe", lambda v: "anything")

        self.assertEqual(registry.dispatch("describe", _tagged(["Unrelated"])), "numbers")
        self.assertEqual(registry.dispatch("describe", scalar("x")), "anything")

    def test_exhaustion_raises_with_operation_and_chain(self) -> None:
        from tagged_jax import DEFAULT, DispatchRegistry, NoApplicableMethodError

        registry = DispatchRegistry()
        with self.assertRaises(NoApplicableMethodError) as ctx:
            registry.dispatch("area", _tagged(["Polygon"]))

        err = ctx.exception
        self.assertEqual(err.operation, "area")
        self.assertEqual(err.chain, ("Polygon", "numeric-vector", DEFAULT))
        self.assertIn("no applicable method for 'area'", str(err))
        self.assertIsInstance(err, LookupError)

    def test_dispatch_next_continues_after_current_tag(self) -> None:
        from tagged_jax import DispatchRegistry

        registry = DispatchRegistry()

        @registry.method("to_string", "ColoredPolygon")
        def colored(value):
            return registry.dispatch_next("to_string", value, "ColoredPolygon") + " [colored]"

        @registry.method("to_string", "Polygon")
        def polygon(value):
            return "polygon " + registry.dispatch_next("to_string", value, "Polygon")

        @registry.method("to_string")
        def fallback(value):
            return str(value)

        out = registry.dispatch("to_string", _tagged(["ColoredPolygon", "Polygon"]))
        self.assertEqual(out, "polygon <1.0, 2.0> [colored]")

    def test_dispatch_next_skips_unregistered_tags(self) -> None:
        from tagged_jax import DispatchRegistry

        registry = DispatchRegistry()
        registry.register("f", "A", lambda v: registry.dispatch_next("f", v, "A"))
        registry.register("f", "numeric-vector", lambda v: "base")

        self.assertEqual(registry.dispatch("f", _tagged(["A", "B"])), "base")

    def test_dispatch_next_past_the_end_raises(self) -> None:
        from tagged_jax import DEFAULT, DispatchRegistry, NoApplicableMethodError

        registry = DispatchRegistry()
        registry.register_default("f", lambda v: "default")
        with self.assertRaises(NoApplicableMethodError):
            registry.dispatch_next("f", _tagged(["A"]), DEFAULT)
        with self.assertRaises(NoApplicableMethodError):
            registry.dispatch_next("f", _tagged(["A"]), "NotInChain")

    def test_duplicate_tags_are_visited_once(self) -> None:
        from tagged_jax import DEFAULT, DispatchRegistry

        registry = DispatchRegistry()
        self.assertEqual(
            registry.resolution_chain(_tagged(["A", "B", "A"])),
            ("A", "B", "numeric-vector", DEFAULT),
        )

    def test_class_tag_is_tried_before_the_base_representation(self) -> None:
        from tagged_jax import DispatchRegistry

        registry = DispatchRegistry()
        registry.register("describe", "numeric-vector", lambda v: "numbers")
        registry.register("describe", "Shape", lambda v: "shape")

        self.assertEqual(registry.dispatch("describe", _tagged(["Colored", "Shape"])), "shape")
        self.assertEqual(registry.resolve("describe", _tagged(["Colored", "Shape"])).tag, "Shape")

    def test_class_named_default_does_not_reach_the_fallback(self) -> None:
        from tagged_jax import DEFAULT, DispatchRegistry

        registry = DispatchRegistry()
        registry.register_default("describe", lambda v: "fallback")
        registry.register("describe", "numeric-vector", lambda v: "numbers")
        value = _tagged(["default"])

        self.assertEqual(registry.resolution_chain(value), ("default", "numeric-vector", DEFAULT))
        self.assertEqual(registry.dispatch("describe", value), "numbers")

        registry.register("describe", "default", lambda v: "class method")
        self.assertEqual(registry.dispatch("describe", value), "class method")
        self.assertEqual(registry.dispatch("describe", _tagged([])), "numbers")

    def test_tags_must_be_strings_or_the_default_slot(self) -> None:
        from tagged_jax import DispatchRegistry, TaggedTypeError

        with self.assertRaises(TaggedTypeError):
            DispatchRegistry().register("f", 3, lambda v: 1)  # type: ignore[arg-type]

    def test_extra_arguments_are_forwarded(self) -> None:
        from tagged_jax import DispatchRegistry

        registry = DispatchRegistry()
        registry.register("scale", "A", lambda v, factor, *, offset=0: factor + offset)
        self.assertEqual(registry.dispatch("scale", _tagged(["A"]), 3, offset=1), 4)

    def test_closed_registry_rejects_registration(self) -> None:
        from tagged_jax import DispatchRegistry, RegistryClosedError

        registry = DispatchRegistry()
        registry.register("f", "A", lambda v: 1)
        registry.close()

        with self.assertRaises(RegistryClosedError):
            registry.register("f", "B", lambda v: 2)
        with self.assertRaises(RegistryClosedError):
            registry.unregister("f", "A")
        self.assertEqual(registry.dispatch("f", _tagged(["A"])), 1)

    def test_copy_of_closed_registry_is_open(self) -> None:
        from tagged_jax import DispatchRegistry

        registry = DispatchRegistry()
        registry.register("f", "A", lambda v: 1)
        registry.close()
        clone = registry.copy()
        clone.register("f", "B", lambda v: 2)
        self.assertNotIn(("f", "B"), registry)
        self.assertIn(("f", "B"), clone)

    def test_non_callable_implementation_is_rejected(self) -> None:
        from tagged_jax import DispatchRegistry, TaggedTypeError

        with self.assertRaises(TaggedTypeError):
            DispatchRegistry().register("f", "A", "not callable")  # type: ignore[arg-type]

    def test_dispatch_on_handles_uses_stored_classes(self) -> None:
        from tagged_jax import CopyOnWriteStore, DispatchRegistry

        store = CopyOnWriteStore()
        handle = store.new(_tagged(["Polygon"]))
        registry = DispatchRegistry()
        registry.register("kind", "Polygon", lambda h: type(h).__name__)
        self.assertEqual(registry.dispatch("kind", handle), "Handle")

    def test_dispatch_on_plain_python_objects_is_a_type_error(self) -> None:
        from tagged_jax import DispatchRegistry, TaggedTypeError

        with self.assertRaises(TaggedTypeError):
            DispatchRegistry().dispatch("f", [1, 2])

    def test_generic_function_front(self) -> None:
        from tagged_jax import DispatchRegistry

        registry = DispatchRegistry()
        area = registry.generic("area")
        registry.register("area", "Square", lambda v: "square")
        registry.register("area", "numeric-vector", lambda v: "vector")

        self.assertEqual(area(_tagged(["Square"])), "square")
        self.assertEqual(area.next(_tagged(["Square"]), "Square"), "vector")
        self.assertIn("methods=2", repr(area))

    def test_registration_is_logged(self) -> None:
        from tagged_jax import DispatchRegistry

        registry = DispatchRegistry()
        with self.assertLogs("tagged_jax.dispatch", level="DEBUG") as logs:
            registry.register("f", "A", lambda v: 1)
        self.assertTrue(any("registered method f.A" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
