from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for generic-operation tests")
class GenericOperationTests(unittest.TestCase):
    def test_length_for_every_representation(self) -> None:
        from tagged_jax import composite, default_registry, scalar, vector

        registry = default_registry()
        self.assertEqual(registry.dispatch("length", vector([1, 2, 3])), 3)
        self.assertEqual(registry.dispatch("length", scalar("x")), 1)
        self.assertEqual(registry.dispatch("length", composite(a=1, b=2)), 2)

    def test_reductions_on_numeric_and_logical_vectors(self) -> None:
        from tagged_jax import default_registry, vector

        registry = default_registry()
        values = vector([1.0, 2.0, 4.0])
        self.assertAlmostEqual(registry.dispatch("sum", values).value, 7.0)
        self.assertAlmostEqual(registry.dispatch("mean", values).value, 7.0 / 3.0, places=5)
        self.assertEqual(registry.dispatch("min", values).value, 1.0)
        self.assertEqual(registry.dispatch("max", values).value, 4.0)
        self.assertEqual(registry.dispatch("sum", vector([True, True, False])).value, 2)

    def test_empty_reductions(self) -> None:
        from tagged_jax import default_registry, vector

        registry = default_registry()
        self.assertEqual(registry.dispatch("sum", vector([])).value, 0)
        with self.assertRaises(ValueError):
            registry.dispatch("max", vector([]))

    def test_character_vectors_have_no_sum(self) -> None:
        from tagged_jax import NoApplicableMethodError, default_registry, vector

        with self.assertRaises(NoApplicableMethodError):
            default_registry().dispatch("sum", vector(["a"]))

    def test_class_method_can_defer_to_base_summary(self) -> None:
        from tagged_jax import CLASS, default_registry, scalar, vector

        registry = default_registry()

        @registry.method("summary", "Temperature")
        def temperature_summary(value):
            base = registry.dispatch_next("summary", value, "Temperature")
            return base.with_field("units", "C")

        readings = vector([20.0, 22.0])
        readings.attributes[CLASS] = "Temperature"
        out = registry.dispatch("summary", readings)

        self.assertEqual(out.names, ("length", "min", "mean", "max", "units"))
        self.assertEqual(out["units"], scalar("C"))
        self.assertEqual(out["length"], scalar(2))

    def test_composite_summary_recurses_per_field(self) -> None:
        from tagged_jax import composite, default_registry, scalar

        out = default_registry().dispatch("summary", composite(x=[1.0, 3.0], label=["a", "b", "c"]))
        self.assertEqual(out.names, ("x", "label"))
        self.assertEqual(out["label"]["length"], scalar(3))
        self.assertAlmostEqual(out["x"]["mean"].value, 2.0)

    def test_summary_of_empty_numeric_data_reports_only_length(self) -> None:
        from tagged_jax import composite, default_registry, scalar, vector

        registry = default_registry()
        out = registry.dispatch("summary", composite(x=vector([]), flags=vector([], mode="logical")))

        self.assertEqual(out["x"].names, ("length",))
        self.assertEqual(out["x"]["length"], scalar(0))
        self.assertEqual(out["flags"]["length"], scalar(0))

    def test_format_default_applies_to_any_value(self) -> None:
        from tagged_jax import composite, default_registry

        registry = default_registry()
        self.assertEqual(registry.dispatch("format", composite(a=1)), "{a = 1}")


if __name__ == "__main__":
    unittest.main()
