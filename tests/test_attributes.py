from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for attribute tests")
class AttributeSetTests(unittest.TestCase):
    def test_set_then_get_round_trips_and_keeps_insertion_order(self) -> None:
        from tagged_jax import AttributeSet, scalar, vector

        attrs = AttributeSet()
        attrs["units"] = "cm"
        attrs["scale"] = 2.5
        attrs["labels"] = ["a", "b"]

        self.assertEqual(list(attrs), ["units", "scale", "labels"])
        self.assertEqual(attrs["units"], scalar("cm"))
        self.assertEqual(attrs["scale"], scalar(2.5))
        self.assertEqual(attrs["labels"], vector(["a", "b"]))

    def test_removal_leaves_name_absent(self) -> None:
        from tagged_jax import AttributeSet

        attrs = AttributeSet({"units": "cm", "note": "x"})
        del attrs["units"]
        self.assertNotIn("units", attrs)
        self.assertEqual(list(attrs), ["note"])
        with self.assertRaises(KeyError):
            attrs["units"]

    def test_class_accepts_str_and_sequences(self) -> None:
        from tagged_jax import CLASS, AttributeSet

        attrs = AttributeSet()
        attrs[CLASS] = "Polygon"
        self.assertEqual(attrs.class_tags, ("Polygon",))

        attrs[CLASS] = ["ColoredPolygon", "Polygon"]
        self.assertEqual(attrs.class_tags, ("ColoredPolygon", "Polygon"))

    def test_empty_class_removes_the_attribute(self) -> None:
        from tagged_jax import CLASS, AttributeSet

        attrs = AttributeSet({CLASS: "Shape"})
        attrs[CLASS] = []
        self.assertNotIn(CLASS, attrs)
        self.assertEqual(attrs.class_tags, ())

    def test_class_must_be_character(self) -> None:
        from tagged_jax import CLASS, AttributeSet, TaggedTypeError

        attrs = AttributeSet()
        with self.assertRaises(TaggedTypeError):
            attrs[CLASS] = [1, 2]
        self.assertNotIn(CLASS, attrs)

    def test_dim_product_must_match_extent(self) -> None:
        from tagged_jax import DIM, DimensionError, vector

        v = vector([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        v.attributes[DIM] = [2, 3]
        self.assertEqual(v.attributes.dim, (2, 3))

        with self.assertRaises(DimensionError) as ctx:
            v.attributes[DIM] = [4, 2]
        self.assertIn("do not match the length", str(ctx.exception))
        self.assertEqual(v.attributes.dim, (2, 3))

    def test_dim_rejects_negative_and_fractional_entries(self) -> None:
        from tagged_jax import DIM, AttributeSet, TaggedTypeError

        attrs = AttributeSet()
        with self.assertRaises(TaggedTypeError):
            attrs[DIM] = [-1, 2]
        with self.assertRaises(TaggedTypeError):
            attrs[DIM] = [1.5]

    def test_binding_checks_existing_dim(self) -> None:
        from tagged_jax import DIM, AttributeSet, DimensionError
        from tagged_jax.values import Vector, vector

        attrs = AttributeSet({DIM: [2, 2]})
        with self.assertRaises(DimensionError):
            Vector(vector([1, 2, 3]).data, vector([1, 2, 3]).mode, attrs)

    def test_non_str_names_are_rejected(self) -> None:
        from tagged_jax import AttributeSet

        attrs = AttributeSet()
        with self.assertRaises(TypeError):
            attrs[3] = "x"  # type: ignore[index]

    def test_equality_respects_order_and_content(self) -> None:
        from tagged_jax import AttributeSet

        left = AttributeSet([("a", 1), ("b", 2)])
        same = AttributeSet([("a", 1), ("b", 2)])
        swapped = AttributeSet([("b", 2), ("a", 1)])
        self.assertEqual(left, same)
        self.assertNotEqual(left, swapped)

    def test_copy_is_independent(self) -> None:
        from tagged_jax import AttributeSet

        original = AttributeSet({"a": 1})
        clone = original.copy()
        clone["b"] = 2
        self.assertNotIn("b", original)


if __name__ == "__main__":
    unittest.main()
