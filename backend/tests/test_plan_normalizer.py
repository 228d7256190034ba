from __future__ import annotations

import json
import unittest

from backend.app.plan_normalizer import canonicalize_plan, clean_operation, deep_sort_value


class CanonicalPlanTests(unittest.TestCase):
    def test_operations_are_totally_ordered(self) -> None:
        plan = canonicalize_plan(
            {
                "title": "Mixed",
                "operations": [
                    {"type": "add", "target": "content", "component": "Table"},
                    {"type": "update", "target": "content:last", "component": "Card"},
                    {"type": "remove", "target": "content:last"},
                    {"type": "update", "target": "navbar", "component": "Navbar"},
                    {"type": "add", "target": "content:first", "component": "Card"},
                ],
            }
        )
        self.assertEqual(
            [(op["type"], op["target"]) for op in plan["operations"]],
            [
                ("remove", "content:last"),
                ("update", "navbar"),
                ("update", "content:last"),
                ("add", "content:first"),
                ("add", "content"),
            ],
        )

    def test_result_does_not_depend_on_input_order(self) -> None:
        operations = [
            {"type": "add", "target": "content", "component": "Chart", "props": {"title": "B"}},
            {"type": "add", "target": "content", "component": "Chart", "props": {"title": "A"}},
            {"type": "add", "target": "id:layout_main", "component": "Card"},
        ]
        first = canonicalize_plan({"operations": operations})
        second = canonicalize_plan({"operations": list(reversed(operations))})
        self.assertEqual(json.dumps(first), json.dumps(second))

    def test_canonicalization_is_idempotent(self) -> None:
        once = canonicalize_plan(
            {
                "action": "modify",
                "title": "  Tidy   up ",
                "notes": ["b", "a", "b"],
                "updates": [{"target": "navbar", "props": {"title": " Home  Page "}}],
                "operations": [{"type": "update", "target": " navbar ", "props": {"title": " Home  Page "}}],
            }
        )
        self.assertEqual(canonicalize_plan(once), once)
        self.assertEqual(once["title"], "Tidy up")
        self.assertEqual(once["notes"], ["a", "b"])
        self.assertEqual(once["operations"][0]["target"], "navbar")

    def test_modify_shape_fills_defaults(self) -> None:
        plan = canonicalize_plan({"action": "modify"})
        self.assertEqual(plan["title"], "Incremental UI update")
        for bucket in ("updates", "additions", "removals", "layout_changes", "operations"):
            self.assertEqual(plan[bucket], [])

    def test_legacy_shape_drops_volatile_keys(self) -> None:
        plan = canonicalize_plan({"title": "T", "seed": 42, "timestamp": "now", "operations": []})
        self.assertNotIn("seed", plan)
        self.assertNotIn("timestamp", plan)
        self.assertEqual(plan["title"], "T")

    def test_clean_operation_clamps_unknown_values(self) -> None:
        op = clean_operation({"type": "move", "position": "middle", "props": "oops", "component": "  "})
        self.assertEqual(op["type"], "update")
        self.assertEqual(op["position"], "append")
        self.assertEqual(op["props"], {})
        self.assertIsNone(op["component"])
        self.assertEqual(op["target"], "content:last")

    def test_deep_sort_orders_nested_keys(self) -> None:
        value = deep_sort_value({"b": {"d": 1, "c": [{"z": 1, "y": 2}]}, "a": 0})
        self.assertEqual(list(value), ["a", "b"])
        self.assertEqual(list(value["b"]), ["c", "d"])
        self.assertEqual(list(value["b"]["c"][0]), ["y", "z"])


if __name__ == "__main__":
    unittest.main()
