from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from backend.app.explainer import Explainer
from backend.app.llm_gateway import LlmTransportError
from backend.app.plan_normalizer import canonicalize_plan
from backend.app.tree_codec import default_tree
from backend.app.tree_ops import apply_plan_to_tree


class ExplainerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.previous = default_tree()
        self.plan = canonicalize_plan(
            {
                "operations": [
                    {"type": "update", "target": "navbar", "component": "Navbar", "props": {"title": "Ops"}},
                    {"type": "add", "target": "content", "component": "Chart"},
                ]
            }
        )
        self.tree = apply_plan_to_tree(self.previous, self.plan, "generate")

    def test_generation_explanation_lists_operations(self) -> None:
        text = Explainer().explain(
            intent="Add a chart",
            mode="generate",
            plan=self.plan,
            planner_source="heuristic",
            previous_tree=self.previous,
            tree=self.tree,
        )
        self.assertTrue(text.startswith("1. Intent interpretation:"))
        self.assertIn("- add Chart at content.", text)
        self.assertIn("- update Navbar at navbar.", text)
        self.assertIn("Planner source was heuristic.", text)

    def test_edit_aware_explanation_counts_changes(self) -> None:
        text = Explainer().explain(
            intent="Add a chart",
            mode="modify",
            plan=self.plan,
            planner_source="heuristic",
            previous_tree=self.previous,
            tree=self.tree,
        )
        lines = text.splitlines()
        self.assertEqual(lines[0], "Preserved: 6 existing UI nodes remained in place.")
        self.assertEqual(lines[1], "Modified: 1 targeted updates were applied based on your request.")
        self.assertEqual(lines[2], "Added: 1 new nodes were introduced where needed.")
        self.assertIn("from 6 to 7 nodes", lines[3])

    def test_oracle_text_is_preferred(self) -> None:
        gateway = MagicMock()
        gateway.generate_text.return_value = "Oracle explanation"
        text = Explainer(gateway).explain(
            intent="x", mode="generate", plan=self.plan, planner_source="llm", previous_tree=None, tree=self.tree
        )
        self.assertEqual(text, "Oracle explanation")

    def test_oracle_failure_falls_back(self) -> None:
        gateway = MagicMock()
        gateway.generate_text.side_effect = LlmTransportError("down")
        text = Explainer(gateway).explain(
            intent="x", mode="generate", plan=self.plan, planner_source="llm", previous_tree=None, tree=self.tree
        )
        self.assertIn("Planner source was llm.", text)


if __name__ == "__main__":
    unittest.main()
