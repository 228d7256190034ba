from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from backend.app.intent_engine import (
    HEURISTIC_REASONING,
    IntentEngine,
    PlannerError,
    build_heuristic_plan,
    normalize_modify_plan,
    parse_columns,
    parse_kpi_titles,
    validate_plan,
)
from backend.app.llm_gateway import LlmTransportError


def _unconfigured_gateway() -> MagicMock:
    gateway = MagicMock()
    gateway.is_configured = False
    return gateway


class HeuristicPlanTests(unittest.TestCase):
    def test_modify_add_table_is_a_single_operation(self) -> None:
        plan = build_heuristic_plan("Add a table", "modify")

        self.assertEqual(plan["action"], "modify")
        self.assertEqual(plan["reasoning"], HEURISTIC_REASONING)
        self.assertEqual(len(plan["operations"]), 1)
        operation = plan["operations"][0]
        self.assertEqual(operation["type"], "add")
        self.assertEqual(operation["component"], "Table")
        self.assertEqual(plan["additions"], [operation])
        self.assertIn("Modify mode only retouches existing nodes; additions and removals are not applied.", plan["notes"])

    def test_sales_dashboard_uses_parsed_kpis_and_columns(self) -> None:
        plan = build_heuristic_plan(
            "Create a sales dashboard with KPI cards (Revenue, Leads, Wins) and columns: Deal, Stage", "generate"
        )

        self.assertEqual(plan["title"], "Sales dashboard")
        cards = [op for op in plan["operations"] if op["component"] == "Card"]
        self.assertEqual([card["props"]["title"] for card in cards], ["Revenue", "Leads", "Wins"])
        self.assertEqual([card["id"] for card in cards], ["card_kpi_1", "card_kpi_2", "card_kpi_3"])
        table = next(op for op in plan["operations"] if op["component"] == "Table")
        self.assertEqual(table["props"]["columns"], ["Deal", "Stage"])
        self.assertTrue(all(len(row) == 2 for row in table["props"]["rows"]))
        self.assertEqual(plan["operations"][0]["type"], "remove")

    def test_navbar_title_and_button_label_become_targeted_updates(self) -> None:
        plan = build_heuristic_plan('Set navbar title to "Ops Hub" and button label to Export', "modify")
        targets = {op["target"]: op["props"] for op in plan["operations"]}
        self.assertEqual(targets["navbar"], {"title": "Ops Hub"})
        self.assertEqual(targets["content:Button:first"], {"label": "Export"})

    def test_remove_names_the_component_after_the_verb(self) -> None:
        plan = build_heuristic_plan("Remove the chart", "modify")
        self.assertEqual(plan["removals"][0]["target"], "content:Chart:last")
        self.assertEqual(plan["additions"], [])

    def test_negated_add_does_not_add_in_modify_mode(self) -> None:
        plan = build_heuristic_plan("don't add a modal, rename the header title to Home", "modify")
        self.assertFalse(any(op["component"] == "Modal" for op in plan["operations"]))

    def test_empty_match_falls_back_to_card_update(self) -> None:
        plan = build_heuristic_plan("Make it nicer", "modify")
        self.assertEqual(len(plan["operations"]), 1)
        self.assertEqual(plan["operations"][0]["type"], "update")
        self.assertEqual(plan["operations"][0]["component"], "Card")

    def test_parsers_cap_kpis_and_split_lists(self) -> None:
        self.assertEqual(parse_kpi_titles("kpis: A, B, C, D"), ["A", "B", "C"])
        self.assertEqual(parse_columns("columns (Name; Role and Team)"), ["Name", "Role", "Team"])


class PlanValidationTests(unittest.TestCase):
    def test_validate_plan_reports_first_problem(self) -> None:
        self.assertEqual(validate_plan([]).error, "Plan must be an object.")
        self.assertEqual(validate_plan({}).error, "Plan.operations must be an array.")
        self.assertEqual(
            validate_plan({"operations": [{"type": "move"}]}).error, "Unsupported operation type: move"
        )
        self.assertEqual(
            validate_plan({"operations": [{"type": "add", "component": "Carousel"}]}).error,
            "Plan uses non-whitelisted component: Carousel",
        )
        self.assertTrue(validate_plan({"operations": [{"type": "update", "component": "Card"}]}).valid)

    def test_modify_dialect_is_lowered_to_operations(self) -> None:
        plan = normalize_modify_plan(
            {
                "updates": [{"id": "card_welcome", "component": "Card", "props": {"title": "Hi"}}],
                "removals": [{"target": "content:Chart:last"}],
                "layout_changes": [{"target": "sidebar", "props": {"items": ["A"]}}, {"target": "footer"}],
            }
        )
        self.assertEqual(
            [(op["type"], op["target"]) for op in plan["operations"]],
            [("update", "id:card_welcome"), ("remove", "content:Chart:last"), ("update", "sidebar")],
        )
        self.assertEqual(plan["operations"][2]["component"], "Sidebar")
        self.assertEqual(plan["title"], "Incremental UI update")


class IntentEngineTests(unittest.TestCase):
    def test_unconfigured_oracle_falls_back_with_warning(self) -> None:
        result = IntentEngine(_unconfigured_gateway()).build_plan("Add a chart", "generate")
        self.assertEqual(result.source, "heuristic")
        self.assertEqual(result.warnings, ["LLM planner is not configured."])

    def test_llm_only_raises_with_failure_kind(self) -> None:
        with self.assertRaises(PlannerError) as context:
            IntentEngine(_unconfigured_gateway()).build_plan("Add a chart", "generate", llm_only=True)
        self.assertEqual(context.exception.kind, "transport")

    def test_schema_failure_is_classified(self) -> None:
        gateway = MagicMock()
        gateway.is_configured = True
        gateway.generate_json.return_value = {"operations": [{"type": "add", "component": "Widget"}]}
        with self.assertRaises(PlannerError) as context:
            IntentEngine(gateway).build_plan("Add a widget", "generate", llm_only=True)
        self.assertEqual(context.exception.kind, "schema")
        self.assertIn("non-whitelisted component: Widget", context.exception.reason)

    def test_unparseable_oracle_reply_is_parse_failure(self) -> None:
        gateway = MagicMock()
        gateway.is_configured = True
        gateway.generate_json.return_value = None
        with self.assertRaises(PlannerError) as context:
            IntentEngine(gateway).build_plan("Add a chart", "generate", llm_only=True)
        self.assertEqual(context.exception.kind, "parse")

    def test_transport_error_falls_back_when_not_llm_only(self) -> None:
        gateway = MagicMock()
        gateway.is_configured = True
        gateway.generate_json.side_effect = LlmTransportError("LLM request failed with status 503", 503)
        result = IntentEngine(gateway).build_plan("Add a chart", "generate")
        self.assertEqual(result.source, "heuristic")
        self.assertEqual(result.warnings, ["LLM request failed with status 503"])

    def test_valid_oracle_plan_is_used(self) -> None:
        gateway = MagicMock()
        gateway.is_configured = True
        gateway.generate_json.return_value = {
            "title": "Add chart",
            "operations": [{"type": "add", "target": "content", "component": "Chart", "props": {}}],
        }
        result = IntentEngine(gateway).build_plan("Add a chart", "generate")
        self.assertEqual(result.source, "llm")
        self.assertEqual(result.plan["operations"][0]["component"], "Chart")
        self.assertIn("Add a chart", result.prompt)


if __name__ == "__main__":
    unittest.main()
