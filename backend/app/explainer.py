from __future__ import annotations

from typing import Any

import structlog

from .llm_gateway import LlmGateway, LlmTransportError
from .models import UiTree
from .prompts import edit_aware_explainer_prompt, explainer_prompt
from .tree_codec import collect_ids, count_nodes

logger = structlog.get_logger(__name__)

INTENT_EXCERPT = 180


def _operations(plan: Any) -> list[dict[str, Any]]:
    operations = plan.get("operations") if isinstance(plan, dict) else None
    return [op for op in operations if isinstance(op, dict)] if isinstance(operations, list) else []


def edit_aware_explanation(intent: str, previous_tree: UiTree, updated_tree: UiTree, plan: Any) -> str:
    previous_ids = collect_ids(previous_tree.root)
    next_ids = collect_ids(updated_tree.root)
    preserved = len(previous_ids & next_ids)
    added = max(0, len(next_ids) - preserved)
    modified = sum(1 for op in _operations(plan) if op.get("type") == "update")

    return "\n".join(
        [
            f"Preserved: {preserved} existing UI nodes remained in place.",
            f"Modified: {modified} targeted updates were applied based on your request.",
            f"Added: {added} new nodes were introduced where needed.",
            "Minimal change rationale: The structure moved from "
            f"{count_nodes(previous_tree.root)} to {count_nodes(updated_tree.root)} nodes and avoided full rewrite.",
            f"Intent focus: {intent[:INTENT_EXCERPT]}",
        ]
    )


def generation_explanation(intent: str, plan: Any, planner_source: str, tree: UiTree) -> str:
    lines = ["1. Intent interpretation:", f'I interpreted your request as: "{intent[:INTENT_EXCERPT]}".']

    lines.append("2. Component choices:")
    operations = _operations(plan)
    if not operations:
        lines.append("No component changes were required for this update.")
    for op in operations:
        lines.append(f"- {op.get('type')} {op.get('component') or 'component'} at {op.get('target')}.")

    lines.append("3. Layout structure:")
    lines.append(f"The layout keeps a stable hierarchy with {len(tree.root.children)} top-level sections.")

    lines.append("4. Deterministic constraints:")
    lines.append(f"Planner source was {planner_source}.")
    lines.append("Only approved components were used, with fixed schemas and validation checks.")
    return "\n".join(lines)


class Explainer:
    def __init__(self, gateway: LlmGateway | None = None) -> None:
        self.gateway = gateway

    def explain(
        self,
        *,
        intent: str,
        mode: str,
        plan: Any,
        planner_source: str,
        previous_tree: UiTree | None,
        tree: UiTree,
    ) -> str:
        edit_aware = previous_tree is not None and mode in {"modify", "regenerate"}
        if edit_aware:
            prompt = edit_aware_explainer_prompt(
                previous_tree=previous_tree.model_dump(), updated_tree=tree.model_dump(), user_intent=intent
            )
        else:
            prompt = explainer_prompt(user_intent=intent, plan=plan, tree=tree.model_dump())

        if self.gateway is not None:
            try:
                text = self.gateway.generate_text(prompt)
            except LlmTransportError as error:
                logger.warning("explainer_oracle_failed", error=str(error))
                text = None
            if text:
                return text

        if edit_aware:
            return edit_aware_explanation(intent, previous_tree, tree, plan)
        return generation_explanation(intent, plan, planner_source, tree)
