from __future__ import annotations

import re
from typing import Any, Sequence

import structlog

from .llm_gateway import LlmGateway, LlmTransportError
from .models import UiTree, VersionIntent, VersionRecord
from .prompts import version_planner_prompt

logger = structlog.get_logger(__name__)

COMPARE_PATTERN = re.compile(r"compare|diff|difference|versus|\bvs\b", re.IGNORECASE)
ROLLBACK_PATTERN = re.compile(r"rollback|restore|revert|undo|go back|previous version|older version", re.IGNORECASE)
VERSION_TOKEN_PATTERN = re.compile(r"ver_[a-z0-9_]+", re.IGNORECASE)
VALID_INTENT_TYPES = ("modify", "rollback", "compare")


def extract_version_tokens(text: str) -> list[str]:
    tokens: list[str] = []
    for match in VERSION_TOKEN_PATTERN.findall(text):
        if match not in tokens:
            tokens.append(match)
    return tokens


def find_version_by_token(versions: Sequence[VersionRecord], token: str) -> VersionRecord | None:
    """Exact id match first, then the first id starting with ``token``."""
    if not token:
        return None
    for version in versions:
        if version.id == token:
            return version
    for version in versions:
        if version.id.startswith(token):
            return version
    return None


def summarize_versions(versions: Sequence[VersionRecord]) -> list[dict[str, Any]]:
    return [
        {"id": version.id, "created_at": version.created_at, "intent": version.intent, "mode": version.mode}
        for version in versions
    ]


class VersionIntentClassifier:
    """Decides between modify, rollback and compare for a user message.

    ``versions`` is expected most-recent-first, as the store lists them.
    """

    def __init__(self, gateway: LlmGateway | None = None) -> None:
        self.gateway = gateway

    @staticmethod
    def heuristic(
        user_intent: str,
        versions: Sequence[VersionRecord],
        current_tree: UiTree | None,
        current_version_id: str | None,
    ) -> VersionIntent:
        intent_type = "modify"
        if COMPARE_PATTERN.search(user_intent):
            intent_type = "compare"
        elif ROLLBACK_PATTERN.search(user_intent):
            intent_type = "rollback"

        target_version = ""
        tokens = extract_version_tokens(user_intent)
        if tokens:
            hit = find_version_by_token(versions, tokens[0])
            target_version = hit.id if hit else ""

        if not target_version and intent_type in {"rollback", "compare"}:
            fallback = next((version for version in versions if version.id != current_version_id), None)
            target_version = fallback.id if fallback else ""

        modification_plan: dict[str, Any] = {}
        if intent_type == "modify":
            modification_plan = {
                "strategy": "minimal-change",
                "preserve_layout": True,
                "preserve_components": True,
                "context_nodes": len(current_tree.root.children) if current_tree else 0,
            }

        return VersionIntent(
            intent_type=intent_type,
            target_version=target_version,
            modification_plan=modification_plan,
            source="heuristic",
        )

    @staticmethod
    def reconcile(raw: Any, fallback: VersionIntent, versions: Sequence[VersionRecord]) -> VersionIntent:
        """Oracle output is advisory: unknown intent types and unresolvable targets fall back."""
        if not isinstance(raw, dict):
            return fallback

        intent_type = raw.get("intent_type")
        if intent_type not in VALID_INTENT_TYPES:
            intent_type = fallback.intent_type

        target_version = raw.get("target_version")
        if not isinstance(target_version, str):
            target_version = fallback.target_version
        target_version = target_version.strip()
        if target_version:
            hit = find_version_by_token(versions, target_version)
            target_version = hit.id if hit else fallback.target_version

        modification_plan = raw.get("modification_plan")
        if not isinstance(modification_plan, dict):
            modification_plan = fallback.modification_plan

        return VersionIntent(
            intent_type=intent_type,
            target_version=target_version,
            modification_plan=modification_plan,
            source="llm",
        )

    def classify(
        self,
        user_intent: str,
        versions: Sequence[VersionRecord],
        current_tree: UiTree | None = None,
        current_version_id: str | None = None,
    ) -> VersionIntent:
        fallback = self.heuristic(user_intent, versions, current_tree, current_version_id)
        if self.gateway is None:
            return fallback

        prompt = version_planner_prompt(
            version_list=summarize_versions(versions),
            current_tree=current_tree.model_dump() if current_tree else None,
            user_intent=user_intent,
        )
        try:
            raw = self.gateway.generate_json(prompt)
        except LlmTransportError as error:
            logger.warning("version_intent_oracle_failed", error=str(error))
            return fallback.model_copy(update={"fallback_reason": str(error)})

        if raw is None:
            return fallback
        return self.reconcile(raw, fallback, versions)
