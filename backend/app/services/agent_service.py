from __future__ import annotations

from typing import Any

import structlog
from fastapi import HTTPException

from ..code_generator import generate_react_code
from ..code_validator import validate_generated_code
from ..config import AgentSettings
from ..explainer import Explainer
from ..intent_engine import IntentEngine, PlannerError
from ..llm_gateway import LlmGateway
from ..models import AgentMode, MutationMode, Session, UiTree, VersionIntent, VersionRecord
from ..plan_normalizer import canonicalize_plan
from ..prompts import (
    code_validation_prompt,
    deterministic_enforcement_prompt,
    injection_defense_prompt,
    validation_feedback_prompt,
)
from ..security import analyze_intent_security
from ..storage import SessionStore
from ..telemetry import (
    CODE_VALIDATION_FAILED,
    PROP_VALIDATION_FAILED,
    SECURITY_REJECTED,
    TELEMETRY,
    intent_type_event,
    planner_source_event,
)
from ..tree_codec import canonical_to_legacy, legacy_to_canonical
from ..tree_ops import apply_plan_to_tree
from ..tree_validator import TreeValidator
from ..validation_feedback import build_validation_feedback
from ..version_intent import VersionIntentClassifier

logger = structlog.get_logger(__name__)

SECURITY_WARNING = "Unsafe instructions were removed. The safe portion of your intent was used."
MANUAL_EDIT_INTENT = "Manual code edit"


def resolve_mode(mode: str | None) -> AgentMode:
    if mode in ("modify", "regenerate"):
        return mode
    return "generate"


def error_detail(message: str, errors: list[Any] | None = None, **extra: Any) -> dict[str, Any]:
    """Uniform error body: message plus lookup-table feedback for the first error."""
    validation_errors = errors or [message]
    return {
        "error": message,
        "feedback": build_validation_feedback(validation_errors).model_dump(),
        "feedback_prompt": validation_feedback_prompt(validation_errors=_jsonable(validation_errors)),
        **extra,
    }


def _jsonable(items: list[Any]) -> list[Any]:
    return [item.model_dump() if hasattr(item, "model_dump") else item for item in items]


def _dump_version(version: VersionRecord | None) -> dict[str, Any] | None:
    return version.model_dump(mode="json") if version is not None else None


class AgentService:
    def __init__(self, store: SessionStore, settings: AgentSettings, gateway: LlmGateway | None = None):
        self.store = store
        self.settings = settings
        self.gateway = gateway or LlmGateway(settings)
        self.classifier = VersionIntentClassifier(self.gateway)
        self.engine = IntentEngine(self.gateway)
        self.explainer = Explainer(self.gateway)

    def _history(self, session_id: str) -> list[dict[str, Any]]:
        return [version.model_dump(mode="json") for version in self.store.list_versions(session_id)]

    def create_session(self) -> dict[str, Any]:
        session = self.store.create_session()
        return {"sessionId": session.id, "createdAt": session.created_at, "currentVersion": None, "history": []}

    def history(self, session_id: str) -> dict[str, Any]:
        session = self.store.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail={"error": "Session not found"})
        return {
            "sessionId": session.id,
            "currentVersionId": session.current_version_id,
            "history": self._history(session.id),
        }

    def run_agent(
        self,
        user_message: str,
        mode: str | None = "generate",
        session_id: str | None = None,
        llm_only: bool | None = None,
    ) -> dict[str, Any]:
        with TELEMETRY.track("agent.generate"):
            return self._run_agent(user_message, resolve_mode(mode), session_id, llm_only)

    def _run_agent(
        self, user_message: str, requested_mode: AgentMode, session_id: str | None, llm_only: bool | None
    ) -> dict[str, Any]:
        security = analyze_intent_security(user_message or "")
        effective_intent = security.safe_intent_summary.strip()
        if not security.is_safe and not effective_intent:
            TELEMETRY.record(SECURITY_REJECTED)
            logger.info("security_rejected", reason=security.violation_reason)
            reason = security.violation_reason or "Unsafe intent"
            raise HTTPException(
                status_code=400,
                detail=error_detail(
                    reason,
                    [reason],
                    security_check=security.model_dump(),
                    security_prompt=injection_defense_prompt(user_intent=user_message or ""),
                ),
            )

        session = self.store.get_or_create_session(session_id)
        versions = self.store.list_versions(session.id)
        current_version = self.store.get_current_version(session.id)
        previous_tree = self.store.get_latest_tree(session.id)

        version_intent = self.classifier.classify(
            effective_intent,
            versions,
            previous_tree,
            current_version.id if current_version else None,
        )
        if requested_mode in ("modify", "regenerate"):
            # Explicit mode buttons win over the classifier.
            version_intent = version_intent.model_copy(
                update={"intent_type": "modify", "forced_by_mode": requested_mode}
            )

        TELEMETRY.record(intent_type_event(version_intent.intent_type))
        if version_intent.intent_type == "rollback":
            rolled_back = self._try_rollback(session, version_intent)
            if isinstance(rolled_back, dict):
                return rolled_back
            version_intent = rolled_back

        if version_intent.intent_type == "compare":
            if current_version is None:
                version_intent = version_intent.model_copy(
                    update={
                        "intent_type": "modify",
                        "fallback_reason": "No active version available, fallback to modify.",
                    }
                )
            else:
                return self._compare(session, current_version, version_intent)

        return self._generate(
            session=session,
            requested_mode=requested_mode,
            effective_intent=effective_intent,
            security_payload=security.model_dump(),
            security_warning="" if security.is_safe else SECURITY_WARNING,
            version_intent=version_intent,
            current_version=current_version,
            previous_tree=previous_tree,
            llm_only=self.settings.llm_only if llm_only is None else llm_only,
        )

    def _try_rollback(self, session: Session, version_intent: VersionIntent) -> dict[str, Any] | VersionIntent:
        if not version_intent.target_version:
            return version_intent.model_copy(
                update={
                    "intent_type": "modify",
                    "fallback_reason": "No rollback target version found, fallback to modify.",
                }
            )

        result = self.store.rollback(session.id, version_intent.target_version)
        if not result.ok or result.version is None:
            return version_intent.model_copy(
                update={
                    "intent_type": "modify",
                    "fallback_reason": result.error or "Rollback failed, fallback to modify.",
                }
            )

        return {
            "sessionId": session.id,
            "currentVersionId": result.version.id,
            "version": _dump_version(result.version),
            "version_intent": version_intent.model_dump(),
            "history": self._history(session.id),
        }

    def _compare(self, session: Session, current: VersionRecord, version_intent: VersionIntent) -> dict[str, Any]:
        target = self.store.get_version(session.id, version_intent.target_version) if version_intent.target_version else None
        if target is None:
            target = next((item for item in self.store.list_versions(session.id) if item.id != current.id), None)

        return {
            "sessionId": session.id,
            "currentVersionId": current.id,
            "version": _dump_version(current),
            "version_intent": version_intent.model_dump(),
            "comparison": {
                "current_version": current.id,
                "target_version": target.id if target else "",
                "current_code_size": len(current.code or ""),
                "target_code_size": len(target.code or "") if target else 0,
                "current_plan_title": str(current.plan.get("title", "")),
                "target_plan_title": str(target.plan.get("title", "")) if target else "",
            },
            "history": self._history(session.id),
        }

    def _generate(
        self,
        *,
        session: Session,
        requested_mode: AgentMode,
        effective_intent: str,
        security_payload: dict[str, Any],
        security_warning: str,
        version_intent: VersionIntent,
        current_version: VersionRecord | None,
        previous_tree: UiTree,
        llm_only: bool,
    ) -> dict[str, Any]:
        intent_payload = version_intent.model_dump()
        planner_mode: MutationMode = "modify" if requested_mode == "modify" else "generate"
        planner_previous_tree = None if requested_mode == "regenerate" else previous_tree

        if llm_only and not self.gateway.is_configured:
            message = f"An API key is required for provider '{self.settings.llm_provider}' in LLM-only mode."
            raise HTTPException(
                status_code=500,
                detail=error_detail(
                    "LLM configuration missing.", [message], version_intent=intent_payload, llm_required=True
                ),
            )

        try:
            planner = self.engine.build_plan(
                effective_intent,
                planner_mode,
                previous_tree=canonical_to_legacy(planner_previous_tree),
                previous_plan=current_version.plan if current_version else None,
                previous_code=current_version.code if current_version else None,
                llm_only=llm_only,
            )
        except PlannerError as error:
            logger.warning("planner_failed", reason=error.reason, kind=error.kind)
            raise HTTPException(
                status_code=502,
                detail=error_detail(
                    "LLM planning failed.",
                    [error.reason],
                    failure_kind=error.kind,
                    version_intent=intent_payload,
                    llm_required=True,
                ),
            ) from error
        TELEMETRY.record(planner_source_event(planner.source))

        plan = canonicalize_plan(planner.plan)
        next_tree = apply_plan_to_tree(planner_previous_tree, plan, planner_mode, effective_intent)
        next_tree.version = previous_tree.version + 1

        prop_validation = TreeValidator.validate(next_tree)
        if not prop_validation.valid:
            TELEMETRY.record(PROP_VALIDATION_FAILED)
            raise HTTPException(
                status_code=400,
                detail=error_detail(
                    "Prop validation failed.",
                    _jsonable(prop_validation.errors),
                    version_intent=intent_payload,
                    prop_validation=prop_validation.model_dump(),
                ),
            )

        code = generate_react_code(next_tree)
        code_validation = validate_generated_code(code)
        if not code_validation.valid:
            TELEMETRY.record(CODE_VALIDATION_FAILED)
            raise HTTPException(
                status_code=400,
                detail=error_detail(
                    "Code validation failed.",
                    code_validation.errors,
                    version_intent=intent_payload,
                    validation=code_validation.model_dump(),
                    validation_prompt=code_validation_prompt(generated_code=code),
                ),
            )

        explanation = self.explainer.explain(
            intent=effective_intent,
            mode=requested_mode,
            plan=plan,
            planner_source=planner.source,
            previous_tree=previous_tree,
            tree=next_tree,
        )

        version = self.store.create_version(
            session.id,
            intent=effective_intent,
            mode=requested_mode,
            planner_source=planner.source,
            plan=plan,
            ui_tree=canonical_to_legacy(next_tree),
            ui_ast=next_tree,
            code=code,
            explanation=explanation,
        )
        saved = self.store.save_version(session.id, version)

        return {
            "sessionId": session.id,
            "currentVersionId": saved.id,
            "version": _dump_version(saved),
            "security_check": security_payload,
            "security_warning": security_warning,
            "version_intent": intent_payload,
            "planner_warnings": planner.warnings,
            "deterministic_prompt": deterministic_enforcement_prompt(plan=planner.plan),
            "prop_validation": prop_validation.model_dump(),
            "code_validation": code_validation.model_dump(),
            "history": self._history(session.id),
        }

    def update_code(self, session_id: str, code: str, intent: str | None = None) -> dict[str, Any]:
        with TELEMETRY.track("agent.update_code"):
            session = self.store.get_session(session_id)
            if session is None:
                raise HTTPException(status_code=404, detail={"error": "Session not found"})

            validation = validate_generated_code(code or "")
            if not validation.valid:
                TELEMETRY.record(CODE_VALIDATION_FAILED)
                raise HTTPException(
                    status_code=400,
                    detail=error_detail(
                        "Code validation failed.",
                        validation.errors,
                        validation=validation.model_dump(),
                        validation_prompt=code_validation_prompt(generated_code=code or ""),
                    ),
                )

            current = self.store.get_current_version(session.id)
            version = self.store.create_version(
                session.id,
                intent=(intent or "").strip() or MANUAL_EDIT_INTENT,
                mode="manual-edit",
                planner_source="manual",
                plan=current.plan if current else {"title": MANUAL_EDIT_INTENT, "operations": [], "notes": []},
                ui_tree=current.ui_tree if current else None,
                ui_ast=current.ui_ast if current else None,
                code=code,
                explanation="Manual code edit applied and validated.",
            )
            saved = self.store.save_version(session.id, version)
            return {
                "sessionId": session.id,
                "currentVersionId": saved.id,
                "version": _dump_version(saved),
                "history": self._history(session.id),
            }

    def rollback(self, session_id: str, version_id: str) -> dict[str, Any]:
        with TELEMETRY.track("agent.rollback"):
            if self.store.get_session(session_id) is None:
                raise HTTPException(status_code=404, detail={"error": "Session not found"})

            result = self.store.rollback(session_id, version_id)
            if not result.ok or result.version is None:
                raise HTTPException(status_code=400, detail={"error": result.error})

            return {
                "sessionId": session_id,
                "currentVersionId": result.version.id,
                "version": _dump_version(result.version),
                "history": self._history(session_id),
            }

    @staticmethod
    def validate_code(code: str) -> dict[str, Any]:
        validation = validate_generated_code(code or "")
        if not validation.valid:
            raise HTTPException(
                status_code=400,
                detail={
                    **validation.model_dump(),
                    **error_detail(validation.error, validation.errors),
                },
            )
        return validation.model_dump()

    @staticmethod
    def validate_ast(generated_ast: Any) -> dict[str, Any]:
        """Accepts a canonical tree (``{version, root}``) or a bare legacy tree."""
        if isinstance(generated_ast, dict) and "root" in generated_ast:
            result = TreeValidator.validate(generated_ast)
        elif isinstance(generated_ast, dict):
            result = TreeValidator.validate(legacy_to_canonical(generated_ast).model_dump())
        else:
            result = TreeValidator.validate(None)

        payload = result.model_dump()
        if not result.valid:
            first_issue = payload["errors"][0]["issue"]
            raise HTTPException(status_code=400, detail={**payload, **error_detail(first_issue, payload["errors"])})
        return payload

    @staticmethod
    def security_check(user_intent: str) -> dict[str, Any]:
        security = analyze_intent_security(user_intent or "")
        if not security.is_safe:
            raise HTTPException(status_code=400, detail=security.model_dump())
        return security.model_dump()
