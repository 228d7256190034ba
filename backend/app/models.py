from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


ComponentName = Literal["Button", "Card", "Input", "Table", "Modal", "Sidebar", "Navbar", "Chart"]
LayoutName = Literal["Page", "Layout"]
OperationType = Literal["add", "update", "remove"]
OperationPosition = Literal["prepend", "append", "replace"]
AgentMode = Literal["generate", "modify", "regenerate"]
MutationMode = Literal["generate", "modify"]
VersionIntentType = Literal["modify", "rollback", "compare"]
PlannerSource = Literal["llm", "heuristic", "manual"]
PlannerFailureKind = Literal["transport", "parse", "schema"]

TARGET_NAVBAR = "navbar"
TARGET_SIDEBAR = "sidebar"
TARGET_CONTENT = "content"
TARGET_CONTENT_FIRST = "content:first"
TARGET_CONTENT_LAST = "content:last"
ID_TARGET_PREFIX = "id:"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UiNode(BaseModel):
    id: str
    component: str
    props: dict[str, Any] = Field(default_factory=dict)
    children: list[UiNode] = Field(default_factory=list)


class UiTree(BaseModel):
    version: int = 1
    root: UiNode


UiNode.model_rebuild()


class PlanOperation(BaseModel):
    id: str | None = None
    type: OperationType = "update"
    target: str = TARGET_CONTENT_LAST
    component: str | None = None
    props: dict[str, Any] = Field(default_factory=dict)
    position: OperationPosition = "append"


class SecurityCheck(BaseModel):
    is_safe: bool
    violation_reason: str = ""
    safe_intent_summary: str = ""


class VersionIntent(BaseModel):
    intent_type: VersionIntentType = "modify"
    target_version: str = ""
    modification_plan: dict[str, Any] = Field(default_factory=dict)
    source: Literal["llm", "heuristic"] = "heuristic"
    forced_by_mode: str | None = None
    fallback_reason: str | None = None


class PropIssue(BaseModel):
    component: str
    prop: str
    issue: str


class TreeValidationResult(BaseModel):
    valid: bool
    errors: list[PropIssue] = Field(default_factory=list)


class CodeValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    error: str = ""


class ValidationFeedback(BaseModel):
    what_went_wrong: str
    rule_violated: str
    how_to_fix: str
    details: list[str] = Field(default_factory=list)


class VersionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    created_at: str = Field(default_factory=utc_now_iso)
    parent_version_id: str | None = None
    session_id: str
    intent: str
    mode: str
    planner_source: str
    plan: dict[str, Any] = Field(default_factory=dict)
    ui_tree: dict[str, Any] | None = None
    ui_ast: UiTree | None = None
    code: str = ""
    explanation: str = ""


class Session(BaseModel):
    id: str
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    versions: list[VersionRecord] = Field(default_factory=list)
    current_version_id: str | None = None


class GenerateRequest(BaseModel):
    intent: str = ""
    mode: str = "generate"
    session_id: str | None = Field(default=None, alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)


class UpdateCodeRequest(BaseModel):
    session_id: str = Field(default="", alias="sessionId")
    code: str = ""
    intent: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class RollbackRequest(BaseModel):
    session_id: str = Field(default="", alias="sessionId")
    version_id: str = Field(default="", alias="versionId")

    model_config = ConfigDict(populate_by_name=True)


class ValidateCodeRequest(BaseModel):
    code: str = ""


class ValidateAstRequest(BaseModel):
    generated_ast: dict[str, Any] | None = Field(default=None, alias="generatedAst")

    model_config = ConfigDict(populate_by_name=True)


class SecurityCheckRequest(BaseModel):
    user_intent: str = ""
