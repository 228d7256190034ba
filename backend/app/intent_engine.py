from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import structlog

from .component_catalog import (
    COMPONENT_SPECS,
    SLOT_COMPONENTS,
    default_props_for,
    infer_components,
    is_component,
)
from .llm_gateway import LlmGateway, LlmTransportError
from .models import (
    ID_TARGET_PREFIX,
    TARGET_CONTENT,
    TARGET_CONTENT_FIRST,
    TARGET_CONTENT_LAST,
    TARGET_NAVBAR,
    TARGET_SIDEBAR,
    MutationMode,
    PlannerFailureKind,
    PlannerSource,
)
from .prompts import planner_prompt
from .security import is_negated

logger = structlog.get_logger(__name__)

HEURISTIC_REASONING = "Heuristic fallback used deterministic minimal changes."
GENERATE_TITLE = "Initial UI generation"
MODIFY_TITLE = "Incremental UI update"
MAX_KPI_CARDS = 3

_ASSIGN = r"\s*(?:to\s+|:\s*|=\s*|as\s+)"
_SCALAR = r"[\"']?([^\"'.;\n]+)"

SIDEBAR_ITEMS_PATTERN = re.compile(r"sidebar\s+(?:items?|links|entries|menu)" + _ASSIGN + r"([^.;\n]+)", re.IGNORECASE)
SIDEBAR_TITLE_PATTERN = re.compile(r"sidebar\s+title" + _ASSIGN + _SCALAR, re.IGNORECASE)
NAVBAR_TITLE_PATTERN = re.compile(r"(?:navbar|header)\s+title" + _ASSIGN + _SCALAR, re.IGNORECASE)
BUTTON_LABEL_PATTERN = re.compile(
    r"(?:button\s+(?:label|text)|rename\s+(?:the\s+)?(?:primary\s+)?button)" + _ASSIGN + _SCALAR,
    re.IGNORECASE,
)
KPI_TITLES_PATTERN = re.compile(
    r"kpis?(?:\s+cards?)?(?:\s+titles?)?\s*(?:\(([^)]*)\)|(?:to\s+|:\s*|=\s*)([^.;\n]+))",
    re.IGNORECASE,
)
COLUMNS_PATTERN = re.compile(r"columns?\s*(?:\(([^)]*)\)|(?::\s*|=\s*)([^.;\n]+))", re.IGNORECASE)
CLAUSE_BREAK_PATTERN = re.compile(
    r"\s+(?:and|then|with)\s+(?=(?:the\s+|a\s+)?(?:navbar|header|sidebar|button|kpis?|cards?|columns?|table|chart)\b)",
    re.IGNORECASE,
)
LIST_SPLIT_PATTERN = re.compile(r",|;|\s+and\s+", re.IGNORECASE)
REMOVE_VERB_PATTERN = re.compile(r"\b(?:remove|delete|drop)\b", re.IGNORECASE)
ADD_VERB_PATTERN = re.compile(r"\b(?:add|include|insert|create|append)\b", re.IGNORECASE)
MINIMAL_CUES = ("minimal", "simple", "clean")
DASHBOARD_CUE = "dashboard"

MINIMAL_CARD_PROPS = {
    "title": "Overview",
    "body": "Minimal layout with focused content blocks.",
    "footer": "Reduced visual noise",
}


@dataclass(frozen=True)
class DashboardDomain:
    name: str
    keywords: tuple[str, ...]
    navbar_title: str
    links: tuple[str, ...]
    sidebar_title: str
    items: tuple[str, ...]
    kpis: tuple[tuple[str, str], ...]
    chart_title: str
    chart_labels: tuple[str, ...]
    chart_points: tuple[int, ...]
    columns: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    button_label: str


# Checked in order; the first domain with a keyword hit wins.
DASHBOARD_DOMAINS: tuple[DashboardDomain, ...] = (
    DashboardDomain(
        name="project",
        keywords=("project", "task", "sprint", "milestone"),
        navbar_title="Project Command Center",
        links=("Overview", "Roadmap", "Reports"),
        sidebar_title="Workspace",
        items=("Projects", "Tasks", "Sprints", "Team"),
        kpis=(
            ("Active Projects", "12 projects in flight"),
            ("Tasks Due", "38 tasks due this week"),
            ("Milestones Hit", "7 of 9 milestones on track"),
        ),
        chart_title="Sprint Velocity",
        chart_labels=("S1", "S2", "S3", "S4", "S5", "S6"),
        chart_points=(21, 25, 19, 28, 31, 27),
        columns=("Project", "Owner", "Status"),
        rows=(
            ("Website Revamp", "Ana", "On Track"),
            ("Mobile App", "Ben", "At Risk"),
            ("Data Platform", "Chen", "Planning"),
        ),
        button_label="Create Task",
    ),
    DashboardDomain(
        name="sales",
        keywords=("sales", "revenue", "deal", "pipeline", "crm", "lead"),
        navbar_title="Sales Performance Hub",
        links=("Overview", "Pipeline", "Forecast"),
        sidebar_title="Sales",
        items=("Deals", "Accounts", "Leads", "Reports"),
        kpis=(
            ("Revenue", "$1.2M closed this quarter"),
            ("Pipeline", "$3.4M in open deals"),
            ("Win Rate", "28% of qualified deals won"),
        ),
        chart_title="Monthly Revenue",
        chart_labels=("Jan", "Feb", "Mar", "Apr", "May", "Jun"),
        chart_points=(180, 210, 195, 240, 260, 275),
        columns=("Deal", "Stage", "Value"),
        rows=(
            ("Acme Renewal", "Negotiation", "$120k"),
            ("Globex Expansion", "Proposal", "$85k"),
            ("Initech Pilot", "Discovery", "$40k"),
        ),
        button_label="Add Deal",
    ),
    DashboardDomain(
        name="healthcare",
        keywords=("health", "patient", "clinic", "hospital", "medical"),
        navbar_title="Clinical Operations Dashboard",
        links=("Overview", "Schedule", "Reports"),
        sidebar_title="Care",
        items=("Patients", "Appointments", "Staff", "Billing"),
        kpis=(
            ("Patients Today", "64 patients checked in"),
            ("Avg Wait Time", "14 minutes average wait"),
            ("Bed Occupancy", "82% of beds occupied"),
        ),
        chart_title="Weekly Admissions",
        chart_labels=("Mon", "Tue", "Wed", "Thu", "Fri", "Sat"),
        chart_points=(42, 51, 47, 58, 55, 39),
        columns=("Patient", "Department", "Status"),
        rows=(
            ("J. Rivera", "Cardiology", "Admitted"),
            ("M. Osei", "Radiology", "Waiting"),
            ("L. Novak", "Pediatrics", "Discharged"),
        ),
        button_label="Schedule Appointment",
    ),
)


@dataclass
class PlanCheck:
    valid: bool
    error: str = ""


@dataclass
class PlannerResult:
    plan: dict[str, Any]
    source: PlannerSource
    prompt: str
    warnings: list[str] = field(default_factory=list)


class PlannerError(RuntimeError):
    """Oracle-only planning failed; ``kind`` is transport, parse or schema."""

    def __init__(self, reason: str, kind: PlannerFailureKind) -> None:
        super().__init__(reason)
        self.reason = reason
        self.kind = kind


def validate_plan(plan: Any) -> PlanCheck:
    if not isinstance(plan, dict):
        return PlanCheck(valid=False, error="Plan must be an object.")
    operations = plan.get("operations")
    if not isinstance(operations, list):
        return PlanCheck(valid=False, error="Plan.operations must be an array.")

    for operation in operations:
        if not isinstance(operation, dict):
            return PlanCheck(valid=False, error="Invalid operation in plan.")
        if operation.get("type") not in ("add", "update", "remove"):
            return PlanCheck(valid=False, error=f"Unsupported operation type: {operation.get('type')}")
        component = operation.get("component")
        if component and not is_component(component):
            return PlanCheck(valid=False, error=f"Plan uses non-whitelisted component: {component}")
    return PlanCheck(valid=True)


def _bucket(raw_plan: dict[str, Any], key: str) -> list[Any]:
    items = raw_plan.get(key)
    return items if isinstance(items, list) else []


def _item_target(item: dict[str, Any], fallback: str) -> str:
    target = item.get("target")
    if isinstance(target, str) and target.strip():
        return target
    item_id = item.get("id")
    if isinstance(item_id, str) and item_id.strip():
        return f"{ID_TARGET_PREFIX}{item_id}"
    return fallback


def normalize_modify_plan(raw_plan: dict[str, Any]) -> dict[str, Any]:
    """Lowers the bucketed modify dialect into a flat operation list."""
    updates = _bucket(raw_plan, "updates")
    additions = _bucket(raw_plan, "additions")
    removals = _bucket(raw_plan, "removals")
    layout_changes = _bucket(raw_plan, "layout_changes")
    operations: list[dict[str, Any]] = []

    for item in updates:
        if isinstance(item, dict):
            operations.append(
                {
                    "id": item.get("id"),
                    "type": "update",
                    "target": _item_target(item, TARGET_CONTENT_LAST),
                    "component": item.get("component"),
                    "props": item.get("props") or {},
                    "position": item.get("position") or "replace",
                }
            )

    for item in additions:
        if isinstance(item, dict):
            operations.append(
                {
                    "id": item.get("id"),
                    "type": "add",
                    "target": _item_target(item, TARGET_CONTENT),
                    "component": item.get("component"),
                    "props": item.get("props") or {},
                    "position": item.get("position") or "append",
                }
            )

    for item in removals:
        if isinstance(item, dict):
            operations.append(
                {
                    "id": item.get("id"),
                    "type": "remove",
                    "target": _item_target(item, TARGET_CONTENT_LAST),
                    "component": None,
                    "props": {},
                    "position": "append",
                }
            )

    for item in layout_changes:
        if isinstance(item, dict) and item.get("target") in (TARGET_NAVBAR, TARGET_SIDEBAR):
            operations.append(
                {
                    "id": item.get("id"),
                    "type": "update",
                    "target": item["target"],
                    "component": item.get("component") or ("Navbar" if item["target"] == TARGET_NAVBAR else "Sidebar"),
                    "props": item.get("props") or {},
                    "position": "replace",
                }
            )

    reasoning = raw_plan.get("reasoning")
    return {
        "action": "modify",
        "updates": updates,
        "additions": additions,
        "removals": removals,
        "layout_changes": layout_changes,
        "reasoning": reasoning if isinstance(reasoning, str) else "",
        "title": MODIFY_TITLE,
        "notes": ["Strict incremental planner output was normalized to deterministic operations."],
        "operations": operations,
    }


def _looks_bucketed(raw_plan: dict[str, Any]) -> bool:
    if isinstance(raw_plan.get("operations"), list):
        return False
    return raw_plan.get("action") == "modify" or any(
        key in raw_plan for key in ("updates", "additions", "removals", "layout_changes")
    )


def _clip(value: str) -> str:
    return CLAUSE_BREAK_PATTERN.split(value, maxsplit=1)[0].strip().strip("\"'").strip()


def split_list(value: str) -> list[str]:
    parts = (part.strip().strip("\"'").strip() for part in LIST_SPLIT_PATTERN.split(value))
    return [part for part in parts if part]


def _match_value(match: re.Match[str] | None) -> str:
    if match is None:
        return ""
    raw = next((group for group in match.groups() if group), "")
    return _clip(raw)


def parse_kpi_titles(intent: str) -> list[str]:
    return split_list(_match_value(KPI_TITLES_PATTERN.search(intent)))[:MAX_KPI_CARDS]


def parse_columns(intent: str) -> list[str]:
    return split_list(_match_value(COLUMNS_PATTERN.search(intent)))


def parse_sidebar_items(intent: str) -> list[str]:
    return split_list(_match_value(SIDEBAR_ITEMS_PATTERN.search(intent)))


def parse_scalar(pattern: re.Pattern[str], intent: str) -> str:
    return _match_value(pattern.search(intent))


def has_unnegated(pattern: re.Pattern[str], text: str) -> re.Match[str] | None:
    for match in pattern.finditer(text):
        if not is_negated(text, match.start()):
            return match
    return None


def mentioned_component(fragment: str) -> str | None:
    """The component whose keyword appears earliest in ``fragment``."""
    lowered = fragment.lower()
    best: tuple[int, str] | None = None
    for name, spec in COMPONENT_SPECS.items():
        for keyword in spec.keywords:
            index = lowered.find(keyword)
            if index >= 0 and (best is None or index < best[0]):
                best = (index, name)
    return best[1] if best else None


def _op(
    op_type: str,
    target: str,
    component: str | None,
    props: dict[str, Any] | None = None,
    *,
    position: str = "append",
    op_id: str | None = None,
) -> dict[str, Any]:
    return {
        "id": op_id,
        "type": op_type,
        "target": target,
        "component": component,
        "props": props or {},
        "position": position,
    }


def detect_dashboard_domain(intent: str) -> DashboardDomain | None:
    text = intent.lower()
    if DASHBOARD_CUE not in text:
        return None
    for domain in DASHBOARD_DOMAINS:
        if any(keyword in text for keyword in domain.keywords):
            return domain
    return None


def _fit_rows(rows: tuple[tuple[str, ...], ...], width: int) -> list[list[str]]:
    return [(list(row) + [""] * width)[:width] for row in rows]


def build_dashboard_operations(domain: DashboardDomain, intent: str) -> list[dict[str, Any]]:
    kpi_titles = parse_kpi_titles(intent)
    columns = parse_columns(intent) or list(domain.columns)

    operations = [
        _op("remove", f"{ID_TARGET_PREFIX}card_welcome", None),
        _op(
            "update",
            TARGET_NAVBAR,
            "Navbar",
            {"title": domain.navbar_title, "links": list(domain.links)},
            position="replace",
        ),
        _op(
            "update",
            TARGET_SIDEBAR,
            "Sidebar",
            {"title": domain.sidebar_title, "items": list(domain.items)},
            position="replace",
        ),
    ]

    for index, (default_title, default_body) in enumerate(domain.kpis):
        if index < len(kpi_titles):
            title, body = kpi_titles[index], f"Current {kpi_titles[index].lower()} snapshot."
        else:
            title, body = default_title, default_body
        operations.append(
            _op(
                "add",
                TARGET_CONTENT_FIRST,
                "Card",
                {"title": title, "body": body, "footer": "KPI"},
                op_id=f"card_kpi_{index + 1}",
            )
        )

    operations.append(
        _op(
            "add",
            TARGET_CONTENT,
            "Chart",
            {
                "title": domain.chart_title,
                "labels": list(domain.chart_labels),
                "points": list(domain.chart_points),
            },
        )
    )
    operations.append(
        _op("add", TARGET_CONTENT, "Table", {"columns": columns, "rows": _fit_rows(domain.rows, len(columns))})
    )
    operations.append(
        _op(
            "add",
            TARGET_CONTENT_LAST,
            "Button",
            {"label": domain.button_label, "variant": "primary"},
        )
    )

    for extra in infer_components(intent, allow_fallback=False):
        if extra in ("Modal", "Input"):
            operations.append(_op("add", TARGET_CONTENT, extra, default_props_for(extra, intent)))
    return operations


def targeted_updates(intent: str) -> list[dict[str, Any]]:
    """Slot and typed-position rewrites parsed from phrases like ``navbar title to X``."""
    operations: list[dict[str, Any]] = []

    sidebar_props: dict[str, Any] = {}
    items = parse_sidebar_items(intent)
    if items:
        sidebar_props["items"] = items
    sidebar_title = parse_scalar(SIDEBAR_TITLE_PATTERN, intent)
    if sidebar_title:
        sidebar_props["title"] = sidebar_title
    if sidebar_props:
        operations.append(_op("update", TARGET_SIDEBAR, "Sidebar", sidebar_props, position="replace"))

    navbar_title = parse_scalar(NAVBAR_TITLE_PATTERN, intent)
    if navbar_title:
        operations.append(_op("update", TARGET_NAVBAR, "Navbar", {"title": navbar_title}, position="replace"))

    button_label = parse_scalar(BUTTON_LABEL_PATTERN, intent)
    if button_label:
        operations.append(_op("update", "content:Button:first", "Button", {"label": button_label}, position="replace"))

    for index, title in enumerate(parse_kpi_titles(intent), start=1):
        operations.append(_op("update", f"content:Card:{index}", "Card", {"title": title}, position="replace"))
    return operations


def build_heuristic_plan(intent: str, mode: MutationMode) -> dict[str, Any]:
    text = intent.lower()
    operations: list[dict[str, Any]] = []
    notes = ["Used deterministic component whitelist."]

    domain = detect_dashboard_domain(intent) if mode == "generate" else None
    if domain is not None:
        operations = build_dashboard_operations(domain, intent)
        notes.append(f"Applied the {domain.name} dashboard template.")
    else:
        operations.extend(targeted_updates(intent))
        touched = {op["component"] for op in operations}

        removed_component: str | None = None
        remove_match = has_unnegated(REMOVE_VERB_PATTERN, intent)
        if remove_match is not None:
            removed_component = mentioned_component(intent[remove_match.end() :])
            target = f"content:{removed_component}:last" if removed_component else TARGET_CONTENT_LAST
            operations.append(_op("remove", target, None))

        if any(cue in text for cue in MINIMAL_CUES):
            operations.append(_op("update", TARGET_CONTENT_LAST, "Card", dict(MINIMAL_CARD_PROPS), position="replace"))

        if mode == "generate":
            candidates = infer_components(intent, allow_fallback=not touched and removed_component is None)
        elif has_unnegated(ADD_VERB_PATTERN, intent) is not None:
            candidates = infer_components(intent, allow_fallback=False)
        else:
            candidates = []

        columns = parse_columns(intent)
        for component in candidates:
            if component in touched or component == removed_component:
                continue
            if mode == "modify" and component in SLOT_COMPONENTS:
                continue
            props = default_props_for(component, intent)
            if component == "Table" and columns:
                props["columns"] = columns
            operations.append(_op("add", TARGET_CONTENT, component, props))

        if not operations:
            operations.append(
                _op("update", TARGET_CONTENT_LAST, "Card", default_props_for("Card", intent), position="replace")
            )

    if mode == "generate":
        notes.append("Started from the fixed baseline layout.")
    else:
        notes.append("Applied an incremental operation to the latest version.")
        if any(op["type"] != "update" for op in operations):
            notes.append("Modify mode only retouches existing nodes; additions and removals are not applied.")

    title = GENERATE_TITLE if mode == "generate" else MODIFY_TITLE
    if domain is not None:
        title = f"{domain.name.capitalize()} dashboard"

    return {
        "action": mode,
        "updates": [op for op in operations if op["type"] == "update"],
        "additions": [op for op in operations if op["type"] == "add"],
        "removals": [op for op in operations if op["type"] == "remove"],
        "layout_changes": [],
        "reasoning": HEURISTIC_REASONING,
        "title": title,
        "operations": operations,
        "notes": notes,
    }


class IntentEngine:
    """Hybrid plan synthesizer.

    - Primary path: JSON oracle, normalized and schema-checked.
    - Fallback path: deterministic rule tables (``build_heuristic_plan``).
    """

    def __init__(self, gateway: LlmGateway | None = None) -> None:
        self.gateway = gateway

    def build_plan(
        self,
        intent: str,
        mode: MutationMode,
        *,
        previous_tree: Any = None,
        previous_plan: Any = None,
        previous_code: str | None = None,
        llm_only: bool = False,
    ) -> PlannerResult:
        prompt = planner_prompt(
            intent=intent,
            mode=mode,
            previous_tree=previous_tree,
            previous_plan=previous_plan,
            previous_code=previous_code,
        )

        plan, reason, kind = self._build_plan_with_llm(prompt, mode)
        if plan is not None:
            return PlannerResult(plan=plan, source="llm", prompt=prompt)

        if llm_only:
            raise PlannerError(reason, kind)

        logger.info("planner_fallback", reason=reason, kind=kind, mode=mode)
        return PlannerResult(
            plan=build_heuristic_plan(intent, mode),
            source="heuristic",
            prompt=prompt,
            warnings=[reason],
        )

    def _build_plan_with_llm(
        self, prompt: str, mode: MutationMode
    ) -> tuple[dict[str, Any] | None, str, PlannerFailureKind]:
        if self.gateway is None or not self.gateway.is_configured:
            return None, "LLM planner is not configured.", "transport"

        try:
            raw_plan = self.gateway.generate_json(prompt)
        except LlmTransportError as error:
            return None, str(error) or "LLM planner request failed.", "transport"

        if raw_plan is None:
            return None, "LLM did not return a valid JSON plan.", "parse"

        plan = normalize_modify_plan(raw_plan) if mode == "modify" or _looks_bucketed(raw_plan) else raw_plan
        check = validate_plan(plan)
        if not check.valid:
            return None, f"LLM plan failed deterministic schema validation: {check.error}", "schema"
        return plan, "", "schema"
