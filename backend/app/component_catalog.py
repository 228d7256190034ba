from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, get_args

from .models import ComponentName, LayoutName
from .prop_sanitizer import (
    sanitize_button,
    sanitize_card,
    sanitize_chart,
    sanitize_input,
    sanitize_modal,
    sanitize_navbar,
    sanitize_sidebar,
    sanitize_table,
)

# A type rule is either a shape name or a tuple of allowed enum values.
TypeRule = str | tuple[str, ...]
Sanitizer = Callable[[dict[str, Any], dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class ComponentSpec:
    name: ComponentName
    required: tuple[str, ...]
    optional: tuple[str, ...]
    types: dict[str, TypeRule]
    defaults: Callable[[str], dict[str, Any]]
    sanitizer: Sanitizer
    keywords: tuple[str, ...] = field(default_factory=tuple)

    @property
    def allowed_props(self) -> frozenset[str]:
        return frozenset(self.required) | frozenset(self.optional)


def _card_defaults(intent: str) -> dict[str, Any]:
    return {
        "title": "New Section",
        "body": intent[:80].strip() or "New content block.",
        "footer": "Generated from latest instruction",
    }


COMPONENT_SPECS: dict[ComponentName, ComponentSpec] = {
    "Button": ComponentSpec(
        name="Button",
        required=("label",),
        optional=("variant",),
        types={"label": "string", "variant": ("primary", "secondary")},
        defaults=lambda intent: {"label": "Save Changes", "variant": "primary"},
        sanitizer=sanitize_button,
        keywords=("button", "cta"),
    ),
    "Card": ComponentSpec(
        name="Card",
        required=("title", "body"),
        optional=("footer",),
        types={"title": "string", "body": "string", "footer": "string"},
        defaults=_card_defaults,
        sanitizer=sanitize_card,
        keywords=("card",),
    ),
    "Input": ComponentSpec(
        name="Input",
        required=("label", "placeholder"),
        optional=("value",),
        types={"label": "string", "placeholder": "string", "value": "string"},
        defaults=lambda intent: {"label": "Search", "placeholder": "Type here...", "value": ""},
        sanitizer=sanitize_input,
        keywords=("input", "form"),
    ),
    "Table": ComponentSpec(
        name="Table",
        required=("columns", "rows"),
        optional=(),
        types={"columns": "string[]", "rows": "string[][]"},
        defaults=lambda intent: {
            "columns": ["Name", "Status", "Owner"],
            "rows": [["Alpha", "Active", "Ops"], ["Beta", "Paused", "Finance"]],
        },
        sanitizer=sanitize_table,
        keywords=("table",),
    ),
    "Modal": ComponentSpec(
        name="Modal",
        required=("title", "body"),
        optional=("open", "confirmLabel"),
        types={"title": "string", "body": "string", "open": "boolean", "confirmLabel": "string"},
        defaults=lambda intent: {
            "title": "Settings",
            "body": "Adjust key preferences for this workspace.",
            "open": True,
            "confirmLabel": "Apply",
        },
        sanitizer=sanitize_modal,
        keywords=("modal",),
    ),
    "Sidebar": ComponentSpec(
        name="Sidebar",
        required=("title", "items"),
        optional=(),
        types={"title": "string", "items": "string[]"},
        defaults=lambda intent: {"title": "Quick Links", "items": ["Overview", "Usage", "Settings"]},
        sanitizer=sanitize_sidebar,
        keywords=("sidebar",),
    ),
    "Navbar": ComponentSpec(
        name="Navbar",
        required=("title", "links"),
        optional=(),
        types={"title": "string", "links": "string[]"},
        defaults=lambda intent: {"title": "Workspace", "links": ["Home", "Reports", "Settings"]},
        sanitizer=sanitize_navbar,
        keywords=("navbar", "header"),
    ),
    "Chart": ComponentSpec(
        name="Chart",
        required=("title", "points", "labels"),
        optional=(),
        types={"title": "string", "points": "number[]", "labels": "string[]"},
        defaults=lambda intent: {
            "title": "Usage",
            "points": [12, 18, 11, 24, 16, 28],
            "labels": ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat"],
        },
        sanitizer=sanitize_chart,
        keywords=("chart", "graph"),
    ),
}

if set(COMPONENT_SPECS) != set(get_args(ComponentName)):
    raise RuntimeError("COMPONENT_SPECS must cover every ComponentName exactly once")

ALLOWED_COMPONENTS: tuple[str, ...] = tuple(COMPONENT_SPECS.keys())
LAYOUT_COMPONENTS: tuple[str, ...] = get_args(LayoutName)
SLOT_COMPONENTS: frozenset[str] = frozenset({"Navbar", "Sidebar"})

# Keyword priority used when inferring components from free text.
INFERENCE_ORDER: tuple[ComponentName, ...] = ("Modal", "Table", "Input", "Chart", "Sidebar", "Navbar", "Button")

DEFAULT_LEGACY_TREE: dict[str, Any] = {
    "id": "page_root",
    "type": "page",
    "className": "generated-page",
    "children": [
        {
            "id": "navbar_main",
            "type": "Navbar",
            "props": {
                "title": "Generated Workspace",
                "links": ["Overview", "Analytics", "Settings"],
            },
        },
        {
            "id": "layout_main",
            "type": "layout",
            "className": "generated-main",
            "children": [
                {
                    "id": "sidebar_main",
                    "type": "Sidebar",
                    "props": {
                        "title": "Menu",
                        "items": ["Dashboard", "Reports", "Team", "Billing"],
                    },
                },
                {
                    "id": "content_main",
                    "type": "layout",
                    "className": "generated-content",
                    "children": [
                        {
                            "id": "card_welcome",
                            "type": "Card",
                            "props": {
                                "title": "Welcome",
                                "body": "Describe your UI in the chat to iterate this screen.",
                                "footer": "Deterministic components only",
                            },
                        }
                    ],
                },
            ],
        },
    ],
}


def is_component(name: object) -> bool:
    return isinstance(name, str) and name in COMPONENT_SPECS


def is_layout(name: object) -> bool:
    return isinstance(name, str) and name in LAYOUT_COMPONENTS


def get_spec(name: str) -> ComponentSpec | None:
    return COMPONENT_SPECS.get(name)


def default_props_for(component: str, intent: str = "") -> dict[str, Any]:
    spec = get_spec(component)
    if spec is None:
        return {}
    return spec.defaults(intent)


def sanitize_props(component: str, raw: Any, existing: dict[str, Any] | None = None) -> dict[str, Any]:
    """Coerce raw props for ``component``; only schema keys survive."""
    spec = get_spec(component)
    if spec is None or not isinstance(raw, dict):
        return {}
    cleaned = spec.sanitizer(raw, existing or {})
    return {key: value for key, value in cleaned.items() if key in spec.allowed_props}


def infer_components(intent: str, *, allow_fallback: bool = True) -> list[str]:
    text = intent.lower()
    picks: list[str] = []
    for name in INFERENCE_ORDER:
        if any(keyword in text for keyword in COMPONENT_SPECS[name].keywords) and name not in picks:
            picks.append(name)
    if not picks and allow_fallback:
        picks.append("Card")
    return picks


def infer_component(intent: str) -> str:
    return infer_components(intent, allow_fallback=True)[0]


def default_legacy_tree() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_LEGACY_TREE)
