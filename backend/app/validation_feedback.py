from __future__ import annotations

import json
from typing import Any

from .models import PropIssue, ValidationFeedback

UNKNOWN_ERROR = "Unknown validation error."

# (cues, rule) pairs; the first rule whose cue appears in the primary error wins.
RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("component not allowed", "non-whitelisted", "not in registry"), "Only approved components can be used."),
    (("inline styles",), "Inline styles are not allowed in deterministic output."),
    (("tailwind",), "Tailwind or utility-class generation is blocked."),
    (("external", "import"), "External UI libraries are not allowed."),
    (("blocked token",), "Generated code may not perform I/O, DOM access or dynamic evaluation."),
    (("missing required prop",), "All required component props must be present."),
    (("unknown prop",), "Only schema-approved props are allowed."),
    (("invalid prop type", "invalid prop value", "same length"), "Component props must match required types."),
    (("nested component misuse", "children array"), "Components must follow the fixed layout/component hierarchy."),
    (("syntax validation failed", "rendergeneratedui"), "Generated React code must be syntactically valid."),
)
DEFAULT_RULE = "Validation rules for deterministic generation were violated."

FIXES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("component not allowed", "non-whitelisted", "not in registry"),
        "Ask for one of the approved components: Button, Card, Input, Table, Modal, Sidebar, Navbar, Chart.",
    ),
    (
        ("inline styles", "tailwind", "external"),
        "Rephrase your request to focus on layout/content changes only, without custom styling or external libraries.",
    ),
    (
        ("missing required prop", "invalid prop type", "invalid prop value", "unknown prop", "same length"),
        "Specify valid component props clearly (for example, Card needs title/body, Table needs columns/rows).",
    ),
    (
        ("syntax validation failed", "rendergeneratedui", "blocked token"),
        "If editing code manually, keep the renderGeneratedUI function shape and valid React.createElement syntax.",
    ),
)
DEFAULT_FIX = "Try a simpler request that modifies existing UI sections instead of changing system constraints."


def _format_item(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, PropIssue):
        item = item.model_dump()
    if isinstance(item, dict):
        component = f"{item['component']}: " if item.get("component") else ""
        prop = f"{item['prop']} - " if item.get("prop") else ""
        issue = item.get("issue") or json.dumps(item, ensure_ascii=False, default=str)
        return f"{component}{prop}{issue}"
    return str(item)


def normalize_errors(validation_errors: Any) -> list[str]:
    if not validation_errors:
        return [UNKNOWN_ERROR]
    if isinstance(validation_errors, str):
        return [validation_errors]
    if isinstance(validation_errors, (list, tuple)):
        return [_format_item(item) for item in validation_errors]
    if isinstance(validation_errors, dict) and isinstance(validation_errors.get("errors"), list):
        return normalize_errors(validation_errors["errors"])
    if hasattr(validation_errors, "errors") and isinstance(validation_errors.errors, list):
        return normalize_errors(validation_errors.errors)
    return [json.dumps(validation_errors, ensure_ascii=False, default=str)]


def _lookup(table: tuple[tuple[tuple[str, ...], str], ...], error_text: str, default: str) -> str:
    text = error_text.lower()
    for cues, answer in table:
        if any(cue in text for cue in cues):
            return answer
    return default


def detect_rule(error_text: str) -> str:
    return _lookup(RULES, error_text, DEFAULT_RULE)


def suggest_fix(error_text: str) -> str:
    return _lookup(FIXES, error_text, DEFAULT_FIX)


def build_validation_feedback(validation_errors: Any) -> ValidationFeedback:
    errors = normalize_errors(validation_errors)
    primary = errors[0] if errors else UNKNOWN_ERROR
    return ValidationFeedback(
        what_went_wrong=primary,
        rule_violated=detect_rule(primary),
        how_to_fix=suggest_fix(primary),
        details=errors,
    )
