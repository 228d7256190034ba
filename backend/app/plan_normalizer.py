"""Canonical plan form.

Any plan, legacy (flat ``operations``) or modify dialect (bucketed), is forced
into one comparison-stable shape: clamped operation fields, deep-sorted keys,
whitespace-collapsed strings and a total order over operations. The result is
idempotent and does not depend on the order operations arrived in.
"""

from __future__ import annotations

import json
import re
from typing import Any

from .models import TARGET_CONTENT_LAST

TYPE_PRIORITY = {"remove": 0, "update": 1, "add": 2}
TARGET_PRIORITY = {"navbar": 0, "sidebar": 1, "content:first": 2, "content": 3, "content:last": 4}
OPERATION_TYPES = ("remove", "update", "add")
POSITIONS = ("prepend", "replace", "append")
VOLATILE_KEYS = ("random", "seed", "timestamp")
MODIFY_BUCKETS = ("updates", "additions", "removals", "layout_changes")
DEFAULT_MODIFY_TITLE = "Incremental UI update"


def normalize_primitive(value: Any) -> Any:
    if isinstance(value, str):
        return re.sub(r"\s+", " ", value).strip()
    return value


def deep_sort_value(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [deep_sort_value(item) for item in value]
    if isinstance(value, dict):
        return {key: deep_sort_value(value[key]) for key in sorted(value, key=str)}
    return normalize_primitive(value)


def _optional_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return normalize_primitive(value) or None


def _position(value: Any) -> str:
    return value if value in POSITIONS else "append"


def _props(value: Any) -> dict[str, Any]:
    return deep_sort_value(value) if isinstance(value, dict) else {}


def clean_operation(raw: Any) -> dict[str, Any]:
    op = raw if isinstance(raw, dict) else {}
    target = op.get("target")
    return {
        "id": _optional_string(op.get("id")),
        "type": op.get("type") if op.get("type") in OPERATION_TYPES else "update",
        "target": normalize_primitive(target) if isinstance(target, str) and target.strip() else TARGET_CONTENT_LAST,
        "component": _optional_string(op.get("component")),
        "props": _props(op.get("props")),
        "position": _position(op.get("position")),
    }


def _props_json(props: dict[str, Any]) -> str:
    return json.dumps(props, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def operation_sort_key(op: dict[str, Any]) -> tuple[Any, ...]:
    # The raw target closes the key so that distinct id targets never tie.
    return (
        TYPE_PRIORITY.get(op["type"], 9),
        TARGET_PRIORITY.get(op["target"], 9),
        op["component"] or "",
        op["id"] or "",
        op["position"],
        _props_json(op["props"]),
        op["target"],
    )


def sort_operations(operations: list[Any]) -> list[dict[str, Any]]:
    cleaned = [clean_operation(op) for op in operations]
    return sorted(cleaned, key=operation_sort_key)


def _clean_bucket_item(raw: Any) -> dict[str, Any]:
    item = raw if isinstance(raw, dict) else {}
    target = item.get("target")
    return {
        "id": _optional_string(item.get("id")),
        "target": normalize_primitive(target) if isinstance(target, str) else "",
        "component": _optional_string(item.get("component")),
        "props": _props(item.get("props")),
        "position": _position(item.get("position")),
    }


def _clean_bucket(items: Any) -> list[dict[str, Any]]:
    cleaned = [_clean_bucket_item(item) for item in items] if isinstance(items, list) else []
    return sorted(cleaned, key=lambda item: json.dumps(item, sort_keys=True, ensure_ascii=False, default=str))


def _normalize_modify_shape(plan: dict[str, Any]) -> dict[str, Any]:
    notes = plan.get("notes")
    unique_notes = {normalize_primitive(str(note)) for note in notes} if isinstance(notes, list) else set()
    title = normalize_primitive(plan.get("title")) if isinstance(plan.get("title"), str) else ""
    reasoning = plan.get("reasoning")

    shaped: dict[str, Any] = {"action": "modify"}
    for bucket in MODIFY_BUCKETS:
        shaped[bucket] = _clean_bucket(plan.get(bucket))
    shaped["reasoning"] = normalize_primitive(reasoning) if isinstance(reasoning, str) else ""
    shaped["title"] = title or DEFAULT_MODIFY_TITLE
    shaped["notes"] = sorted(note for note in unique_notes if note)
    operations = plan.get("operations")
    shaped["operations"] = sort_operations(operations if isinstance(operations, list) else [])
    return shaped


def _normalize_legacy_shape(plan: dict[str, Any]) -> dict[str, Any]:
    operations = plan.get("operations")
    metadata = {
        key: value for key, value in plan.items() if key != "operations" and key not in VOLATILE_KEYS
    }
    shaped = deep_sort_value(metadata)
    shaped["operations"] = sort_operations(operations if isinstance(operations, list) else [])
    return shaped


def canonicalize_plan(plan: Any) -> dict[str, Any]:
    base = plan if isinstance(plan, dict) else {}
    if base.get("action") == "modify":
        shaped = _normalize_modify_shape(base)
    else:
        shaped = _normalize_legacy_shape(base)
    return deep_sort_value(shaped)
