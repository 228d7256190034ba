"""Coercion of raw prop payloads toward each component's schema.

Every sanitizer takes the incoming props plus the node's existing props (used
only for lookups such as table columns) and returns a dict holding nothing but
schema keys with values of the declared shape. Values that cannot be coerced
are dropped rather than guessed.
"""

from __future__ import annotations

from typing import Any

_ITEM_LABEL_KEYS = ("label", "name", "title", "key")
_BUTTON_VARIANTS = ("primary", "secondary")


def clean_string(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def clean_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def clean_number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return None
    if isinstance(value, dict):
        return clean_number(value.get("value"))
    return None


def clean_string_list(value: Any) -> list[str] | None:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return None

    items: list[str] = []
    for raw_item in value:
        if isinstance(raw_item, dict):
            label = None
            for key in _ITEM_LABEL_KEYS:
                label = clean_string(raw_item.get(key))
                if label:
                    break
            if label:
                items.append(label)
            continue
        cleaned = clean_string(raw_item)
        if cleaned:
            items.append(cleaned)
    return items


def clean_number_list(value: Any) -> list[int | float] | None:
    if not isinstance(value, list):
        return None
    numbers: list[int | float] = []
    for raw_item in value:
        number = clean_number(raw_item)
        if number is not None:
            numbers.append(number)
    return numbers


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return ""


def _lookup_case_insensitive(row: dict[str, Any], column: str) -> Any:
    if column in row:
        return row[column]
    lowered = column.lower()
    for key, value in row.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def clean_table_rows(value: Any, columns: list[str] | None) -> tuple[list[list[str]] | None, list[str] | None]:
    """Returns (rows, derived_columns). Columns are derived only from object rows when none are known."""
    if not isinstance(value, list):
        return None, None

    derived_columns: list[str] | None = None
    if not columns:
        first_object = next((row for row in value if isinstance(row, dict)), None)
        if first_object is not None:
            derived_columns = [key.strip() for key in first_object.keys() if isinstance(key, str) and key.strip()]
            columns = derived_columns

    rows: list[list[str]] = []
    for raw_row in value:
        if isinstance(raw_row, dict):
            if not columns:
                continue
            rows.append([_cell(_lookup_case_insensitive(raw_row, column)) for column in columns])
        elif isinstance(raw_row, list):
            rows.append([_cell(cell) for cell in raw_row])

    if columns:
        width = len(columns)
        rows = [(row + [""] * width)[:width] for row in rows]
    return rows, derived_columns


def sanitize_button(raw: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    props: dict[str, Any] = {}
    label = clean_string(raw.get("label"))
    if label:
        props["label"] = label
    variant = clean_string(raw.get("variant"))
    if variant and variant.lower() in _BUTTON_VARIANTS:
        props["variant"] = variant.lower()
    return props


def sanitize_card(raw: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    props: dict[str, Any] = {}
    for key in ("title", "body", "footer"):
        value = clean_string(raw.get(key))
        if value:
            props[key] = value
    return props


def sanitize_input(raw: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    props: dict[str, Any] = {}
    for key in ("label", "placeholder"):
        value = clean_string(raw.get(key))
        if value:
            props[key] = value
    # value is the one string prop allowed to be empty.
    if isinstance(raw.get("value"), str):
        props["value"] = raw["value"].strip()
    elif clean_string(raw.get("value")):
        props["value"] = clean_string(raw.get("value"))
    return props


def sanitize_table(raw: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    props: dict[str, Any] = {}
    columns = clean_string_list(raw.get("columns"))
    if columns:
        props["columns"] = columns

    known_columns = columns or clean_string_list(existing.get("columns"))
    if "rows" in raw:
        rows, derived_columns = clean_table_rows(raw.get("rows"), known_columns)
        if rows is not None:
            props["rows"] = rows
        if derived_columns and "columns" not in props:
            props["columns"] = derived_columns
    return props


def sanitize_modal(raw: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    props: dict[str, Any] = {}
    for key in ("title", "body", "confirmLabel"):
        value = clean_string(raw.get(key))
        if value:
            props[key] = value
    is_open = clean_bool(raw.get("open"))
    if is_open is not None:
        props["open"] = is_open
    return props


def _sanitize_titled_list(raw: dict[str, Any], list_key: str) -> dict[str, Any]:
    props: dict[str, Any] = {}
    title = clean_string(raw.get("title"))
    if title:
        props["title"] = title
    items = clean_string_list(raw.get(list_key))
    if items:
        props[list_key] = items
    return props


def sanitize_sidebar(raw: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    return _sanitize_titled_list(raw, "items")


def sanitize_navbar(raw: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    return _sanitize_titled_list(raw, "links")


def sanitize_chart(raw: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    props: dict[str, Any] = {}
    title = clean_string(raw.get("title"))
    if title:
        props["title"] = title

    raw_points = raw.get("points")
    labels = clean_string_list(raw.get("labels")) if "labels" in raw else None
    points: list[int | float] | None = None

    if isinstance(raw_points, list) and raw_points and all(isinstance(item, dict) for item in raw_points):
        pair_labels: list[str] = []
        pair_points: list[int | float] = []
        for item in raw_points:
            number = clean_number(item.get("value"))
            if number is None:
                continue
            pair_points.append(number)
            pair_labels.append(clean_string(item.get("label")) or str(len(pair_points)))
        points = pair_points
        if labels is None:
            labels = pair_labels
    elif "points" in raw:
        points = clean_number_list(raw_points)

    if points is not None and labels is not None:
        size = min(len(points), len(labels))
        points, labels = points[:size], labels[:size]
    elif points is not None:
        existing_labels = clean_string_list(existing.get("labels"))
        if existing_labels is not None:
            size = min(len(points), len(existing_labels))
            points, labels = points[:size], existing_labels[:size]
    elif labels is not None:
        existing_points = clean_number_list(existing.get("points"))
        if existing_points is not None:
            size = min(len(existing_points), len(labels))
            points, labels = existing_points[:size], labels[:size]

    if points is not None:
        props["points"] = points
    if labels is not None:
        props["labels"] = labels
    return props
