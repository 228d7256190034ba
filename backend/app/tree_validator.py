from __future__ import annotations

from typing import Any

from .component_catalog import LAYOUT_COMPONENTS, TypeRule, get_spec
from .models import PropIssue, TreeValidationResult, UiTree


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def matches_type(value: Any, rule: TypeRule) -> bool:
    if isinstance(rule, tuple):
        return value in rule
    if rule == "string":
        return isinstance(value, str)
    if rule == "boolean":
        return isinstance(value, bool)
    if rule == "string[]":
        return _is_string_list(value)
    if rule == "number[]":
        return isinstance(value, list) and all(_is_number(item) for item in value)
    if rule == "string[][]":
        return isinstance(value, list) and all(_is_string_list(row) for row in value)
    return False


class TreeValidator:
    @staticmethod
    def validate(tree: UiTree | dict[str, Any] | None) -> TreeValidationResult:
        raw = tree.model_dump() if isinstance(tree, UiTree) else tree
        if not isinstance(raw, dict) or not isinstance(raw.get("root"), dict):
            return TreeValidationResult(
                valid=False,
                errors=[PropIssue(component="UITree", prop="root", issue="Missing root node")],
            )

        errors: list[PropIssue] = []
        TreeValidator._validate_node(raw["root"], errors, set())
        return TreeValidationResult(valid=not errors, errors=errors)

    @staticmethod
    def _validate_node(node: Any, errors: list[PropIssue], seen_ids: set[str]) -> None:
        if not isinstance(node, dict):
            errors.append(PropIssue(component="Unknown", prop="node", issue="Invalid tree node"))
            return

        component = node.get("component")
        name = component if isinstance(component, str) and component else "Unknown"

        node_id = node.get("id")
        if not isinstance(node_id, str) or not node_id:
            errors.append(PropIssue(component=name, prop="id", issue="Missing node id"))
        elif node_id in seen_ids:
            errors.append(PropIssue(component=name, prop="id", issue=f"Duplicate node id: {node_id}"))
        else:
            seen_ids.add(node_id)

        children = node.get("children")
        if name in LAYOUT_COMPONENTS:
            if not isinstance(children, list):
                errors.append(
                    PropIssue(component=name, prop="children", issue="Layout nodes must include children array")
                )
                return
            for child in children:
                TreeValidator._validate_node(child, errors, seen_ids)
            return

        spec = get_spec(name)
        if spec is None:
            errors.append(PropIssue(component=name, prop="component", issue="Component is not in registry"))
            return

        props = node.get("props") if isinstance(node.get("props"), dict) else {}
        for required in spec.required:
            if required not in props:
                errors.append(PropIssue(component=name, prop=required, issue="Missing required prop"))

        for key, value in props.items():
            if key not in spec.allowed_props:
                errors.append(PropIssue(component=name, prop=key, issue="Unknown prop"))
                continue
            rule = spec.types.get(key)
            if rule is None or matches_type(value, rule):
                continue
            if isinstance(rule, tuple):
                issue = f"Invalid prop value. Allowed: {', '.join(rule)}"
            else:
                issue = f"Invalid prop type. Expected {rule}"
            errors.append(PropIssue(component=name, prop=key, issue=issue))

        if name == "Chart" and _is_string_list(props.get("labels")) and isinstance(props.get("points"), list):
            if len(props["labels"]) != len(props["points"]):
                errors.append(
                    PropIssue(component=name, prop="points", issue="points and labels must have the same length")
                )

        if isinstance(children, list) and children:
            errors.append(PropIssue(component=name, prop="children", issue="Nested component misuse"))
