from __future__ import annotations

from typing import Any

from .component_catalog import default_legacy_tree
from .models import UiNode, UiTree

_LEGACY_TO_LAYOUT = {"page": "Page", "layout": "Layout"}
_LAYOUT_TO_LEGACY = {"Page": "page", "Layout": "layout"}


def collect_ids(node: Any, bucket: set[str] | None = None) -> set[str]:
    """Collects ids from either tree shape (dicts or UiNode)."""
    ids = bucket if bucket is not None else set()
    if isinstance(node, UiNode):
        ids.add(node.id)
        for child in node.children:
            collect_ids(child, ids)
        return ids
    if isinstance(node, dict):
        node_id = node.get("id")
        if isinstance(node_id, str) and node_id:
            ids.add(node_id)
        children = node.get("children")
        if isinstance(children, list):
            for child in children:
                collect_ids(child, ids)
    return ids


def count_nodes(node: Any) -> int:
    if isinstance(node, UiNode):
        return 1 + sum(count_nodes(child) for child in node.children)
    if isinstance(node, dict):
        children = node.get("children")
        if isinstance(children, list):
            return 1 + sum(count_nodes(child) for child in children)
        return 1
    return 0


def next_node_id(used_ids: set[str], prefix: str) -> str:
    index = 1
    while f"{prefix}_{index}" in used_ids:
        index += 1
    return f"{prefix}_{index}"


def _legacy_to_node(legacy_node: Any, used_ids: set[str]) -> UiNode:
    if not isinstance(legacy_node, dict):
        node_id = next_node_id(used_ids, "card")
        used_ids.add(node_id)
        return UiNode(id=node_id, component="Card")

    raw_type = legacy_node.get("type")
    component = _LEGACY_TO_LAYOUT.get(raw_type, raw_type) if isinstance(raw_type, str) and raw_type else "Card"

    props = dict(legacy_node.get("props") or {}) if isinstance(legacy_node.get("props"), dict) else {}
    class_name = legacy_node.get("className")
    if class_name is not None:
        props["className"] = class_name

    node_id = legacy_node.get("id")
    if not isinstance(node_id, str) or not node_id.strip():
        node_id = next_node_id(used_ids, component.lower())
        used_ids.add(node_id)

    raw_children = legacy_node.get("children")
    children = [_legacy_to_node(child, used_ids) for child in raw_children] if isinstance(raw_children, list) else []
    return UiNode(id=node_id, component=component, props=props, children=children)


def legacy_to_canonical(legacy_tree: Any, version: int = 1) -> UiTree:
    """Converts a legacy ``{id, type, className, props, children}`` tree; missing ids get ``{type}_{n}``."""
    used_ids = collect_ids(legacy_tree)
    return UiTree(version=version, root=_legacy_to_node(legacy_tree, used_ids))


def _node_to_legacy(node: UiNode) -> dict[str, Any]:
    props = dict(node.props)
    class_name = props.pop("className", None)
    is_layout = node.component in _LAYOUT_TO_LEGACY

    legacy: dict[str, Any] = {
        "id": node.id,
        "type": _LAYOUT_TO_LEGACY.get(node.component, node.component),
    }
    if class_name is not None:
        legacy["className"] = class_name
    if props or not is_layout:
        legacy["props"] = props
    if is_layout or node.children:
        legacy["children"] = [_node_to_legacy(child) for child in node.children]
    return legacy


def canonical_to_legacy(tree: UiTree | None) -> dict[str, Any] | None:
    if tree is None:
        return None
    return _node_to_legacy(tree.root)


def default_tree(version: int = 1) -> UiTree:
    return legacy_to_canonical(default_legacy_tree(), version)
