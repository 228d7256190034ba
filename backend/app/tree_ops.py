from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from .component_catalog import (
    COMPONENT_SPECS,
    SLOT_COMPONENTS,
    default_props_for,
    infer_component,
    is_component,
    is_layout,
    sanitize_props,
)
from .models import (
    ID_TARGET_PREFIX,
    TARGET_CONTENT,
    TARGET_CONTENT_FIRST,
    TARGET_CONTENT_LAST,
    TARGET_NAVBAR,
    TARGET_SIDEBAR,
    MutationMode,
    PlanOperation,
    UiNode,
    UiTree,
)
from .tree_codec import collect_ids, default_tree, next_node_id

logger = structlog.get_logger(__name__)

UNTYPED_CONTENT_TARGETS = (TARGET_CONTENT, TARGET_CONTENT_FIRST, TARGET_CONTENT_LAST)
# Bare content targets for these components are narrowed to the last node of that type in modify mode.
TYPE_NARROWED_COMPONENTS = frozenset({"Card", "Button", "Table", "Chart"})
SIDEBAR_TITLE_CUE = "sidebar title"


@dataclass
class LayoutSlots:
    navbar: UiNode | None
    sidebar: UiNode | None
    content: UiNode | None


def find_node(root: UiNode, node_id: str) -> tuple[UiNode | None, UiNode | None, int]:
    """Returns ``(node, parent, index_in_parent)``; parent is None for the root."""
    if root.id == node_id:
        return root, None, -1
    for index, child in enumerate(root.children):
        if child.id == node_id:
            return child, root, index
        found = find_node(child, node_id)
        if found[0] is not None:
            return found
    return None, None, -1


def locate_slots(tree: UiTree) -> LayoutSlots:
    root = tree.root
    navbar = next((child for child in root.children if child.component == "Navbar"), None)
    main = next((child for child in root.children if child.component == "Layout"), None)
    sidebar = None
    content = None
    if main is not None:
        sidebar = next((child for child in main.children if child.component == "Sidebar"), None)
        layouts = [child for child in main.children if child.component == "Layout"]
        content = layouts[-1] if layouts else None
    return LayoutSlots(navbar=navbar, sidebar=sidebar, content=content)


def _registry_name(name: str) -> str | None:
    lowered = name.lower()
    return next((known for known in COMPONENT_SPECS if known.lower() == lowered), None)


def parse_typed_target(target: str) -> tuple[str, str] | None:
    """``content:<Type>:<selector>`` -> (registry type, selector), else None."""
    parts = target.split(":")
    if len(parts) != 3 or parts[0] != TARGET_CONTENT:
        return None
    component = _registry_name(parts[1].strip())
    selector = parts[2].strip().lower()
    if component is None or not (selector in ("first", "last") or selector.isdigit()):
        return None
    return component, selector


def resolve_content_index(content: UiNode, target: str) -> int | None:
    """Index in ``content.children`` for a typed target; ``N`` is 1-based among same-typed siblings."""
    parsed = parse_typed_target(target)
    if parsed is None:
        return None
    component, selector = parsed
    matches = [index for index, child in enumerate(content.children) if child.component == component]
    if not matches:
        return None
    if selector == "first":
        return matches[0]
    if selector == "last":
        return matches[-1]
    ordinal = int(selector)
    if 1 <= ordinal <= len(matches):
        return matches[ordinal - 1]
    return None


def resolve_target(op: PlanOperation, mode: MutationMode) -> str:
    target = op.target.strip()
    if op.component == "Navbar":
        return TARGET_NAVBAR
    if op.component == "Sidebar":
        return TARGET_SIDEBAR
    if mode == "modify" and target in UNTYPED_CONTENT_TARGETS and op.component in TYPE_NARROWED_COMPONENTS:
        return f"content:{op.component}:last"
    return target


def _modify_allows(op: PlanOperation, target: str, tree: UiTree) -> bool:
    if op.type != "update":
        return False
    if target in (TARGET_NAVBAR, TARGET_SIDEBAR):
        return True
    if parse_typed_target(target) is not None:
        return True
    if target.startswith(ID_TARGET_PREFIX):
        node, _, _ = find_node(tree.root, target[len(ID_TARGET_PREFIX) :])
        return node is not None and is_component(node.component)
    return False


def _skip(op: PlanOperation, target: str, reason: str) -> None:
    logger.debug("operation_skipped", type=op.type, target=target, component=op.component, reason=reason)


def _guard_sidebar_title(props: dict[str, Any], mode: MutationMode, intent: str) -> dict[str, Any]:
    if mode == "modify" and SIDEBAR_TITLE_CUE not in intent.lower():
        props.pop("title", None)
    return props


def _update_node(node: UiNode, op: PlanOperation, mode: MutationMode, intent: str) -> None:
    new_type = _registry_name(op.component) if op.component else node.component
    if new_type is None or node.component in SLOT_COMPONENTS:
        new_type = node.component

    if new_type == node.component:
        incoming = sanitize_props(new_type, op.props, node.props)
        if new_type == "Sidebar":
            incoming = _guard_sidebar_title(incoming, mode, intent)
        node.props = {**node.props, **incoming}
        return

    # A type change replaces the node's props instead of patching them.
    node.component = new_type
    node.props = _fresh_props(new_type, op.props, intent)


def _fresh_props(component: str, raw: Any, intent: str) -> dict[str, Any]:
    # Defaults act as existing props so paired fields (chart points/labels) stay aligned.
    defaults = default_props_for(component, intent)
    return {**defaults, **sanitize_props(component, raw, defaults)}


def _new_node(op: PlanOperation, tree: UiTree, intent: str) -> UiNode | None:
    component = _registry_name(op.component) if op.component else infer_component(intent)
    if component is None or component in SLOT_COMPONENTS:
        return None
    used_ids = collect_ids(tree.root)
    node_id = op.id if op.id and op.id not in used_ids else next_node_id(used_ids, component.lower())
    return UiNode(id=node_id, component=component, props=_fresh_props(component, op.props, intent))


def _insert(parent: UiNode, node: UiNode, position: str) -> None:
    if position == "prepend":
        parent.children.insert(0, node)
    else:
        parent.children.append(node)


def _apply_slot(op: PlanOperation, target: str, slots: LayoutSlots, mode: MutationMode, intent: str) -> None:
    slot = slots.navbar if target == TARGET_NAVBAR else slots.sidebar
    if slot is None or op.type == "remove":
        _skip(op, target, "slot is not removable" if slot is not None else "slot missing")
        return
    incoming = sanitize_props(slot.component, op.props, slot.props)
    if slot.component == "Sidebar":
        incoming = _guard_sidebar_title(incoming, mode, intent)
    slot.props = {**slot.props, **incoming}


def _apply_remove(op: PlanOperation, target: str, tree: UiTree, content: UiNode) -> None:
    if target.startswith(ID_TARGET_PREFIX):
        node, parent, index = find_node(tree.root, target[len(ID_TARGET_PREFIX) :])
        if node is None or parent is None:
            _skip(op, target, "id not found")
        elif is_layout(node.component) or node.component in SLOT_COMPONENTS:
            _skip(op, target, "structural node")
        else:
            parent.children.pop(index)
        return

    if parse_typed_target(target) is not None:
        index = resolve_content_index(content, target)
        if index is None:
            _skip(op, target, "typed target not found")
        else:
            content.children.pop(index)
        return

    if content.children:
        content.children.pop()


def _apply_add(op: PlanOperation, target: str, tree: UiTree, content: UiNode, intent: str) -> None:
    node = _new_node(op, tree, intent)
    if node is None:
        _skip(op, target, "unknown component")
        return

    parent = content
    if target.startswith(ID_TARGET_PREFIX):
        located, _, _ = find_node(tree.root, target[len(ID_TARGET_PREFIX) :])
        if located is not None and is_layout(located.component):
            parent = located
    _insert(parent, node, op.position)


def _apply_update(
    op: PlanOperation, target: str, tree: UiTree, content: UiNode, mode: MutationMode, intent: str
) -> None:
    if target.startswith(ID_TARGET_PREFIX):
        node, _, _ = find_node(tree.root, target[len(ID_TARGET_PREFIX) :])
        if node is None or not is_component(node.component):
            _skip(op, target, "id not found or not a component")
            return
        _update_node(node, op, mode, intent)
        return

    if parse_typed_target(target) is not None:
        index = resolve_content_index(content, target)
        if index is None:
            _skip(op, target, "typed target not found")
            return
        _update_node(content.children[index], op, mode, intent)
        return

    if target not in UNTYPED_CONTENT_TARGETS:
        _skip(op, target, "unknown target")
        return

    if not content.children:
        if mode == "modify":
            _skip(op, target, "content is empty")
            return
        node = _new_node(op, tree, intent)
        if node is not None:
            content.children.append(node)
        return

    index = 0 if target == TARGET_CONTENT_FIRST else len(content.children) - 1
    _update_node(content.children[index], op, mode, intent)


def apply_plan_to_tree(
    previous_tree: UiTree | None,
    plan: dict[str, Any],
    mode: MutationMode,
    intent: str = "",
) -> UiTree:
    """Applies canonical plan operations to a deep copy of ``previous_tree``.

    Generate mode (or no previous tree) starts over from the default layout.
    Modify mode honours only ``update`` operations on existing registry nodes.
    """
    if mode == "generate" or previous_tree is None:
        tree = default_tree(previous_tree.version if previous_tree is not None else 1)
    else:
        tree = previous_tree.model_copy(deep=True)

    slots = locate_slots(tree)
    if slots.content is None:
        logger.warning("content_slot_missing", root_id=tree.root.id)
        return tree

    raw_operations = plan.get("operations") if isinstance(plan, dict) else None
    for raw_op in raw_operations if isinstance(raw_operations, list) else []:
        op = PlanOperation.model_validate(raw_op)
        if op.type == "add" and not op.component:
            # Resolved up front so an inferred Navbar/Sidebar lands in its slot.
            op = op.model_copy(update={"component": infer_component(intent)})
        target = resolve_target(op, mode)

        if mode == "modify" and not _modify_allows(op, target, tree):
            _skip(op, target, "not allowed in modify mode")
            continue

        if target in (TARGET_NAVBAR, TARGET_SIDEBAR):
            _apply_slot(op, target, slots, mode, intent)
        elif op.type == "remove":
            _apply_remove(op, target, tree, slots.content)
        elif op.type == "add":
            _apply_add(op, target, tree, slots.content, intent)
        else:
            _apply_update(op, target, tree, slots.content, mode, intent)

    return tree
