from __future__ import annotations

import json
from typing import Any

from .component_catalog import ALLOWED_COMPONENTS
from .models import UiTree
from .tree_codec import canonical_to_legacy

DEFAULT_BLOCK_CLASS = "generated-block"
_LAYOUT_TYPES = ("page", "layout")

INVALID_TREE_CODE = """function renderGeneratedUI(React, components) {
  return React.createElement("div", null, "Invalid UI tree");
}"""


def _render_props(props: Any) -> str:
    if not isinstance(props, dict):
        return "{}"
    return json.dumps(props, indent=2, ensure_ascii=False)


def _node_to_code(node: dict[str, Any], depth: int = 2) -> str:
    indent = "  " * depth
    if node.get("type") in _LAYOUT_TYPES:
        class_name = json.dumps(node.get("className") or DEFAULT_BLOCK_CLASS, ensure_ascii=False)
        children = ",\n".join(_node_to_code(child, depth + 1) for child in node.get("children") or [])
        tail = f",\n{children}\n{indent}" if children else ""
        return f'{indent}React.createElement("div", {{ className: {class_name} }}{tail})'
    return f"{indent}React.createElement({node.get('type')}, {_render_props(node.get('props'))})"


def generate_code_from_legacy(legacy_tree: dict[str, Any]) -> str:
    body = _node_to_code(legacy_tree, 2)
    return (
        "function renderGeneratedUI(React, components) {\n"
        f"  const {{ {', '.join(ALLOWED_COMPONENTS)} }} = components;\n"
        "  return (\n"
        f"{body}\n"
        "  );\n"
        "}"
    )


def generate_react_code(tree: UiTree | None) -> str:
    legacy_tree = canonical_to_legacy(tree)
    if legacy_tree is None:
        return INVALID_TREE_CODE
    return generate_code_from_legacy(legacy_tree)
