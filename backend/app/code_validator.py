from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Sequence

from .component_catalog import ALLOWED_COMPONENTS
from .models import CodeValidationResult

MAX_CODE_LENGTH = 60000

BLOCKED_TOKENS = (
    "fetch(",
    "XMLHttpRequest",
    "WebSocket",
    "eval(",
    "document.",
    "window.",
    "localStorage",
    "sessionStorage",
    "Function(",
)

EXTERNAL_UI_LIB_PATTERNS = (
    re.compile(r"from\s+[\"'](@mui|antd|chakra-ui|semantic-ui|primereact|react-bootstrap)", re.IGNORECASE),
    re.compile(r"import\s+.*(MaterialUI|Antd|Chakra)", re.IGNORECASE),
)

TAILWIND_PATTERN = re.compile(
    r"className\s*:\s*[\"'`][^\"'`]*(\b(?:p|px|py|m|mx|my|mt|mb|ml|mr|pt|pb|pl|pr|text|bg|w|h|min|max|flex|grid"
    r"|items|justify|gap|rounded|shadow|border)-[a-z0-9-]+\b)[^\"'`]*[\"'`]",
    re.IGNORECASE,
)
INLINE_STYLE_PATTERN = re.compile(r"\bstyle\s*:")
IMPORT_PATTERN = re.compile(r"import\s+([^;]+)\s+from\s+[\"']([^\"']+)[\"']")
CREATE_ELEMENT_PATTERN = re.compile(r"React\.createElement\((\w+)")
RETURN_PATTERN = re.compile(r"\breturn\b")

_PAIRS = {")": "(", "]": "[", "}": "{"}
# A "/" after one of these (or after a keyword below) opens a regex literal, not a division.
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORDS = ("return", "typeof", "case", "in", "of")
_WORD_TAIL = re.compile(r"([A-Za-z_$]+)\s*$")


@dataclass
class _Import:
    clause: str
    source: str


def parse_imports(code: str) -> list[_Import]:
    return [_Import(clause=match.group(1), source=match.group(2)) for match in IMPORT_PATTERN.finditer(code)]


def _validate_imports(code: str, allowed: Sequence[str], errors: list[str]) -> None:
    imports = parse_imports(code)
    for item in imports:
        if not item.source.startswith("."):
            errors.append(f"External import is not allowed: {item.source}")

    for item in imports:
        if "{" not in item.clause:
            continue
        inside = item.clause[item.clause.index("{") + 1 : item.clause.rfind("}")]
        for raw_name in inside.split(","):
            name = raw_name.strip().split(" as ")[0].strip()
            if name and name != "React" and name not in allowed:
                errors.append(f"Imported component is not allowed: {name}")


def _validate_component_usage(code: str, allowed: Sequence[str], errors: list[str]) -> None:
    for name in CREATE_ELEMENT_PATTERN.findall(code):
        if name[:1].isupper() and name not in allowed:
            errors.append(f"Component not allowed: {name}")


def _line_of(code: str, index: int) -> int:
    return code.count("\n", 0, index) + 1


def _opens_regex(before: str) -> bool:
    tail = before.rstrip()
    if not tail or tail[-1] in _REGEX_PRECEDERS:
        return True
    word = _WORD_TAIL.search(tail)
    return word is not None and word.group(1) in _REGEX_KEYWORDS


def _regex_end(code: str, start: int) -> int | None:
    """Index of the closing ``/`` of the regex literal opened at ``start``."""
    index = start + 1
    in_class = False
    while index < len(code):
        char = code[index]
        if char == "\\":
            index += 2
            continue
        if char == "\n":
            return None
        if in_class:
            in_class = char != "]"
        elif char == "[":
            in_class = True
        elif char == "/":
            return index
        index += 1
    return None


def check_syntax(code: str) -> str | None:
    """Bracket balance over code outside strings, regex literals and comments, plus a ``return`` statement.

    Returns the first problem found, or None.
    """
    stack: list[tuple[str, int]] = []
    stripped: list[str] = []
    index = 0
    length = len(code)

    while index < length:
        char = code[index]
        pair = code[index : index + 2]

        if pair == "//":
            newline = code.find("\n", index)
            index = length if newline < 0 else newline
            continue
        if pair == "/*":
            end = code.find("*/", index + 2)
            if end < 0:
                return f"Unterminated comment at line {_line_of(code, index)}"
            index = end + 2
            continue
        if char == "/" and _opens_regex("".join(stripped)):
            end = _regex_end(code, index)
            if end is None:
                return f"Unterminated regular expression at line {_line_of(code, index)}"
            stripped.append(" ")
            index = end + 1
            continue
        if char in "\"'`":
            end = index + 1
            while end < length and code[end] != char:
                if code[end] == "\\":
                    end += 1
                elif code[end] == "\n" and char != "`":
                    break
                end += 1
            if end >= length or code[end] != char:
                return f"Unterminated string literal at line {_line_of(code, index)}"
            stripped.append(" ")
            index = end + 1
            continue

        if char in "([{":
            stack.append((char, index))
        elif char in ")]}":
            if not stack or stack[-1][0] != _PAIRS[char]:
                return f"Unexpected '{char}' at line {_line_of(code, index)}"
            stack.pop()
        stripped.append(char)
        index += 1

    if stack:
        opener, position = stack[-1]
        return f"Unclosed '{opener}' at line {_line_of(code, position)}"
    if not RETURN_PATTERN.search("".join(stripped)):
        return "Missing return statement"
    return None


def validate_generated_code(code: Any, allowed_components: Sequence[str] = ALLOWED_COMPONENTS) -> CodeValidationResult:
    if not isinstance(code, str) or not code:
        message = "Generated code must be a string."
        return CodeValidationResult(valid=False, errors=[message], error=message)

    errors: list[str] = []
    if len(code) > MAX_CODE_LENGTH:
        errors.append("Generated code is too large.")

    if "function renderGeneratedUI" not in code:
        errors.append("Code must define renderGeneratedUI(React, components).")

    for token in BLOCKED_TOKENS:
        if token in code:
            errors.append(f"Blocked token in generated code: {token}")

    if INLINE_STYLE_PATTERN.search(code):
        errors.append("Inline styles are not allowed.")

    if TAILWIND_PATTERN.search(code):
        errors.append("Tailwind-like utility classes are not allowed.")

    if any(pattern.search(code) for pattern in EXTERNAL_UI_LIB_PATTERNS):
        errors.append("External UI libraries are not allowed.")

    _validate_imports(code, allowed_components, errors)
    _validate_component_usage(code, allowed_components, errors)

    syntax_error = check_syntax(code)
    if syntax_error:
        errors.append(f"Syntax validation failed: {syntax_error}")

    return CodeValidationResult(valid=not errors, errors=errors, error=errors[0] if errors else "")
