from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .models import SecurityCheck

MIN_INTENT_LENGTH = 3
MAX_INTENT_LENGTH = 1200
SUMMARY_LIMIT = 800
NEGATION_WINDOW = 16
NEGATION_CUES = ("do not ", "don't ", "dont ", "never ")

_TARGET_WORDS = r"(system|safety|component|deterministic|validation|rules?|constraints?|instructions?)"


@dataclass(frozen=True)
class SecurityRule:
    reason: str
    patterns: tuple[re.Pattern[str], ...]


def _compile(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


SECURITY_RULES: tuple[SecurityRule, ...] = (
    SecurityRule(
        reason="Requests to ignore deterministic component rules",
        patterns=_compile(
            rf"\bignore\b.{{0,80}}\b{_TARGET_WORDS}\b",
            rf"\bdisregard\b.{{0,80}}\b{_TARGET_WORDS}\b",
        ),
    ),
    SecurityRule(
        reason="Requests to generate CSS or Tailwind",
        patterns=_compile(
            r"\b(use|add|apply|generate|create)\b.{0,40}\btailwind\b",
            r"\b(generate|create|write|add|apply)\b.{0,40}\b(css|styles?)\b",
            r"\buse\b.{0,30}\binline styles?\b",
        ),
    ),
    SecurityRule(
        reason="Requests to create new components",
        patterns=_compile(
            r"\b(create|add|build|make|invent)\b.{0,40}\b(new|custom)\b.{0,20}\bcomponent\b",
            r"\bcreate\b.{0,30}\bcomponent\b",
        ),
    ),
    SecurityRule(
        reason="Requests to bypass validation",
        patterns=_compile(r"bypass validation", r"skip validation", r"disable validation"),
    ),
    SecurityRule(
        reason="Requests to import external UI libraries",
        patterns=_compile(
            r"\b(import|use|add)\b.{0,40}\b(material ui|@mui|antd|chakra|semantic ui|primereact|react-bootstrap)\b",
            r"\buse\b.{0,30}\bexternal ui librar",
        ),
    ),
    SecurityRule(
        reason="Prompt injection markers",
        patterns=_compile(r"reveal hidden prompt", r"show system prompt", r"developer message", r"<script"),
    ),
)

_EDGE_PUNCTUATION = re.compile(r"^[\s:;,.!?\-]+|[\s:;,.!?\-]+$")


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip())


def is_negated(text: str, match_start: int) -> bool:
    prefix = text[max(0, match_start - NEGATION_WINDOW) : match_start].lower()
    return any(cue in prefix for cue in NEGATION_CUES)


def matches_rule(text: str, rule: SecurityRule) -> bool:
    for pattern in rule.patterns:
        for match in pattern.finditer(text):
            if not is_negated(text, match.start()):
                return True
    return False


def build_safe_intent_summary(message: str) -> str:
    """Erase every rule-matching span, then drop punctuation-only leftovers."""
    sanitized = message
    for rule in SECURITY_RULES:
        for pattern in rule.patterns:
            sanitized = pattern.sub(" ", sanitized)

    lines = [_EDGE_PUNCTUATION.sub("", line).strip() for line in re.split(r"\n+", sanitized)]
    return normalize_whitespace(" ".join(line for line in lines if line))[:SUMMARY_LIMIT]


def analyze_intent_security(user_intent: Any) -> SecurityCheck:
    message = normalize_whitespace(user_intent) if isinstance(user_intent, str) else ""

    if not message:
        return SecurityCheck(is_safe=False, violation_reason="Intent must be a non-empty string.")
    if len(message) < MIN_INTENT_LENGTH:
        return SecurityCheck(is_safe=False, violation_reason="Intent is too short.")
    if len(message) > MAX_INTENT_LENGTH:
        return SecurityCheck(
            is_safe=False,
            violation_reason="Intent is too long.",
            safe_intent_summary=message[:SUMMARY_LIMIT],
        )

    for rule in SECURITY_RULES:
        if matches_rule(message, rule):
            return SecurityCheck(
                is_safe=False,
                violation_reason=rule.reason,
                safe_intent_summary=build_safe_intent_summary(message),
            )

    return SecurityCheck(is_safe=True, safe_intent_summary=message)


def sanitize_intent(user_intent: Any) -> tuple[bool, str, SecurityCheck]:
    """Returns ``(safe, usable_text, check)``; usable_text may be non-empty even when unsafe."""
    check = analyze_intent_security(user_intent)
    return check.is_safe, check.safe_intent_summary, check
