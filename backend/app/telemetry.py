from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter
from typing import Iterator, Literal

AgentOperation = Literal["agent.generate", "agent.update_code", "agent.rollback"]

SECURITY_REJECTED = "security.rejected"
PROP_VALIDATION_FAILED = "validation.props_failed"
CODE_VALIDATION_FAILED = "validation.code_failed"


def planner_source_event(source: str) -> str:
    return f"planner.source.{source}"


def intent_type_event(intent_type: str) -> str:
    return f"intent.{intent_type}"


@dataclass
class OperationStats:
    total: int = 0
    failed: int = 0
    elapsed_ms: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        return self.elapsed_ms / self.total if self.total else 0.0


class AgentTelemetry:
    """Process-wide counters for agent operations and pipeline events (rejections, planner sources, ...)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._operations: dict[str, OperationStats] = {}
        self._events: dict[str, int] = {}

    @contextmanager
    def track(self, operation: AgentOperation) -> Iterator[None]:
        started = perf_counter()
        failed = True
        try:
            yield
            failed = False
        finally:
            elapsed_ms = (perf_counter() - started) * 1000
            with self._lock:
                stats = self._operations.setdefault(operation, OperationStats())
                stats.total += 1
                stats.failed += int(failed)
                stats.elapsed_ms += elapsed_ms

    def record(self, event: str) -> None:
        with self._lock:
            self._events[event] = self._events.get(event, 0) + 1

    def reset(self) -> None:
        with self._lock:
            self._operations.clear()
            self._events.clear()

    def snapshot(self) -> dict[str, object]:
        """``counters`` flattens operations into ``<op>.total/ok/error`` next to the event counts."""
        with self._lock:
            counters = dict(self._events)
            for name, stats in self._operations.items():
                counters[f"{name}.total"] = stats.total
                counters[f"{name}.ok"] = stats.total - stats.failed
                counters[f"{name}.error"] = stats.failed
            return {
                "counters": counters,
                "avg_latency_ms": {name: stats.avg_latency_ms for name, stats in self._operations.items()},
            }


TELEMETRY = AgentTelemetry()
