from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import structlog

BASE_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = BASE_DIR.parent

_DEFAULT_MODELS = {
    "openai": "gpt-4.1-mini",
    "gemini": "gemini-1.5-flash",
    "local": "qwen2.5:14b-instruct",
}


def load_project_env(path: Path) -> None:
    if not path.exists():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


@dataclass(frozen=True)
class AgentSettings:
    llm_provider: str = "openai"
    llm_model: str = "gpt-4.1-mini"
    llm_only: bool = False
    api_key: str = ""
    llm_base_url: str = ""
    llm_timeout_sec: float = 60.0
    state_file: str = ""
    allowed_origin: str = "*"
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key.strip())

    @classmethod
    def from_env(cls) -> "AgentSettings":
        provider = os.getenv("LLM_PROVIDER", "openai").strip().lower() or "openai"
        model = (
            os.getenv("LLM_MODEL", "").strip()
            or os.getenv("OPENAI_MODEL", "").strip()
            or _DEFAULT_MODELS.get(provider, _DEFAULT_MODELS["openai"])
        )
        return cls(
            llm_provider=provider,
            llm_model=model,
            llm_only=_env_flag("LLM_ONLY", False),
            api_key=cls._resolve_api_key(provider),
            llm_base_url=os.getenv("LLM_BASE_URL", "").strip(),
            llm_timeout_sec=float(os.getenv("LLM_TIMEOUT_SEC", "60")),
            state_file=os.getenv("UI_AGENT_STATE_FILE", "").strip(),
            allowed_origin=os.getenv("ALLOWED_ORIGIN", "*").strip() or "*",
            log_level=os.getenv("LOG_LEVEL", "INFO").strip() or "INFO",
            log_format=os.getenv("LOG_FORMAT", "json").strip().lower() or "json",
        )

    @staticmethod
    def _resolve_api_key(provider: str) -> str:
        if provider == "gemini":
            return os.getenv("GEMINI_API_KEY", "").strip()
        if provider == "openai":
            return os.getenv("OPENAI_API_KEY", "").strip()
        return os.getenv("LLM_API_KEY", "").strip()


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog for JSON (production) or console (development) output."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper(), logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
