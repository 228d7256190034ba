from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from .config import AgentSettings

logger = structlog.get_logger(__name__)

_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai",
    "local": "http://127.0.0.1:11434/v1",
}
JSON_SYSTEM_PROMPT = "Return strict JSON only."
TEXT_SYSTEM_PROMPT = "Be concise and specific."


class LlmTransportError(RuntimeError):
    """Raised when the oracle endpoint cannot be reached or answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LlmGateway:
    """JSON/text oracle over an OpenAI-compatible chat completions endpoint.

    Missing credentials, a disabled provider, empty content and unparseable JSON
    all yield ``None``; only transport problems raise.
    """

    def __init__(self, settings: AgentSettings | None = None) -> None:
        self.settings = settings or AgentSettings.from_env()

    @property
    def is_configured(self) -> bool:
        provider = self.settings.llm_provider
        if provider == "disabled" or not self._base_url() or not self.settings.llm_model:
            return False
        return provider == "local" or self.settings.has_api_key

    def generate_json(self, prompt: str, *, system_prompt: str = JSON_SYSTEM_PROMPT) -> dict[str, Any] | None:
        content = self._complete(prompt, system_prompt=system_prompt, temperature=0.0, json_mode=True)
        if not content:
            return None
        parsed = self.parse_json(content)
        if parsed is None:
            logger.warning("llm_json_unparseable", provider=self.settings.llm_provider, length=len(content))
        return parsed

    def generate_text(self, prompt: str, *, system_prompt: str = TEXT_SYSTEM_PROMPT) -> str | None:
        content = self._complete(prompt, system_prompt=system_prompt, temperature=0.2, json_mode=False)
        if not content or not content.strip():
            return None
        return content.strip()

    def _complete(self, prompt: str, *, system_prompt: str, temperature: float, json_mode: bool) -> str | None:
        if not self.is_configured:
            return None

        headers = {"Content-Type": "application/json"}
        if self.settings.has_api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"

        payload: dict[str, Any] = {
            "model": self.settings.llm_model,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        url = f"{self._base_url()}/chat/completions"
        try:
            with httpx.Client(timeout=self.settings.llm_timeout_sec) as client:
                response = client.post(url, headers=headers, json=payload)
                if response.status_code >= 400 and json_mode and self.settings.llm_provider == "local":
                    # Many local OpenAI-compatible servers ignore response_format.
                    fallback_payload = dict(payload)
                    fallback_payload.pop("response_format", None)
                    response = client.post(url, headers=headers, json=fallback_payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as error:
            status = error.response.status_code
            logger.warning("llm_request_failed", provider=self.settings.llm_provider, status_code=status)
            raise LlmTransportError(f"LLM request failed with status {status}", status_code=status) from error
        except httpx.HTTPError as error:
            logger.warning("llm_request_failed", provider=self.settings.llm_provider, error=type(error).__name__)
            raise LlmTransportError(f"LLM request failed ({type(error).__name__})") from error
        except ValueError as error:
            raise LlmTransportError("LLM response body is not valid JSON") from error

        return self.extract_assistant_content(body)

    def _base_url(self) -> str:
        if self.settings.llm_base_url:
            return self.settings.llm_base_url.rstrip("/")
        return _BASE_URLS.get(self.settings.llm_provider, "")

    @staticmethod
    def extract_assistant_content(body: Any) -> str | None:
        if not isinstance(body, dict):
            return None
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None

        message = choices[0].get("message") or {}
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            chunks = [item["text"] for item in content if isinstance(item, dict) and isinstance(item.get("text"), str)]
            return "\n".join(chunks) if chunks else None
        return None

    @staticmethod
    def parse_json(content: str) -> dict[str, Any] | None:
        stripped = content.strip()
        if stripped.startswith("```"):
            stripped = stripped.removeprefix("```json").removeprefix("```")
            if stripped.endswith("```"):
                stripped = stripped[:-3]
            stripped = stripped.strip()

        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None
