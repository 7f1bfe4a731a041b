"""OpenAI-compatible chat completions provider for digest summaries."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import LoggingConfig, ProviderConfig
from ...errors import InferenceError
from .base import SummaryProvider


class OpenAICompatibleProvider(SummaryProvider):
    """Summary provider for any endpoint speaking the /chat/completions API."""

    provider_name = "openai_compatible"

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        log_cfg: LoggingConfig | None = None,
        llm_logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(cfg, api_key, log_cfg, llm_logger)
        self._transport = transport

    async def complete(self, prompt: str) -> str:
        payload = {
            "model": self.cfg.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.cfg.temperature,
            "max_tokens": self.cfg.max_output_tokens,
        }
        url = f"{self.cfg.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(
                timeout=self.cfg.timeout_seconds,
                trust_env=self.cfg.trust_env,
                transport=self._transport,
            ) as client:
                resp = await client.post(url, headers=headers, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as exc:
            raise InferenceError(f"Chat completion timed out after {self.cfg.timeout_seconds}s") from exc
        except httpx.HTTPStatusError as exc:
            raise InferenceError(
                f"Chat completion returned HTTP {exc.response.status_code}",
                context={"status": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise InferenceError(f"Chat completion failed: {type(exc).__name__}") from exc
        except ValueError as exc:
            raise InferenceError("Chat completion returned an invalid JSON body") from exc
        return _extract_message(data)


def _extract_message(data: dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""
