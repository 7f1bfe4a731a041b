"""Google Gemini provider for digest summaries."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import LoggingConfig, ProviderConfig
from ...errors import InferenceError
from .base import SummaryProvider


class GeminiProvider(SummaryProvider):
    """Gemini-backed summary provider using the generateContent REST API."""

    provider_name = "gemini"

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
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.cfg.temperature,
                "maxOutputTokens": self.cfg.max_output_tokens,
            },
        }
        data = await self._post(payload)
        return _extract_text(data)

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.cfg.base_url.rstrip('/')}/v1beta/models/{self.cfg.model}:generateContent"
        try:
            async with httpx.AsyncClient(
                timeout=self.cfg.timeout_seconds,
                trust_env=self.cfg.trust_env,
                transport=self._transport,
            ) as client:
                resp = await client.post(url, params={"key": self.api_key}, json=payload)
                resp.raise_for_status()
                return resp.json()
        except httpx.TimeoutException as exc:
            raise InferenceError(f"Gemini request timed out after {self.cfg.timeout_seconds}s") from exc
        except httpx.HTTPStatusError as exc:
            raise InferenceError(
                f"Gemini returned HTTP {exc.response.status_code}",
                context={"status": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise InferenceError(f"Gemini request failed: {type(exc).__name__}") from exc
        except ValueError as exc:
            raise InferenceError("Gemini returned an invalid JSON body") from exc


def _extract_text(data: dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""

    if not isinstance(parts, list):
        return ""

    non_thought_chunks: list[str] = []
    all_chunks: list[str] = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        text = part.get("text")
        if text is None:
            continue
        chunk = str(text)
        if not chunk:
            continue
        all_chunks.append(chunk)
        if not bool(part.get("thought")):
            non_thought_chunks.append(chunk)

    if non_thought_chunks:
        return "".join(non_thought_chunks)
    return "".join(all_chunks)
