"""Summarization port: the abstract interface to an LLM inference service."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any

from ...config import LoggingConfig, ProviderConfig
from ...core.types import Article
from ...errors import InferenceError
from ...utils.logging import log_event, redact_text, truncate_text
from ..prompts import build_news_summary_prompt, build_welcome_prompt
from ..tracing import record_span_error, set_span_output, start_span


class SummaryProvider(ABC):
    """Provider interface for digest summaries and welcome intros.

    Subclasses implement `complete`, a single prompt-in/text-out call that
    raises `InferenceError` on any provider failure. Prompt building, empty
    response handling, tracing and LLM logging live here.
    """

    provider_name = "base"

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        log_cfg: LoggingConfig | None = None,
        llm_logger: logging.Logger | None = None,
    ):
        if not api_key:
            raise ValueError(f"Missing API key for provider {cfg.name}")
        self.cfg = cfg
        self.api_key = api_key
        self.log_cfg = log_cfg or LoggingConfig()
        self.llm_logger = llm_logger

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the model's text response for a prompt."""
        raise NotImplementedError

    async def summarize(self, articles: list[Article], recipient_name: str | None = None) -> str:
        """Summarize an article batch into digest content.

        Raises:
            InferenceError: The provider failed or returned an empty response
        """
        prompt = build_news_summary_prompt(articles, recipient_name)
        return await self._run("summarize", prompt, {"articles.count": len(articles)})

    async def welcome_intro(self, profile: dict[str, Any]) -> str:
        """Generate a personalized welcome paragraph from a subscriber profile."""
        prompt = build_welcome_prompt(profile)
        return await self._run("welcome_intro", prompt, {})

    async def _run(self, task: str, prompt: str, attributes: dict[str, Any]) -> str:
        with start_span(
            f"{self.provider_name}.{task}",
            kind="llm",
            input_value=prompt,
            attributes={"llm.model": self.cfg.model, "llm.provider": self.provider_name, **attributes},
        ) as span:
            try:
                content = (await self.complete(prompt)).strip()
                if not content:
                    raise InferenceError("Empty response from provider", context={"task": task})
            except InferenceError as exc:
                record_span_error(span, exc)
                self._log_llm_response(task, "provider_error", str(exc), prompt)
                raise
            set_span_output(span, content)
        self._log_llm_response(task, "ok", content, prompt)
        return _strip_code_fence(content)

    def _log_llm_response(self, task: str, status: str, content: str, prompt: str) -> None:
        if self.llm_logger is None:
            return
        redaction = self.log_cfg.llm_log_redaction
        payload = {
            "event": f"llm_{task}",
            "status": status,
            "model": self.cfg.model,
            "provider": self.provider_name,
            "raw_response": truncate_text(redact_text(content, redaction)),
        }
        if self.log_cfg.llm_log_detail == "prompt_response":
            payload["raw_prompt"] = truncate_text(redact_text(prompt, redaction))
        log_event(self.llm_logger, "LLM response", **payload)


def _strip_code_fence(content: str) -> str:
    lines = content.strip().splitlines()
    if len(lines) >= 2 and lines[0].strip().startswith("```") and lines[-1].strip().startswith("```"):
        return "\n".join(lines[1:-1]).strip()
    return content.strip()
