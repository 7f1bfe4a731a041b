"""Tests for summary providers: response parsing, prompts and error mapping."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from market_digest.config import ProviderConfig
from market_digest.core.types import Article
from market_digest.errors import InferenceError
from market_digest.llm.prompts import build_news_summary_prompt, build_welcome_prompt, serialize_articles
from market_digest.llm.providers.gemini import GeminiProvider, _extract_text
from market_digest.llm.providers.openai_compatible import OpenAICompatibleProvider


ARTICLE = Article(
    id="1",
    headline="Apple beats estimates",
    summary="Quarterly revenue rose.",
    source="Reuters",
    url="https://example.com/apple",
    published_at=1_760_000_000,
    category="company",
    related_symbols=frozenset({"MSFT", "AAPL"}),
    origin_symbol="AAPL",
)


def _gemini_response(*parts):
    return {"candidates": [{"content": {"parts": list(parts)}}]}


def test_extract_text_joins_non_thought_parts():
    data = _gemini_response(
        {"thought": True, "text": "internal reasoning"},
        {"text": "<h2>Markets</h2>"},
        {"text": "<p>Up</p>"},
    )

    assert _extract_text(data) == "<h2>Markets</h2><p>Up</p>"


def test_extract_text_falls_back_to_all_text_when_only_thought():
    data = _gemini_response({"thought": True, "text": "first"}, {"thought": True, "text": " second"})

    assert _extract_text(data) == "first second"


def test_extract_text_handles_missing_candidates():
    assert _extract_text({}) == ""
    assert _extract_text({"candidates": []}) == ""


def test_serialized_articles_carry_prompt_fields():
    payload = json.loads(serialize_articles([ARTICLE]))

    assert payload == [
        {
            "headline": "Apple beats estimates",
            "summary": "Quarterly revenue rose.",
            "source": "Reuters",
            "url": "https://example.com/apple",
            "category": "company",
            "related": "AAPL,MSFT",
        }
    ]


def test_prompts_render_recipient_and_profile():
    summary_prompt = build_news_summary_prompt([ARTICLE], "Ada")
    welcome_prompt = build_welcome_prompt({"country": "US", "risk_tolerance": "Medium", "unused": "x"})

    assert "Ada" in summary_prompt
    assert "Apple beats estimates" in summary_prompt
    assert "- Country: US" in welcome_prompt
    assert "- Risk tolerance: Medium" in welcome_prompt
    assert "unused" not in welcome_prompt


def test_gemini_summarize_posts_prompt_and_strips_code_fence():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_gemini_response({"text": "```html\n<p>Digest</p>\n```"}))

    provider = GeminiProvider(
        ProviderConfig(model="gemini-test", api_key="g-key"),
        "g-key",
        transport=httpx.MockTransport(handler),
    )

    content = asyncio.run(provider.summarize([ARTICLE], "Ada"))

    assert content == "<p>Digest</p>"
    assert seen[0].url.path == "/v1beta/models/gemini-test:generateContent"
    assert seen[0].url.params["key"] == "g-key"
    body = json.loads(seen[0].content)
    assert "Apple beats estimates" in body["contents"][0]["parts"][0]["text"]


def test_gemini_http_error_maps_to_inference_error():
    provider = GeminiProvider(
        ProviderConfig(api_key="g-key"),
        "g-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(503, json={})),
    )

    with pytest.raises(InferenceError, match="HTTP 503"):
        asyncio.run(provider.summarize([ARTICLE]))


def test_empty_model_response_raises_inference_error():
    provider = GeminiProvider(
        ProviderConfig(api_key="g-key"),
        "g-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=_gemini_response())),
    )

    with pytest.raises(InferenceError, match="Empty response"):
        asyncio.run(provider.summarize([ARTICLE]))


def test_openai_compatible_welcome_intro():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": " <p>Welcome!</p> "}}]})

    provider = OpenAICompatibleProvider(
        ProviderConfig(name="openai", model="gpt-test", base_url="https://llm.test/v1"),
        "sk-test",
        transport=httpx.MockTransport(handler),
    )

    intro = asyncio.run(provider.welcome_intro({"country": "US"}))

    assert intro == "<p>Welcome!</p>"
    assert seen[0].url.path == "/v1/chat/completions"
    assert seen[0].headers["Authorization"] == "Bearer sk-test"
    assert json.loads(seen[0].content)["model"] == "gpt-test"


def test_openai_compatible_timeout_maps_to_inference_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    provider = OpenAICompatibleProvider(
        ProviderConfig(name="openai", base_url="https://llm.test/v1"),
        "sk-test",
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(InferenceError, match="timed out"):
        asyncio.run(provider.summarize([ARTICLE]))
