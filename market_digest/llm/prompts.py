"""Prompt loading and rendering helpers for LLM providers."""

from __future__ import annotations

from functools import lru_cache
import json
from pathlib import Path
from typing import Any

from ..core.types import Article


_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"

PROFILE_FIELDS = (
    ("country", "Country"),
    ("investment_goals", "Investment goals"),
    ("risk_tolerance", "Risk tolerance"),
    ("preferred_industry", "Preferred industry"),
)


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    path = _PROMPT_DIR / f"{name}.md"
    return path.read_text(encoding="utf-8").strip()


def _render_template(name: str, **values: str) -> str:
    template = _load_template(name)
    return template.format(**values)


def serialize_articles(articles: list[Article]) -> str:
    """JSON payload of the article batch as sent to the model."""
    return json.dumps([a.to_prompt_dict() for a in articles], indent=2, ensure_ascii=False)


def build_news_summary_prompt(articles: list[Article], recipient_name: str | None = None) -> str:
    return _render_template(
        "news_summary",
        recipient_name=recipient_name or "a subscriber",
        news_data=serialize_articles(articles),
    )


def build_welcome_prompt(profile: dict[str, Any]) -> str:
    lines = []
    for key, label in PROFILE_FIELDS:
        value = profile.get(key)
        if value:
            lines.append(f"- {label}: {value}")
    return _render_template("welcome_intro", user_profile="\n".join(lines) or "- (not provided)")
