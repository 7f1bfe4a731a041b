"""Tests for YAML configuration loading."""

from __future__ import annotations

import pytest

from market_digest.config import (
    AppConfig,
    DeliveryConfig,
    MarketDataConfig,
    ProviderConfig,
    get_api_key,
    get_market_data_key,
    get_smtp_password,
    load_config,
)
from market_digest.errors import ConfigError


def test_load_config_without_path_returns_defaults():
    cfg = load_config(None)

    assert cfg == AppConfig()
    assert cfg.news.max_articles == 6
    assert cfg.news.max_rounds == 6
    assert cfg.news.window_days == 5
    assert cfg.market_data.general_cache_ttl_seconds == 300


def test_load_config_merges_sections_and_ignores_unknown_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        """
news:
  max_articles: 10
  unknown_key: true
batch:
  concurrency: 8
provider:
  name: openai
  model: gpt-4.1-mini
legacy_section:
  anything: 1
""",
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.news.max_articles == 10
    assert cfg.news.max_rounds == 6
    assert cfg.batch.concurrency == 8
    assert cfg.provider.name == "openai"
    assert cfg.delivery == DeliveryConfig()


def test_load_config_rejects_non_mapping_section(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("news: [1, 2]\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(str(path))


def test_load_config_rejects_non_mapping_document(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(str(path))


def test_empty_config_file_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(str(path)) == AppConfig()


def test_api_key_prefers_inline_then_named_env(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "from-default-env")
    monkeypatch.setenv("CUSTOM_KEY", "from-custom-env")

    assert get_api_key(ProviderConfig(api_key="inline")) == "inline"
    assert get_api_key(ProviderConfig(api_key_env="CUSTOM_KEY")) == "from-custom-env"
    assert get_api_key(ProviderConfig()) == "from-default-env"


def test_openai_provider_defaults_to_openai_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")

    assert get_api_key(ProviderConfig(name="openai")) == "sk-openai"


def test_market_data_key_and_smtp_password_from_env(monkeypatch):
    monkeypatch.setenv("FINNHUB_API_KEY", "fh-key")
    monkeypatch.setenv("SMTP_PASS", "smtp-secret")

    assert get_market_data_key(MarketDataConfig()) == "fh-key"
    assert get_smtp_password(DeliveryConfig()) == "smtp-secret"
    assert get_smtp_password(DeliveryConfig(smtp_password="inline")) == "inline"
