"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging

from market_digest.config import LoggingConfig
from market_digest.utils.logging import log_event, redact_secrets, redact_text, setup_logging, truncate_text


def test_jsonl_file_log_carries_event_fields(tmp_path):
    logger = setup_logging(LoggingConfig(console=False, file=True, filename="run.jsonl"), log_dir=tmp_path)

    log_event(logger, "Digest sent", event="digest_sent", recipient_id="u-1", name="collides")
    for handler in logger.handlers:
        handler.flush()

    record = json.loads((tmp_path / "run.jsonl").read_text(encoding="utf-8").splitlines()[-1])
    assert record["message"] == "Digest sent"
    assert record["event"] == "digest_sent"
    assert record["recipient_id"] == "u-1"
    assert record["field_name"] == "collides"

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_log_event_tolerates_missing_logger():
    log_event(None, "ignored", level=logging.ERROR, event="noop")


def test_redact_secrets_masks_credentials():
    text = "GET https://api.test/v1/news?category=general&token=abc123 failed"

    assert redact_secrets(text) == "GET https://api.test/v1/news?category=general&token=[REDACTED] failed"


def test_redact_text_modes():
    text = "read https://example.com/a now"

    assert redact_text(text, "none") == text
    assert redact_text(text, "redact_content") == ""
    assert redact_text(text, "redact_urls_authors") == "read [REDACTED_URL] now"


def test_truncate_text():
    assert truncate_text("abc", 5) == "abc"
    assert truncate_text("abcdef", 3) == "abc...(truncated)"
