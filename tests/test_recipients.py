"""Tests for the YAML recipient store."""

from __future__ import annotations

import asyncio
import threading

import pytest

from market_digest.errors import RecipientSourceError
from market_digest.recipients import yaml_store
from market_digest.recipients.yaml_store import YamlRecipientStore


STORE = """
recipients:
  - id: u-1
    email: ada@example.com
    name: Ada
    topics: [aapl, " msft "]
    profile:
      country: US
      risk_tolerance: Medium
  - email: bob@example.com
    topics: "goog,amzn"
  - name: No Email
    topics: [TSLA]
  - id: u-4
    email: cy@example.com
"""


def _store(tmp_path, text=STORE) -> YamlRecipientStore:
    path = tmp_path / "recipients.yaml"
    path.write_text(text, encoding="utf-8")
    return YamlRecipientStore(path)


def test_lists_recipients_and_skips_entries_without_email(tmp_path):
    store = _store(tmp_path)

    recipients = asyncio.run(store.list_digest_recipients())

    assert [r.id for r in recipients] == ["u-1", "bob@example.com", "u-4"]
    ada = recipients[0]
    assert ada.display_name == "Ada"
    assert ada.topic_symbols == frozenset({"AAPL", "MSFT"})
    assert recipients[1].topic_symbols == frozenset({"GOOG", "AMZN"})


def test_topics_for_unknown_or_topicless_recipient_is_empty(tmp_path):
    store = _store(tmp_path)

    assert asyncio.run(store.topics_for("u-1")) == {"AAPL", "MSFT"}
    assert asyncio.run(store.topics_for("u-4")) == set()
    assert asyncio.run(store.topics_for("missing")) == set()


def test_profile_and_lookup_by_email(tmp_path):
    store = _store(tmp_path)

    recipient = asyncio.run(store.find_by_email("ADA@example.com"))

    assert recipient is not None
    assert recipient.id == "u-1"
    assert asyncio.run(store.profile_for("u-1")) == {"country": "US", "risk_tolerance": "Medium"}
    assert asyncio.run(store.profile_for("u-4")) == {}
    assert asyncio.run(store.find_by_email("nobody@example.com")) is None


def test_missing_store_raises_recipient_source_error(tmp_path):
    store = YamlRecipientStore(tmp_path / "absent.yaml")

    with pytest.raises(RecipientSourceError):
        asyncio.run(store.list_digest_recipients())


def test_store_without_recipient_list_raises(tmp_path):
    store = _store(tmp_path, "subscribers: []\n")

    with pytest.raises(RecipientSourceError):
        asyncio.run(store.list_digest_recipients())


def test_listing_rereads_the_file(tmp_path):
    store = _store(tmp_path)
    asyncio.run(store.list_digest_recipients())

    store.path.write_text("recipients:\n  - email: new@example.com\n", encoding="utf-8")

    assert [r.email for r in asyncio.run(store.list_digest_recipients())] == ["new@example.com"]


def test_store_reads_the_file_off_the_event_loop_thread(tmp_path, monkeypatch):
    store = _store(tmp_path)
    parse = yaml_store.yaml.safe_load
    threads = []

    def recording_safe_load(stream):
        threads.append(threading.get_ident())
        return parse(stream)

    monkeypatch.setattr(yaml_store.yaml, "safe_load", recording_safe_load)

    async def _run():
        loop_thread = threading.get_ident()
        await store.list_digest_recipients()
        store._records = None
        await store.topics_for("u-1")
        return loop_thread

    loop_thread = asyncio.run(_run())

    assert len(threads) == 2
    assert loop_thread not in threads
