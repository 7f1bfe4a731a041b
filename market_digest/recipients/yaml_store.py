"""
YAML-file recipient store.

Example file:

    recipients:
      - id: u-1
        email: ada@example.com
        name: Ada
        topics: [AAPL, MSFT]
        profile:
          country: US
          investment_goals: Growth
          risk_tolerance: Medium
          preferred_industry: Technology
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import yaml

from ..core.types import Recipient
from ..errors import RecipientSourceError
from ..utils.logging import log_event
from .base import RecipientSource


logger = logging.getLogger(__name__)


class YamlRecipientStore(RecipientSource):
    """Recipient source backed by a YAML file, re-read on every listing.

    File reads and parsing run in a worker thread off the event loop.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._records: dict[str, dict[str, Any]] | None = None

    async def list_digest_recipients(self) -> list[Recipient]:
        records = await asyncio.to_thread(self._load)
        return [_to_recipient(record) for record in records.values()]

    async def topics_for(self, recipient_id: str) -> set[str]:
        records = await self._cached()
        record = records.get(recipient_id)
        if record is None:
            return set()
        return _topics(record.get("topics"))

    async def profile_for(self, recipient_id: str) -> dict[str, Any]:
        records = await self._cached()
        profile = (records.get(recipient_id) or {}).get("profile")
        return dict(profile) if isinstance(profile, dict) else {}

    async def find_by_email(self, email: str) -> Recipient | None:
        wanted = email.strip().lower()
        for recipient in await self.list_digest_recipients():
            if recipient.email.lower() == wanted:
                return recipient
        return None

    async def _cached(self) -> dict[str, dict[str, Any]]:
        if self._records is not None:
            return self._records
        return await asyncio.to_thread(self._load)

    def _load(self) -> dict[str, dict[str, Any]]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise RecipientSourceError(f"Cannot read recipient store {self.path}: {exc}") from exc

        items = raw.get("recipients") if isinstance(raw, dict) else None
        if not isinstance(items, list):
            raise RecipientSourceError(f"Recipient store {self.path} has no 'recipients' list")

        records: dict[str, dict[str, Any]] = {}
        for idx, item in enumerate(items):
            if not isinstance(item, dict) or not str(item.get("email") or "").strip():
                log_event(
                    logger,
                    "Skipping recipient entry without email",
                    level=logging.WARNING,
                    event="recipient_invalid",
                    index=idx,
                )
                continue
            recipient_id = str(item.get("id") or item["email"]).strip()
            records[recipient_id] = {**item, "id": recipient_id}
        self._records = records
        return records


def _to_recipient(record: dict[str, Any]) -> Recipient:
    return Recipient(
        id=record["id"],
        email=str(record["email"]).strip(),
        display_name=str(record.get("name") or "").strip(),
        topic_symbols=frozenset(_topics(record.get("topics"))),
    )


def _topics(value: Any) -> set[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set)):
        return set()
    return {str(v).strip().upper() for v in value if str(v).strip()}
