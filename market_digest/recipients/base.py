"""Recipient source and topic resolution interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..core.types import Recipient


class RecipientSource(ABC):
    """Read-only access to the subscriber store.

    `list_digest_recipients` raises `RecipientSourceError` when the list is
    unobtainable. `topics_for` returns an empty set for recipients without
    topics, which selects the general feed.
    """

    @abstractmethod
    async def list_digest_recipients(self) -> list[Recipient]:
        raise NotImplementedError

    @abstractmethod
    async def topics_for(self, recipient_id: str) -> set[str]:
        raise NotImplementedError
