"""Dispatch port: the abstract interface to a message-delivery service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..core.types import Recipient


class Dispatcher(ABC):
    """Delivers rendered content to a recipient.

    Implementations raise `DeliveryError` when delivery fails. Sending the
    same content twice is an acceptable duplicate, so callers may retry.
    """

    channel = "base"

    @abstractmethod
    async def send(self, recipient: Recipient, content: str, subject: str | None = None) -> None:
        raise NotImplementedError
