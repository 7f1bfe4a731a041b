"""Console delivery for dry runs: prints digests instead of sending them."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel

from ..core.types import Recipient
from .base import Dispatcher
from .message import digest_subject, html_to_text


class ConsoleDispatcher(Dispatcher):
    channel = "console"

    def __init__(self, console: Console | None = None, subject_prefix: str = "Market News Summary Today"):
        self.console = console or Console()
        self.subject_prefix = subject_prefix
        self.sent: list[tuple[str, str]] = []

    async def send(self, recipient: Recipient, content: str, subject: str | None = None) -> None:
        title = subject or digest_subject(self.subject_prefix)
        self.console.print(
            Panel(html_to_text(content), title=f"{title} -> {recipient.email}", expand=False)
        )
        self.sent.append((recipient.id, title))
