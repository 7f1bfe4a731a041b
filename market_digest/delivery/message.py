"""Email message construction for digests and welcome notes."""

from __future__ import annotations

from datetime import date, datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr
import html
import re

from ..core.types import Recipient


_TAG_RE = re.compile(r"<[^>]+>")
_BLOCK_END_RE = re.compile(r"</(p|h[1-6]|li|ul|ol|div)>|<br\s*/?>", re.IGNORECASE)
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def formatted_today(today: date | None = None) -> str:
    """Human date used in subjects, e.g. 'Sunday, October 18, 2026'."""
    day = today or datetime.now(timezone.utc).date()
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def digest_subject(prefix: str, today: date | None = None) -> str:
    return f"{prefix} - {formatted_today(today)}"


def html_to_text(content: str) -> str:
    """Plain-text alternative of an HTML fragment."""
    text = _BLOCK_END_RE.sub("\n", content)
    text = html.unescape(_TAG_RE.sub("", text))
    lines = [line.strip() for line in text.splitlines()]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def build_message(sender: str, recipient: Recipient, subject: str, content: str) -> EmailMessage:
    """Multipart email with a plain-text body and an HTML alternative."""
    greeting = f"Hi {recipient.display_name}," if recipient.display_name else "Hi,"
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = formataddr((recipient.display_name, recipient.email)) if recipient.display_name else recipient.email
    msg.set_content(f"{greeting}\n\n{html_to_text(content)}\n")
    msg.add_alternative(
        f"<html><body><p>{html.escape(greeting)}</p>\n{content}\n</body></html>",
        subtype="html",
    )
    return msg
