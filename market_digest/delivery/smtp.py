"""SMTP delivery of digest emails."""

from __future__ import annotations

import asyncio
import smtplib
import ssl
from email.message import EmailMessage

from ..config import DeliveryConfig, get_smtp_password
from ..core.types import Recipient
from ..errors import ConfigError, DeliveryError
from .base import Dispatcher
from .message import build_message, digest_subject


class SmtpDispatcher(Dispatcher):
    """Sends digests through an SMTP server.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS.
    The blocking smtplib session runs in a worker thread.
    """

    channel = "smtp"

    def __init__(self, cfg: DeliveryConfig, password: str | None = None):
        if not cfg.smtp_user:
            raise ConfigError("delivery.smtp_user is required for SMTP delivery")
        password = password or get_smtp_password(cfg)
        if not password:
            raise ConfigError(f"Missing SMTP password (set {cfg.smtp_password_env})")
        self.cfg = cfg
        self._password = password
        self.sender = cfg.sender or cfg.smtp_user

    async def send(self, recipient: Recipient, content: str, subject: str | None = None) -> None:
        msg = build_message(
            self.sender,
            recipient,
            subject or digest_subject(self.cfg.subject_prefix),
            content,
        )
        try:
            await asyncio.to_thread(self._send_message, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(
                f"SMTP delivery to {recipient.email} failed: {type(exc).__name__}: {exc}",
                context={"recipient_id": recipient.id},
            ) from exc

    def _send_message(self, msg: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.cfg.smtp_port == 465:
            with smtplib.SMTP_SSL(
                self.cfg.smtp_host, self.cfg.smtp_port, context=context, timeout=self.cfg.timeout_seconds
            ) as server:
                server.login(self.cfg.smtp_user, self._password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self.cfg.smtp_host, self.cfg.smtp_port, timeout=self.cfg.timeout_seconds) as server:
                server.starttls(context=context)
                server.login(self.cfg.smtp_user, self._password)
                server.send_message(msg)
