"""Dispatcher factory keyed by delivery channel name."""

from __future__ import annotations

from rich.console import Console

from ..config import DeliveryConfig
from .base import Dispatcher
from .console import ConsoleDispatcher
from .smtp import SmtpDispatcher


def available_channels() -> list[str]:
    return ["console", "smtp"]


def create_dispatcher(cfg: DeliveryConfig, console: Console | None = None) -> Dispatcher:
    """Build the configured dispatcher."""
    name = cfg.name.lower().strip()
    if name == "smtp":
        return SmtpDispatcher(cfg)
    if name == "console":
        return ConsoleDispatcher(console, subject_prefix=cfg.subject_prefix)
    supported = ", ".join(available_channels())
    raise ValueError(f"Unsupported delivery channel: {cfg.name}. Supported: {supported}")
