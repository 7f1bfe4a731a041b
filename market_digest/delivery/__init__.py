"""Digest delivery channels."""

from .base import Dispatcher
from .console import ConsoleDispatcher
from .factory import available_channels, create_dispatcher
from .message import build_message, digest_subject, formatted_today
from .smtp import SmtpDispatcher

__all__ = [
    "Dispatcher",
    "ConsoleDispatcher",
    "SmtpDispatcher",
    "available_channels",
    "create_dispatcher",
    "build_message",
    "digest_subject",
    "formatted_today",
]
