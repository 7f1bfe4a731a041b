"""
Shared utility functions.

This package contains utility code used across multiple
pipeline stages.
"""

from .logging import (
    JsonlFormatter,
    log_event,
    redact_secrets,
    redact_text,
    setup_llm_logger,
    setup_logging,
    truncate_text,
)

__all__ = [
    "setup_logging",
    "setup_llm_logger",
    "log_event",
    "redact_secrets",
    "redact_text",
    "truncate_text",
    "JsonlFormatter",
]
