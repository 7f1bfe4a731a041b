"""
Exception hierarchy for the market digest pipeline.

Upstream, inference, delivery and timeout errors are recorded per recipient
and absorbed at the batch boundary; only `RecipientSourceError` reaches the
caller of a batch run.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from .core.types import BatchResult


class DigestError(Exception):
    """Base exception for all market digest errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigError(DigestError):
    """Configuration is missing or invalid."""


class UpstreamError(DigestError):
    """Market-data provider returned a non-success response.

    `status` is None when the request failed before a response arrived.
    """

    def __init__(self, status: int | None, endpoint: str, detail: str | None = None):
        message = f"Upstream error on {endpoint}: status={status}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, context={"status": status, "endpoint": endpoint})
        self.status = status
        self.endpoint = endpoint


class FetchTimeoutError(UpstreamError, TimeoutError):
    """Market-data request exceeded its deadline."""

    def __init__(self, endpoint: str, timeout_seconds: float):
        super().__init__(None, endpoint, detail=f"timed out after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class ValidationError(DigestError):
    """Provider record is malformed. Filtered locally, never raised to callers."""


class InferenceError(DigestError):
    """Summarization provider failed or returned an unusable response."""


class DeliveryError(DigestError):
    """Dispatch of a rendered digest failed."""


class PhaseTimeoutError(DigestError, TimeoutError):
    """A batch phase exceeded its per-recipient deadline."""

    def __init__(self, phase: str, recipient_id: str, timeout_seconds: float):
        super().__init__(
            f"{phase} for {recipient_id} timed out after {timeout_seconds}s",
            context={"phase": phase, "recipient_id": recipient_id},
        )
        self.phase = phase
        self.timeout_seconds = timeout_seconds


class RecipientSourceError(DigestError):
    """The recipient list could not be obtained; the batch did not start."""

    def __init__(self, message: str, result: BatchResult | None = None):
        super().__init__(message)
        self.result = result
