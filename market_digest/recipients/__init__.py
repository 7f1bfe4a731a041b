"""Recipient store and topic resolution."""

from .base import RecipientSource
from .yaml_store import YamlRecipientStore

__all__ = ["RecipientSource", "YamlRecipientStore"]
