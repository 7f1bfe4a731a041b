"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- MarketDataConfig: News provider endpoint, credentials and response bounds
- NewsConfig: Round-robin aggregation settings
- BatchConfig: Worker pool, deadlines and retries of the digest batch
- ProviderConfig: LLM summarization provider settings
- DeliveryConfig: Digest delivery channel settings
- RecipientsConfig: Location of the recipient store
- ScheduleConfig: Daily trigger time
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
import os
from typing import Any

import yaml

from .errors import ConfigError


@dataclass
class MarketDataConfig:
    """Configuration for the market-data news provider.

    Attributes:
        base_url: Provider API base URL
        api_key: Optional inline API key (overrides env var)
        api_key_env: Environment variable name containing the API key
        timeout_seconds: Deadline for every provider request
        trust_env: Whether to respect system proxy settings
        max_response_items: Provider responses are truncated to this many records
        general_cache_ttl_seconds: Reuse window for the general news feed
        general_category: Category requested on the general news endpoint
    """

    base_url: str = "https://finnhub.io/api/v1"
    api_key: str | None = None
    api_key_env: str = "FINNHUB_API_KEY"
    timeout_seconds: float = 10.0
    trust_env: bool = True
    max_response_items: int = 100
    general_cache_ttl_seconds: int = 300
    general_category: str = "general"


@dataclass
class NewsConfig:
    """Configuration for round-robin news aggregation.

    Attributes:
        window_days: Length of the topic news date window, ending today
        max_articles: Maximum articles per batch
        max_rounds: Maximum round-robin rounds
        symbol_retries: Retries of a failed per-symbol fetch within a round.
            Retries share the max_rounds x symbols call budget.
        fallback_to_general: Use the general feed when topic fetches yield nothing
        topic_summary_chars: Summary length cap for topic news
        general_summary_chars: Summary length cap for general news
    """

    window_days: int = 5
    max_articles: int = 6
    max_rounds: int = 6
    symbol_retries: int = 0
    fallback_to_general: bool = True
    topic_summary_chars: int = 200
    general_summary_chars: int = 150


@dataclass
class BatchConfig:
    """Configuration for the per-recipient digest batch.

    Attributes:
        concurrency: Worker pool size for each phase
        phase_timeout_seconds: Deadline for one recipient in one phase
        fetch_retries: Retries of the fetch phase per recipient
        summarize_retries: Retries of the summarize phase per recipient
        dispatch_retries: Retries of the dispatch phase per recipient
        retry_backoff_seconds: Linear backoff step between retries
    """

    concurrency: int = 4
    phase_timeout_seconds: float = 120.0
    fetch_retries: int = 0
    summarize_retries: int = 1
    dispatch_retries: int = 1
    retry_backoff_seconds: float = 0.5


@dataclass
class ProviderConfig:
    """Configuration for the LLM summarization provider.

    Attributes:
        name: Provider name ("gemini", "openai" or "openai_compatible")
        model: Model identifier
        base_url: Base URL for the provider API
        api_key: Optional inline API key (overrides env var)
        api_key_env: Environment variable name containing the API key
        timeout_seconds: Request timeout
        temperature: Sampling temperature
        max_output_tokens: Response size cap
        trust_env: Whether to respect system proxy settings for API requests
    """

    name: str = "gemini"
    model: str = "gemini-2.5-flash-lite"
    base_url: str = "https://generativelanguage.googleapis.com"
    api_key: str | None = None
    api_key_env: str | None = None
    timeout_seconds: float = 30.0
    temperature: float = 0.3
    max_output_tokens: int = 2048
    trust_env: bool = True


@dataclass
class DeliveryConfig:
    """Configuration for digest delivery.

    Attributes:
        name: Channel name ("smtp" or "console")
        smtp_host: SMTP server host
        smtp_port: SMTP port; 465 uses implicit TLS, anything else STARTTLS
        smtp_user: SMTP login user
        smtp_password: Optional inline SMTP password (overrides env var)
        smtp_password_env: Environment variable name containing the SMTP password
        sender: From address; defaults to smtp_user
        subject_prefix: Subject line prefix of digest emails
        timeout_seconds: SMTP socket timeout
    """

    name: str = "smtp"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_password_env: str = "SMTP_PASS"
    sender: str | None = None
    subject_prefix: str = "Market News Summary Today"
    timeout_seconds: float = 30.0


@dataclass
class RecipientsConfig:
    """Configuration for the recipient store.

    Attributes:
        path: YAML file listing recipients and their topic symbols
    """

    path: str = "recipients.yaml"


@dataclass
class ScheduleConfig:
    """Configuration for the daily trigger.

    Attributes:
        time: Daily run time as HH:MM, UTC
    """

    time: str = "12:00"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        log_dir: Directory for log files
        filename: Name of the main log file
        llm_log_enabled: Whether to enable separate LLM interaction logging
        llm_log_detail: LLM log detail level ("response_only", "prompt_response")
        llm_log_redaction: Redaction mode for LLM logs ("none", "redact_content", "redact_urls_authors")
        llm_log_file: Name of the LLM log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    log_dir: str = "logs"
    filename: str = "digest.jsonl"
    llm_log_enabled: bool = False
    llm_log_detail: str = "response_only"
    llm_log_redaction: str = "redact_urls_authors"
    llm_log_file: str = "llm.jsonl"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        host: Langfuse host URL (optional)
        environment: Langfuse environment label (optional)
        release: Langfuse release identifier (optional)
        timeout_seconds: Timeout for Langfuse ingestion requests
        redaction: Redaction mode for prompt/response payloads
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    host: str | None = None
    environment: str | None = None
    release: str | None = None
    timeout_seconds: int = 30
    redaction: str = "redact_urls_authors"
    max_text_chars: int = 20000


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    news: NewsConfig = field(default_factory=NewsConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    recipients: RecipientsConfig = field(default_factory=RecipientsConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)


_SECTIONS: dict[str, type] = {f.name: f.default_factory for f in fields(AppConfig)}  # type: ignore[misc]


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig.

    Unknown sections and unknown keys inside a section are ignored so older
    config files keep loading.
    """
    data = asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if not isinstance(value, dict):
            raise ConfigError(f"Config section '{key}' must be a mapping")
        data[key].update(value)
    return _fromdict(data)


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    sections = {}
    for name, section_cls in _SECTIONS.items():
        known = {f.name for f in fields(section_cls)}
        values = {k: v for k, v in data.get(name, {}).items() if k in known}
        sections[name] = section_cls(**values)
    return AppConfig(**sections)


def get_api_key(cfg: ProviderConfig) -> str | None:
    """Get the LLM API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    if cfg.api_key_env:
        return os.getenv(cfg.api_key_env)
    defaults = {
        "gemini": "GEMINI_API_KEY",
        "openai": "OPENAI_API_KEY",
        "openai_compatible": "OPENAI_API_KEY",
        "openai-compatible": "OPENAI_API_KEY",
    }
    env_name = defaults.get(cfg.name.lower(), "OPENAI_API_KEY")
    return os.getenv(env_name)


def get_market_data_key(cfg: MarketDataConfig) -> str | None:
    """Get the market-data API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    return os.getenv(cfg.api_key_env)


def get_smtp_password(cfg: DeliveryConfig) -> str | None:
    """Get the SMTP password from inline config or environment variable."""
    if cfg.smtp_password:
        return cfg.smtp_password
    return os.getenv(cfg.smtp_password_env)
