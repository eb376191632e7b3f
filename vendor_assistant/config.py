"""
Centralized configuration with environment variable overrides.

Memory bounds, catalog paging, and collaborator retry settings are
configurable here. Nothing is hardcoded in workflow or store logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from vendor_assistant.logging_context import SessionIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class MemoryConfig:
    """Per-conversation memory bounds."""

    max_messages: int = _safe_int("MAX_HISTORY_MESSAGES", "100")
    max_entities: int = _safe_int("MAX_ENTITY_ITEMS", "500")
    history_limit: int = _safe_int("HISTORY_CONTEXT_LIMIT", "20")


@dataclass(frozen=True)
class CatalogConfig:
    """Catalog query defaults."""

    vendor_type: str = os.getenv("VENDOR_TYPE", "Food")
    vendor_limit: int = _safe_int("VENDOR_LIMIT", "50")
    service_page_size: int = _safe_int("SERVICE_PAGE_SIZE", "10")
    currency_symbol: str = os.getenv("CURRENCY_SYMBOL", "₹")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for classifier, catalog, and narrator calls."""

    max_retries: int = _safe_int("COLLABORATOR_MAX_RETRIES", "3")
    initial_delay_sec: float = _safe_float("COLLABORATOR_INITIAL_DELAY", "1.0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    memory: MemoryConfig = field(default_factory=MemoryConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    assistant_name: str = os.getenv("ASSISTANT_NAME", "vendor-assistant")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.memory.max_messages < 1:
        raise ValueError(
            f"MAX_HISTORY_MESSAGES must be >= 1, got {config.memory.max_messages}"
        )
    if config.memory.max_entities < 1:
        raise ValueError(
            f"MAX_ENTITY_ITEMS must be >= 1, got {config.memory.max_entities}"
        )
    if config.memory.history_limit < 0:
        raise ValueError(
            f"HISTORY_CONTEXT_LIMIT must be >= 0, got {config.memory.history_limit}"
        )
    if config.catalog.vendor_limit < 1:
        raise ValueError(
            f"VENDOR_LIMIT must be >= 1, got {config.catalog.vendor_limit}"
        )
    if config.catalog.service_page_size < 1:
        raise ValueError(
            f"SERVICE_PAGE_SIZE must be >= 1, got {config.catalog.service_page_size}"
        )
    if config.retry.max_retries < 0:
        raise ValueError(
            f"COLLABORATOR_MAX_RETRIES must be >= 0, got {config.retry.max_retries}"
        )
    if config.retry.initial_delay_sec < 0:
        raise ValueError(
            "COLLABORATOR_INITIAL_DELAY must be >= 0, "
            f"got {config.retry.initial_delay_sec}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
            handler.addFilter(SessionIdFilter())
    logger.info("Configuration loaded for '%s'", config.assistant_name)
    return config


# Singleton instance
settings = load_config()
