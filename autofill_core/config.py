#!/usr/bin/env python3
"""
Runtime configuration.

Values come from the environment (and an optional ``.env`` file loaded with
python-dotenv). Credentials are resolved once per operation and treated as
read-only by the rest of the package.

Usage:
    config = Config.from_env()
    credentials = config.credentials()
    credentials.validate()
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_API_BASE = "https://api.openai.com/v1"

_TRUTHY = ("1", "true", "yes")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class Credentials:
    """API key, document store and model for one operation."""

    api_key: str
    document_store_id: str
    model: str = DEFAULT_MODEL

    def __repr__(self) -> str:
        masked = f"...{self.api_key[-4:]}" if len(self.api_key) > 8 else "***"
        return (
            f"Credentials(api_key={masked!r}, document_store_id={self.document_store_id!r}, "
            f"model={self.model!r})"
        )

    def validate(self) -> "Credentials":
        """Raise ConfigurationError when a required value is missing."""
        if not (self.api_key or "").strip():
            raise ConfigurationError("API key is missing. Set AUTOFILL_API_KEY or OPENAI_API_KEY.")
        if not (self.document_store_id or "").strip():
            raise ConfigurationError(
                "Document store ID is missing. Set AUTOFILL_DOCUMENT_STORE_ID."
            )
        return self

    def normalized(self) -> "Credentials":
        return Credentials(
            api_key=(self.api_key or "").strip(),
            document_store_id=(self.document_store_id or "").strip(),
            model=(self.model or "").strip() or DEFAULT_MODEL,
        )


@dataclass
class Config:
    """Application configuration"""

    api_key: str = ""
    document_store_id: str = ""
    model: str = DEFAULT_MODEL
    api_base: str = DEFAULT_API_BASE
    batch_size: int = 4
    concurrency: int = 2
    max_attempts: int = 3
    request_timeout: float = 35.0
    hover_debounce_ms: int = 600
    headless: bool = False
    debug: bool = False

    def __post_init__(self):
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")
        if self.concurrency < 1:
            raise ConfigurationError("concurrency must be at least 1")
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Config":
        """
        Create Config from environment variables.

        Reads:
            AUTOFILL_API_KEY (falls back to OPENAI_API_KEY)
            AUTOFILL_DOCUMENT_STORE_ID (falls back to OPENAI_VECTOR_STORE_ID)
            AUTOFILL_MODEL, AUTOFILL_API_BASE
            AUTOFILL_BATCH_SIZE, AUTOFILL_CONCURRENCY, AUTOFILL_MAX_ATTEMPTS
            AUTOFILL_REQUEST_TIMEOUT, AUTOFILL_HOVER_DEBOUNCE_MS
            AUTOFILL_HEADLESS, AUTOFILL_DEBUG
        """
        load_dotenv(dotenv_path)

        return cls(
            api_key=os.getenv("AUTOFILL_API_KEY") or os.getenv("OPENAI_API_KEY") or "",
            document_store_id=(
                os.getenv("AUTOFILL_DOCUMENT_STORE_ID") or os.getenv("OPENAI_VECTOR_STORE_ID") or ""
            ),
            model=os.getenv("AUTOFILL_MODEL") or DEFAULT_MODEL,
            api_base=(os.getenv("AUTOFILL_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            batch_size=_env_int("AUTOFILL_BATCH_SIZE", 4),
            concurrency=_env_int("AUTOFILL_CONCURRENCY", 2),
            max_attempts=_env_int("AUTOFILL_MAX_ATTEMPTS", 3),
            request_timeout=_env_float("AUTOFILL_REQUEST_TIMEOUT", 35.0),
            hover_debounce_ms=_env_int("AUTOFILL_HOVER_DEBOUNCE_MS", 600),
            headless=_env_bool("AUTOFILL_HEADLESS"),
            debug=_env_bool("AUTOFILL_DEBUG"),
        )

    def credentials(self) -> Credentials:
        """Snapshot of the credentials; not validated."""
        return Credentials(
            api_key=self.api_key,
            document_store_id=self.document_store_id,
            model=self.model,
        ).normalized()
