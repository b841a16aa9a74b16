"""
Application settings.

Values come from environment variables, optionally loaded from a `.env` file
at the project root. Nothing here talks to the network.

Environment variables:
- SUPABASE_URL / SUPABASE_KEY: Supabase project URL and server-side API key
- SALES_IO_RETRY_ATTEMPTS: attempts for retryable store reads (default 3)
- SALES_IO_RETRY_WAIT_SECONDS: base backoff between read attempts (default 0.5)
- SALES_STOCK_UPDATE_ATTEMPTS: compare-and-set attempts per stock update (default 5)
- SALES_CURRENCY: currency code printed on receipts (default KES)
- SALES_LOG_LEVEL: root log level (default INFO)
- INFOBIP_BASE_URL / INFOBIP_API_KEY: SMS receipt provider (receipts disabled if unset)
- RECEIPT_SENDER_ID: SMS sender name (default SMEReceipt)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise RuntimeError(f"Environment variable {name} must be >= 1, got {value}")
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be a number, got {raw!r}") from None
    if value < 0:
        raise RuntimeError(f"Environment variable {name} must be >= 0, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration snapshot."""

    supabase_url: Optional[str]
    supabase_key: Optional[str]
    io_retry_attempts: int = 3
    io_retry_wait_seconds: float = 0.5
    stock_update_attempts: int = 5
    currency: str = "KES"
    log_level: str = "INFO"
    infobip_base_url: Optional[str] = None
    infobip_api_key: Optional[str] = None
    receipt_sender_id: str = "SMEReceipt"

    @property
    def receipts_enabled(self) -> bool:
        return bool(self.infobip_base_url and self.infobip_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Read settings from the environment once and cache them.

    Call `get_settings.cache_clear()` after changing the environment (tests do).
    """

    return Settings(
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        io_retry_attempts=_int_env("SALES_IO_RETRY_ATTEMPTS", 3),
        io_retry_wait_seconds=_float_env("SALES_IO_RETRY_WAIT_SECONDS", 0.5),
        stock_update_attempts=_int_env("SALES_STOCK_UPDATE_ATTEMPTS", 5),
        currency=os.getenv("SALES_CURRENCY", "KES"),
        log_level=os.getenv("SALES_LOG_LEVEL", "INFO").upper(),
        infobip_base_url=os.getenv("INFOBIP_BASE_URL") or None,
        infobip_api_key=os.getenv("INFOBIP_API_KEY") or None,
        receipt_sender_id=os.getenv("RECEIPT_SENDER_ID", "SMEReceipt"),
    )


__all__ = ["Settings", "get_settings"]
