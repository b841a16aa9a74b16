"""
Supabase client access.

This module owns the database connection setup and the single place where
store calls are executed and their failures translated into domain errors.
Repository modules call `get_client()` at call time, so tests can install a
stand-in with `set_client()`.

Environment variables required (see config.settings):
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional

import httpx
from postgrest.exceptions import APIError

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from config.settings import get_settings
from domain.errors import StoreError, TransientIOError

logger = logging.getLogger(__name__)

_client: Optional[Any] = None
_client_lock = threading.Lock()


def get_client() -> Client:
    """Return the shared Supabase client, creating it on first use."""

    global _client
    if _client is not None:
        return _client

    with _client_lock:
        if _client is None:
            settings = get_settings()
            if not settings.supabase_url:
                raise RuntimeError(
                    "Missing environment variable: SUPABASE_URL. "
                    "Set SUPABASE_URL to your Supabase project URL."
                )
            if not settings.supabase_key:
                raise RuntimeError(
                    "Missing environment variable: SUPABASE_KEY. "
                    "Set SUPABASE_KEY to your Supabase API key."
                )
            _client = create_client(settings.supabase_url, settings.supabase_key)
    return _client


def set_client(client: Optional[Any]) -> None:
    """Replace the shared client (None resets to lazy creation)."""

    global _client
    with _client_lock:
        _client = client


def _is_transient_api_error(error: APIError) -> bool:
    # PostgREST errors carry either a Postgres SQLSTATE or an HTTP-ish code.
    # Connection class 08xxx, 5xx gateway codes and unknown codes are retryable.
    code = str(getattr(error, "code", "") or "")
    if not code:
        return True
    if code.startswith("08") or code in ("57P01", "57P03", "53300"):
        return True
    return code.isdigit() and len(code) == 3 and code.startswith("5")


def execute(query: Any, action: str) -> List[dict]:
    """
    Execute a built PostgREST query and return its rows.

    Raises:
        TransientIOError: the store could not be reached or answered with a
            retryable error.
        StoreError: the store rejected the request.
    """

    try:
        response = query.execute()
    except APIError as exc:
        details = {"action": action, "code": getattr(exc, "code", None)}
        if _is_transient_api_error(exc):
            logger.warning("Transient store error during %s: %s", action, exc, extra=details)
            raise TransientIOError(f"Store unavailable while trying to {action}", details=details) from exc
        raise StoreError(f"Failed to {action}: {getattr(exc, 'message', None) or exc}", details=details) from exc
    except httpx.TransportError as exc:
        logger.warning("Store unreachable during %s: %s", action, exc, extra={"action": action})
        raise TransientIOError(f"Store unreachable while trying to {action}", details={"action": action}) from exc

    # Older postgrest-py builds report failures on the response instead of raising.
    error = getattr(response, "error", None)
    if error:
        raise StoreError(f"Failed to {action}: {error}", details={"action": action})

    return list(getattr(response, "data", None) or [])


__all__ = ["execute", "get_client", "set_client"]
