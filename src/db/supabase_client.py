from __future__ import annotations

import random
import time
from typing import Any, Optional

import httpx
from supabase import Client, create_client

from ..config import Settings


def get_supabase_client(settings: Optional[Settings] = None) -> Client:
    settings = settings or Settings.from_env()
    settings.require("supabase_url", "supabase_service_role_key")
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def execute_with_retry(rb: Any, *, tries: int = 6, base_sleep: float = 0.5):
    """
    Supabase/PostgREST calls can occasionally drop HTTP/2 connections under load.
    Wrap .execute() with retry + exponential backoff.
    """
    last = None
    for attempt in range(tries):
        try:
            return rb.execute()
        except (
            httpx.RemoteProtocolError,
            httpx.ReadTimeout,
            httpx.ConnectError,
            httpx.WriteError,
        ) as e:
            last = e
            sleep = base_sleep * (2 ** attempt) + random.random() * 0.25
            print(
                f"[supabase] transient http error: {type(e).__name__} "
                f"attempt={attempt+1}/{tries} sleep={sleep:.2f}s"
            )
            time.sleep(sleep)
    raise last  # type: ignore[misc]
