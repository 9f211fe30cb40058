"""
Supabase Client Management
==========================

Read/write client separation for Supabase.

SECURITY PRINCIPLE (Least Privilege):
- Session checks use the ANON key (auth.get_user works with it)
- Ledger reads and writes use the SERVICE_ROLE key (claim rows are not
  exposed through RLS; the gateway is the only writer)

Both clients are async so a slow Supabase response never blocks the event
loop for other requests.
"""

import asyncio
import logging
from typing import Optional

from supabase import AsyncClient, create_async_client

from claimgate.config import (
    SUPABASE_ANON_KEY,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)

logger = logging.getLogger(__name__)

# ============================================================
# Async Singleton Clients (lazily initialized)
# ============================================================
_async_read_client: Optional[AsyncClient] = None
_async_write_client: Optional[AsyncClient] = None
_async_lock = asyncio.Lock()


async def get_async_read_client() -> AsyncClient:
    """
    Async Supabase client for session checks (ANON key, SERVICE_ROLE fallback).
    """
    global _async_read_client

    if _async_read_client is not None:
        return _async_read_client

    async with _async_lock:
        if _async_read_client is not None:
            return _async_read_client

        if not SUPABASE_URL:
            raise RuntimeError("SUPABASE_URL not configured")

        if not SUPABASE_ANON_KEY:
            logger.warning("⚠️ SUPABASE_ANON_KEY not configured - using SERVICE_ROLE_KEY for auth checks")
            if not SUPABASE_SERVICE_ROLE_KEY:
                raise RuntimeError("No Supabase key configured")
            _async_read_client = await create_async_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
        else:
            _async_read_client = await create_async_client(SUPABASE_URL, SUPABASE_ANON_KEY)
            logger.info("✅ Async Supabase READ client initialized (ANON_KEY)")

        return _async_read_client


async def get_async_write_client() -> AsyncClient:
    """Async Supabase client for the claim ledger (SERVICE_ROLE key)."""
    global _async_write_client

    if _async_write_client is not None:
        return _async_write_client

    async with _async_lock:
        if _async_write_client is not None:
            return _async_write_client

        if not SUPABASE_URL:
            raise RuntimeError("SUPABASE_URL not configured")

        if not SUPABASE_SERVICE_ROLE_KEY:
            raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY not configured")

        _async_write_client = await create_async_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
        logger.info("✅ Async Supabase WRITE client initialized (SERVICE_ROLE_KEY)")

        return _async_write_client


def reset_clients():
    """Drop cached clients (tests, key rotation)."""
    global _async_read_client, _async_write_client
    _async_read_client = None
    _async_write_client = None
