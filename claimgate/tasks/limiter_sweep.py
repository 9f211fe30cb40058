"""
Rate Limiter Sweep Task

Periodically evicts expired rate-limit windows so the in-memory map only
holds keys seen within the last window.
"""

import asyncio
import logging
import traceback

from claimgate.config import RATE_LIMIT_SWEEP_SECONDS

logger = logging.getLogger(__name__)


async def rate_limiter_sweep_task(limiter, interval_seconds: float = RATE_LIMIT_SWEEP_SECONDS):
    """Runs until cancelled (gateway shutdown)."""
    print("🚀 Rate limiter sweep task started")

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = limiter.sweep()
            if removed:
                logger.info(f"🧹 Rate limiter sweep removed {removed} expired entries")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"❌ Rate limiter sweep error: {e}")
            traceback.print_exc()
            await asyncio.sleep(60)  # Wait 1 minute before retry
