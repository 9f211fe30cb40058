"""
Claim Ledger (Supabase)
=======================

Data access for the two tables the claim engine owns:

- claim_records     one row per normalized handle (unique on `handle`)
- eligible_handles  append-only set of normalized handles (unique on `handle`)

CONSISTENCY MODEL:
- Status writes are conditional on the row being unchanged since it was
  read (insert-if-absent, else compare-and-set on status), so a concurrent
  write can never move a claimed row back.
- The terminal claim write is a compare-and-set
  (UPDATE ... WHERE handle = h AND token_id IS NULL AND status <> 'claimed');
  zero matched rows means somebody else finalized first.
- No in-process locks: requests for one handle may be served by different
  processes.
- Status moves are checked against the transition table before writing.

Every query runs under asyncio.wait_for; timeouts and data-store exceptions
become UpstreamError with a generic message (details are logged only).
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from claimgate.config import CLAIMS_TABLE, ELIGIBLE_HANDLES_TABLE, READ_TIMEOUT_SECONDS
from claimgate.db.client import get_async_write_client
from claimgate.errors import ClaimGatewayError, ConflictError, UpstreamError
from claimgate.models.claims import ClaimRecord, ClaimStatus, check_transition, utcnow

logger = logging.getLogger(__name__)

INGEST_BATCH_SIZE = 500
UPSERT_ATTEMPTS = 3


class SupabaseClaimLedger:
    def __init__(
        self,
        client_factory=get_async_write_client,
        timeout: float = READ_TIMEOUT_SECONDS,
        claims_table: str = CLAIMS_TABLE,
        handles_table: str = ELIGIBLE_HANDLES_TABLE,
    ):
        self._client_factory = client_factory
        self.timeout = timeout
        self.claims_table = claims_table
        self.handles_table = handles_table

    async def _execute(self, build_query, operation: str) -> List[Dict[str, Any]]:
        """
        Build a query against a fresh client handle and run it with a timeout.

        Args:
            build_query: callable(client) -> postgrest request builder
            operation: label for logs
        """
        try:
            client = await self._client_factory()
            response = await asyncio.wait_for(build_query(client).execute(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"❌ Ledger {operation} timed out after {self.timeout}s")
            raise UpstreamError("Database request timed out. Please try again.")
        except ClaimGatewayError:
            raise
        except Exception as e:
            logger.error(f"❌ Ledger {operation} failed: {e}")
            raise UpstreamError("Database error. Please try again.")
        return response.data or []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_claim(self, handle: str) -> Optional[ClaimRecord]:
        rows = await self._execute(
            lambda c: c.table(self.claims_table).select("*").eq("handle", handle).limit(1),
            "get_claim",
        )
        return ClaimRecord.from_row(rows[0]) if rows else None

    async def is_eligible_handle(self, handle: str) -> bool:
        rows = await self._execute(
            lambda c: c.table(self.handles_table).select("handle").eq("handle", handle).limit(1),
            "is_eligible_handle",
        )
        return bool(rows)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_claim(self, handle: str, status: ClaimStatus, **fields) -> ClaimRecord:
        """
        Move the claim row for `handle` into `status`, creating it if absent.

        The transition is checked against the row as read, and the write only
        lands if that row is unchanged:
        - no row: insert, ignoring a row created concurrently
        - existing row: UPDATE ... WHERE handle = h AND status = <read status>
          AND token_id IS NULL AND status <> 'claimed'
        Zero matched rows means the row moved underneath us; it is re-read and
        the transition re-checked, so a finalized claim is never overwritten.

        `whitelisted_at` is only ever set once; an existing value is kept.

        Raises:
            ConflictError: the current status may not move to `status`, or
                the row kept changing for every attempt.
            UpstreamError: data store failure.
        """
        for _ in range(UPSERT_ATTEMPTS):
            current = await self.get_claim(handle)
            check_transition(current.status if current else None, status)

            values = dict(fields)
            if current is not None and current.whitelisted_at is not None:
                values.pop("whitelisted_at", None)

            row: Dict[str, Any] = {
                "handle": handle,
                "status": status.value,
                "updated_at": utcnow().isoformat(),
            }
            for key, value in values.items():
                row[key] = value.isoformat() if isinstance(value, datetime) else value

            if current is None:
                rows = await self._execute(
                    lambda c: c.table(self.claims_table).upsert(
                        row, on_conflict="handle", ignore_duplicates=True
                    ),
                    "insert_claim",
                )
            else:
                expected = current.status.value
                rows = await self._execute(
                    lambda c: (
                        c.table(self.claims_table)
                        .update(row)
                        .eq("handle", handle)
                        .eq("status", expected)
                        .is_("token_id", "null")
                        .neq("status", ClaimStatus.CLAIMED.value)
                    ),
                    "update_claim",
                )
            if rows:
                return ClaimRecord.from_row(rows[0])

            logger.info(f"ℹ️  Claim row for @{handle} changed during write, re-reading")

        raise ConflictError("Claim row changed concurrently. Please try again.", reason="concurrent_update")

    async def finalize_claim(
        self,
        current: ClaimRecord,
        token_id: Optional[str],
        mint_tx_ref: str,
        claimed_at: datetime,
    ) -> Optional[ClaimRecord]:
        """
        Compare-and-set the terminal claim write.

        Returns the finalized record, or None if the row was already
        finalized by a concurrent request (zero rows matched).
        """
        check_transition(current.status, ClaimStatus.CLAIMED)

        update = {
            "status": ClaimStatus.CLAIMED.value,
            "token_id": token_id,
            "mint_tx_ref": mint_tx_ref,
            "claimed_at": claimed_at.isoformat(),
            "updated_at": utcnow().isoformat(),
        }
        rows = await self._execute(
            lambda c: (
                c.table(self.claims_table)
                .update(update)
                .eq("handle", current.handle)
                .is_("token_id", "null")
                .neq("status", ClaimStatus.CLAIMED.value)
            ),
            "finalize_claim",
        )
        if not rows:
            return None
        return ClaimRecord.from_row(rows[0])

    async def add_eligible_handles(self, handles: Iterable[str]) -> int:
        """
        Insert normalized handles, ignoring ones already present.

        Returns the number of handles submitted.
        """
        handles = list(handles)
        for start in range(0, len(handles), INGEST_BATCH_SIZE):
            batch = [{"handle": h} for h in handles[start:start + INGEST_BATCH_SIZE]]
            await self._execute(
                lambda c, batch=batch: c.table(self.handles_table).upsert(
                    batch, on_conflict="handle", ignore_duplicates=True
                ),
                "add_eligible_handles",
            )
            logger.info(f"✅ Ingested batch of {len(batch)} eligible handles")
        return len(handles)
