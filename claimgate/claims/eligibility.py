"""
Eligibility Oracle
==================

"Is this handle on the eligible list, and has it already completed a mint?"

Idempotent and side-effect-free. Re-invoked immediately before every
state-changing step to close check-then-act races.

Eligibility and whitelisting are independent axes: a record that is only
whitelisted (no token_id) does not make the handle ineligible.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from claimgate.models.claims import ClaimRecord
from claimgate.utils.handles import try_normalize_handle

logger = logging.getLogger(__name__)

REASON_INVALID_HANDLE = "invalid_handle"
REASON_NOT_ELIGIBLE = "not_eligible"
REASON_ALREADY_CLAIMED = "already_claimed"


@dataclass
class EligibilityResult:
    eligible: bool
    handle: Optional[str] = None
    reason: Optional[str] = None
    token_id: Optional[str] = None
    claimed_at: Optional[str] = None
    record: Optional[ClaimRecord] = None  # internal; never serialized

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"eligible": self.eligible, "handle": self.handle}
        if self.reason:
            body["reason"] = self.reason
        if self.token_id is not None:
            body["token_id"] = self.token_id
        if self.claimed_at is not None:
            body["claimed_at"] = self.claimed_at
        return body


class EligibilityOracle:
    def __init__(self, ledger):
        self.ledger = ledger

    async def check(self, raw_handle: Optional[str]) -> EligibilityResult:
        # Step 1: normalize
        handle = try_normalize_handle(raw_handle)
        if handle is None:
            return EligibilityResult(eligible=False, reason=REASON_INVALID_HANDLE)

        # Step 2: eligible-handle set
        if not await self.ledger.is_eligible_handle(handle):
            return EligibilityResult(eligible=False, handle=handle, reason=REASON_NOT_ELIGIBLE)

        # Step 3: already minted?
        record = await self.ledger.get_claim(handle)
        if record is not None and record.is_claimed:
            return EligibilityResult(
                eligible=False,
                handle=handle,
                reason=REASON_ALREADY_CLAIMED,
                token_id=record.token_id,
                claimed_at=record.claimed_at.isoformat() if record.claimed_at else None,
                record=record,
            )

        return EligibilityResult(eligible=True, handle=handle, record=record)
