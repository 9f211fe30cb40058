"""
Claim Recorder
==============

Finalizes the ledger row for an identity after a completed mint.

Once this is reached the mint is irreversible on-chain, so:
- a retry of a call that already succeeded resolves to 409 already_recorded
  (success-equivalent, the stored claim is returned in the body)
- any persistence failure is reported as RecoverableClaimError, telling the
  caller the mint succeeded and only the bookkeeping must be retried with
  the same tx_ref
"""

import logging
from typing import Any, Dict, Optional, Union

from claimgate.claims.eligibility import REASON_ALREADY_CLAIMED, EligibilityOracle
from claimgate.claims.orchestrator import raise_for_eligibility
from claimgate.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    RecoverableClaimError,
    UpstreamError,
    ValidationError,
)
from claimgate.models.claims import ClaimRecord, utcnow
from claimgate.utils.rate_limiter import enforce_rate_limit
from claimgate.utils.validation import (
    checksum_address,
    same_address,
    validate_token_id,
    validate_tx_ref,
)

logger = logging.getLogger(__name__)


def _already_recorded(record: ClaimRecord) -> ConflictError:
    return ConflictError(
        "Claim already recorded",
        reason="already_recorded",
        extra={"claim": record.public_dict()},
    )


class ClaimRecorder:
    def __init__(self, limiter, identity_provider, ledger, oracle: Optional[EligibilityOracle] = None):
        self.limiter = limiter
        self.identity_provider = identity_provider
        self.ledger = ledger
        self.oracle = oracle or EligibilityOracle(ledger)

    async def record_claim(
        self,
        caller_key: str,
        authorization: Optional[str],
        wallet_address: Optional[str],
        tx_ref: Optional[str],
        token_id: Union[str, int, None] = None,
    ) -> Dict[str, Any]:
        enforce_rate_limit(self.limiter, "claim", caller_key)

        # Input grammar, all before any ledger access
        tx_ref = validate_tx_ref(tx_ref)
        if not wallet_address:
            raise ValidationError("Wallet address is required", reason="missing_wallet_address")
        address = checksum_address(wallet_address)
        token_id = validate_token_id(token_id)

        identity = await self.identity_provider.authenticate(authorization)

        # From here on the mint has happened; data-store failures are recoverable
        try:
            return await self._record(identity, address, tx_ref, token_id)
        except UpstreamError as e:
            logger.error(f"❌ Claim recording failed for @{identity.handle} tx={tx_ref}: {e.message}")
            raise RecoverableClaimError(tx_ref, token_id)

    async def _record(self, identity, address: str, tx_ref: str, token_id: Optional[str]) -> Dict[str, Any]:
        # 1. Eligibility, or this identity's own finished claim
        eligibility = await self.oracle.check(identity.handle)
        if eligibility.reason == REASON_ALREADY_CLAIMED:
            owner = eligibility.record.identity_id if eligibility.record else None
            if owner and owner != identity.user_id:
                logger.warning(f"⚠️  @{eligibility.handle} claimed by another identity, rejecting {identity.user_id}")
                raise AuthError(
                    "This X account's NFT was claimed by a different user",
                    reason="claimed_by_other",
                    forbidden=True,
                )
        else:
            raise_for_eligibility(eligibility)
        handle = eligibility.handle

        # Re-read immediately before deciding
        record = await self.ledger.get_claim(handle)
        if record is None:
            raise NotFoundError(
                "No whitelist record found. Please prepare your wallet first.",
                reason="no_whitelist_record",
            )

        # 2. Wallet must match the whitelisted one
        if record.wallet_address and not same_address(record.wallet_address, address):
            raise AuthError(
                "Wallet address does not match the whitelisted wallet",
                reason="wallet_mismatch",
                forbidden=True,
            )

        # 3. Idempotent replay
        if record.is_claimed:
            raise _already_recorded(record)

        # 4. Terminal compare-and-set write
        claimed_at = utcnow()
        if record.whitelisted_at is not None and record.whitelisted_at > claimed_at:
            claimed_at = record.whitelisted_at

        finalized = await self.ledger.finalize_claim(record, token_id, tx_ref, claimed_at)
        if finalized is None:
            # Lost the race: someone finalized between our read and write
            current = await self.ledger.get_claim(handle)
            if current is not None and current.is_claimed:
                raise _already_recorded(current)
            raise UpstreamError("Claim row changed during recording")

        logger.info(f"✅ Claim recorded for @{handle}: token={token_id} tx={tx_ref}")
        await self._verify_recorded(handle, token_id)

        return {
            "success": True,
            "message": "Claim recorded successfully",
            "claim": finalized.public_dict(),
        }

    async def _verify_recorded(self, handle: str, token_id: Optional[str]):
        """Post-write eligibility check; a mismatch is logged for operators."""
        try:
            after = await self.oracle.check(handle)
        except UpstreamError:
            logger.warning(f"⚠️  Post-claim eligibility check unavailable for @{handle}")
            return
        if after.reason != REASON_ALREADY_CLAIMED or after.token_id != token_id:
            logger.warning(
                f"⚠️  Post-claim check mismatch for @{handle}: "
                f"reason={after.reason} token={after.token_id} expected={token_id}"
            )
