"""
Whitelist Orchestrator
======================

Decides whether an authenticated, eligible identity may have a
signature-verified wallet whitelisted on-chain, and reconciles the outcome
into the claim ledger.

Flow (short-circuits on the first failure):
1. Rate limit (caller key)
2. Authenticate + eligibility of the provider-issued handle
3. Wallet address grammar
4. Signature freshness, then signer recovery
5. On-chain hasMinted(wallet) - the chain is the final authority
6. Re-read the ledger row: wallet mismatch / already claimed / fast path
7. Whitelisting action, outcome upserted as whitelisted or whitelist_failed

Two concurrent requests for one handle may both reach step 7; the second
on-chain call answers "already whitelisted", which counts as success.
"""

import logging
from typing import Any, Callable, Dict, Optional

from claimgate.claims.eligibility import (
    REASON_ALREADY_CLAIMED,
    REASON_INVALID_HANDLE,
    REASON_NOT_ELIGIBLE,
    EligibilityOracle,
    EligibilityResult,
)
from claimgate.errors import (
    AuthError,
    ClaimGatewayError,
    ConflictError,
    UpstreamError,
    ValidationError,
)
from claimgate.models.claims import ClaimRecord, ClaimStatus, is_transition_allowed, utcnow
from claimgate.utils.rate_limiter import enforce_rate_limit
from claimgate.utils.signature import is_fresh, verify_wallet_signature
from claimgate.utils.validation import checksum_address, is_valid_address, same_address

logger = logging.getLogger(__name__)


def raise_for_eligibility(result: EligibilityResult):
    """Map an ineligible result onto the error taxonomy."""
    if result.eligible:
        return
    if result.reason == REASON_INVALID_HANDLE:
        raise ValidationError("Invalid X handle format", reason=REASON_INVALID_HANDLE)
    if result.reason == REASON_ALREADY_CLAIMED:
        raise ConflictError(
            "Your X account has already claimed an NFT",
            reason=REASON_ALREADY_CLAIMED,
            extra={"token_id": result.token_id},
        )
    raise AuthError(
        "Your X account is not eligible for whitelisting",
        reason=REASON_NOT_ELIGIBLE,
        forbidden=True,
    )


class WhitelistOrchestrator:
    def __init__(
        self,
        limiter,
        identity_provider,
        ledger,
        chain,
        whitelist_service,
        oracle: Optional[EligibilityOracle] = None,
        clock_ms: Optional[Callable[[], int]] = None,
    ):
        self.limiter = limiter
        self.identity_provider = identity_provider
        self.ledger = ledger
        self.chain = chain
        self.whitelist_service = whitelist_service
        self.oracle = oracle or EligibilityOracle(ledger)
        self._clock_ms = clock_ms

    def _now_ms(self) -> Optional[int]:
        return self._clock_ms() if self._clock_ms else None

    async def request_whitelist(
        self,
        caller_key: str,
        authorization: Optional[str],
        wallet_address: Optional[str],
        signature: Optional[str],
        message: Optional[str],
    ) -> Dict[str, Any]:
        # ========================================
        # Step 1: Rate limit
        # ========================================
        enforce_rate_limit(self.limiter, "whitelist", caller_key)

        # ========================================
        # Step 2: Authenticate + eligibility
        # ========================================
        identity = await self.identity_provider.authenticate(authorization)
        eligibility = await self.oracle.check(identity.handle)
        raise_for_eligibility(eligibility)
        handle = eligibility.handle

        # ========================================
        # Step 3: Wallet address
        # ========================================
        if not wallet_address:
            raise ValidationError("Wallet address is required", reason="missing_wallet_address")
        address = checksum_address(wallet_address)

        # ========================================
        # Step 4: Signature freshness, then signer
        # ========================================
        if not is_fresh(message, now_ms=self._now_ms()):
            raise ValidationError("Signature expired. Please sign again.", reason="signature_expired")
        if not verify_wallet_signature(address, message, signature):
            logger.warning(f"⚠️  Signature mismatch for @{handle} / {address}")
            raise AuthError(
                "Invalid signature. Please sign the message with your wallet.",
                reason="invalid_signature",
                forbidden=True,
            )

        # ========================================
        # Step 5: Already minted on-chain?
        # ========================================
        try:
            minted = await self.chain.has_minted(address)
        except UpstreamError:
            # Contract enforces one mint per wallet anyway
            logger.warning(f"⚠️  hasMinted check failed for {address}, continuing")
            minted = False
        if minted:
            raise ConflictError(
                "This wallet has already minted an NFT. Each wallet can only mint once.",
                reason="already_minted",
            )

        # ========================================
        # Step 6: Reconcile with the ledger row
        # ========================================
        record = await self.ledger.get_claim(handle)
        if record is not None:
            if record.wallet_address and not same_address(record.wallet_address, address):
                logger.warning(f"⚠️  @{handle} tried to switch wallets: {record.wallet_address} -> {address}")
                raise ConflictError(
                    "You have already whitelisted a different wallet address. "
                    "Please use the same wallet you whitelisted previously.",
                    reason="wallet_mismatch",
                )
            if record.is_claimed:
                raise ConflictError(
                    "Your X account has already claimed an NFT",
                    reason=REASON_ALREADY_CLAIMED,
                    extra={"token_id": record.token_id},
                )
            if record.whitelist_tx_ref:
                return await self._confirm_whitelisted(handle, identity.user_id, address)
            if record.wallet_address:
                already = await self.whitelist_service.status(address)
                if already:
                    return await self._confirm_whitelisted(handle, identity.user_id, address)

        # ========================================
        # Step 7: Whitelisting action
        # ========================================
        outcome = await self.whitelist_service.whitelist(address)

        if not outcome.success:
            await self._record_failure(handle, identity.user_id, address, record, outcome.error)
            raise UpstreamError("Failed to prepare wallet. Please try again.", reason="whitelist_failed")

        fields = {
            "identity_id": identity.user_id,
            "wallet_address": address,
            "whitelisted_at": utcnow(),
            "error_message": None,
        }
        if outcome.tx_ref:
            fields["whitelist_tx_ref"] = outcome.tx_ref
        try:
            await self.ledger.upsert_claim(handle, ClaimStatus.WHITELISTED, **fields)
            logger.info(f"✅ Whitelisted @{handle}: wallet={address} tx={outcome.tx_ref}")
        except (UpstreamError, ConflictError) as e:
            # On-chain whitelisting already happened; the next call reconciles
            logger.error(f"❌ Ledger write failed after whitelisting @{handle} ({address}): {e.reason}")

        return {
            "success": True,
            "alreadyWhitelisted": outcome.already_whitelisted,
            "address": address,
            "message": "Wallet is already whitelisted" if outcome.already_whitelisted else "Wallet whitelisted",
        }

    async def _confirm_whitelisted(self, handle: str, identity_id: str, address: str) -> Dict[str, Any]:
        """Idempotent fast path: no on-chain call, just confirm the row."""
        await self.ledger.upsert_claim(
            handle,
            ClaimStatus.WHITELISTED,
            identity_id=identity_id,
            wallet_address=address,
            whitelisted_at=utcnow(),
        )
        logger.info(f"ℹ️  @{handle} already whitelisted ({address}), skipped on-chain call")
        return {
            "success": True,
            "alreadyWhitelisted": True,
            "address": address,
            "message": "Wallet is already whitelisted",
        }

    async def _record_failure(
        self,
        handle: str,
        identity_id: str,
        address: str,
        record: Optional[ClaimRecord],
        error: Optional[str],
    ):
        current = record.status if record else None
        if not is_transition_allowed(current, ClaimStatus.WHITELIST_FAILED):
            logger.warning(f"⚠️  Whitelisting @{handle} failed, keeping status {current.value}: {error}")
            return
        try:
            await self.ledger.upsert_claim(
                handle,
                ClaimStatus.WHITELIST_FAILED,
                identity_id=identity_id,
                wallet_address=address,
                error_message=error or "Failed to prepare wallet",
            )
        except ClaimGatewayError as e:
            logger.error(f"❌ Could not record whitelist failure for @{handle}: {e.message}")
        logger.error(f"❌ Whitelisting failed for @{handle} ({address}): {error}")

    async def whitelist_status(self, caller_key: str, address: Optional[str]) -> Dict[str, Any]:
        """
        Whitelist status for GET /whitelist?address=.

        Every failure except rate limiting degrades to {whitelisted: false}.
        """
        enforce_rate_limit(self.limiter, "status", caller_key)

        if not is_valid_address(address):
            return {"whitelisted": False, "address": address}
        address = checksum_address(address)

        whitelisted = await self.whitelist_service.status(address)
        if whitelisted is None:
            try:
                whitelisted = await self.chain.is_whitelisted(address)
            except ClaimGatewayError as e:
                logger.warning(f"⚠️  Whitelist status unknown for {address}: {e.message}")
                whitelisted = False
        return {"whitelisted": bool(whitelisted), "address": address}
