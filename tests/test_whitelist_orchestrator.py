"""
Tests for the whitelist orchestrator.
"""

import pytest

from claimgate.errors import ClaimGatewayError, RateLimitError
from claimgate.models.claims import ClaimStatus
from claimgate.utils.whitelist_service import WhitelistOutcome, WhitelistServiceClient
from tests.conftest import WHITELIST_TX, now_ms

ALICE_AUTH = "Bearer alice-token"


@pytest.fixture
def orchestrator(services):
    return services.orchestrator


async def _request(orchestrator, wallet, auth=ALICE_AUTH, message=None, signature=None, caller="1.1.1.1"):
    if message is None:
        message, signature = wallet.signed_challenge(now_ms())
    return await orchestrator.request_whitelist(
        caller_key=caller,
        authorization=auth,
        wallet_address=wallet.address,
        signature=signature,
        message=message,
    )


async def _expect_error(coro, status_code, reason):
    with pytest.raises(ClaimGatewayError) as exc:
        await coro
    assert exc.value.status_code == status_code
    assert exc.value.reason == reason
    return exc.value


class TestHappyPath:
    """Successful and idempotent whitelisting."""

    @pytest.mark.asyncio
    async def test_first_whitelist(self, orchestrator, ledger, whitelist_service, alice_wallet):
        result = await _request(orchestrator, alice_wallet)

        assert result["success"] is True
        assert result["alreadyWhitelisted"] is False
        assert result["address"] == alice_wallet.address
        assert "whitelist_tx_ref" not in result

        record = ledger.claims["alice"]
        assert record.status == ClaimStatus.WHITELISTED
        assert record.wallet_address == alice_wallet.address
        assert record.identity_id == "user-alice"
        assert record.whitelist_tx_ref == WHITELIST_TX
        assert record.whitelisted_at is not None
        assert whitelist_service.calls == [alice_wallet.address]

    @pytest.mark.asyncio
    async def test_repeat_is_idempotent(self, orchestrator, ledger, whitelist_service, alice_wallet):
        first = await _request(orchestrator, alice_wallet)
        whitelisted_at = ledger.claims["alice"].whitelisted_at
        second = await _request(orchestrator, alice_wallet)

        assert first["success"] is True and second["success"] is True
        assert second["alreadyWhitelisted"] is True
        assert ledger.claims["alice"].whitelist_tx_ref == WHITELIST_TX
        assert ledger.claims["alice"].whitelisted_at == whitelisted_at
        assert len(whitelist_service.calls) == 1

    @pytest.mark.asyncio
    async def test_lowercase_address_is_checksummed(self, orchestrator, ledger, alice_wallet):
        message, signature = alice_wallet.signed_challenge(now_ms())
        await orchestrator.request_whitelist(
            caller_key="1.1.1.1",
            authorization=ALICE_AUTH,
            wallet_address=alice_wallet.address.lower(),
            signature=signature,
            message=message,
        )
        assert ledger.claims["alice"].wallet_address == alice_wallet.address

    @pytest.mark.asyncio
    async def test_service_reports_already_whitelisted(self, orchestrator, ledger, whitelist_service, alice_wallet):
        ledger.seed("alice", status=ClaimStatus.WHITELIST_FAILED, wallet_address=alice_wallet.address)
        whitelist_service.whitelisted.add(alice_wallet.address.lower())

        result = await _request(orchestrator, alice_wallet)

        assert result["alreadyWhitelisted"] is True
        assert whitelist_service.calls == []
        assert ledger.claims["alice"].status == ClaimStatus.WHITELISTED

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_counts_as_success(self, orchestrator, ledger, whitelist_service, alice_wallet):
        whitelist_service.next_outcome = WhitelistOutcome(success=True, already_whitelisted=True, status_code=409)

        result = await _request(orchestrator, alice_wallet)

        assert result["success"] is True
        assert result["alreadyWhitelisted"] is True
        assert ledger.claims["alice"].status == ClaimStatus.WHITELISTED


class TestPreconditions:
    """Each precondition short-circuits with its own error."""

    @pytest.mark.asyncio
    async def test_missing_session(self, orchestrator, alice_wallet):
        await _expect_error(_request(orchestrator, alice_wallet, auth=None), 401, "unauthenticated")

    @pytest.mark.asyncio
    async def test_invalid_session(self, orchestrator, alice_wallet):
        await _expect_error(_request(orchestrator, alice_wallet, auth="Bearer nope"), 401, "unauthenticated")

    @pytest.mark.asyncio
    async def test_not_eligible(self, orchestrator, whitelist_service, alice_wallet):
        await _expect_error(
            _request(orchestrator, alice_wallet, auth="Bearer carol-token"), 403, "not_eligible"
        )
        assert whitelist_service.calls == []

    @pytest.mark.asyncio
    async def test_already_claimed_identity(self, orchestrator, ledger, bob_wallet, alice_wallet):
        ledger.seed("alice", status=ClaimStatus.CLAIMED, wallet_address=alice_wallet.address, token_id="3")
        # even with a fresh wallet
        await _expect_error(_request(orchestrator, bob_wallet), 409, "already_claimed")

    @pytest.mark.asyncio
    async def test_invalid_address(self, orchestrator, alice_wallet):
        message, signature = alice_wallet.signed_challenge(now_ms())
        coro = orchestrator.request_whitelist("1.1.1.1", ALICE_AUTH, "0x1234", signature, message)
        await _expect_error(coro, 400, "invalid_address")

    @pytest.mark.asyncio
    async def test_expired_signature(self, orchestrator, alice_wallet):
        message, signature = alice_wallet.signed_challenge(now_ms() - 10 * 60_000)
        await _expect_error(
            _request(orchestrator, alice_wallet, message=message, signature=signature), 400, "signature_expired"
        )

    @pytest.mark.asyncio
    async def test_wrong_signer(self, orchestrator, whitelist_service, alice_wallet, bob_wallet):
        message = alice_wallet.signed_challenge(now_ms())[0]
        signature = bob_wallet.sign(message)
        await _expect_error(
            _request(orchestrator, alice_wallet, message=message, signature=signature), 403, "invalid_signature"
        )
        assert whitelist_service.calls == []

    @pytest.mark.asyncio
    async def test_already_minted_on_chain(self, orchestrator, chain, ledger, whitelist_service, alice_wallet):
        chain.minted.add(alice_wallet.address.lower())
        await _expect_error(_request(orchestrator, alice_wallet), 409, "already_minted")
        assert whitelist_service.calls == []
        assert ledger.claims == {}

    @pytest.mark.asyncio
    async def test_has_minted_read_failure_is_tolerated(self, orchestrator, chain, alice_wallet):
        chain.fail = True
        result = await _request(orchestrator, alice_wallet)
        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_rate_limited(self, orchestrator, alice_wallet):
        for _ in range(5):
            with pytest.raises(ClaimGatewayError):
                await _request(orchestrator, alice_wallet, auth=None, caller="9.9.9.9")
        with pytest.raises(RateLimitError):
            await _request(orchestrator, alice_wallet, auth=None, caller="9.9.9.9")


class TestWalletMismatch:
    """A handle cannot switch wallets once one is recorded."""

    @pytest.mark.asyncio
    async def test_second_wallet_rejected(self, orchestrator, ledger, whitelist_service, alice_wallet, bob_wallet):
        await _request(orchestrator, alice_wallet)

        await _expect_error(_request(orchestrator, bob_wallet), 409, "wallet_mismatch")

        assert ledger.claims["alice"].wallet_address == alice_wallet.address
        assert whitelist_service.calls == [alice_wallet.address]


class TestFailures:
    """Whitelisting failures and partial ledger failures."""

    @pytest.mark.asyncio
    async def test_failure_recorded_then_retry_succeeds(self, orchestrator, ledger, whitelist_service, alice_wallet):
        whitelist_service.next_outcome = WhitelistOutcome(success=False, error="nonce too low", status_code=500)

        error = await _expect_error(_request(orchestrator, alice_wallet), 500, "whitelist_failed")
        assert "nonce" not in error.message

        record = ledger.claims["alice"]
        assert record.status == ClaimStatus.WHITELIST_FAILED
        assert record.error_message == "nonce too low"
        assert record.wallet_address == alice_wallet.address

        result = await _request(orchestrator, alice_wallet)
        assert result["success"] is True
        assert ledger.claims["alice"].status == ClaimStatus.WHITELISTED
        assert ledger.claims["alice"].error_message is None

    @pytest.mark.asyncio
    async def test_ledger_failure_after_whitelist_still_succeeds(self, orchestrator, ledger, whitelist_service, alice_wallet):
        ledger.fail_writes = True

        result = await _request(orchestrator, alice_wallet)

        assert result["success"] is True
        assert whitelist_service.calls == [alice_wallet.address]

    @pytest.mark.asyncio
    async def test_unconfigured_service_records_failure(self, orchestrator, ledger, alice_wallet):
        orchestrator.whitelist_service = WhitelistServiceClient(base_url=None)

        await _expect_error(_request(orchestrator, alice_wallet), 500, "whitelist_failed")

        record = ledger.claims["alice"]
        assert record.status == ClaimStatus.WHITELIST_FAILED
        assert record.error_message == "whitelisting service not configured"

    @pytest.mark.asyncio
    async def test_claim_finalized_during_whitelist_is_not_reverted(self, orchestrator, ledger, alice_wallet):
        async def whitelist_while_claim_lands(address):
            ledger.seed("alice", identity_id="user-alice", status=ClaimStatus.CLAIMED, wallet_address=address)
            return WhitelistOutcome(success=True, tx_ref=WHITELIST_TX, status_code=200)

        orchestrator.whitelist_service.whitelist = whitelist_while_claim_lands

        result = await _request(orchestrator, alice_wallet)

        assert result["success"] is True
        assert ledger.claims["alice"].status == ClaimStatus.CLAIMED
        assert ledger.claims["alice"].is_claimed is True


class TestWhitelistStatus:
    """GET /whitelist?address= degrades to false."""

    @pytest.mark.asyncio
    async def test_invalid_address_is_false(self, orchestrator):
        assert (await orchestrator.whitelist_status("1.1.1.1", "garbage"))["whitelisted"] is False

    @pytest.mark.asyncio
    async def test_reports_service_status(self, orchestrator, whitelist_service, alice_wallet):
        whitelist_service.whitelisted.add(alice_wallet.address.lower())
        result = await orchestrator.whitelist_status("1.1.1.1", alice_wallet.address.lower())
        assert result == {"whitelisted": True, "address": alice_wallet.address}

    @pytest.mark.asyncio
    async def test_falls_back_to_chain(self, orchestrator, whitelist_service, chain, alice_wallet):
        whitelist_service.status_unknown = True
        chain.whitelisted.add(alice_wallet.address.lower())
        assert (await orchestrator.whitelist_status("1.1.1.1", alice_wallet.address))["whitelisted"] is True

    @pytest.mark.asyncio
    async def test_everything_down_is_false(self, orchestrator, whitelist_service, chain, alice_wallet):
        whitelist_service.status_unknown = True
        chain.fail = True
        assert (await orchestrator.whitelist_status("1.1.1.1", alice_wallet.address))["whitelisted"] is False
