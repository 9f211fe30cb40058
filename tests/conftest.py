"""
Shared fixtures: in-memory fakes for the ledger, chain, whitelisting service
and identity provider, plus a deterministic wallet signer.
"""

import time
from typing import Dict, Optional, Set

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from claimgate.dependencies import ClaimServices
from claimgate.errors import AuthError, UpstreamError
from claimgate.models.claims import ClaimRecord, ClaimStatus, check_transition, utcnow
from claimgate.utils.auth import Identity, extract_bearer_token
from claimgate.utils.rate_limiter import FixedWindowRateLimiter
from claimgate.utils.signature import build_challenge
from claimgate.utils.whitelist_service import WhitelistOutcome

# Well-known throwaway keys, never funded
ALICE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
BOB_KEY = "0x8da4ef21b864d2cc526dbdb2a120bd2874c36c9d0a1fb7f8c63d7f7a8b41de8f"

WHITELIST_TX = "0x" + "ab" * 32
MINT_TX = "0x" + "cd" * 32


class FakeLedger:
    """Dict-backed ledger with the same transition rules as the Supabase one."""

    def __init__(self, eligible: Optional[Set[str]] = None):
        self.eligible: Set[str] = set(eligible or ())
        self.claims: Dict[str, ClaimRecord] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.fail_finalize = False
        self.upserts = []

    async def get_claim(self, handle):
        if self.fail_reads:
            raise UpstreamError("Database error. Please try again.")
        record = self.claims.get(handle)
        return record.model_copy() if record else None

    async def is_eligible_handle(self, handle):
        if self.fail_reads:
            raise UpstreamError("Database error. Please try again.")
        return handle in self.eligible

    async def upsert_claim(self, handle, status, **fields):
        current = self.claims.get(handle)
        check_transition(current.status if current else None, status)
        if self.fail_writes:
            raise UpstreamError("Database error. Please try again.")
        if current is not None and current.whitelisted_at is not None:
            fields.pop("whitelisted_at", None)

        data = current.model_dump() if current else {"handle": handle}
        data.update(fields)
        data["status"] = status
        data["updated_at"] = utcnow()
        record = ClaimRecord(**data)
        self.claims[handle] = record
        self.upserts.append((handle, status, fields))
        return record

    async def finalize_claim(self, current, token_id, mint_tx_ref, claimed_at):
        check_transition(current.status, ClaimStatus.CLAIMED)
        if self.fail_finalize or self.fail_writes:
            raise UpstreamError("Database error. Please try again.")
        stored = self.claims.get(current.handle)
        if stored is None or stored.is_claimed:
            return None
        record = stored.model_copy(update={
            "status": ClaimStatus.CLAIMED,
            "token_id": token_id,
            "mint_tx_ref": mint_tx_ref,
            "claimed_at": claimed_at,
            "updated_at": utcnow(),
        })
        self.claims[current.handle] = record
        return record

    async def add_eligible_handles(self, handles):
        handles = list(handles)
        self.eligible.update(handles)
        return len(handles)

    def seed(self, handle, **fields):
        fields.setdefault("status", ClaimStatus.WHITELISTED)
        self.claims[handle] = ClaimRecord(handle=handle, **fields)
        return self.claims[handle]


class FakeChain:
    def __init__(self):
        self.minted: Set[str] = set()
        self.whitelisted: Set[str] = set()
        self.next_token_id = 1
        self.configured = True
        self.fail = False

    def _check(self):
        if self.fail:
            raise UpstreamError("Blockchain read failed")

    async def has_minted(self, address):
        self._check()
        return address.lower() in self.minted

    async def is_whitelisted(self, address):
        self._check()
        return address.lower() in self.whitelisted

    async def get_current_token_id(self):
        self._check()
        return self.next_token_id


class FakeWhitelistService:
    def __init__(self):
        self.calls = []
        self.status_calls = []
        self.whitelisted: Set[str] = set()
        self.next_outcome: Optional[WhitelistOutcome] = None
        self.status_unknown = False

    async def whitelist(self, address):
        self.calls.append(address)
        if self.next_outcome is not None:
            outcome = self.next_outcome
            self.next_outcome = None
            if outcome.success:
                self.whitelisted.add(address.lower())
            return outcome
        if address.lower() in self.whitelisted:
            return WhitelistOutcome(success=True, already_whitelisted=True, status_code=409)
        self.whitelisted.add(address.lower())
        return WhitelistOutcome(success=True, tx_ref=WHITELIST_TX, status_code=200)

    async def status(self, address):
        self.status_calls.append(address)
        if self.status_unknown:
            return None
        return address.lower() in self.whitelisted


class FakeIdentityProvider:
    def __init__(self, sessions: Optional[Dict[str, Identity]] = None):
        self.sessions = dict(sessions or {})

    async def authenticate(self, authorization):
        token = extract_bearer_token(authorization)
        identity = self.sessions.get(token)
        if identity is None:
            raise AuthError("Invalid or expired session", reason="unauthenticated")
        return identity


class Wallet:
    """Deterministic EIP-191 signer."""

    def __init__(self, private_key: str):
        self.account = Account.from_key(private_key)
        self.address = self.account.address

    def sign(self, message: str) -> str:
        signed = self.account.sign_message(encode_defunct(text=message))
        return "0x" + bytes(signed.signature).hex()

    def signed_challenge(self, now_ms: Optional[int] = None):
        message = build_challenge(self.address, now_ms=now_ms)
        return message, self.sign(message)


def now_ms() -> int:
    return int(time.time() * 1000)


@pytest.fixture
def alice_wallet():
    return Wallet(ALICE_KEY)


@pytest.fixture
def bob_wallet():
    return Wallet(BOB_KEY)


@pytest.fixture
def ledger():
    return FakeLedger(eligible={"alice", "bob"})


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def whitelist_service():
    return FakeWhitelistService()


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider({
        "alice-token": Identity(user_id="user-alice", handle="alice"),
        "bob-token": Identity(user_id="user-bob", handle="bob"),
        "carol-token": Identity(user_id="user-carol", handle="carol"),
    })


@pytest.fixture
def limiter():
    return FixedWindowRateLimiter()


@pytest.fixture
def services(ledger, chain, whitelist_service, identity_provider, limiter):
    return ClaimServices(
        ledger=ledger,
        chain=chain,
        whitelist_service=whitelist_service,
        identity_provider=identity_provider,
        limiter=limiter,
    )
