"""
Service Container
=================

Wires the claim engine once per application. Endpoints fetch it from
`request.app.state.services`, so tests can swap any collaborator
(ledger, chain, whitelisting service, identity provider) for a fake.
"""

from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request

from claimgate.claims.eligibility import EligibilityOracle
from claimgate.claims.orchestrator import WhitelistOrchestrator
from claimgate.claims.recorder import ClaimRecorder
from claimgate.db.ledger import SupabaseClaimLedger
from claimgate.utils.auth import SupabaseIdentityProvider
from claimgate.utils.chain import ChainClient
from claimgate.utils.rate_limiter import FixedWindowRateLimiter
from claimgate.utils.whitelist_service import WhitelistServiceClient


@dataclass
class ClaimServices:
    ledger: object
    chain: object
    whitelist_service: object
    identity_provider: object
    limiter: FixedWindowRateLimiter = field(default_factory=FixedWindowRateLimiter)
    oracle: Optional[EligibilityOracle] = None
    orchestrator: Optional[WhitelistOrchestrator] = None
    recorder: Optional[ClaimRecorder] = None

    def __post_init__(self):
        if self.oracle is None:
            self.oracle = EligibilityOracle(self.ledger)
        if self.orchestrator is None:
            self.orchestrator = WhitelistOrchestrator(
                limiter=self.limiter,
                identity_provider=self.identity_provider,
                ledger=self.ledger,
                chain=self.chain,
                whitelist_service=self.whitelist_service,
                oracle=self.oracle,
            )
        if self.recorder is None:
            self.recorder = ClaimRecorder(
                limiter=self.limiter,
                identity_provider=self.identity_provider,
                ledger=self.ledger,
                oracle=self.oracle,
            )


def build_services() -> ClaimServices:
    """Production wiring: Supabase ledger/auth, web3 reads, whitelisting service."""
    return ClaimServices(
        ledger=SupabaseClaimLedger(),
        chain=ChainClient(),
        whitelist_service=WhitelistServiceClient(),
        identity_provider=SupabaseIdentityProvider(),
    )


def get_services(request: Request) -> ClaimServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services()
        request.app.state.services = services
    return services


def client_key(request: Request) -> str:
    """
    Caller key for rate limiting.

    First X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
