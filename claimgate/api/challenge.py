"""
GET /challenge - Message for the wallet to sign
===============================================

Convenience for clients: returns the exact challenge POST /whitelist
expects, for the checksummed address. Clients may also build it locally;
nothing is stored server-side.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request

from claimgate.dependencies import client_key, get_services
from claimgate.models.responses import ChallengeResponse
from claimgate.utils.rate_limiter import enforce_rate_limit
from claimgate.utils.signature import build_challenge
from claimgate.utils.validation import checksum_address

router = APIRouter(prefix="/challenge", tags=["Whitelist"])


@router.get("", response_model=ChallengeResponse)
async def get_challenge(request: Request, address: Optional[str] = Query(default=None)):
    services = get_services(request)
    enforce_rate_limit(services.limiter, "challenge", client_key(request))

    checksummed = checksum_address(address)
    return ChallengeResponse(address=checksummed, message=build_challenge(checksummed))
