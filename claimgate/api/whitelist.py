"""
/whitelist - Wallet whitelisting for the OG NFT mint
====================================================

POST: an authenticated, eligible identity proves wallet ownership with a
signed challenge and gets the wallet whitelisted on-chain (idempotent).

GET: whitelist status lookup. "Unknown" is reported as not whitelisted
with 200 so the UI never blocks on it.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Header, Query, Request

from claimgate.dependencies import client_key, get_services
from claimgate.errors import RateLimitError
from claimgate.models.requests import WhitelistRequest
from claimgate.models.responses import WhitelistResponse, WhitelistStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whitelist", tags=["Whitelist"])


@router.post("", response_model=WhitelistResponse, response_model_exclude_none=True)
async def request_whitelist(
    body: WhitelistRequest,
    request: Request,
    authorization: Optional[str] = Header(default=None),
):
    """
    Raises:
        400 bad input / expired signature
        401 unauthenticated
        403 ineligible / signature mismatch
        409 already minted, already claimed, wallet mismatch
        429 rate limited
        500 whitelisting failed (recorded as whitelist_failed)
    """
    services = get_services(request)
    return await services.orchestrator.request_whitelist(
        caller_key=client_key(request),
        authorization=authorization,
        wallet_address=body.wallet_address,
        signature=body.signature,
        message=body.message,
    )


@router.get("", response_model=WhitelistStatusResponse, response_model_exclude_none=True)
async def whitelist_status(request: Request, address: Optional[str] = Query(default=None)):
    services = get_services(request)
    try:
        return await services.orchestrator.whitelist_status(client_key(request), address)
    except RateLimitError:
        raise
    except Exception as e:
        logger.warning(f"⚠️  Whitelist status lookup failed for {address}: {e}")
        return {"whitelisted": False, "address": address}
