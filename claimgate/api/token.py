"""
GET /token/latest - Latest minted token id
==========================================

Reads getCurrentTokenId() (the next id to mint) from the contract.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from claimgate.dependencies import client_key, get_services
from claimgate.errors import UpstreamError
from claimgate.utils.chain import latest_token_ids
from claimgate.utils.rate_limiter import enforce_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/token", tags=["Token"])


@router.get("/latest")
async def latest_token(request: Request):
    services = get_services(request)
    enforce_rate_limit(services.limiter, "token", client_key(request))

    if not services.chain.configured:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Contract address not configured"},
        )

    try:
        next_id = await services.chain.get_current_token_id()
    except UpstreamError as e:
        logger.error(f"❌ Failed to fetch latest token id: {e.message}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Failed to fetch latest token ID",
                "latestTokenId": 0,
                "nextTokenId": 1,
            },
        )

    return {"success": True, **latest_token_ids(next_id)}
