"""
POST /claim - Record a completed mint
=====================================

Called by the client after its mint transaction confirmed. Finalizes the
ledger row exactly once.

Callers must treat 409 already_recorded as success: it is the answer to a
retry of a call that already went through. A 500 with `recoverable: true`
means the mint succeeded and only the bookkeeping must be retried with the
same tx_ref.
"""

from typing import Optional

from fastapi import APIRouter, Header, Request

from claimgate.dependencies import client_key, get_services
from claimgate.models.requests import ClaimRequest
from claimgate.models.responses import ClaimResponse

router = APIRouter(prefix="/claim", tags=["Claim"])


@router.post("", response_model=ClaimResponse)
async def record_claim(
    body: ClaimRequest,
    request: Request,
    authorization: Optional[str] = Header(default=None),
):
    services = get_services(request)
    return await services.recorder.record_claim(
        caller_key=client_key(request),
        authorization=authorization,
        wallet_address=body.wallet_address,
        tx_ref=body.tx_ref,
        token_id=body.token_id,
    )
