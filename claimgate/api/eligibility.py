"""
GET /eligibility - Is this X handle eligible to claim?
======================================================

Read-only. Safe to call arbitrarily often (within the rate limit).
"""

from typing import Optional

from fastapi import APIRouter, Query, Request

from claimgate.claims.eligibility import REASON_INVALID_HANDLE
from claimgate.dependencies import client_key, get_services
from claimgate.errors import ValidationError
from claimgate.models.responses import EligibilityResponse
from claimgate.utils.rate_limiter import enforce_rate_limit

router = APIRouter(prefix="/eligibility", tags=["Eligibility"])


@router.get("", response_model=EligibilityResponse, response_model_exclude_none=True)
async def check_eligibility(request: Request, handle: Optional[str] = Query(default=None)):
    """
    Returns:
        {eligible, handle, reason?, token_id?, claimed_at?}

    Raises:
        400 malformed handle, 429 rate limited
    """
    services = get_services(request)
    enforce_rate_limit(services.limiter, "eligibility", client_key(request))

    result = await services.oracle.check(handle)
    if result.reason == REASON_INVALID_HANDLE:
        raise ValidationError("Invalid X handle format", reason=REASON_INVALID_HANDLE)
    return result.to_dict()
