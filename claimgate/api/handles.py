"""
POST /handles - Eligible handle ingestion (admin)
================================================

Appends normalized handles to the eligible set. Insert-ignore-duplicates
only: nothing is ever removed or overwritten through this endpoint.

Authentication: X-API-Key must equal ADMIN_API_KEY.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Header, Request

from claimgate import config
from claimgate.dependencies import client_key, get_services
from claimgate.errors import AuthError, ValidationError
from claimgate.models.requests import HandlesUploadRequest
from claimgate.models.responses import HandlesUploadResponse
from claimgate.utils.handles import normalize_handles
from claimgate.utils.rate_limiter import enforce_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/handles", tags=["Admin"])


def _check_admin_key(api_key: Optional[str]):
    expected = config.ADMIN_API_KEY
    if not expected or not api_key or not hmac.compare_digest(api_key, expected):
        raise AuthError("Invalid or missing API key", reason="invalid_api_key")


@router.post("", response_model=HandlesUploadResponse)
async def upload_handles(
    body: HandlesUploadRequest,
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
):
    services = get_services(request)
    enforce_rate_limit(services.limiter, "handles", client_key(request))
    _check_admin_key(x_api_key)

    if not body.handles:
        raise ValidationError("Handles list is required", reason="missing_handles")

    accepted, rejected = normalize_handles(body.handles)
    if not accepted:
        raise ValidationError(
            "No valid handles provided",
            reason="invalid_handle",
            extra={"rejected": rejected},
        )

    count = await services.ledger.add_eligible_handles(accepted)
    logger.info(f"✅ Ingested {count} eligible handles ({len(rejected)} rejected)")
    return HandlesUploadResponse(success=True, count=count, rejected=rejected)
