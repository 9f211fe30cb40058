"""
Gateway Response Models
======================

Pydantic models for API responses.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EligibilityResponse(BaseModel):
    """Response from GET /eligibility"""

    eligible: bool
    handle: Optional[str] = None
    reason: Optional[str] = None
    token_id: Optional[str] = None
    claimed_at: Optional[str] = None


class WhitelistResponse(BaseModel):
    """Response from POST /whitelist"""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    already_whitelisted: bool = Field(default=False, alias="alreadyWhitelisted")
    address: str
    message: Optional[str] = None


class WhitelistStatusResponse(BaseModel):
    """Response from GET /whitelist?address="""

    whitelisted: bool
    address: Optional[str] = None


class ClaimResponse(BaseModel):
    """Response from POST /claim"""

    success: bool
    message: str
    claim: Dict[str, Any]


class HandlesUploadResponse(BaseModel):
    """Response from POST /handles"""

    success: bool
    count: int
    rejected: List[str]


class ChallengeResponse(BaseModel):
    """Response from GET /challenge"""

    address: str
    message: str


class TokenResponse(BaseModel):
    """Response from GET /token/latest"""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    latest_token_id: int = Field(alias="latestTokenId")
    next_token_id: int = Field(alias="nextTokenId")


class ErrorResponse(BaseModel):
    """Error response"""

    success: bool = False
    error: str
    message: str


class HealthResponse(BaseModel):
    """Health check response"""

    service: str
    status: str
    build_id: str
    github_commit: str
    network: str
    timestamp: str
