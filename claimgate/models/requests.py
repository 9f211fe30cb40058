"""
Gateway Request Models
======================

Pydantic models for API request bodies. Shape only: grammar checks
(address checksum, tx hash, handle) run in the claim engine so every error
is reported through the same taxonomy.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class WhitelistRequest(BaseModel):
    """Body of POST /whitelist"""

    wallet_address: str
    signature: str
    message: str


class ClaimRequest(BaseModel):
    """Body of POST /claim"""

    wallet_address: str
    tx_ref: Optional[str] = None  # required; a missing value is a 400, not a schema error
    token_id: Optional[Union[int, str]] = None


class HandlesUploadRequest(BaseModel):
    """Body of POST /handles (admin)"""

    handles: List[str] = Field(default_factory=list)
