"""
Claim Ledger Models

ClaimRecord is the unit of consistency: one row per normalized handle.
`status` is an explicit state machine; every ledger write goes through
check_transition() so invalid moves are rejected at the data-access layer.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, Field

from claimgate.errors import ConflictError


# =============================================================================
# Status State Machine
# =============================================================================

class ClaimStatus(str, Enum):
    """Lifecycle status of a claim record."""
    PENDING_WHITELIST = "pending_whitelist"
    WHITELISTED = "whitelisted"
    WHITELIST_FAILED = "whitelist_failed"
    CLAIMED = "claimed"


# None = no row yet. Self-transitions are idempotent re-upserts.
ALLOWED_TRANSITIONS: Dict[Optional[ClaimStatus], FrozenSet[ClaimStatus]] = {
    None: frozenset({
        ClaimStatus.PENDING_WHITELIST,
        ClaimStatus.WHITELISTED,
        ClaimStatus.WHITELIST_FAILED,
    }),
    ClaimStatus.PENDING_WHITELIST: frozenset({
        ClaimStatus.PENDING_WHITELIST,
        ClaimStatus.WHITELISTED,
        ClaimStatus.WHITELIST_FAILED,
        ClaimStatus.CLAIMED,
    }),
    ClaimStatus.WHITELISTED: frozenset({
        ClaimStatus.WHITELISTED,
        ClaimStatus.CLAIMED,
    }),
    ClaimStatus.WHITELIST_FAILED: frozenset({
        ClaimStatus.PENDING_WHITELIST,
        ClaimStatus.WHITELISTED,
        ClaimStatus.WHITELIST_FAILED,
        ClaimStatus.CLAIMED,
    }),
    ClaimStatus.CLAIMED: frozenset(),
}


def is_transition_allowed(current: Optional[ClaimStatus], new: ClaimStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def check_transition(current: Optional[ClaimStatus], new: ClaimStatus):
    """
    Raises:
        ConflictError: reason "invalid_transition" if current -> new is not allowed.
    """
    if not is_transition_allowed(current, new):
        current_name = current.value if current else "none"
        raise ConflictError(
            f"Claim status cannot move from {current_name} to {new.value}",
            reason="invalid_transition",
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Ledger Row
# =============================================================================

class ClaimRecord(BaseModel):
    """One row of the claim ledger."""

    handle: str
    identity_id: Optional[str] = None
    wallet_address: Optional[str] = None
    status: ClaimStatus = ClaimStatus.PENDING_WHITELIST
    whitelist_tx_ref: Optional[str] = None
    token_id: Optional[str] = None
    mint_tx_ref: Optional[str] = None
    whitelisted_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    error_message: Optional[str] = Field(default=None, description="Operator visibility only")
    updated_at: Optional[datetime] = None

    model_config = {"extra": "ignore"}

    @property
    def is_claimed(self) -> bool:
        # token_id is optional on the claim call, so status alone also counts
        return self.token_id is not None or self.status == ClaimStatus.CLAIMED

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ClaimRecord":
        row = dict(row)
        if row.get("token_id") is not None:
            row["token_id"] = str(row["token_id"])
        return cls.model_validate(row)

    def to_row(self) -> Dict[str, Any]:
        """Column dict for the data store (timestamps as ISO-8601)."""
        return self.model_dump(mode="json")

    def public_dict(self) -> Dict[str, Any]:
        """Caller-visible view. Never includes error_message."""
        return self.model_dump(
            mode="json",
            include={"handle", "wallet_address", "status", "token_id", "mint_tx_ref", "whitelisted_at", "claimed_at"},
        )
