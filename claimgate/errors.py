"""
Gateway Error Taxonomy
======================

Every failure the claim engine can report maps to exactly one of these
exceptions. The API layer renders them through a single exception handler
(see claimgate/main.py), so business code only ever raises.

Callers must branch on `reason`, not only on `status_code`: several 409
conflicts ("already_whitelisted", "already_recorded") are success-equivalent.
"""

from typing import Any, Dict, Optional


class ClaimGatewayError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code: int = 500
    default_reason: str = "error"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "success": False,
            "error": self.reason,
            "message": self.message,
        }
        body.update(self.extra)
        return body


class ValidationError(ClaimGatewayError):
    """Malformed input (400). Never retried automatically."""

    status_code = 400
    default_reason = "invalid_input"


class AuthError(ClaimGatewayError):
    """
    Authentication (401) or authorization (403) failure.

    401 means "who are you?" and may prompt re-authentication; 403 means the
    caller is known but not allowed (ineligible, signature or wallet mismatch).
    """

    default_reason = "unauthenticated"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        forbidden: bool = False,
    ):
        super().__init__(message, reason=reason, extra=extra)
        self.status_code = 403 if forbidden else 401


class NotFoundError(ClaimGatewayError):
    """Nothing to act on (404)."""

    status_code = 404
    default_reason = "not_found"


class ConflictError(ClaimGatewayError):
    """State conflict (409). Often success-equivalent - check `reason`."""

    status_code = 409
    default_reason = "conflict"


class RateLimitError(ClaimGatewayError):
    """Too many requests (429). Retry after `retry_after` seconds."""

    status_code = 429
    default_reason = "rate_limit_exceeded"

    def __init__(self, message: str, retry_after: int = 60, reason: Optional[str] = None):
        super().__init__(message, reason=reason, extra={"retry_after": retry_after})
        self.retry_after = retry_after


class UpstreamError(ClaimGatewayError):
    """
    The data store, chain RPC, identity provider or whitelisting service failed.

    `message` is always generic; the underlying exception is logged, never
    returned. Local state is left at its last-known-good status.
    """

    status_code = 500
    default_reason = "upstream_error"


class RecoverableClaimError(UpstreamError):
    """
    Bookkeeping failed AFTER an irreversible on-chain mint.

    The caller is told the mint itself succeeded and asked to retry the
    recording call later with the same tx_ref.
    """

    default_reason = "claim_recording_failed"

    def __init__(self, tx_ref: str, token_id: Optional[str] = None):
        super().__init__(
            "Your NFT was minted successfully. We could not save the record yet - "
            "please retry in a moment, your mint is safe on-chain.",
            extra={
                "recoverable": True,
                "mint_succeeded": True,
                "retry": True,
                "tx_ref": tx_ref,
                "token_id": token_id,
            },
        )
        self.tx_ref = tx_ref
        self.token_id = token_id
