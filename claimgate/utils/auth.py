"""
Caller Authentication
=====================

Resolves an `Authorization: Bearer <access token>` header into a verified
social identity through Supabase Auth. The OAuth handshake itself happens
elsewhere; the gateway only validates the resulting session.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from supabase import AuthApiError

from claimgate.config import READ_TIMEOUT_SECONDS
from claimgate.db.client import get_async_read_client
from claimgate.errors import AuthError, UpstreamError, ValidationError
from claimgate.utils.handles import normalize_handle

logger = logging.getLogger(__name__)

# Provider metadata keys that may carry the X handle, in priority order
HANDLE_METADATA_KEYS = ("user_name", "preferred_username", "name")


@dataclass(frozen=True)
class Identity:
    user_id: str
    handle: str  # normalized


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Authentication required", reason="unauthenticated")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError("Authentication required", reason="unauthenticated")
    return token


def handle_from_metadata(metadata: Optional[Dict[str, Any]]) -> str:
    """
    Pick and normalize the handle from provider user metadata.

    Raises:
        ValidationError: no handle present, or it fails the handle grammar.
    """
    metadata = metadata or {}
    for key in HANDLE_METADATA_KEYS:
        value = metadata.get(key)
        if value:
            return normalize_handle(value)
    raise ValidationError("X handle not found in user profile", reason="missing_handle")


class SupabaseIdentityProvider:
    """Validates session tokens with Supabase Auth (`auth.get_user`)."""

    def __init__(self, client_factory=get_async_read_client, timeout: float = READ_TIMEOUT_SECONDS):
        self._client_factory = client_factory
        self.timeout = timeout

    async def authenticate(self, authorization: Optional[str]) -> Identity:
        token = extract_bearer_token(authorization)

        try:
            client = await self._client_factory()
            response = await asyncio.wait_for(client.auth.get_user(token), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"❌ Identity provider timed out after {self.timeout}s")
            raise UpstreamError("Authentication service unavailable. Please try again.")
        except AuthApiError as e:
            # Invalid or expired JWT, rejected by the auth API itself
            logger.info(f"Session rejected: {e}")
            raise AuthError("Invalid or expired session", reason="unauthenticated")
        except Exception as e:
            # Not configured, transport errors, retryable auth errors
            logger.error(f"❌ Identity provider unavailable: {e}")
            raise UpstreamError("Authentication service unavailable. Please try again.")

        user = getattr(response, "user", None)
        if user is None:
            raise AuthError("Invalid or expired session", reason="unauthenticated")

        handle = handle_from_metadata(getattr(user, "user_metadata", None))
        return Identity(user_id=str(user.id), handle=handle)
