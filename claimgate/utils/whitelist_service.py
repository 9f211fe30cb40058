"""
Whitelisting Service Client
===========================

Server-to-server calls to the operator's whitelisting service, which owns the
contract owner key and submits the on-chain whitelist transaction.

Endpoints:
- POST {base}/api/whitelist      body {"address"} -> {"success", "transactionHash", ...}
- GET  {base}/api/status/{addr}  -> {"whitelisted": bool}

Both carry X-API-Key when a key is configured.

An "already whitelisted" answer (HTTP 409, alreadyWhitelisted=true, or an
error string saying so) is a success: a concurrent duplicate request for the
same wallet converges instead of failing.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from claimgate.config import (
    READ_TIMEOUT_SECONDS,
    WHITELIST_API_KEY,
    WHITELIST_SERVER_URL,
    WHITELIST_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass
class WhitelistOutcome:
    """Result of one whitelisting attempt."""

    success: bool
    tx_ref: Optional[str] = None
    already_whitelisted: bool = False
    error: Optional[str] = None
    status_code: Optional[int] = None


def _is_already_whitelisted(status_code: int, data: Dict[str, Any]) -> bool:
    if status_code == 409 or data.get("alreadyWhitelisted") is True:
        return True
    error = data.get("error") or data.get("message") or ""
    return isinstance(error, str) and "already whitelisted" in error.lower()


class WhitelistServiceClient:
    def __init__(
        self,
        base_url: Optional[str] = WHITELIST_SERVER_URL,
        api_key: Optional[str] = WHITELIST_API_KEY,
        timeout: float = WHITELIST_TIMEOUT_SECONDS,
        status_timeout: float = READ_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.timeout = timeout
        self.status_timeout = status_timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def whitelist(self, address: str) -> WhitelistOutcome:
        """
        Ask the service to whitelist `address` on-chain.

        A missing service URL, transport failures and timeouts come back as
        an unsuccessful outcome (never raised) so the caller can record
        `whitelist_failed`.
        """
        if not self.base_url:
            logger.error("❌ WHITELIST_SERVER_URL not configured")
            return WhitelistOutcome(success=False, error="whitelisting service not configured")
        try:
            async with self._client(self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/api/whitelist",
                    headers=self._headers(),
                    json={"address": address},
                )
        except httpx.TimeoutException:
            logger.error(f"❌ Whitelist request for {address} timed out ({self.timeout}s)")
            return WhitelistOutcome(success=False, error="whitelist request timed out")
        except httpx.HTTPError as e:
            logger.error(f"❌ Whitelist request for {address} failed: {e}")
            return WhitelistOutcome(success=False, error=str(e))

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if _is_already_whitelisted(response.status_code, data):
            logger.info(f"ℹ️  Wallet {address} already whitelisted on-chain")
            return WhitelistOutcome(
                success=True,
                tx_ref=data.get("transactionHash"),
                already_whitelisted=True,
                status_code=response.status_code,
            )

        if response.status_code >= 400 or data.get("success") is False:
            error = data.get("error") or f"HTTP {response.status_code}"
            logger.error(f"❌ Whitelisting service rejected {address}: {response.status_code} - {error}")
            return WhitelistOutcome(success=False, error=str(error), status_code=response.status_code)

        return WhitelistOutcome(
            success=True,
            tx_ref=data.get("transactionHash"),
            status_code=response.status_code,
        )

    async def status(self, address: str) -> Optional[bool]:
        """
        Whitelist status as reported by the service.

        Returns None when the status is unknown (service down, bad response).
        """
        if not self.base_url:
            return None
        try:
            async with self._client(self.status_timeout) as client:
                response = await client.get(
                    f"{self.base_url}/api/status/{address}",
                    headers=self._headers(),
                )
            if response.status_code != 200:
                logger.warning(f"⚠️  Whitelist status for {address}: HTTP {response.status_code}")
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"⚠️  Whitelist status check failed for {address}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        return bool(data.get("whitelisted", False))
