"""
On-Chain Reads for the OG NFT Contract
======================================

Read-only view calls against the claim contract. The chain is the final
authority on mint status; the ledger is only a cache of it.

Writes (the whitelisting action) never happen here - they go through the
operator's whitelisting service (see whitelist_service.py), which holds the
owner key.
"""

import asyncio
import logging
from typing import Optional

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from claimgate.config import CONTRACT_ADDRESS, READ_TIMEOUT_SECONDS, RPC_URL, ZERO_ADDRESS
from claimgate.errors import UpstreamError

logger = logging.getLogger(__name__)

# Only the view functions the gateway calls
OG_NFT_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "", "type": "address"}],
        "name": "hasMinted",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address", "name": "", "type": "address"}],
        "name": "isWhitelisted",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getCurrentTokenId",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class ChainClient:
    """Thin async wrapper over the contract's view functions."""

    def __init__(
        self,
        rpc_url: str = RPC_URL,
        contract_address: str = CONTRACT_ADDRESS,
        timeout: float = READ_TIMEOUT_SECONDS,
    ):
        self.rpc_url = rpc_url
        self.contract_address = contract_address
        self.timeout = timeout
        self._contract = None

    @property
    def configured(self) -> bool:
        return bool(self.contract_address) and self.contract_address != ZERO_ADDRESS

    def _get_contract(self):
        if self._contract is None:
            if not self.configured:
                raise UpstreamError("Contract address not configured", reason="contract_not_configured")
            w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url, request_kwargs={"timeout": self.timeout}))
            self._contract = w3.eth.contract(
                address=Web3.to_checksum_address(self.contract_address),
                abi=OG_NFT_ABI,
            )
            logger.info(f"✅ Contract client initialized: {self.contract_address} via {self.rpc_url}")
        return self._contract

    async def _call(self, name: str, *args):
        contract = self._get_contract()
        try:
            return await asyncio.wait_for(
                getattr(contract.functions, name)(*args).call(),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"❌ Contract call {name} timed out after {self.timeout}s")
            raise UpstreamError("Blockchain read timed out")
        except UpstreamError:
            raise
        except Exception as e:
            logger.error(f"❌ Contract call {name} failed: {e}")
            raise UpstreamError("Blockchain read failed")

    async def has_minted(self, address: str) -> bool:
        return bool(await self._call("hasMinted", Web3.to_checksum_address(address)))

    async def is_whitelisted(self, address: str) -> bool:
        return bool(await self._call("isWhitelisted", Web3.to_checksum_address(address)))

    async def get_current_token_id(self) -> int:
        """Next token id the contract will mint (ids start at 1)."""
        return int(await self._call("getCurrentTokenId"))


def latest_token_ids(next_token_id: Optional[int]) -> dict:
    """Map the contract's next id to {latestTokenId, nextTokenId}."""
    next_id = int(next_token_id or 0)
    latest = next_id - 1 if next_id > 1 else 0
    return {"latestTokenId": latest, "nextTokenId": next_id}
