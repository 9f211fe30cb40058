"""
Wallet Signature Verification
=============================

Proves a caller controls a wallet address.

Flow:
1. Client obtains (or builds) a challenge embedding the address and a
   millisecond timestamp
2. Wallet signs it with EIP-191 personal_sign
3. Gateway checks freshness (timestamp within the window) and recovers the
   signer from (message, signature)

The challenge holds no variable content beyond address and timestamp, so
verification is a pure function of (address, message, signature).

Replay defense is time-bounded only: messages are not persisted and there is
no used-nonce set, so a signature stays valid for its whole freshness window.
"""

import logging
import re
import time
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from claimgate.config import (
    CLAIM_CAMPAIGN_NAME,
    SIGNATURE_CLOCK_SKEW_MS,
    SIGNATURE_MAX_AGE_MS,
)

logger = logging.getLogger(__name__)

CHALLENGE_TEMPLATE = (
    "I am the owner of wallet address: {address}\n\n"
    "Timestamp: {timestamp}\n\n"
    "This signature proves I own this wallet for {campaign} claim."
)

TIMESTAMP_PATTERN = re.compile(r"Timestamp: (\d+)")


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_challenge(address: str, now_ms: Optional[int] = None) -> str:
    """Build the human-readable message a wallet signs to prove ownership."""
    timestamp = now_ms if now_ms is not None else _now_ms()
    return CHALLENGE_TEMPLATE.format(
        address=address,
        timestamp=timestamp,
        campaign=CLAIM_CAMPAIGN_NAME,
    )


def extract_timestamp(message: Optional[str]) -> Optional[int]:
    """Embedded millisecond timestamp, or None if missing/unparsable."""
    if not message or not isinstance(message, str):
        return None
    match = TIMESTAMP_PATTERN.search(message)
    if not match:
        return None
    try:
        return int(match.group(1))
    except ValueError:
        return None


def is_fresh(
    message: Optional[str],
    max_age_ms: int = SIGNATURE_MAX_AGE_MS,
    now_ms: Optional[int] = None,
) -> bool:
    """
    True when the embedded timestamp is younger than max_age_ms.

    Timestamps further in the future than the allowed clock skew are rejected.
    """
    timestamp = extract_timestamp(message)
    if timestamp is None:
        return False

    now = now_ms if now_ms is not None else _now_ms()
    age = now - timestamp
    if age < -SIGNATURE_CLOCK_SKEW_MS:
        return False
    return age < max_age_ms


def recover_signer(message: str, signature: str) -> str:
    """Recover the address that produced `signature` over `message` (EIP-191)."""
    signable = encode_defunct(text=message)
    return Account.recover_message(signable, signature=signature)


def verify_wallet_signature(address: Optional[str], message: Optional[str], signature: Optional[str]) -> bool:
    """
    Verify that `address` signed `message`.

    Never raises: malformed input or any recovery error yields False.
    """
    if not address or not message or not signature:
        return False
    try:
        recovered = recover_signer(message, signature)
    except Exception as e:
        logger.debug(f"Signature verification error: {e}")
        return False
    return recovered.lower() == address.lower()
