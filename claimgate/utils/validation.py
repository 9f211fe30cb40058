"""
Chain Input Validation
======================
Grammar checks for wallet addresses, transaction references and token ids.
All checks run before any ledger access.
"""

import re
from typing import Optional, Union

from web3 import Web3

from claimgate.errors import ValidationError

TX_REF_PATTERN = re.compile(r"0x[a-fA-F0-9]{64}")
TOKEN_ID_PATTERN = re.compile(r"[0-9]{1,78}")  # uint256 fits in 78 digits


def is_valid_address(address: Optional[str]) -> bool:
    """0x + 40 hex chars; mixed-case input must carry a valid EIP-55 checksum."""
    if not address or not isinstance(address, str):
        return False
    try:
        return Web3.is_address(address)
    except Exception:
        return False


def checksum_address(address: str) -> str:
    """
    Validate and return the EIP-55 checksummed form.

    Raises:
        ValidationError: if the address is not syntactically valid.
    """
    if not is_valid_address(address):
        raise ValidationError("Invalid Ethereum address format", reason="invalid_address")
    return Web3.to_checksum_address(address)


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive hex comparison."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


def is_valid_tx_ref(tx_ref: Optional[str]) -> bool:
    return bool(tx_ref) and isinstance(tx_ref, str) and bool(TX_REF_PATTERN.fullmatch(tx_ref))


def validate_tx_ref(tx_ref: Optional[str]) -> str:
    if not tx_ref:
        raise ValidationError("Transaction hash is required to record a claim", reason="missing_tx_ref")
    if not is_valid_tx_ref(tx_ref):
        raise ValidationError("Invalid transaction hash format", reason="invalid_tx_ref")
    return tx_ref.lower()


def validate_token_id(token_id: Union[str, int, None]) -> Optional[str]:
    """Token ids are optional; when given they must be a non-negative integer."""
    if token_id is None or token_id == "":
        return None
    if isinstance(token_id, bool):
        raise ValidationError("Invalid token id", reason="invalid_token_id")
    value = str(token_id).strip()
    if not TOKEN_ID_PATTERN.fullmatch(value):
        raise ValidationError("Invalid token id", reason="invalid_token_id")
    return str(int(value))
