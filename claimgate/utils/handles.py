"""
Social Handle Normalization
===========================
Canonicalizes X (Twitter) handles so every lookup, write and comparison uses
the same key.

Pipeline:
1. Trim surrounding whitespace
2. Strip one leading '@' sigil
3. Lower-case and trim again
4. Validate against the platform grammar (1-15 chars of [A-Za-z0-9_])

normalize_handle(normalize_handle(h)) == normalize_handle(h) for every
accepted h.
"""

import re
from typing import Iterable, List, Optional, Tuple

from claimgate.errors import ValidationError

HANDLE_SIGIL = "@"
HANDLE_PATTERN = re.compile(r"[A-Za-z0-9_]{1,15}")


def _canonicalize(raw: str) -> str:
    handle = raw.strip()
    if handle.startswith(HANDLE_SIGIL):
        handle = handle[1:]
    return handle.lower().strip()


def normalize_handle(raw: Optional[str]) -> str:
    """
    Normalize a raw handle.

    Raises:
        ValidationError: empty input or a result outside the handle grammar.
    """
    if raw is None or not isinstance(raw, str):
        raise ValidationError("Handle is required", reason="invalid_handle")

    handle = _canonicalize(raw)
    if not handle:
        raise ValidationError("Handle is required", reason="invalid_handle")
    if not HANDLE_PATTERN.fullmatch(handle):
        raise ValidationError("Invalid X handle format", reason="invalid_handle")
    return handle


def try_normalize_handle(raw: Optional[str]) -> Optional[str]:
    """Like normalize_handle, but returns None instead of raising."""
    try:
        return normalize_handle(raw)
    except ValidationError:
        return None


def normalize_handles(raw_handles: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Normalize a batch, dropping duplicates while keeping first-seen order.

    Returns:
        (accepted, rejected) - rejected holds the raw inputs that failed.
    """
    accepted: List[str] = []
    rejected: List[str] = []
    seen = set()
    for raw in raw_handles:
        handle = try_normalize_handle(raw)
        if handle is None:
            rejected.append(raw)
            continue
        if handle not in seen:
            seen.add(handle)
            accepted.append(handle)
    return accepted, rejected
