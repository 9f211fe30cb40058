"""
Tests for the claim status state machine and ClaimRecord serialization.
"""

from datetime import datetime, timezone

import pytest

from claimgate.errors import ConflictError
from claimgate.models.claims import (
    ClaimRecord,
    ClaimStatus,
    check_transition,
    is_transition_allowed,
)

P = ClaimStatus.PENDING_WHITELIST
W = ClaimStatus.WHITELISTED
F = ClaimStatus.WHITELIST_FAILED
C = ClaimStatus.CLAIMED


class TestTransitions:
    """Test the status transition table."""

    @pytest.mark.parametrize("current,new", [
        (None, P), (None, W), (None, F),
        (P, P), (P, W), (P, F), (P, C),
        (W, W), (W, C),
        (F, P), (F, W), (F, F), (F, C),
    ])
    def test_allowed(self, current, new):
        assert is_transition_allowed(current, new)
        check_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        (None, C),
        (W, P), (W, F),
        (C, P), (C, W), (C, F), (C, C),
    ])
    def test_rejected(self, current, new):
        assert not is_transition_allowed(current, new)
        with pytest.raises(ConflictError) as exc:
            check_transition(current, new)
        assert exc.value.reason == "invalid_transition"
        assert exc.value.status_code == 409


class TestClaimRecord:
    """Test ClaimRecord row mapping."""

    def test_from_row_coerces_token_id(self):
        record = ClaimRecord.from_row({
            "handle": "alice",
            "status": "claimed",
            "token_id": 7,
            "claimed_at": "2025-01-01T00:00:00+00:00",
            "id": 123,  # unknown columns are ignored
        })
        assert record.token_id == "7"
        assert record.status == ClaimStatus.CLAIMED
        assert record.claimed_at == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_is_claimed(self):
        assert not ClaimRecord(handle="a", status=W).is_claimed
        assert ClaimRecord(handle="a", status=W, token_id="1").is_claimed
        assert ClaimRecord(handle="a", status=C).is_claimed

    def test_public_dict_hides_operator_fields(self):
        record = ClaimRecord(
            handle="alice",
            identity_id="user-alice",
            status=F,
            error_message="rpc exploded at 10.0.0.3",
        )
        public = record.public_dict()
        assert "error_message" not in public
        assert "identity_id" not in public
        assert public["status"] == "whitelist_failed"

    def test_to_row_is_json_ready(self):
        record = ClaimRecord(handle="alice", status=W, whitelisted_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
        row = record.to_row()
        assert row["status"] == "whitelisted"
        assert isinstance(row["whitelisted_at"], str)
