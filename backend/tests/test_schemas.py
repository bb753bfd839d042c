from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.models import PositionSide
from app.schemas import Market, MarketUpdateRequest, StakeRequest


def _market_fields(**overrides) -> dict[str, object]:
    now = datetime.now(timezone.utc)
    fields: dict[str, object] = {
        "id": "m-1",
        "question": "Test Question",
        "category": "test",
        "status": "ACTIVE",
        "end_time": now,
        "total_volume": Decimal("12.500000"),
        "yes_pool": Decimal("10"),
        "no_pool": Decimal("2.5"),
        "featured": False,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return fields


def test_market_tags_default_to_empty_list():
    """Verify that markets stored without tags expose an empty list."""
    market = Market.model_validate(_market_fields(tags=None))
    assert market.tags == []


def test_market_amounts_serialize_as_strings():
    """Verify that Decimal amounts keep full precision in JSON payloads."""
    payload = Market.model_validate(_market_fields()).model_dump(mode="json")
    assert payload["total_volume"] == "12.500000"
    assert payload["no_pool"] == "2.5"


def test_stake_request_parses_side_and_amount():
    stake = StakeRequest.model_validate(
        {"position_type": "NO", "amount_staked": "0.000001", "stake_tx_hash": "abc"}
    )
    assert stake.position_type is PositionSide.NO
    assert stake.amount_staked == Decimal("0.000001")


@pytest.mark.parametrize(
    "payload",
    [
        {"position_type": "MAYBE", "amount_staked": "1", "stake_tx_hash": "abc"},
        {"position_type": "YES", "amount_staked": "0.0000001", "stake_tx_hash": "abc"},
        {"position_type": "YES", "amount_staked": "1", "stake_tx_hash": ""},
        {"position_type": "YES", "stake_tx_hash": "abc"},
    ],
)
def test_stake_request_rejects_malformed_payloads(payload):
    with pytest.raises(ValidationError):
        StakeRequest.model_validate(payload)


def test_market_update_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        MarketUpdateRequest.model_validate({"status": "RESOLVED"})
