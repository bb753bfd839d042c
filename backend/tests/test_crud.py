from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from app import crud
from app.core.errors import UserNotFound


@patch("app.crud.MarketService")
def test_resolve_market(mock_market_service):
    """Verify that resolve_market delegates settlement to the market service."""
    mock_session = MagicMock()

    result = crud.resolve_market(mock_session, "market-1", True)

    mock_market_service.assert_called_once_with(mock_session)
    mock_market_service.return_value.resolve_market.assert_called_once_with("market-1", True)
    assert result is mock_market_service.return_value.resolve_market.return_value


def test_get_market():
    """Verify that get_market looks the market up by primary key."""
    mock_session = MagicMock()

    crud.get_market(mock_session, "market-1")

    mock_session.get.assert_called_once_with(crud.Market, "market-1")


@patch("app.crud.UserRepository")
def test_set_kyc_level(mock_user_repo):
    """Verify that set_kyc_level updates the wallet's user and flushes."""
    mock_session = MagicMock()
    user = MagicMock(kyc_level=0)
    mock_user_repo.return_value.get_by_wallet.return_value = user

    result = crud.set_kyc_level(mock_session, "wallet", 3)

    mock_user_repo.return_value.get_by_wallet.assert_called_once_with("wallet")
    assert result.kyc_level == 3
    mock_session.flush.assert_called_once()


@patch("app.crud.UserRepository")
def test_set_kyc_level_unknown_wallet(mock_user_repo):
    """Verify that promoting an unregistered wallet fails loudly."""
    mock_user_repo.return_value.get_by_wallet.return_value = None

    with pytest.raises(UserNotFound):
        crud.set_kyc_level(MagicMock(), "wallet", 3)
