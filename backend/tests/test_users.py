from __future__ import annotations

from decimal import Decimal

import pytest
from solders.keypair import Keypair

from app.core.errors import Conflict, InvalidInput, NotOwner, UserNotFound
from app.domain import ProfileUpdate
from app.models import PositionSide
from app.services.market_service import MarketService
from app.services.trading_service import StakeOrder, TradingService
from app.services.user_service import UserService
from conftest import auth_headers


def _stake(session, user, market, side, amount):
    order = StakeOrder(
        market_id=market.id, side=PositionSide(side), amount=Decimal(amount), stake_tx_hash="tx"
    )
    return TradingService(session).place_stake(user.id, order)


def _user_id(client, token) -> str:
    return client.get("/auth/profile", headers=auth_headers(token)).json()["id"]


def test_user_stats_track_winnings_and_streak(db_session, make_user, make_market):
    trader, counterparty = make_user(), make_user()
    markets = [make_market(creator=trader) for _ in range(3)]
    resolver = MarketService(db_session)
    for market in markets:
        _stake(db_session, trader, market, "YES", "10")
        _stake(db_session, counterparty, market, "NO", "10")
    resolver.resolve_market(markets[0].id, False)
    resolver.resolve_market(markets[1].id, True)
    resolver.resolve_market(markets[2].id, True)
    open_market = make_market()
    _stake(db_session, trader, open_market, "NO", "1")

    detail = UserService(db_session).get_user(trader.id)

    assert detail.stats.total_markets_created == 3
    assert detail.stats.active_positions == 1
    assert detail.stats.total_winnings == Decimal("20")
    assert detail.stats.current_streak == 2
    assert detail.profile.correct_predictions == 2


def test_unknown_user_is_not_found(client):
    response = client.get("/users/nobody")

    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


def test_user_updates_own_profile(client, login):
    token = login(Keypair())
    user_id = _user_id(client, token)

    response = client.put(
        f"/users/{user_id}",
        json={"username": "  oracle  ", "email": "oracle@example.com"},
        headers=auth_headers(token),
    )

    assert response.status_code == 200
    assert response.json()["username"] == "oracle"
    assert response.json()["email"] == "oracle@example.com"


def test_user_cannot_update_someone_else(client, login):
    token = login(Keypair())
    other_id = _user_id(client, login(Keypair()))

    response = client.put(
        f"/users/{other_id}", json={"username": "mallory"}, headers=auth_headers(token)
    )

    assert response.status_code == 403
    assert response.json()["code"] == "NOT_OWNER"


@pytest.mark.parametrize(
    "update",
    [
        ProfileUpdate(),
        ProfileUpdate(username="   "),
        ProfileUpdate(username="x" * 51),
        ProfileUpdate(email="not-an-email"),
        ProfileUpdate(email=f"{'a' * 250}@example.com"),
    ],
)
def test_profile_update_validation(db_session, make_user, update):
    user = make_user()

    with pytest.raises(InvalidInput):
        UserService(db_session).update_user(user.id, user.id, update)


def test_profile_update_rules(db_session, make_user):
    taken, user = make_user(username="taken"), make_user(email="old@example.com")
    service = UserService(db_session)

    with pytest.raises(NotOwner):
        service.update_user(taken.id, user.id, ProfileUpdate(username="x"))
    with pytest.raises(Conflict):
        service.update_user(user.id, user.id, ProfileUpdate(username="taken"))

    cleared = service.update_user(user.id, user.id, ProfileUpdate(email=""))
    assert cleared.email is None

    with pytest.raises(UserNotFound):
        service.update_user("ghost", "ghost", ProfileUpdate(username="ghost"))


def test_leaderboard_ranks_active_traders(db_session, make_user, make_market):
    idle = make_user(reputation_score=1000)
    low, high = make_user(reputation_score=5), make_user(reputation_score=50)
    market = make_market()
    _stake(db_session, low, market, "YES", "100")
    _stake(db_session, high, market, "NO", "1")
    service = UserService(db_session)

    by_reputation = service.leaderboard()
    by_volume = service.leaderboard(sort_by="volume")
    second_page = service.leaderboard(limit=1, offset=1)

    assert [entry.id for entry in by_reputation] == [high.id, low.id]
    assert idle.id not in {entry.id for entry in by_reputation}
    assert [entry.id for entry in by_volume] == [low.id, high.id]
    assert [(entry.rank, entry.id) for entry in second_page] == [(2, low.id)]


def test_leaderboard_rejects_unknown_sort(client):
    response = client.get("/users/leaderboard", params={"sort_by": "luck"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_INPUT"


def test_user_positions_and_history(client, db_session, make_user, make_market):
    user = make_user()
    open_market, closed_market = make_market(), make_market()
    _stake(db_session, user, open_market, "YES", "3")
    _stake(db_session, user, closed_market, "NO", "4")
    MarketService(db_session).resolve_market(closed_market.id, False)

    every = client.get(f"/users/{user.id}/positions").json()
    open_only = client.get(
        f"/users/{user.id}/positions", params={"include_settled": "false"}
    ).json()
    history = client.get(f"/users/{user.id}/history", params={"limit": 1}).json()

    assert len(every) == 2
    assert [item["market_id"] for item in open_only] == [open_market.id]
    assert len(history) == 1
    assert history[0]["type"] == "STAKE"


def test_history_paging_is_validated(client, make_user):
    user = make_user()

    response = client.get(f"/users/{user.id}/history", params={"offset": -1})

    assert response.status_code == 400
