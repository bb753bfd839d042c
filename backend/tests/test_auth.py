from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from solders.keypair import Keypair

from app.core.errors import (
    Internal,
    InvalidInput,
    InvalidOrExpiredToken,
    InvalidSignature,
    NonceExpired,
    UserNotFound,
)
from app.services.auth_service import AuthService, TokenCodec
from conftest import auth_headers, login_message


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _signed(wallet: Keypair, nonce: str) -> tuple[str, str]:
    message = login_message(nonce)
    return str(wallet.sign_message(message.encode("utf-8"))), message


def test_request_nonce_registers_wallet(client, keypair):
    response = client.post("/auth/nonce", json={"wallet_address": str(keypair.pubkey())})

    assert response.status_code == 200
    body = response.json()
    assert len(body["nonce"]) == 32
    int(body["nonce"], 16)
    expires_at = datetime.fromisoformat(body["expires_at"].replace("Z", "+00:00"))
    remaining = expires_at - datetime.now(timezone.utc)
    assert timedelta(minutes=4) < remaining <= timedelta(minutes=5)


def test_request_nonce_rejects_malformed_wallet(client):
    response = client.post("/auth/nonce", json={"wallet_address": "not-a-wallet"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_INPUT"


def test_each_nonce_request_issues_a_fresh_challenge(client, keypair):
    payload = {"wallet_address": str(keypair.pubkey())}
    first = client.post("/auth/nonce", json=payload).json()["nonce"]
    second = client.post("/auth/nonce", json=payload).json()["nonce"]

    assert first != second


def test_verify_issues_token_that_authenticates_profile(client, keypair, login):
    token = login(keypair)

    response = client.get("/auth/profile", headers=auth_headers(token))

    assert response.status_code == 200
    body = response.json()
    assert body["wallet_address"] == str(keypair.pubkey())
    assert body["positions"] == []


def test_verify_rejects_signature_from_another_wallet(client, keypair):
    address = str(keypair.pubkey())
    nonce = client.post("/auth/nonce", json={"wallet_address": address}).json()["nonce"]
    signature, message = _signed(Keypair(), nonce)

    response = client.post(
        "/auth/verify",
        json={"wallet_address": address, "signature": signature, "message": message},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_SIGNATURE"


def test_verify_requires_message_to_carry_issued_nonce(client, keypair):
    address = str(keypair.pubkey())
    client.post("/auth/nonce", json={"wallet_address": address})
    signature, message = _signed(keypair, "0" * 32)

    response = client.post(
        "/auth/verify",
        json={"wallet_address": address, "signature": signature, "message": message},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_SIGNATURE"


def test_verify_unknown_wallet_is_not_found(client, keypair):
    signature, message = _signed(keypair, "abc")

    response = client.post(
        "/auth/verify",
        json={
            "wallet_address": str(keypair.pubkey()),
            "signature": signature,
            "message": message,
        },
    )

    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


def test_nonce_cannot_be_replayed(client, keypair):
    address = str(keypair.pubkey())
    nonce = client.post("/auth/nonce", json={"wallet_address": address}).json()["nonce"]
    signature, message = _signed(keypair, nonce)
    payload = {"wallet_address": address, "signature": signature, "message": message}

    assert client.post("/auth/verify", json=payload).status_code == 200
    replay = client.post("/auth/verify", json=payload)

    assert replay.status_code == 401
    assert replay.json()["code"] == "NONCE_EXPIRED"


def test_expired_nonce_is_rejected(db_session, keypair, test_settings):
    clock = _Clock(datetime.now(timezone.utc))
    service = AuthService(db_session, test_settings, clock=clock)
    address = str(keypair.pubkey())
    issued = service.request_nonce(address)
    signature, message = _signed(keypair, issued.nonce)

    clock.now += timedelta(seconds=test_settings.nonce_ttl_seconds + 1)

    with pytest.raises(NonceExpired):
        service.verify_wallet(address, signature, message)


def test_nonce_is_valid_until_ttl_elapses(db_session, keypair, test_settings):
    clock = _Clock(datetime.now(timezone.utc))
    service = AuthService(db_session, test_settings, clock=clock)
    address = str(keypair.pubkey())
    issued = service.request_nonce(address)
    signature, message = _signed(keypair, issued.nonce)

    clock.now += timedelta(seconds=test_settings.nonce_ttl_seconds - 1)
    token = service.verify_wallet(address, signature, message)

    assert service.authenticate(token.token).wallet_address == address


def test_verify_service_errors(db_session, keypair, test_settings):
    service = AuthService(db_session, test_settings)
    address = str(keypair.pubkey())

    with pytest.raises(InvalidInput):
        service.request_nonce("bogus")
    with pytest.raises(UserNotFound):
        service.verify_wallet(address, "sig", "msg")

    issued = service.request_nonce(address)
    with pytest.raises(InvalidSignature):
        service.verify_wallet(address, "not-base58!", login_message(issued.nonce))


@pytest.mark.parametrize(
    "headers, code",
    [
        ({}, "NOT_AUTHENTICATED"),
        ({"Authorization": "Token abc"}, "NOT_AUTHENTICATED"),
        ({"Authorization": "Bearer not-a-jwt"}, "INVALID_TOKEN"),
    ],
)
def test_profile_requires_valid_bearer_token(client, headers, code):
    response = client.get("/auth/profile", headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == code


def test_expired_token_is_rejected(test_settings):
    issued_at = datetime.now(timezone.utc) - timedelta(minutes=test_settings.jwt_expires_minutes + 5)
    stale = TokenCodec(test_settings, clock=lambda: issued_at).issue("user-1")

    with pytest.raises(InvalidOrExpiredToken):
        TokenCodec(test_settings).decode(stale.token)


def test_token_lifetime_follows_codec_clock(test_settings):
    clock = _Clock(datetime.now(timezone.utc) + timedelta(minutes=5))
    codec = TokenCodec(test_settings, clock=clock)
    token = codec.issue("user-1").token

    assert codec.decode(token) == "user-1"

    clock.now += timedelta(minutes=test_settings.jwt_expires_minutes)
    with pytest.raises(InvalidOrExpiredToken):
        codec.decode(token)


def test_token_signed_with_another_secret_is_rejected(test_settings):
    other = test_settings.model_copy(update={"jwt_secret": "another-secret-0123456789abcdefghij"})
    token = TokenCodec(other).issue("user-1").token

    with pytest.raises(InvalidOrExpiredToken):
        TokenCodec(test_settings).decode(token)


def test_token_round_trip_carries_user_id(test_settings):
    codec = TokenCodec(test_settings)

    assert codec.decode(codec.issue("user-42").token) == "user-42"


def test_missing_secret_is_an_internal_error(test_settings):
    unsigned = test_settings.model_copy(update={"jwt_secret": None})

    with pytest.raises(Internal):
        TokenCodec(unsigned).issue("user-1")


def test_token_for_deleted_user_is_rejected(db_session, test_settings):
    token = TokenCodec(test_settings).issue("missing-user").token

    with pytest.raises(InvalidOrExpiredToken):
        AuthService(db_session, test_settings).authenticate(token)


def test_logout_clears_outstanding_nonce(client, keypair, login):
    token = login(keypair)
    address = str(keypair.pubkey())
    nonce = client.post("/auth/nonce", json={"wallet_address": address}).json()["nonce"]

    response = client.post("/auth/logout", headers=auth_headers(token))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Logged out successfully"}
    signature, message = _signed(keypair, nonce)
    replay = client.post(
        "/auth/verify",
        json={"wallet_address": address, "signature": signature, "message": message},
    )
    assert replay.json()["code"] == "NONCE_EXPIRED"
