"""Tests for the login token issue and redemption endpoints."""

import pytest
from fastapi.testclient import TestClient

from account_hub.api.server import create_app
from account_hub.config import config
from account_hub.services.rate_limit import SlidingWindowRateLimiter
from tests.constants import CURRENT_CLIENT_VERSION, TEST_PASSWORD, TOKEN_HEX_LENGTH

GAME_SECRET = "game-secret"


def _login_body(**overrides) -> dict:
    body = {
        "username": "alice",
        "password": TEST_PASSWORD,
        "serverId": 1,
        "currentClientVersion": CURRENT_CLIENT_VERSION,
    }
    body.update(overrides)
    return body


@pytest.fixture
def alice(make_account, make_world) -> int:
    make_world(1)
    return make_account("alice", display_name="Alice")


@pytest.fixture
def game_secret(monkeypatch) -> dict[str, str]:
    monkeypatch.setattr(config.security, "game_server_secret", GAME_SECRET)
    return {"X-Game-Server-Secret": GAME_SECRET}


@pytest.mark.api
def test_get_login_token_success(test_client, alice):
    response = test_client.post("/getLoginToken", json=_login_body())

    assert response.status_code == 200
    payload = response.json()
    assert payload["code"] == 1
    assert payload["msg"] == "ok"
    assert len(payload["data"]["token"]) == TOKEN_HEX_LENGTH


@pytest.mark.api
@pytest.mark.parametrize(
    ("overrides", "code"),
    [
        ({"username": ""}, -400),
        ({"serverId": "abc"}, -401),
        ({"serverId": 0}, -401),
        ({"currentClientVersion": None}, -402),
        ({"serverId": 12}, -303),
        ({"username": "ghost"}, -301),
        ({"password": "incorrect-password"}, -302),
    ],
)
def test_get_login_token_failures_keep_http_200(test_client, alice, overrides, code):
    response = test_client.post("/getLoginToken", json=_login_body(**overrides))

    assert response.status_code == 200
    assert response.json()["code"] == code
    assert "data" not in response.json()


@pytest.mark.api
def test_get_login_token_accepts_string_ids(test_client, alice):
    response = test_client.post(
        "/getLoginToken", json=_login_body(serverId="1", currentClientVersion="42")
    )
    assert response.json()["code"] == 1


@pytest.mark.api
def test_get_login_token_rejects_unknown_fields(test_client, alice):
    response = test_client.post("/getLoginToken", json=_login_body(admin=True))
    assert response.status_code == 422


@pytest.mark.api
def test_get_login_token_is_rate_limited(hub, alice):
    hub.login_limiter = SlidingWindowRateLimiter(window_seconds=60, max_requests=2)
    client = TestClient(create_app(hub))

    for _ in range(2):
        assert client.post("/getLoginToken", json=_login_body(password="x")).status_code == 200
    response = client.post("/getLoginToken", json=_login_body())

    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0
    assert response.json()["detail"]["retryAfter"] == int(response.headers["Retry-After"])


@pytest.mark.api
def test_rate_limit_can_be_disabled(hub, alice, monkeypatch):
    monkeypatch.setattr(config.rate_limit, "enabled", False)
    hub.login_limiter = SlidingWindowRateLimiter(window_seconds=60, max_requests=1)
    client = TestClient(create_app(hub))

    for _ in range(3):
        assert client.post("/getLoginToken", json=_login_body()).status_code == 200


@pytest.mark.api
def test_consume_login_token_flow(test_client, alice, game_secret):
    token = test_client.post("/getLoginToken", json=_login_body()).json()["data"]["token"]

    mismatch = test_client.post(
        "/api/game/consumeLoginToken", json={"token": token, "serverId": 2}, headers=game_secret
    )
    assert mismatch.status_code == 401
    assert mismatch.json() == {"detail": "Token server mismatch"}

    redeemed = test_client.post(
        "/api/game/consumeLoginToken", json={"token": token, "serverId": 1}, headers=game_secret
    )
    assert redeemed.status_code == 200
    assert redeemed.json() == {
        "success": True,
        "user": {"id": alice, "username": "alice", "displayName": "Alice"},
        "serverId": 1,
        "clientVersion": CURRENT_CLIENT_VERSION,
    }

    again = test_client.post(
        "/api/game/consumeLoginToken", json={"token": token, "serverId": 1}, headers=game_secret
    )
    assert again.status_code == 401
    assert again.json() == {"detail": "Token already used"}


@pytest.mark.api
def test_consume_login_token_expired(test_client, alice, clock):
    token = test_client.post("/getLoginToken", json=_login_body()).json()["data"]["token"]
    clock.advance(config.login_tokens.effective_ttl_seconds)

    response = test_client.post(
        "/api/game/consumeLoginToken", json={"token": token, "serverId": 1}
    )

    assert response.status_code == 401
    assert response.json() == {"detail": "Token expired"}


@pytest.mark.api
@pytest.mark.parametrize(
    ("body", "status"),
    [
        ({"token": "short", "serverId": 1}, 400),
        ({"token": "f" * 64}, 400),
        ({"token": "f" * 64, "serverId": 1}, 404),
    ],
)
def test_consume_login_token_errors(test_client, body, status):
    assert test_client.post("/api/game/consumeLoginToken", json=body).status_code == status


@pytest.mark.api
def test_consume_requires_game_secret_when_configured(test_client, game_secret):
    body = {"token": "f" * 64, "serverId": 1}

    missing = test_client.post("/api/game/consumeLoginToken", json=body)
    wrong = test_client.post(
        "/api/game/consumeLoginToken", json=body, headers={"X-Game-Server-Secret": "nope"}
    )

    assert missing.status_code == 401
    assert wrong.status_code == 401
