"""Tests for the account registration endpoint."""

import pytest

from account_hub.config import config
from account_hub.db import accounts_repo
from tests.constants import TEST_PASSWORD


@pytest.mark.api
def test_register_account(test_client):
    response = test_client.post(
        "/api/auth/register",
        json={
            "username": "Alice",
            "password": TEST_PASSWORD,
            "email": "alice@example.com",
            "displayName": "Alice",
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "Account created."
    account = accounts_repo.get_account_by_id(payload["userId"])
    assert account.username == "alice"
    assert account.display_name == "Alice"


@pytest.mark.api
@pytest.mark.parametrize(
    "body",
    [
        {"username": "a", "password": TEST_PASSWORD},
        {"username": "alice", "password": "short"},
        {"username": "alice", "password": TEST_PASSWORD, "email": "nope"},
    ],
)
def test_register_invalid_input(test_client, body):
    assert test_client.post("/api/auth/register", json=body).status_code == 400


@pytest.mark.api
def test_register_conflicts(test_client):
    body = {"username": "alice", "password": TEST_PASSWORD, "email": "alice@gmail.com"}
    assert test_client.post("/api/auth/register", json=body).status_code == 200

    taken = test_client.post("/api/auth/register", json={**body, "email": None})
    alias = test_client.post(
        "/api/auth/register",
        json={"username": "bob", "password": TEST_PASSWORD, "email": "a.lice+x@gmail.com"},
    )

    assert taken.status_code == 409
    assert taken.json() == {"detail": "Username already exists."}
    assert alias.status_code == 409


@pytest.mark.api
def test_register_requires_web_secret_when_configured(test_client, monkeypatch):
    monkeypatch.setattr(config.security, "web_secret", "web")
    body = {"username": "alice", "password": TEST_PASSWORD}

    assert test_client.post("/api/auth/register", json=body).status_code == 401
    assert (
        test_client.post(
            "/api/auth/register", json=body, headers={"X-Web-Secret": "web"}
        ).status_code
        == 200
    )
