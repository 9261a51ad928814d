from datetime import timedelta

import pytest

from teaching_apps.routers.password_gate import ACCESS_COOKIE, create_access_token, token_grants_access
from teaching_apps.settings import settings


@pytest.fixture
def gated(monkeypatch):
    monkeypatch.setattr(settings, "app_password", "open-sesame")


def test_apps_are_open_without_password(client):
    assert client.get("/blockchain-demo").status_code == 200


def test_gated_app_requires_cookie(client, gated):
    assert client.get("/blockchain-demo").status_code == 401
    assert client.get("/health").status_code == 200


def test_wrong_password_is_rejected(client, gated):
    r = client.post("/password-gate", data={"password": "nope"})
    assert r.status_code == 200
    assert r.json() == {"success": False}
    assert ACCESS_COOKIE not in r.cookies
    assert client.get("/blockchain-demo").status_code == 401


def test_correct_password_sets_cookie(client, gated):
    r = client.post("/password-gate", data={"password": "open-sesame"})
    assert r.json() == {"success": True}
    assert ACCESS_COOKIE in r.cookies
    assert client.get("/blockchain-demo").status_code == 200


def test_gate_without_configured_password_never_succeeds(client):
    r = client.post("/password-gate", data={"password": ""})
    assert r.json() == {"success": False}


def test_token_checks():
    assert token_grants_access(create_access_token())
    assert not token_grants_access(create_access_token(timedelta(seconds=-10)))
    assert not token_grants_access("granted")
    assert not token_grants_access(None)


@pytest.mark.parametrize("minutes", [0, -5])
def test_non_positive_expiry_falls_back_to_twelve_hours(client, gated, monkeypatch, minutes):
    monkeypatch.setattr(settings, "access_token_expire_minutes", minutes)
    r = client.post("/password-gate", data={"password": "open-sesame"})
    assert r.json() == {"success": True}
    assert "Max-Age=43200" in r.headers["set-cookie"]
    assert client.get("/blockchain-demo").status_code == 200
