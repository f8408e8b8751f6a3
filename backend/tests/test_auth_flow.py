from __future__ import annotations

from socialnet.core import config as app_config
from socialnet.core.security import create_access_token
from socialnet.models.account import Account
from socialnet.services import cookies
from socialnet.services.errors import StorageError
from socialnet.services.rotation_store import RotationStore

PASSWORD = "test_password_123"


def _assert_error_shape(res, *, error: str | None = None):
    data = res.json()
    assert isinstance(data, dict)
    assert isinstance(data.get("error"), str) and data["error"]
    assert isinstance(data.get("message"), str) and data["message"]
    if error is not None:
        assert data["error"] == error


def _slot(db_session, email: str) -> str | None:
    db_session.expire_all()
    return db_session.query(Account).filter(Account.email == email).one().remember_token


def _set_cookie_names(res) -> set[str]:
    return {h.split("=", 1)[0] for h in res.headers.get_list("set-cookie")}


def test_register_then_login(client, db_session):
    res = client.post(
        "/auth/register",
        json={"email": "New@Example.com", "password": "secret1", "name": "New User", "username": "newbie"},
    )
    assert res.status_code == 201
    body = res.json()
    assert body["email"] == "new@example.com"
    assert body["username"] == "newbie"
    assert "password_hash" not in body
    assert _slot(db_session, "new@example.com") is None

    res2 = client.post("/auth/login", json={"email": "new@example.com", "password": "secret1"})
    assert res2.status_code == 200


def test_register_duplicate_email_is_409(client):
    res = client.post("/auth/register", json={"email": "test@example.com", "password": "secret1", "name": "Dup"})
    assert res.status_code == 409
    _assert_error_shape(res, error="CONFLICT")


def test_register_short_password_is_422(client):
    res = client.post("/auth/register", json={"email": "short@example.com", "password": "123", "name": "Short"})
    assert res.status_code == 422
    _assert_error_shape(res, error="VALIDATION_ERROR")


def test_login_without_remember_issues_access_only(client, db_session):
    res = client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD})
    assert res.status_code == 200
    body = res.json()
    assert isinstance(body.get("access_token"), str) and body["access_token"]
    assert body["remember"] is False
    assert body["expires_in"] == 3600
    assert body["account"]["email"] == "test@example.com"

    assert client.cookies.get(cookies.access_cookie_name()) == body["access_token"]
    assert client.cookies.get(cookies.refresh_cookie_name()) is None
    assert _slot(db_session, "test@example.com") is None


def test_login_with_remember_issues_both_tokens(client, db_session):
    res = client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD, "remember": True})
    assert res.status_code == 200
    body = res.json()
    assert body["remember"] is True
    assert body["expires_in"] == 10080 * 60

    refresh_token = client.cookies.get(cookies.refresh_cookie_name())
    assert isinstance(refresh_token, str) and len(refresh_token) == 64
    assert _slot(db_session, "test@example.com") == refresh_token

    for header in res.headers.get_list("set-cookie"):
        lowered = header.lower()
        assert "httponly" in lowered
        assert "secure" in lowered
        assert "samesite=strict" in lowered


def test_plain_login_after_remembered_login_drops_refresh_token(client, db_session):
    client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD, "remember": True})
    assert _slot(db_session, "test@example.com") is not None

    res = client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD})
    assert res.status_code == 200
    assert _slot(db_session, "test@example.com") is None
    assert client.cookies.get(cookies.refresh_cookie_name()) is None


def test_login_unknown_email_is_not_found(client):
    res = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert res.status_code == 404
    _assert_error_shape(res, error="NOT_FOUND")


def test_login_wrong_password(client):
    res = client.post("/auth/login", json={"email": "test@example.com", "password": "wrong"})
    assert res.status_code == 401
    _assert_error_shape(res, error="WRONG_PASSWORD")


def test_login_errors_can_be_uniform(client):
    app_config.settings.UNIFORM_LOGIN_ERRORS = True

    res_unknown = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    res_wrong = client.post("/auth/login", json={"email": "test@example.com", "password": "wrong"})

    assert res_unknown.status_code == res_wrong.status_code == 401
    assert res_unknown.json() == res_wrong.json()
    _assert_error_shape(res_unknown, error="INVALID_CREDENTIALS")


def test_login_missing_fields_is_422(client):
    res = client.post("/auth/login", json={"email": "test@example.com"})
    assert res.status_code == 422
    _assert_error_shape(res, error="VALIDATION_ERROR")
    assert isinstance(res.json()["details"]["errors"], list)


def test_refresh_missing_cookie_is_400(client):
    client.cookies.clear()
    res = client.post("/auth/refresh")
    assert res.status_code == 400
    _assert_error_shape(res, error="MISSING_REFRESH_TOKEN")


def test_refresh_rotates_both_cookies(client, db_session):
    client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD, "remember": True})
    old_refresh = client.cookies.get(cookies.refresh_cookie_name())
    old_access = client.cookies.get(cookies.access_cookie_name())

    res = client.post("/auth/refresh")
    assert res.status_code == 200
    body = res.json()
    assert body["remember"] is True
    assert body["account"]["email"] == "test@example.com"
    assert _set_cookie_names(res) == {cookies.access_cookie_name(), cookies.refresh_cookie_name()}

    new_refresh = client.cookies.get(cookies.refresh_cookie_name())
    assert new_refresh and new_refresh != old_refresh
    assert client.cookies.get(cookies.access_cookie_name()) == body["access_token"] != old_access
    assert _slot(db_session, "test@example.com") == new_refresh


def test_refresh_rejects_old_cookie_and_clears_cookies(client, db_session):
    client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD, "remember": True})
    old_refresh = client.cookies.get(cookies.refresh_cookie_name())

    assert client.post("/auth/refresh").status_code == 200
    current = _slot(db_session, "test@example.com")

    # Replay the consumed token.
    client.cookies.clear()
    client.cookies.set(cookies.refresh_cookie_name(), old_refresh)
    res = client.post("/auth/refresh")

    assert res.status_code == 401
    _assert_error_shape(res, error="INVALID_REFRESH_TOKEN")
    assert _set_cookie_names(res) == {cookies.access_cookie_name(), cookies.refresh_cookie_name()}
    assert all("max-age=0" in h.lower() for h in res.headers.get_list("set-cookie"))
    # The replay does not disturb the token that legitimately replaced it.
    assert _slot(db_session, "test@example.com") == current


def test_refresh_store_outage_is_500_and_keeps_cookies(client, db_session, monkeypatch):
    client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD, "remember": True})
    refresh_token = client.cookies.get(cookies.refresh_cookie_name())
    calls: list[int] = []

    def unavailable(self, raw_value):
        calls.append(1)
        raise StorageError("database is locked", transient=True)

    monkeypatch.setattr(RotationStore, "lookup_by_value", unavailable)
    res = client.post("/auth/refresh")

    assert res.status_code == 500
    _assert_error_shape(res, error="INTERNAL_ERROR")
    # Retried once, then reported; an outage is not a rejected token.
    assert len(calls) == 2
    assert res.headers.get_list("set-cookie") == []
    assert client.cookies.get(cookies.refresh_cookie_name()) == refresh_token
    assert _slot(db_session, "test@example.com") == refresh_token


def test_logout_requires_access_token(client):
    client.cookies.clear()
    res = client.post("/auth/logout")
    assert res.status_code == 401
    _assert_error_shape(res, error="UNAUTHORIZED")


def test_logout_rejects_tampered_token(client):
    client.cookies.clear()
    res = client.post("/auth/logout", headers={"Authorization": "Bearer not.a.jwt"})
    assert res.status_code == 401


def test_logout_clears_slot_and_blocks_refresh(client, db_session):
    client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD, "remember": True})
    refresh_token = client.cookies.get(cookies.refresh_cookie_name())

    res = client.post("/auth/logout")
    assert res.status_code == 200
    assert res.json()["message"] == "Logged out"
    assert _slot(db_session, "test@example.com") is None
    assert client.cookies.get(cookies.refresh_cookie_name()) is None
    assert client.cookies.get(cookies.access_cookie_name()) is None

    client.cookies.set(cookies.refresh_cookie_name(), refresh_token)
    res2 = client.post("/auth/refresh")
    assert res2.status_code == 401
    _assert_error_shape(res2, error="INVALID_REFRESH_TOKEN")


def test_logout_with_bearer_header_only_touches_caller(client, db_session, accounts):
    account_a, account_b = accounts
    client.post("/auth/login", json={"email": "other@example.com", "password": PASSWORD, "remember": True})
    other_slot = _slot(db_session, "other@example.com")
    assert other_slot is not None

    client.cookies.clear()
    token = create_access_token(str(account_a.id), expires_minutes=5)
    res = client.post("/auth/logout", headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 200
    assert _slot(db_session, "other@example.com") == other_slot


def test_logout_is_idempotent(client):
    client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD})
    access = client.cookies.get(cookies.access_cookie_name())
    headers = {"Authorization": f"Bearer {access}"}

    assert client.post("/auth/logout", headers=headers).status_code == 200
    # Access tokens are stateless: still valid until expiry, and revoking again is a no-op.
    assert client.post("/auth/logout", headers=headers).status_code == 200


def test_refresh_flow_with_hash_at_rest(client, db_session):
    app_config.settings.REFRESH_TOKEN_HASH_AT_REST = True

    client.post("/auth/login", json={"email": "test@example.com", "password": PASSWORD, "remember": True})
    raw = client.cookies.get(cookies.refresh_cookie_name())
    assert _slot(db_session, "test@example.com") != raw

    res = client.post("/auth/refresh")
    assert res.status_code == 200


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
