import json
from datetime import datetime, timedelta, timezone

import pytest
import requests
import responses
from sqlalchemy.exc import OperationalError

from app.posgate.clients.identity_http import HttpIdentityProvider
from app.posgate.core.error_catalog import SessionError
from app.posgate.core.security import create_user_access_token, decode_token
from app.posgate.db.models import RevokedToken
from app.posgate.repos.users import RevokedTokenRepository
from app.posgate.services.identity import LocalIdentityProvider
from tests.access_helpers import PASSWORD, auth_headers, create_user, login, seed_scenario


class BrokenSession:
    def execute(self, *_args, **_kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is unreachable"))

    def get(self, *_args, **_kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is unreachable"))


def test_sign_in_issues_session_for_role(db_session):
    seed_scenario(db_session)
    user = create_user(db_session, username="alice", role_id=1)

    session = LocalIdentityProvider(db_session).sign_in("alice", PASSWORD)

    assert session.user_id == str(user.id)
    assert session.role_id == 1
    assert session.email == "alice@example.com"
    assert session.expiry > session.issued_at
    assert decode_token(session.token)["sub"] == str(user.id)


def test_sign_in_accepts_email(db_session):
    seed_scenario(db_session)
    create_user(db_session, username="alice", role_id=1)

    assert LocalIdentityProvider(db_session).sign_in("alice@example.com", PASSWORD).username == "alice"


@pytest.mark.parametrize("identifier,password", [("alice", "wrong"), ("nobody", PASSWORD)])
def test_sign_in_rejects_bad_credentials(db_session, identifier, password):
    seed_scenario(db_session)
    create_user(db_session, username="alice", role_id=1)

    with pytest.raises(SessionError) as exc_info:
        LocalIdentityProvider(db_session).sign_in(identifier, password)

    assert exc_info.value.error.code == "INVALID_CREDENTIALS"


def test_sign_in_rejects_inactive_user(db_session):
    seed_scenario(db_session)
    create_user(db_session, username="alice", role_id=1, is_active=False)

    with pytest.raises(SessionError) as exc_info:
        LocalIdentityProvider(db_session).sign_in("alice", PASSWORD)

    assert exc_info.value.error.code == "USER_INACTIVE"


def test_get_session_rejects_garbage_and_expired_tokens(db_session):
    seed_scenario(db_session)
    user = create_user(db_session, username="alice", role_id=1)
    provider = LocalIdentityProvider(db_session)
    expired = create_user_access_token(user, expires_delta=timedelta(seconds=-5))

    assert provider.get_session("not-a-jwt") is None
    assert provider.get_session(expired) is None


def test_get_session_reflects_current_role(db_session):
    seed_scenario(db_session)
    user = create_user(db_session, username="alice", role_id=1)
    provider = LocalIdentityProvider(db_session)
    session = provider.sign_in("alice", PASSWORD)

    user.role_id = 3
    db_session.commit()

    assert provider.get_session(session.token).role_id == 3


def test_deactivated_user_loses_session(db_session):
    seed_scenario(db_session)
    user = create_user(db_session, username="alice", role_id=1)
    provider = LocalIdentityProvider(db_session)
    session = provider.sign_in("alice", PASSWORD)

    user.is_active = False
    db_session.commit()

    assert provider.get_session(session.token) is None


def test_sign_out_revokes_token(db_session):
    seed_scenario(db_session)
    create_user(db_session, username="alice", role_id=1)
    provider = LocalIdentityProvider(db_session)
    session = provider.sign_in("alice", PASSWORD)

    provider.sign_out(session.token)
    provider.sign_out(session.token)
    provider.sign_out("not-a-jwt")

    assert provider.get_session(session.token) is None


def test_refresh_revokes_previous_token(db_session):
    seed_scenario(db_session)
    create_user(db_session, username="alice", role_id=1)
    provider = LocalIdentityProvider(db_session)
    session = provider.sign_in("alice", PASSWORD)

    refreshed = provider.refresh(session.token)

    assert refreshed.token != session.token
    assert provider.get_session(refreshed.token) is not None
    assert provider.get_session(session.token) is None
    with pytest.raises(SessionError) as exc_info:
        provider.refresh(session.token)
    assert exc_info.value.error.code == "INVALID_TOKEN"


def test_store_failure_becomes_session_error():
    with pytest.raises(SessionError) as exc_info:
        LocalIdentityProvider(BrokenSession()).sign_in("alice", PASSWORD)

    assert exc_info.value.error.code == "SESSION_ERROR"


BASE = "https://identity.example.com"
SESSION_PAYLOAD = {
    "user_id": "7",
    "role_id": 1,
    "username": "alice",
    "email": "alice@example.com",
    "issued_at": "2026-01-05T10:00:00+00:00",
    "expires_at": "2026-01-05T11:00:00+00:00",
    "trace_id": "t-1",
}


def _http_provider() -> HttpIdentityProvider:
    return HttpIdentityProvider(BASE, timeout_seconds=2)


@responses.activate
def test_http_provider_sign_in_reads_back_session() -> None:
    responses.add(responses.POST, f"{BASE}/posgate/auth/login", json={"access_token": "tok-1", "token_type": "bearer"})
    responses.add(responses.GET, f"{BASE}/posgate/auth/session", json=SESSION_PAYLOAD)

    session = _http_provider().sign_in("alice", "pw")

    assert session.token == "tok-1"
    assert session.user_id == "7"
    assert session.role_id == 1
    assert session.expiry > session.issued_at
    assert json.loads(responses.calls[0].request.body) == {"username_or_email": "alice", "password": "pw"}
    assert responses.calls[1].request.headers["Authorization"] == "Bearer tok-1"


@responses.activate
def test_http_provider_maps_invalid_credentials() -> None:
    responses.add(
        responses.POST,
        f"{BASE}/posgate/auth/login",
        status=401,
        json={"code": "INVALID_CREDENTIALS", "message": "Invalid credentials", "details": None, "trace_id": "t-9"},
    )

    with pytest.raises(SessionError) as exc_info:
        _http_provider().sign_in("alice", "wrong")

    assert exc_info.value.error.code == "INVALID_CREDENTIALS"
    assert exc_info.value.details == {"status_code": 401, "code": "INVALID_CREDENTIALS", "trace_id": "t-9"}


@responses.activate
def test_http_provider_treats_rejected_token_as_no_session() -> None:
    responses.add(responses.GET, f"{BASE}/posgate/auth/session", status=401, json={"code": "INVALID_TOKEN"})

    assert _http_provider().get_session("stale") is None


@responses.activate
def test_http_provider_server_error_is_session_error() -> None:
    responses.add(
        responses.GET,
        f"{BASE}/posgate/auth/session",
        status=503,
        json={"code": "DB_UNAVAILABLE", "message": "Database unavailable", "trace_id": "t-2"},
    )

    with pytest.raises(SessionError) as exc_info:
        _http_provider().get_session("tok-1")

    assert exc_info.value.error.code == "SESSION_ERROR"
    assert exc_info.value.details["code"] == "DB_UNAVAILABLE"


@responses.activate
def test_http_provider_network_error_is_session_error() -> None:
    responses.add(responses.GET, f"{BASE}/posgate/auth/session", body=requests.ConnectionError("connection refused"))

    with pytest.raises(SessionError) as exc_info:
        _http_provider().get_session("tok-1")

    assert exc_info.value.details["type"] == "ConnectionError"


@responses.activate
def test_http_provider_rejects_malformed_session_payload() -> None:
    responses.add(responses.GET, f"{BASE}/posgate/auth/session", json={"user_id": "7"})

    with pytest.raises(SessionError):
        _http_provider().get_session("tok-1")


@responses.activate
def test_http_provider_refresh_and_sign_out() -> None:
    responses.add(responses.POST, f"{BASE}/posgate/auth/refresh", json={"access_token": "tok-2"})
    responses.add(responses.GET, f"{BASE}/posgate/auth/session", json=SESSION_PAYLOAD)
    responses.add(responses.POST, f"{BASE}/posgate/auth/logout", json={"status": "signed_out"})
    responses.add(responses.POST, f"{BASE}/posgate/auth/logout", status=401, json={"code": "INVALID_TOKEN"})
    provider = _http_provider()

    refreshed = provider.refresh("tok-1")
    provider.sign_out(refreshed.token)
    provider.sign_out(refreshed.token)

    assert refreshed.token == "tok-2"
    assert responses.calls[0].request.headers["Authorization"] == "Bearer tok-1"


@responses.activate
def test_http_provider_sign_out_failure_raises() -> None:
    responses.add(responses.POST, f"{BASE}/posgate/auth/logout", status=500, body="boom")

    with pytest.raises(SessionError) as exc_info:
        _http_provider().sign_out("tok-1")

    assert exc_info.value.message == "boom"


def test_http_provider_parses_server_session_payload(client, db_session) -> None:
    seed_scenario(db_session)
    user = create_user(db_session, username="alice", role_id=3)
    token = login(client, "alice")
    payload = client.get("/posgate/auth/session", headers=auth_headers(token)).json()

    session = HttpIdentityProvider._parse_session(token, payload)

    assert session.user_id == str(user.id)
    assert session.role_id == 3
    assert session.expiry > session.issued_at


def test_revoking_purges_expired_revocations(db_session):
    seed_scenario(db_session)
    user = create_user(db_session, username="alice", role_id=1)
    revoked = RevokedTokenRepository(db_session)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    revoked.revoke(jti="old", user_id=user.id, expires_at=now - timedelta(minutes=5))

    revoked.revoke(jti="fresh", user_id=user.id, expires_at=now + timedelta(minutes=30))

    assert not revoked.is_revoked("old")
    assert revoked.is_revoked("fresh")
    assert db_session.query(RevokedToken).count() == 1
