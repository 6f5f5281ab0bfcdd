from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from app.posgate.core.config import settings
from app.posgate.core.error_catalog import ErrorCatalog, SessionError
from app.posgate.services.session_store import Session

TRACE_HEADER = "X-Trace-ID"

_ERRORS_BY_CODE = {
    ErrorCatalog.INVALID_CREDENTIALS.code: ErrorCatalog.INVALID_CREDENTIALS,
    ErrorCatalog.INVALID_TOKEN.code: ErrorCatalog.INVALID_TOKEN,
    ErrorCatalog.USER_INACTIVE.code: ErrorCatalog.USER_INACTIVE,
}


def _error_from_response(response: requests.Response) -> SessionError:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        payload = {}
    code = str(payload.get("code") or "HTTP_ERROR")
    return SessionError(
        str(payload.get("message") or response.text or "Identity request failed"),
        error=_ERRORS_BY_CODE.get(code, ErrorCatalog.SESSION_ERROR),
        details={
            "status_code": response.status_code,
            "code": code,
            "trace_id": payload.get("trace_id") or response.headers.get(TRACE_HEADER),
        },
    )


class HttpIdentityProvider:
    """Identity provider talking to the posgate auth endpoints over HTTP."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float | None = None,
        max_connections: int = 4,
    ) -> None:
        self.base_url = (base_url or settings.IDENTITY_BASE_URL).rstrip("/") + "/"
        self.timeout_seconds = timeout_seconds or settings.IDENTITY_TIMEOUT_SECONDS
        self._session = session
        if self._session is None:
            self._session = requests.Session()
            adapter = HTTPAdapter(pool_connections=max_connections, pool_maxsize=max_connections)
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

    def sign_in(self, identifier: str, password: str) -> Session:
        payload = self._request(
            "POST",
            "/posgate/auth/login",
            json_body={"username_or_email": identifier, "password": password},
        )
        return self._session_for(payload)

    def get_session(self, token: str) -> Session | None:
        response = self._send("GET", "/posgate/auth/session", token=token)
        if response.status_code in {401, 403}:
            return None
        if not response.ok:
            raise _error_from_response(response)
        return self._parse_session(token, self._json(response))

    def refresh(self, token: str) -> Session:
        payload = self._request("POST", "/posgate/auth/refresh", token=token)
        return self._session_for(payload)

    def sign_out(self, token: str) -> None:
        response = self._send("POST", "/posgate/auth/logout", token=token)
        # An already invalid token is as signed out as it gets.
        if response.status_code == 401:
            return
        if not response.ok:
            raise _error_from_response(response)

    def close(self) -> None:
        self._session.close()

    def _build_url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    def _session_for(self, token_payload: dict[str, Any]) -> Session:
        token = token_payload.get("access_token")
        if not token:
            raise SessionError("Identity provider returned no access token")
        session = self.get_session(token)
        if session is None:
            raise SessionError("Identity provider rejected its own token", error=ErrorCatalog.INVALID_TOKEN)
        return session

    def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = self._send(method, path, token=token, json_body=json_body)
        if not response.ok:
            raise _error_from_response(response)
        return self._json(response)

    def _send(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> requests.Response:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return self._session.request(
                method=method,
                url=self._build_url(path),
                headers=headers,
                json=json_body,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise SessionError(
                "Network error while calling identity provider",
                details={"type": type(exc).__name__, "error": str(exc)},
            ) from exc

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise SessionError("Identity provider returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise SessionError("Identity provider returned an unexpected payload")
        return payload

    @staticmethod
    def _parse_session(token: str, payload: dict[str, Any]) -> Session:
        try:
            role_id = payload.get("role_id")
            return Session(
                user_id=str(payload["user_id"]),
                role_id=int(role_id) if role_id is not None else None,
                token=token,
                issued_at=datetime.fromisoformat(payload["issued_at"]),
                expiry=datetime.fromisoformat(payload["expires_at"]),
                username=payload.get("username"),
                email=payload.get("email"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SessionError("Malformed session payload", details={"error": str(exc)}) from exc
