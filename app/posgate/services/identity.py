from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError
from sqlalchemy.exc import SQLAlchemyError

from app.posgate.core.error_catalog import ErrorCatalog, SessionError
from app.posgate.core.security import create_user_access_token, decode_token, verify_password
from app.posgate.repos.users import RevokedTokenRepository, UserRepository
from app.posgate.services.session_store import Session


def _timestamp(value) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class LocalIdentityProvider:
    """Identity provider backed by the user_account table and self-issued JWTs."""

    def __init__(self, db, expires_delta: timedelta | None = None):
        self.users = UserRepository(db)
        self.revoked = RevokedTokenRepository(db)
        self.expires_delta = expires_delta

    def sign_in(self, identifier: str, password: str) -> Session:
        try:
            user = self.users.get_by_username_or_email(identifier)
        except SQLAlchemyError as exc:
            raise SessionError("User lookup failed") from exc
        if user is None or not verify_password(password, user.hashed_password):
            raise SessionError("Invalid credentials", error=ErrorCatalog.INVALID_CREDENTIALS)
        if not user.is_active:
            raise SessionError("User is inactive", error=ErrorCatalog.USER_INACTIVE)
        token = create_user_access_token(user, expires_delta=self.expires_delta)
        return self._build_session(token, decode_token(token), user)

    def get_session(self, token: str) -> Session | None:
        try:
            payload = decode_token(token)
        except JWTError:
            return None
        try:
            jti = payload.get("jti")
            if jti and self.revoked.is_revoked(jti):
                return None
            user = self.users.get_by_id(int(payload["sub"]))
        except SQLAlchemyError as exc:
            raise SessionError("Session lookup failed") from exc
        except (KeyError, TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return self._build_session(token, payload, user)

    def refresh(self, token: str) -> Session:
        current = self.get_session(token)
        if current is None:
            raise SessionError("Session is no longer valid", error=ErrorCatalog.INVALID_TOKEN)
        try:
            user = self.users.get_by_id(int(current.user_id))
            refreshed = create_user_access_token(user, expires_delta=self.expires_delta)
        except SQLAlchemyError as exc:
            raise SessionError("Session refresh failed") from exc
        self.sign_out(token)
        return self._build_session(refreshed, decode_token(refreshed), user)

    def sign_out(self, token: str) -> None:
        try:
            payload = decode_token(token)
        except JWTError:
            return
        jti = payload.get("jti")
        if not jti:
            return
        try:
            self.revoked.revoke(
                jti=jti,
                user_id=int(payload["sub"]),
                expires_at=_timestamp(payload["exp"]).replace(tzinfo=None),
            )
        except SQLAlchemyError as exc:
            raise SessionError("Session revocation failed") from exc

    @staticmethod
    def _build_session(token: str, payload: dict, user) -> Session:
        return Session(
            user_id=str(user.id),
            role_id=user.role_id,
            token=token,
            issued_at=_timestamp(payload["iat"]),
            expiry=_timestamp(payload["exp"]),
            username=user.username,
            email=user.email,
        )
