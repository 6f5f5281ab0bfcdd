from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from app.posgate.core.error_catalog import SessionError
from app.posgate.core.logging import log_json

logger = logging.getLogger("posgate.session")


@dataclass(frozen=True)
class Identity:
    user_id: str
    role_id: int | None
    username: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class Session:
    user_id: str
    role_id: int | None
    token: str
    issued_at: datetime
    expiry: datetime
    username: str | None = None
    email: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        current = now or datetime.now(timezone.utc)
        return self.expiry <= current

    @property
    def identity(self) -> Identity:
        return Identity(user_id=self.user_id, role_id=self.role_id, username=self.username, email=self.email)


class SessionEvent(str, Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    TOKEN_REFRESHED = "token_refreshed"


SessionListener = Callable[[SessionEvent, Session | None], None]


def _provider_failure(exc: Exception) -> SessionError:
    return SessionError(
        f"Identity provider failure: {exc}",
        details={"reason": str(exc), "type": exc.__class__.__name__},
    )


class IdentityProvider(Protocol):
    def sign_in(self, identifier: str, password: str) -> Session: ...

    def get_session(self, token: str) -> Session | None: ...

    def refresh(self, token: str) -> Session: ...

    def sign_out(self, token: str) -> None: ...


class SessionStore:
    """Holds the single live session of a client and announces every change to it.

    Listeners always observe the replacement session, never the old and the new one
    side by side: the held session is swapped before any listener runs.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        *,
        on_error: Callable[[SessionError], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._provider = provider
        self._session: Session | None = None
        self._listeners: list[SessionListener] = []
        self._on_error = on_error
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.last_error: SessionError | None = None

    @property
    def session(self) -> Session | None:
        return self._session

    def on_session_change(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get_current_session(self) -> Session | None:
        session = self._session
        if session is None:
            return None
        if session.is_expired(self._clock()):
            log_json(logger, {"event": "session.expired", "user_id": session.user_id})
            self._replace(None, SessionEvent.SIGNED_OUT)
            return None
        try:
            current = self._provider.get_session(session.token)
        except SessionError as exc:
            self._report(exc, action="get_session")
            return None
        except Exception as exc:
            self._report(_provider_failure(exc), action="get_session")
            return None

        if current is None:
            self._replace(None, SessionEvent.SIGNED_OUT)
            return None
        if current != session:
            # Role or token metadata changed upstream.
            self._replace(current, SessionEvent.TOKEN_REFRESHED)
        return current

    def sign_in(self, identifier: str, password: str) -> Session:
        try:
            session = self._provider.sign_in(identifier, password)
        except SessionError as exc:
            self._report(exc, action="sign_in")
            raise
        except Exception as exc:
            error = _provider_failure(exc)
            self._report(error, action="sign_in")
            raise error from exc
        self.last_error = None
        self._replace(session, SessionEvent.SIGNED_IN)
        return session

    def refresh(self) -> Session | None:
        session = self._session
        if session is None:
            return None
        try:
            refreshed = self._provider.refresh(session.token)
        except SessionError as exc:
            self._report(exc, action="refresh")
            raise
        except Exception as exc:
            error = _provider_failure(exc)
            self._report(error, action="refresh")
            raise error from exc
        self._replace(refreshed, SessionEvent.TOKEN_REFRESHED)
        return refreshed

    def sign_out(self) -> None:
        session = self._session
        if session is None:
            return
        error: SessionError | None = None
        try:
            self._provider.sign_out(session.token)
        except SessionError as exc:
            error = exc
        except Exception as exc:
            error = _provider_failure(exc)
            error.__cause__ = exc
        self._replace(None, SessionEvent.SIGNED_OUT)
        if error is not None:
            self._report(error, action="sign_out")
            raise error

    def _replace(self, session: Session | None, event: SessionEvent) -> None:
        self._session = session
        log_json(
            logger,
            {
                "event": f"session.{event.value}",
                "user_id": session.user_id if session else None,
                "role_id": session.role_id if session else None,
            },
        )
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("session listener failed for %s", event.value)

    def _report(self, error: SessionError, *, action: str) -> None:
        self.last_error = error
        log_json(
            logger,
            {"event": "session.error", "action": action, "code": error.error.code, "message": error.message},
            level=logging.WARNING,
        )
        if self._on_error is not None:
            self._on_error(error)
