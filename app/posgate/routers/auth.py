import logging

from fastapi import APIRouter, Depends, Request

from app.posgate.core.deps import require_session
from app.posgate.core.logging import log_json
from app.posgate.db.session import get_db
from app.posgate.schemas.auth import LoginRequest, LogoutResponse, SessionResponse, TokenResponse
from app.posgate.services.identity import LocalIdentityProvider
from app.posgate.services.session_store import Session

router = APIRouter()
logger = logging.getLogger("posgate.auth")


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


@router.post("/login", response_model=TokenResponse, summary="Sign in with username or email")
async def login(request: Request, payload: LoginRequest, db=Depends(get_db)):
    session = LocalIdentityProvider(db).sign_in(payload.identifier, payload.password)
    log_json(
        logger,
        {"event": "auth.login", "trace_id": _trace_id(request), "user_id": session.user_id, "role_id": session.role_id},
    )
    return TokenResponse(access_token=session.token, expires_at=session.expiry, trace_id=_trace_id(request))


@router.get("/session", response_model=SessionResponse, summary="Current session")
async def current_session(request: Request, session: Session = Depends(require_session)):
    return SessionResponse(
        user_id=session.user_id,
        role_id=session.role_id,
        username=session.username,
        email=session.email,
        issued_at=session.issued_at,
        expires_at=session.expiry,
        trace_id=_trace_id(request),
    )


@router.post("/refresh", response_model=TokenResponse, summary="Exchange a live token for a new one")
async def refresh(request: Request, session: Session = Depends(require_session), db=Depends(get_db)):
    refreshed = LocalIdentityProvider(db).refresh(session.token)
    log_json(logger, {"event": "auth.refresh", "trace_id": _trace_id(request), "user_id": refreshed.user_id})
    return TokenResponse(access_token=refreshed.token, expires_at=refreshed.expiry, trace_id=_trace_id(request))


@router.post("/logout", response_model=LogoutResponse, summary="Revoke the current token")
async def logout(request: Request, session: Session = Depends(require_session), db=Depends(get_db)):
    LocalIdentityProvider(db).sign_out(session.token)
    log_json(logger, {"event": "auth.logout", "trace_id": _trace_id(request), "user_id": session.user_id})
    return LogoutResponse(trace_id=_trace_id(request))
