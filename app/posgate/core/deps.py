from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from app.posgate.core.error_catalog import AppError, ErrorCatalog
from app.posgate.db.session import get_db
from app.posgate.services.identity import LocalIdentityProvider
from app.posgate.services.session_store import Session

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/posgate/auth/login", auto_error=False)


def get_optional_session(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db=Depends(get_db),
) -> Session | None:
    if not token:
        return None
    session = LocalIdentityProvider(db).get_session(token)
    if session is not None:
        request.state.user_id = session.user_id
        request.state.role_id = session.role_id
    return session


def require_session(session: Session | None = Depends(get_optional_session)) -> Session:
    if session is None:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    return session


__all__ = ["get_optional_session", "require_session", "oauth2_scheme"]
