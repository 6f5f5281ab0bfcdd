from datetime import datetime, timezone

from sqlalchemy import delete, select

from app.posgate.db.models import RevokedToken, UserAccount


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, user_id: int):
        return self.db.get(UserAccount, user_id)

    def get_by_username_or_email(self, identifier: str):
        stmt = select(UserAccount).where((UserAccount.username == identifier) | (UserAccount.email == identifier))
        return self.db.execute(stmt).scalars().first()


class RevokedTokenRepository:
    def __init__(self, db):
        self.db = db

    def is_revoked(self, jti: str) -> bool:
        return self.db.get(RevokedToken, jti) is not None

    def purge_expired(self, now: datetime | None = None) -> int:
        # Stored timestamps are naive UTC.
        cutoff = now or datetime.now(timezone.utc).replace(tzinfo=None)
        result = self.db.execute(delete(RevokedToken).where(RevokedToken.expires_at < cutoff))
        return result.rowcount or 0

    def revoke(self, *, jti: str, user_id: int, expires_at: datetime) -> None:
        if self.is_revoked(jti):
            return
        self.purge_expired()
        self.db.add(RevokedToken(jti=jti, user_id=user_id, expires_at=expires_at))
        self.db.commit()
