"""Revoked JWT identifiers (logout)."""
from apps.api import db
from apps.api.utils.time import utc_now
from sqlalchemy import Index


class TokenBlacklist(db.Model):
    __tablename__ = 'token_blacklist'

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), unique=True, nullable=False)
    token_type = db.Column(db.String(10), nullable=False)  # access | refresh
    user_id = db.Column(db.Integer, nullable=True)  # plain id, survives user deletion
    expires_at = db.Column(db.DateTime, nullable=False)
    revoked_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_token_blacklist_expires', 'expires_at'),
    )

    @classmethod
    def is_token_revoked(cls, jti: str) -> bool:
        return db.session.query(cls.id).filter_by(jti=jti).first() is not None

    @classmethod
    def add_token_to_blacklist(cls, jti: str, token_type: str, user_id, expires_at):
        entry = cls(
            jti=jti,
            token_type=token_type,
            user_id=int(user_id) if user_id is not None else None,
            expires_at=expires_at,
        )
        db.session.add(entry)
        db.session.commit()
        return entry

    @classmethod
    def purge_expired(cls) -> int:
        """Delete entries whose tokens could no longer be used anyway."""
        removed = cls.query.filter(cls.expires_at < utc_now()).delete(synchronize_session=False)
        db.session.commit()
        return removed
