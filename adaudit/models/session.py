"""Server-side login session model."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from adaudit.db.base import Base, utcnow


class UserSession(Base):
    """Login session keyed by the hash of the opaque cookie value."""
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now(), nullable=False)
