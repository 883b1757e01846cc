"""Account connection model."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from adaudit.db.base import Base, utcnow


class AccountConnection(Base):
    """Link between a user and one external ad platform account."""
    __tablename__ = "account_connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)  # google-ads, facebook-ads, ...
    account_id = Column(String(255), nullable=False)
    account_name = Column(String(255), nullable=False)
    access_token = Column(Text, nullable=True)  # Fernet-encrypted
    refresh_token = Column(Text, nullable=True)  # Fernet-encrypted
    expires_at = Column(DateTime, nullable=True)  # advisory only, never enforced
    is_active = Column(Integer, default=1, nullable=False)  # 1 active, 0 inactive
    created_at = Column(DateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="connections")
