"""User model."""

from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from adaudit.db.base import Base, utcnow


class User(Base):
    """Signed-in user, created on first successful login."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    profile_image_url = Column(String(500), nullable=True)
    google_id = Column(String(255), unique=True, nullable=True)
    hashed_password = Column(String(255), nullable=True)  # only set for the test-login user
    created_at = Column(DateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    connections = relationship(
        "AccountConnection",
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
