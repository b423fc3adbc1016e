"""Stored credential model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from scheduling_gateway.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredCredentials(Base):
    """Client credentials cached for quick re-authentication."""
    __tablename__ = "stored_credentials"

    id = Column(Integer, primary_key=True)
    client_id = Column(String, nullable=False)
    client_secret = Column(String, nullable=False)
    use_backend_proxy = Column(Boolean, default=True)
    saved_at = Column(DateTime(timezone=True), default=_utcnow)
