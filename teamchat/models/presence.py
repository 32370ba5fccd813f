import datetime

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship

from teamchat.core.database import Base


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


class Presence(Base):
    """One row per transport connection. Flagged offline, never deleted, on disconnect."""
    __tablename__ = "presence"

    id = Column(Integer, primary_key=True, index=True)
    connection_id = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    online = Column(Boolean, default=True, nullable=False)
    last_seen = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    user = relationship("User", back_populates="presences")
