import datetime

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship

from teamchat.core.database import Base


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(String, nullable=False)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    channel_id = Column(Integer, ForeignKey("channels.id"), nullable=False)

    # Set client-side so ordering keeps sub-second precision on every backend
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    user = relationship("User", back_populates="messages")
    channel = relationship("Channel", back_populates="messages")

    __table_args__ = (
        Index('ix_messages_channel_created', 'channel_id', 'created_at', 'id'),
    )
