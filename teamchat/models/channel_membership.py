from sqlalchemy import Column, Integer, ForeignKey, DateTime, func, UniqueConstraint
from sqlalchemy.orm import relationship

from teamchat.core.database import Base

class ChannelMembership(Base):
    __tablename__ = "channel_memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    channel_id = Column(Integer, ForeignKey("channels.id"), nullable=False, index=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="channel_memberships")
    channel = relationship("Channel", back_populates="members")

    # A user can only be a member of a channel once
    __table_args__ = (
        UniqueConstraint('user_id', 'channel_id', name='unique_channel_member'),
    )
