from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship

from teamchat.core.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    channel_memberships = relationship("ChannelMembership", back_populates="user", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="user")
    presences = relationship("Presence", back_populates="user", cascade="all, delete-orphan")
