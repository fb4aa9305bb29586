# db/models.py

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from db.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class CookingSession(Base):
    __tablename__ = "cooking_sessions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    diet_type = Column(String, nullable=False)
    allergies = Column(Text, nullable=False)
    chef_personality = Column(String, nullable=False)
    user_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    messages = relationship(
        "ChatMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by=lambda: [ChatMessage.timestamp, ChatMessage.id],
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("cooking_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    sender = Column(String, nullable=False)  # "USER" or "AI"
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    session = relationship("CookingSession", back_populates="messages")


class StoredRecipe(Base):
    __tablename__ = "stored_recipes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    diet = Column(String, nullable=False)
    url = Column(String, nullable=False, unique=True, index=True)
    scanned_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
