# kjess_api/models.py
import datetime
import uuid

from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, ForeignKey
from sqlalchemy.orm import relationship

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime.datetime:
    # naive UTC; the DateTime columns carry no zone
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class Contact(Base):
    __tablename__ = "contacts"
    id = Column(String, primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    phone = Column(Text, default="")
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_now)


class Newsletter(Base):
    __tablename__ = "newsletters"
    id = Column(String, primary_key=True, default=_uuid)
    email = Column(Text, unique=True, nullable=False)
    created_at = Column(DateTime, default=_now)


class Admin(Base):
    __tablename__ = "admin"
    id = Column(String, primary_key=True, default=_uuid)
    username = Column(Text, unique=True, nullable=False, default="admin")
    password = Column(Text, nullable=False)   # bcrypt hash
    created_at = Column(DateTime, default=_now)


class GalleryImage(Base):
    __tablename__ = "gallery_images"
    id = Column(String, primary_key=True, default=_uuid)
    title = Column(Text, nullable=False)
    category = Column(Text, nullable=False)   # residential, commercial, furniture
    subcategory = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    image_url = Column(Text, nullable=False)
    thumbnail_url = Column(Text, nullable=True)
    project_date = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    featured = Column(Boolean, default=False)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)


class SiteContent(Base):
    __tablename__ = "site_content"
    id = Column(String, primary_key=True, default=_uuid)
    section = Column(Text, unique=True, nullable=False)
    content = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now)


class ChatConversation(Base):
    __tablename__ = "chat_conversations"
    id = Column(String, primary_key=True, default=_uuid)
    session_id = Column(Text, nullable=False, index=True)
    user_email = Column(Text, nullable=True)
    user_name = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)
    messages = relationship("ChatMessage", back_populates="conversation", cascade="all, delete")


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    id = Column(String, primary_key=True, default=_uuid)
    conversation_id = Column(String, ForeignKey("chat_conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    is_from_user = Column(Boolean, nullable=False)
    timestamp = Column(DateTime, default=_now, index=True)
    conversation = relationship("ChatConversation", back_populates="messages")


class ChatSettings(Base):
    __tablename__ = "chat_settings"
    id = Column(String, primary_key=True, default=_uuid)
    is_enabled = Column(Boolean, default=True)
    welcome_message = Column(Text, default="Hello! I'm Jasper, your friendly assistant. How can I help you with your interior design needs today?")
    tone = Column(Text, default="professional")   # professional, friendly, casual
    restrict_to_relevant_topics = Column(Boolean, default=True)
    updated_at = Column(DateTime, default=_now, onupdate=_now)


class KnowledgeBaseEntry(Base):
    __tablename__ = "chat_knowledge_base"
    id = Column(String, primary_key=True, default=_uuid)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    category = Column(Text, nullable=False)   # services, portfolio, pricing, faq, ...
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)
