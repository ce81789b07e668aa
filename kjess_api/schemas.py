from typing import ClassVar, FrozenSet, List, Optional, Literal
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel

Tone = Literal["professional", "friendly", "casual"]
GalleryCategory = Literal["residential", "commercial", "furniture"]
SuggestedAction = Literal["contact", "consultation", "newsletter"]


class CamelModel(BaseModel):
    """Base for every API shape: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PartialUpdate(CamelModel):
    """
    Body of a partial update: omitted fields are left alone. An explicit null is
    only accepted for the fields listed in ``nullable_fields``.
    """
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_nulls(self):
        nulls = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.nullable_fields
        )
        if nulls:
            raise ValueError(f"{', '.join(to_camel(n) for n in nulls)} cannot be null")
        return self


# ---------- Contact / Newsletter ----------
class ContactCreate(CamelModel):
    name: str = Field(min_length=2)
    email: EmailStr
    phone: str = ""
    message: str = Field(min_length=10)


class Contact(ContactCreate):
    id: str
    email: str
    created_at: datetime


class NewsletterCreate(CamelModel):
    email: EmailStr


class Newsletter(CamelModel):
    id: str
    email: str
    created_at: datetime


# ---------- Admin ----------
class AdminLogin(CamelModel):
    password: str = Field(min_length=1)


class AdminToken(CamelModel):
    token: str
    token_type: str = "bearer"


# ---------- Gallery ----------
class GalleryImage(CamelModel):
    id: str
    title: str
    category: str
    subcategory: str
    description: str
    image_url: str
    thumbnail_url: Optional[str] = None
    project_date: Optional[str] = None
    location: Optional[str] = None
    featured: bool = False
    sort_order: int = 0
    created_at: datetime
    updated_at: datetime


class GalleryImageUpdate(PartialUpdate):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"thumbnail_url", "project_date", "location"})

    title: Optional[str] = Field(None, min_length=1)
    category: Optional[GalleryCategory] = None
    subcategory: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=10)
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    project_date: Optional[str] = None
    location: Optional[str] = None
    featured: Optional[bool] = None
    sort_order: Optional[int] = None


class GalleryOrder(CamelModel):
    id: str
    sort_order: int


class UploadResult(CamelModel):
    original_url: str
    thumbnail_url: str
    filename: str


class ImageMetadata(CamelModel):
    """Optional form fields sent alongside an upload."""
    title: Optional[str] = None
    subcategory: Optional[str] = None
    description: Optional[str] = None
    project_date: Optional[str] = None
    location: Optional[str] = None
    featured: bool = False

    @property
    def complete(self) -> bool:
        return bool(self.title and self.subcategory and self.description)


# ---------- Site content ----------
class SiteContentUpdate(CamelModel):
    content: str = Field(min_length=1)


class SiteContent(CamelModel):
    id: str
    section: str
    content: str
    updated_at: datetime


# ---------- Chat ----------
class ChatConversationCreate(CamelModel):
    session_id: str = Field(min_length=1)
    user_email: Optional[EmailStr] = None
    user_name: Optional[str] = None


class ChatConversation(CamelModel):
    id: str
    session_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class ChatMessageCreate(CamelModel):
    conversation_id: str = Field(min_length=1)
    message: str = Field(min_length=1)
    is_from_user: bool


class ChatMessage(CamelModel):
    id: str
    conversation_id: str
    message: str
    is_from_user: bool
    timestamp: datetime


class ActionButton(CamelModel):
    type: Literal["whatsapp"] = "whatsapp"
    label: str
    action: str


class AssistantMessage(ChatMessage):
    action_button: Optional[ActionButton] = None


class ChatReply(CamelModel):
    user_message: ChatMessage
    ai_message: AssistantMessage
    suggested_action: Optional[SuggestedAction] = None


class ChatSettingsPublic(CamelModel):
    is_enabled: bool
    welcome_message: str
    tone: Tone


class ChatSettings(ChatSettingsPublic):
    restrict_to_relevant_topics: bool
    updated_at: Optional[datetime] = None


class ChatSettingsUpdate(PartialUpdate):
    is_enabled: Optional[bool] = None
    welcome_message: Optional[str] = Field(None, min_length=1)
    tone: Optional[Tone] = None
    restrict_to_relevant_topics: Optional[bool] = None


# ---------- Knowledge base ----------
class KnowledgeCreate(CamelModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=10)
    category: str = Field(min_length=1)
    is_active: bool = True


class KnowledgeUpdate(PartialUpdate):
    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = Field(None, min_length=10)
    category: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None


class KnowledgeEntry(KnowledgeCreate):
    id: str
    created_at: datetime
    updated_at: datetime


# ---------- Response Shapes ----------
class ConversationWithMessages(ChatConversation):
    """For returning a conversation with its ordered history"""
    messages: List[ChatMessage] = []
