from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional
from . import models

DEFAULT_WELCOME_MESSAGE = "Hello! I'm Jasper, your friendly assistant. How can I help you with your interior design needs today?"


def _save(db: Session, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _apply(row, changes: Dict) -> None:
    for key, value in changes.items():
        setattr(row, key, value)


# ---------- Contacts / Newsletter ----------
def create_contact(db: Session, name: str, email: str, message: str, phone: str = "") -> models.Contact:
    return _save(db, models.Contact(name=name, email=email, phone=phone or "", message=message))

def get_contacts(db: Session) -> List[models.Contact]:
    return db.query(models.Contact).order_by(models.Contact.created_at.desc()).all()

def get_newsletter_by_email(db: Session, email: str) -> Optional[models.Newsletter]:
    return db.query(models.Newsletter).filter(models.Newsletter.email == email).first()

def create_newsletter(db: Session, email: str) -> models.Newsletter:
    return _save(db, models.Newsletter(email=email))

def get_newsletters(db: Session) -> List[models.Newsletter]:
    return db.query(models.Newsletter).order_by(models.Newsletter.created_at.desc()).all()


# ---------- Admin ----------
def get_admin(db: Session) -> Optional[models.Admin]:
    return db.query(models.Admin).first()

def create_admin(db: Session, password_hash: str, username: str = "admin") -> models.Admin:
    return _save(db, models.Admin(username=username, password=password_hash))


# ---------- Gallery ----------
def list_gallery_images(db: Session) -> List[models.GalleryImage]:
    return db.query(models.GalleryImage)\
        .order_by(models.GalleryImage.sort_order, models.GalleryImage.created_at)\
        .all()

def get_gallery_image(db: Session, image_id: str) -> Optional[models.GalleryImage]:
    return db.get(models.GalleryImage, image_id)

def create_gallery_image(db: Session, **fields) -> models.GalleryImage:
    return _save(db, models.GalleryImage(**fields))

def update_gallery_image(db: Session, image_id: str, changes: Dict) -> Optional[models.GalleryImage]:
    image = get_gallery_image(db, image_id)
    if not image:
        return None
    _apply(image, changes)
    return _save(db, image)

def delete_gallery_image(db: Session, image_id: str) -> bool:
    image = get_gallery_image(db, image_id)
    if not image:
        return False
    db.delete(image)
    db.commit()
    return True

def reorder_gallery_images(db: Session, orders: Iterable[Dict]) -> int:
    """Apply ``[{"id": ..., "sort_order": ...}]``; returns how many rows matched."""
    updated = 0
    for item in orders:
        image = get_gallery_image(db, item["id"])
        if image:
            image.sort_order = item["sort_order"]
            updated += 1
    db.commit()
    return updated


# ---------- Site content ----------
def get_all_site_content(db: Session) -> List[models.SiteContent]:
    return db.query(models.SiteContent).order_by(models.SiteContent.section).all()

def get_site_content(db: Session, section: str) -> Optional[models.SiteContent]:
    return db.query(models.SiteContent).filter(models.SiteContent.section == section).first()

def upsert_site_content(db: Session, section: str, content: str) -> models.SiteContent:
    row = get_site_content(db, section) or models.SiteContent(section=section)
    row.content = content
    return _save(db, row)


# ---------- Chat conversations ----------
def create_conversation(db: Session, session_id: str, user_email: Optional[str] = None,
                        user_name: Optional[str] = None) -> models.ChatConversation:
    return _save(db, models.ChatConversation(session_id=session_id, user_email=user_email, user_name=user_name))

def get_conversation(db: Session, conversation_id: str) -> Optional[models.ChatConversation]:
    return db.get(models.ChatConversation, conversation_id)

def list_conversations(db: Session) -> List[models.ChatConversation]:
    return db.query(models.ChatConversation)\
        .order_by(models.ChatConversation.created_at.desc())\
        .all()


# ---------- Chat messages ----------
def create_message(db: Session, conversation_id: str, message: str, is_from_user: bool,
                   timestamp=None) -> models.ChatMessage:
    row = models.ChatMessage(conversation_id=conversation_id, message=message, is_from_user=is_from_user)
    if timestamp is not None:
        row.timestamp = timestamp
    return _save(db, row)

def get_messages(db: Session, conversation_id: str) -> List[models.ChatMessage]:
    return db.query(models.ChatMessage)\
        .filter(models.ChatMessage.conversation_id == conversation_id)\
        .order_by(models.ChatMessage.timestamp, models.ChatMessage.is_from_user.desc())\
        .all()


# ---------- Chat settings ----------
def get_chat_settings(db: Session) -> Optional[models.ChatSettings]:
    return db.query(models.ChatSettings).first()

def upsert_chat_settings(db: Session, changes: Dict) -> models.ChatSettings:
    row = get_chat_settings(db) or models.ChatSettings(
        is_enabled=True,
        welcome_message=DEFAULT_WELCOME_MESSAGE,
        tone="professional",
        restrict_to_relevant_topics=True,
    )
    _apply(row, changes)
    return _save(db, row)


# ---------- Knowledge base ----------
def list_knowledge(db: Session) -> List[models.KnowledgeBaseEntry]:
    return db.query(models.KnowledgeBaseEntry).order_by(models.KnowledgeBaseEntry.created_at).all()

def list_active_knowledge(db: Session) -> List[models.KnowledgeBaseEntry]:
    return db.query(models.KnowledgeBaseEntry)\
        .filter(models.KnowledgeBaseEntry.is_active.is_(True))\
        .order_by(models.KnowledgeBaseEntry.created_at)\
        .all()

def get_knowledge(db: Session, entry_id: str) -> Optional[models.KnowledgeBaseEntry]:
    return db.get(models.KnowledgeBaseEntry, entry_id)

def create_knowledge(db: Session, title: str, content: str, category: str,
                     is_active: bool = True) -> models.KnowledgeBaseEntry:
    return _save(db, models.KnowledgeBaseEntry(title=title, content=content, category=category, is_active=is_active))

def update_knowledge(db: Session, entry_id: str, changes: Dict) -> Optional[models.KnowledgeBaseEntry]:
    entry = get_knowledge(db, entry_id)
    if not entry:
        return None
    _apply(entry, changes)
    return _save(db, entry)

def delete_knowledge(db: Session, entry_id: str) -> bool:
    entry = get_knowledge(db, entry_id)
    if not entry:
        return False
    db.delete(entry)
    db.commit()
    return True
