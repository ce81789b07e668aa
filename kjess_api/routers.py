import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import AdminIdentity, authenticate, require_admin
from .chat_service import start_conversation
from .db import get_db
from .errors import InvalidInputKind, NotFoundError, PayloadTooLarge

logger = logging.getLogger(__name__)

router = APIRouter()


def _dump(model: schemas.CamelModel) -> dict:
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")


def get_images(request: Request):
    return request.app.state.images


def get_chat(request: Request):
    return request.app.state.chat


# ---------- Public ----------
@router.get("/health")
def health(request: Request):
    return {"status": "ok", "storage": request.app.state.storage.name}


@router.get("/gallery", response_model=List[schemas.GalleryImage])
def list_gallery(db: Session = Depends(get_db)):
    return crud.list_gallery_images(db)


@router.get("/content", response_model=List[schemas.SiteContent])
def list_content(db: Session = Depends(get_db)):
    return crud.get_all_site_content(db)


@router.post("/contact", status_code=201)
def submit_contact(body: schemas.ContactCreate, db: Session = Depends(get_db)):
    contact = crud.create_contact(db, body.name, body.email, body.message, body.phone)
    return {
        "message": "Thank you for your message! We'll get back to you soon.",
        "contact": _dump(schemas.Contact.model_validate(contact)),
    }


@router.post("/newsletter", status_code=201)
def subscribe(body: schemas.NewsletterCreate, db: Session = Depends(get_db)):
    if crud.get_newsletter_by_email(db, body.email):
        return JSONResponse(status_code=409, content={"message": "Email already subscribed to our newsletter"})
    newsletter = crud.create_newsletter(db, body.email)
    return {
        "message": "Successfully subscribed to our newsletter!",
        "newsletter": _dump(schemas.Newsletter.model_validate(newsletter)),
    }


# ---------- Chat ----------
@router.get("/chat/settings", response_model=schemas.ChatSettingsPublic)
def public_chat_settings(db: Session = Depends(get_db)):
    row = crud.get_chat_settings(db)
    if not row:
        return schemas.ChatSettingsPublic(
            is_enabled=True, welcome_message=crud.DEFAULT_WELCOME_MESSAGE, tone="professional")
    return row


@router.post("/chat/start", response_model=schemas.ChatConversation, status_code=201)
def chat_start(body: schemas.ChatConversationCreate, db: Session = Depends(get_db)):
    return start_conversation(db, body.session_id, body.user_email, body.user_name)


@router.post("/chat/message")
def chat_message(body: schemas.ChatMessageCreate, db: Session = Depends(get_db), chat=Depends(get_chat)):
    result = chat.post_message(db, body.conversation_id, body.message, body.is_from_user)
    user_message = schemas.ChatMessage.model_validate(result["user_message"])
    if "ai_message" not in result:
        return _dump(user_message)

    ai_message = schemas.AssistantMessage(
        **schemas.ChatMessage.model_validate(result["ai_message"]).model_dump(),
        action_button=result["action_button"],
    )
    reply = schemas.ChatReply(
        user_message=user_message,
        ai_message=ai_message,
        suggested_action=result["suggested_action"],
    )
    return _dump(reply)


@router.get("/chat/conversations/{conversation_id}/messages", response_model=List[schemas.ChatMessage])
def chat_history(conversation_id: str, db: Session = Depends(get_db)):
    if not crud.get_conversation(db, conversation_id):
        raise NotFoundError(message="Conversation not found")
    return crud.get_messages(db, conversation_id)


# ---------- Admin: session ----------
@router.post("/admin/login", response_model=schemas.AdminToken)
def admin_login(body: schemas.AdminLogin, request: Request, db: Session = Depends(get_db)):
    token = authenticate(db, request.app.state.settings, body.password)
    return schemas.AdminToken(token=token)


@router.get("/admin/check")
def admin_check(admin: AdminIdentity = Depends(require_admin)):
    return {"authenticated": True, "username": admin.username}


# ---------- Admin: gallery ----------
@router.post("/admin/upload", status_code=201)
def admin_upload(
    request: Request,
    image: Optional[UploadFile] = File(None),
    category: str = Form("gallery"),
    title: Optional[str] = Form(None),
    subcategory: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    project_date: Optional[str] = Form(None, alias="projectDate"),
    location: Optional[str] = Form(None),
    featured: bool = Form(False),
    db: Session = Depends(get_db),
    images=Depends(get_images),
    admin: AdminIdentity = Depends(require_admin),
):
    """Upload one image; creates a gallery record when title, subcategory and description are sent."""
    if image is None or not image.filename:
        raise InvalidInputKind(message="No file provided")
    if not (image.content_type or "").startswith("image/"):
        raise InvalidInputKind(f"unsupported content type {image.content_type!r}")

    limit = request.app.state.settings.max_upload_bytes
    data = image.file.read(limit + 1)
    if len(data) > limit:
        raise PayloadTooLarge(f"file is larger than {limit} bytes")

    metadata = schemas.ImageMetadata(
        title=title, subcategory=subcategory, description=description,
        project_date=project_date, location=location, featured=featured,
    )
    upload, record = images.ingest(db, data, category, metadata, actor=admin.username)

    body = {
        "message": "Image uploaded successfully",
        "upload": _dump(schemas.UploadResult(**upload)),
    }
    if record is not None:
        body["galleryImage"] = _dump(schemas.GalleryImage.model_validate(record))
    return body


@router.get("/admin/gallery", response_model=List[schemas.GalleryImage])
def admin_gallery(db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    return crud.list_gallery_images(db)


@router.put("/admin/gallery/reorder")
def admin_reorder(body: List[schemas.GalleryOrder], db: Session = Depends(get_db),
                  admin: AdminIdentity = Depends(require_admin)):
    updated = crud.reorder_gallery_images(db, [item.model_dump() for item in body])
    return {"message": "Gallery order updated", "updated": updated}


@router.put("/admin/gallery/{image_id}", response_model=schemas.GalleryImage)
def admin_update_image(image_id: str, body: schemas.GalleryImageUpdate, db: Session = Depends(get_db),
                       admin: AdminIdentity = Depends(require_admin)):
    image = crud.update_gallery_image(db, image_id, body.model_dump(exclude_unset=True))
    if not image:
        raise NotFoundError(message="Image not found")
    return image


@router.delete("/admin/gallery/{image_id}")
def admin_delete_image(image_id: str, db: Session = Depends(get_db), images=Depends(get_images),
                       admin: AdminIdentity = Depends(require_admin)):
    images.delete_image(db, image_id, actor=admin.username)
    return {"message": "Image deleted successfully"}


# ---------- Admin: chat ----------
@router.get("/admin/chat/settings", response_model=schemas.ChatSettings)
def admin_chat_settings(db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    return crud.get_chat_settings(db) or crud.upsert_chat_settings(db, {})


@router.put("/admin/chat/settings", response_model=schemas.ChatSettings)
def admin_update_chat_settings(body: schemas.ChatSettingsUpdate, db: Session = Depends(get_db),
                               admin: AdminIdentity = Depends(require_admin)):
    settings = crud.upsert_chat_settings(db, body.model_dump(exclude_unset=True))
    logger.info("Chat settings updated by %s", admin.username)
    return settings


@router.get("/admin/chat/knowledge", response_model=List[schemas.KnowledgeEntry])
def admin_knowledge(db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    return crud.list_knowledge(db)


@router.post("/admin/chat/knowledge", response_model=schemas.KnowledgeEntry, status_code=201)
def admin_create_knowledge(body: schemas.KnowledgeCreate, db: Session = Depends(get_db),
                           admin: AdminIdentity = Depends(require_admin)):
    return crud.create_knowledge(db, body.title, body.content, body.category, body.is_active)


@router.put("/admin/chat/knowledge/{entry_id}", response_model=schemas.KnowledgeEntry)
def admin_update_knowledge(entry_id: str, body: schemas.KnowledgeUpdate, db: Session = Depends(get_db),
                           admin: AdminIdentity = Depends(require_admin)):
    entry = crud.update_knowledge(db, entry_id, body.model_dump(exclude_unset=True))
    if not entry:
        raise NotFoundError(message="Knowledge base item not found")
    return entry


@router.delete("/admin/chat/knowledge/{entry_id}")
def admin_delete_knowledge(entry_id: str, db: Session = Depends(get_db),
                           admin: AdminIdentity = Depends(require_admin)):
    if not crud.delete_knowledge(db, entry_id):
        raise NotFoundError(message="Knowledge base item not found")
    return {"message": "Knowledge base item deleted"}


@router.get("/admin/chat/conversations", response_model=List[schemas.ChatConversation])
def admin_conversations(db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    return crud.list_conversations(db)


@router.get("/admin/chat/conversations/{conversation_id}", response_model=schemas.ConversationWithMessages)
def admin_conversation(conversation_id: str, db: Session = Depends(get_db),
                       admin: AdminIdentity = Depends(require_admin)):
    conversation = crud.get_conversation(db, conversation_id)
    if not conversation:
        raise NotFoundError(message="Conversation not found")
    return schemas.ConversationWithMessages(
        **schemas.ChatConversation.model_validate(conversation).model_dump(),
        messages=[schemas.ChatMessage.model_validate(m) for m in crud.get_messages(db, conversation_id)],
    )


# ---------- Admin: content, contacts, newsletter ----------
@router.get("/admin/content", response_model=List[schemas.SiteContent])
def admin_content(db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    return crud.get_all_site_content(db)


@router.put("/admin/content/{section}", response_model=schemas.SiteContent)
def admin_update_content(section: Literal["about", "services"], body: schemas.SiteContentUpdate,
                         db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    return crud.upsert_site_content(db, section, body.content)


@router.get("/admin/contacts", response_model=List[schemas.Contact])
def admin_contacts(db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    return crud.get_contacts(db)


@router.get("/admin/newsletters", response_model=List[schemas.Newsletter])
def admin_newsletters(db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    return crud.get_newsletters(db)
