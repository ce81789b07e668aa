"""Chat assistant pipeline: conversation lifecycle and one reply per user message."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models
from .config import Settings
from .directives import parse_reply
from .errors import GenerationFailure, NotFoundError, RecordCreationFailure
from .llm_service import DEFAULT_TONE, build_messages

logger = logging.getLogger(__name__)


def start_conversation(db: Session, session_id: str, user_email: Optional[str] = None,
                       user_name: Optional[str] = None) -> models.ChatConversation:
    # no dedup on session_id: every call opens a new conversation
    conversation = crud.create_conversation(db, session_id, user_email, user_name)
    logger.info("Started conversation %s for session %s", conversation.id, session_id)
    return conversation


def _blob(entries, render) -> str:
    return "\n\n".join(render(e) for e in entries if e.content)


def grounding_context(db: Session) -> Dict[str, str]:
    """Site content and active knowledge entries, one paragraph per entry."""
    return {
        "company_context": _blob(crud.get_all_site_content(db), lambda s: f"{s.section}: {s.content.strip()}"),
        "knowledge_base": _blob(crud.list_active_knowledge(db), lambda k: f"{k.title}: {k.content.strip()}"),
    }


def _history(rows: List[models.ChatMessage]) -> List[Dict[str, str]]:
    return [{"role": "user" if m.is_from_user else "assistant", "content": m.message} for m in rows]


class ChatPipeline:
    def __init__(self, settings: Settings, responder):
        self.settings = settings
        self.responder = responder

    def post_message(self, db: Session, conversation_id: str, message: str, is_from_user: bool) -> Dict[str, Any]:
        """
        Stores the incoming message, and for user messages generates, parses and
        stores one assistant reply. Returns ``{"user_message": ...}`` alone for
        non-user messages, otherwise the full reply payload.
        """
        if not crud.get_conversation(db, conversation_id):
            raise NotFoundError(message="Conversation not found")

        user_msg = crud.create_message(db, conversation_id, message, is_from_user)
        if not is_from_user:
            return {"user_message": user_msg}

        prior = [m for m in crud.get_messages(db, conversation_id) if m.id != user_msg.id]
        chat_settings = crud.get_chat_settings(db)
        tone = (chat_settings.tone if chat_settings else None) or DEFAULT_TONE
        restrict = chat_settings.restrict_to_relevant_topics if chat_settings else True

        prompt = build_messages(
            self.settings,
            message,
            history=_history(prior),
            tone=tone,
            restrict_topics=restrict,
            **grounding_context(db),
        )
        try:
            raw = self.responder.generate(prompt)
        except GenerationFailure as e:
            # the user message stays committed
            logger.error("Conversation %s: no reply generated (%s): %s",
                         conversation_id, type(e).__name__, e.detail)
            raise
        text, button, action = parse_reply(raw)

        try:
            ai_msg = crud.create_message(db, conversation_id, text, False)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Assistant reply not saved for conversation %s: %s", conversation_id, e)
            raise RecordCreationFailure(message="Failed to process message") from e

        logger.info("Conversation %s: replied (button=%s, action=%s)", conversation_id, bool(button), action)
        return {
            "user_message": user_msg,
            "ai_message": ai_msg,
            "action_button": button,
            "suggested_action": action,
        }
