import logging
from typing import List, Dict, Optional

import groq
import openai
from groq import Groq
from openai import OpenAI

from .config import Settings
from .errors import GenerationFailure, GenerationTimeout

logger = logging.getLogger(__name__)

TONE_INSTRUCTIONS = {
    "professional": "Respond professionally and formally, using business language.",
    "friendly": "Be warm, approachable and conversational while remaining helpful.",
    "casual": "Use a relaxed, informal tone like talking to a friend.",
}
DEFAULT_TONE = "professional"


def build_system_prompt(settings: Settings, company_context: str, knowledge_base: str,
                        tone: str = DEFAULT_TONE, restrict_topics: bool = True) -> str:
    name, company, phone = settings.assistant_name, settings.company_name, settings.whatsapp_number
    wa_url = f"https://wa.me/{phone}?text=Hi%20{company.replace(' ', '%20')}!%20I'm%20interested%20in%20a%20consultation."
    guidelines = [
        "Keep responses concise, warm and easy to understand.",
        "Continue the conversation naturally; do not greet the user again after the first message.",
        TONE_INSTRUCTIONS.get(tone, TONE_INSTRUCTIONS["friendly"]),
        "Help with design questions, service inquiries, consultation booking and portfolio questions.",
        "Never say you can't do something; guide the user to the right next step instead.",
    ]
    if restrict_topics:
        guidelines.append(
            f"Only discuss interior design, {company} services and home/office design; "
            "politely redirect unrelated questions."
        )
    return f"""You are {name}, a friendly AI assistant for {company}, an interior design company.

Company Context:
{company_context or "(none provided)"}

Knowledge Base:
{knowledge_base or "(none provided)"}

Contact:
- The contact form on the website is the best way to book a consultation.
- WhatsApp / phone: +{phone}

WhatsApp Integration:
- When the user wants to chat on WhatsApp or book through WhatsApp, add this line on its own:
WHATSAPP_BUTTON:Open WhatsApp Chat:{wa_url}
- The format is: WHATSAPP_BUTTON:[Button Label]:[WhatsApp URL]

Follow-up markers (append at the very end, at most one):
- ESCALATE_TO_CONTACT when the user needs direct contact.
- SUGGEST_CONSULTATION when the user is ready to book a consultation.
- SUGGEST_NEWSLETTER when the user wants to stay updated.

Guidelines:
""" + "\n".join(f"- {g}" for g in guidelines)


def build_messages(settings: Settings, user_input: str, history: Optional[List[Dict[str, str]]] = None,
                   company_context: str = "", knowledge_base: str = "",
                   tone: str = DEFAULT_TONE, restrict_topics: bool = True) -> List[Dict[str, str]]:
    """
    history: list of {"role": "user"/"assistant", "content": "..."}, oldest first
    """
    messages = [{"role": "system", "content": build_system_prompt(
        settings, company_context, knowledge_base, tone, restrict_topics)}]
    if history and settings.chat_history_window > 0:
        messages.extend(history[-settings.chat_history_window:])
    messages.append({"role": "user", "content": user_input})
    return messages


class ChatResponder:
    """Single-shot chat completion against an OpenAI-compatible client."""

    def __init__(self, client_factory, model: str):
        self._client_factory = client_factory
        self._client = None
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatResponder":
        timeout = settings.llm_timeout_seconds
        if settings.llm_provider.lower() == "groq":
            return cls(lambda: Groq(api_key=settings.groq_api_key, timeout=timeout, max_retries=0),
                       settings.groq_model)
        return cls(lambda: OpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url,
                                  timeout=timeout, max_retries=0),
                   settings.openai_chat_model)

    @property
    def client(self):
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def generate(self, messages: List[Dict[str, str]]) -> str:
        try:
            resp = self.client.chat.completions.create(model=self.model, messages=messages)
        except (openai.APITimeoutError, groq.APITimeoutError) as e:
            logger.error("Generation timed out (model=%s): %s", self.model, e)
            raise GenerationTimeout(f"generation timed out: {e}") from e
        except (openai.OpenAIError, groq.GroqError) as e:
            logger.error("Generation failed (model=%s): %s", self.model, e)
            raise GenerationFailure(f"generation failed: {e}") from e

        text = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        if not text:
            raise GenerationFailure("generation returned an empty reply")
        return text
