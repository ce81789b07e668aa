"""Tagged directives the assistant may embed in a reply.

The model is told to emit plain markers; everything else in a reply is opaque
display text. New structured outputs should follow the same ``NAME:...`` shape.
"""
import re
from typing import Dict, Optional, Tuple

WHATSAPP_BUTTON_RE = re.compile(r"WHATSAPP_BUTTON:(?P<label>[^:\n]+):(?P<url>https?://\S+)")

# checked in order, first hit wins
ACTION_MARKERS = (
    ("ESCALATE_TO_CONTACT", "contact"),
    ("SUGGEST_CONSULTATION", "consultation"),
    ("SUGGEST_NEWSLETTER", "newsletter"),
)

_BLANK_LINES_RE = re.compile(r"\n{3,}")


def _tidy(text: str) -> str:
    lines = [line.rstrip() for line in text.splitlines()]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def extract_action_button(text: str) -> Tuple[str, Optional[Dict[str, str]]]:
    match = WHATSAPP_BUTTON_RE.search(text)
    if not match:
        return text, None
    button = {
        "type": "whatsapp",
        "label": match.group("label").strip(),
        "action": match.group("url"),
    }
    return text[:match.start()] + text[match.end():], button


def extract_suggested_action(text: str) -> Tuple[str, Optional[str]]:
    action = None
    for marker, name in ACTION_MARKERS:
        if marker in text:
            action = action or name
            text = text.replace(marker, "")
    return text, action


def parse_reply(raw: str) -> Tuple[str, Optional[Dict[str, str]], Optional[str]]:
    """Split a raw reply into (visible text, action button, suggested action)."""
    text, button = extract_action_button(raw)
    text, action = extract_suggested_action(text)
    return _tidy(text), button, action
