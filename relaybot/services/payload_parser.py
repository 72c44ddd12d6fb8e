"""Normalize inbound WhatsApp Cloud API webhook bodies.

The platform delivers the same logical event in several shapes depending on
message type and API version:

    {"object": "whatsapp_business_account",
     "entry": [{"changes": [{"value": {"contacts": [...], "messages": [...]}}]}]}

    [{"contacts": [...], "messages": [...]}]

    {"contacts": [...], "messages": [...]}

Each shape has its own matcher. Matchers are tried in order and the first one
that yields a payload with ``messages`` wins. Events without messages (status
receipts, template updates) normalize to ``None``.
"""

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

from relaybot.logging_config import get_logger

logger = get_logger("payload_parser")

MessageKind = Literal["text", "audio"]


@dataclass(frozen=True)
class NormalizedMessage:
    sender_id: str
    kind: MessageKind
    text: str
    sender_name: Optional[str] = None
    media_id: Optional[str] = None
    media_mime_type: Optional[str] = None


ShapeMatcher = Callable[[Any], Optional[dict]]


def _has_messages(candidate: Any) -> bool:
    return isinstance(candidate, dict) and isinstance(candidate.get("messages"), list)


def match_business_account(body: Any) -> Optional[dict]:
    if not isinstance(body, dict) or body.get("object") != "whatsapp_business_account":
        return None
    try:
        value = body["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        return None
    return value if _has_messages(value) else None


def match_array_wrapped(body: Any) -> Optional[dict]:
    if not isinstance(body, list) or not body:
        return None
    first = body[0]
    return first if _has_messages(first) else None


def match_bare_object(body: Any) -> Optional[dict]:
    return body if _has_messages(body) else None


SHAPE_MATCHERS: tuple[tuple[str, ShapeMatcher], ...] = (
    ("business_account", match_business_account),
    ("array_wrapped", match_array_wrapped),
    ("bare_object", match_bare_object),
)


def _first_contact(payload: dict) -> dict:
    contacts = payload.get("contacts")
    if isinstance(contacts, list) and contacts and isinstance(contacts[0], dict):
        return contacts[0]
    return {}


def _find_message(messages: list, message_type: str) -> Optional[dict]:
    for message in messages:
        if isinstance(message, dict) and message.get("type") == message_type:
            return message
    return None


def _text_body(message: Optional[dict]) -> Optional[str]:
    if not message:
        return None
    text_obj = message.get("text")
    body = text_obj.get("body") if isinstance(text_obj, dict) else None
    return body if isinstance(body, str) and body else None


def _audio_object(message: Optional[dict]) -> Optional[dict]:
    if not message:
        return None
    audio = message.get("audio")
    if isinstance(audio, dict) and audio.get("id"):
        return audio
    return None


def extract_payload(body: Any) -> Optional[tuple[str, dict]]:
    """Return (shape_name, payload) for the first matching shape."""
    for name, matcher in SHAPE_MATCHERS:
        payload = matcher(body)
        if payload is not None:
            return name, payload
    return None


def normalize(body: Any) -> Optional[NormalizedMessage]:
    """Normalize a raw webhook body into one message, text first, then audio."""
    matched = extract_payload(body)
    if matched is None:
        return None
    shape, payload = matched

    messages = payload["messages"]
    contact = _first_contact(payload)
    contact_id = contact.get("wa_id")
    profile = contact.get("profile") if isinstance(contact.get("profile"), dict) else {}
    sender_name = profile.get("name") or None

    text_message = _find_message(messages, "text")
    text = _text_body(text_message)
    if text:
        sender_id = contact_id or text_message.get("from")
        if not sender_id:
            return None
        return NormalizedMessage(
            sender_id=str(sender_id),
            sender_name=sender_name,
            kind="text",
            text=text,
        )

    audio_message = _find_message(messages, "audio")
    audio = _audio_object(audio_message)
    if audio:
        sender_id = contact_id or audio_message.get("from")
        if not sender_id:
            return None
        mime_type = audio.get("mime_type")
        return NormalizedMessage(
            sender_id=str(sender_id),
            sender_name=sender_name,
            kind="audio",
            text="",
            media_id=str(audio["id"]),
            media_mime_type=mime_type if isinstance(mime_type, str) else None,
        )

    logger.debug("No text or audio message in payload", extra={"context": {"shape": shape}})
    return None
