"""Conversation addressing.

History, the control gates and the dispatcher all identify a conversation by
the same key, so it is derived in exactly one place.
"""

import re
from typing import Optional

from relaybot.config import settings

_NON_DIGITS = re.compile(r"\D")


def customer_number(sender_id: str) -> str:
    """Strip everything but digits: "+27 82 123-4567" -> "27821234567"."""
    return _NON_DIGITS.sub("", sender_id or "")


def build_session_id(sender_id: str, prefix: Optional[str] = None) -> str:
    """Build the session id for a sender. Raises ValueError if it has no digits."""
    digits = customer_number(sender_id)
    if not digits:
        raise ValueError(f"sender id has no digits: {sender_id!r}")
    if prefix is None:
        prefix = settings.whatsapp_session_id_prefix
    return f"{prefix}{digits}"
