from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from relaybot.config import settings
from relaybot.logging_config import get_logger
from relaybot.models import WhatsAppConnection

logger = get_logger("credentials_service")


@dataclass(frozen=True)
class WhatsAppCredentials:
    phone_number_id: str
    access_token: str


def get_active_connection(db: Session) -> Optional[WhatsAppConnection]:
    """Most recently connected WhatsApp account, if any."""
    return db.query(WhatsAppConnection).order_by(WhatsAppConnection.connected_at.desc()).first()


def resolve_credentials(db: Session) -> Optional[WhatsAppCredentials]:
    """Resolve WhatsApp credentials: connected account first, then settings."""
    connection = get_active_connection(db)
    if connection and connection.phone_number_id and connection.access_token:
        return WhatsAppCredentials(
            phone_number_id=connection.phone_number_id,
            access_token=connection.access_token,
        )

    if settings.whatsapp_phone_number_id and settings.whatsapp_access_token:
        return WhatsAppCredentials(
            phone_number_id=settings.whatsapp_phone_number_id,
            access_token=settings.whatsapp_access_token,
        )

    logger.warning("No WhatsApp credentials configured (connections table or settings)")
    return None
