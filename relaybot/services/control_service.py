from sqlalchemy.orm import Session

from relaybot.logging_config import get_logger
from relaybot.models import AiModeSettings, HumanControl
from relaybot.services.session_keys import customer_number

logger = get_logger("control_service")

MODE_ALL = "all"
MODE_ALLOWLIST = "allowlist"
MODE_OFF = "off"


def is_allowed_for_automation(db: Session, number: str) -> bool:
    """Check whether the automated agent may reply to this number.

    No settings row means automation is on for everyone.
    """
    ai_settings = db.query(AiModeSettings).order_by(AiModeSettings.id.asc()).first()
    if not ai_settings:
        return True

    mode = (ai_settings.mode or MODE_ALL).strip().lower()
    if mode == MODE_ALL:
        return True
    if mode == MODE_OFF:
        return False
    if mode == MODE_ALLOWLIST:
        wanted = customer_number(number)
        if not wanted:
            return False
        allowed = ai_settings.allowed_numbers or []
        return any(customer_number(str(item)) == wanted for item in allowed)

    logger.warning(f"Unknown AI mode '{ai_settings.mode}', treating as off")
    return False


def is_human_in_control(db: Session, session_id: str) -> bool:
    """True while an operator owns the conversation."""
    row = db.query(HumanControl).filter(HumanControl.session_id == session_id).first()
    return bool(row and row.is_human_in_control)


class ControlArbiter:
    """Read-only gates deciding whether the agent may answer."""

    def __init__(self, db: Session):
        self.db = db

    def is_allowed_for_automation(self, number: str) -> bool:
        return is_allowed_for_automation(self.db, number)

    def is_human_in_control(self, session_id: str) -> bool:
        return is_human_in_control(self.db, session_id)
