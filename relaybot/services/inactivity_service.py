"""Alerts operators when no customer has written in for a while."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from relaybot.logging_config import get_logger
from relaybot.models import ChatHistory, InactivityAlertLog
from relaybot.services.alert_service import alert_warning
from relaybot.services.history_service import HUMAN

logger = get_logger("inactivity_service")

INACTIVITY_HOURS = 4
THROTTLE_HOURS = 4
SCAN_LIMIT = 200

REASON_RECENT_ACTIVITY = "recent_activity"
REASON_THROTTLED = "throttled"
REASON_NO_ACTIVITY = f"no_activity_{INACTIVITY_HOURS}h"
REASON_ALERT_FAILED = "alert_failed"


@dataclass
class InactivityCheck:
    sent: bool
    reason: str
    last_human_message_at: Optional[datetime] = None
    last_alert_sent_at: Optional[datetime] = None

    def as_dict(self) -> dict:
        return {
            "status": "ok" if self.reason != REASON_ALERT_FAILED else "error",
            "sent": self.sent,
            "reason": self.reason,
            "last_human_message_at": _isoformat(self.last_human_message_at),
            "last_alert_sent_at": _isoformat(self.last_alert_sent_at),
        }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def last_human_message_at(db: Session) -> Optional[datetime]:
    """Timestamp of the newest inbound entry among the latest rows."""
    rows = db.query(ChatHistory).order_by(ChatHistory.date_time.desc()).limit(SCAN_LIMIT).all()
    for row in rows:
        message = row.message if isinstance(row.message, dict) else {}
        if message.get("type") == HUMAN and row.date_time:
            return row.date_time
    return None


def last_alert_sent_at(db: Session) -> Optional[datetime]:
    row = db.query(InactivityAlertLog).order_by(InactivityAlertLog.sent_at.desc()).first()
    return row.sent_at if row else None


def check_inactivity(db: Session, now: Optional[datetime] = None) -> InactivityCheck:
    """Send one throttled alert when no customer message arrived recently."""
    now = now or datetime.now(timezone.utc)
    last_human = last_human_message_at(db)
    if last_human and last_human >= now - timedelta(hours=INACTIVITY_HOURS):
        return InactivityCheck(sent=False, reason=REASON_RECENT_ACTIVITY, last_human_message_at=last_human)

    last_alert = last_alert_sent_at(db)
    if last_alert and last_alert > now - timedelta(hours=THROTTLE_HOURS):
        return InactivityCheck(
            sent=False,
            reason=REASON_THROTTLED,
            last_human_message_at=last_human,
            last_alert_sent_at=last_alert,
        )

    sent = alert_warning(
        f"No WhatsApp messages for {INACTIVITY_HOURS}+ hours",
        {
            "last_incoming": _isoformat(last_human) or "never",
            "checked_at": now.isoformat(),
        },
    )
    if not sent:
        logger.error("Inactivity alert could not be delivered")
        return InactivityCheck(sent=False, reason=REASON_ALERT_FAILED, last_human_message_at=last_human)

    db.add(InactivityAlertLog(sent_at=now))
    db.commit()
    logger.info("Inactivity alert sent", extra={"context": {"last_human_message_at": _isoformat(last_human)}})
    return InactivityCheck(sent=True, reason=REASON_NO_ACTIVITY, last_human_message_at=last_human)
