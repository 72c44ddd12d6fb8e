from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class InactivityAlertResponse(BaseModel):
    status: str
    sent: bool
    reason: str
    last_human_message_at: Optional[datetime] = None
    last_alert_sent_at: Optional[datetime] = None
