from typing import Optional

from pydantic import BaseModel


class WebhookAck(BaseModel):
    status: str = "ok"
    message: Optional[str] = None
