from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class HistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: str
    message: dict[str, Any]
    customer: Optional[dict[str, Any]] = None
    date_time: Optional[datetime] = None


class HistoryResponse(BaseModel):
    session_id: str
    count: int
    rows: list[HistoryEntry]


class AlertTestResponse(BaseModel):
    success: bool
    message: str
