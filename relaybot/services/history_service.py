from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from relaybot.logging_config import get_logger
from relaybot.models import ChatHistory
from relaybot.services.result import Result

logger = get_logger("history_service")

Direction = Literal["human", "ai"]
HUMAN: Direction = "human"
AI: Direction = "ai"


@dataclass(frozen=True)
class Customer:
    number: str
    name: Optional[str] = None

    def as_dict(self) -> dict:
        data = {"number": self.number}
        if self.name:
            data["name"] = self.name
        return data


@dataclass(frozen=True)
class HistoryRecord:
    id: int
    date_time: Optional[datetime]


def append_history(
    db: Session,
    session_id: str,
    direction: Direction,
    content: str,
    customer: Customer,
    media_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> Result[HistoryRecord]:
    """Append one entry to the conversation log and commit it."""
    message = {"type": direction, "content": content}
    if metadata:
        message["response_metadata"] = metadata
    if media_id:
        message["media_id"] = media_id

    entry = ChatHistory(session_id=session_id, message=message, customer=customer.as_dict())
    try:
        db.add(entry)
        db.commit()
        db.refresh(entry)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"History append failed: {e}",
            extra={"context": {"session_id": session_id, "direction": direction}},
        )
        return Result.failure(str(e), "db_error")

    return Result.success(HistoryRecord(id=entry.id, date_time=entry.date_time))


class HistoryStore:
    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        session_id: str,
        direction: Direction,
        content: str,
        customer: Customer,
        media_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Result[HistoryRecord]:
        return append_history(self.db, session_id, direction, content, customer, media_id, metadata)


def list_history(db: Session, session_id: str, limit: Optional[int] = None) -> List[ChatHistory]:
    """Entries for a session, oldest first (insertion id breaks timestamp ties)."""
    query = (
        db.query(ChatHistory)
        .filter(ChatHistory.session_id == session_id)
        .order_by(ChatHistory.date_time.asc(), ChatHistory.id.asc())
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def recent_context(db: Session, session_id: str, limit: int = 10) -> List[dict]:
    """Most recent entries as chat-completion messages, in chronological order."""
    rows = (
        db.query(ChatHistory)
        .filter(ChatHistory.session_id == session_id)
        .order_by(ChatHistory.date_time.desc(), ChatHistory.id.desc())
        .limit(limit)
        .all()
    )

    history = []
    for row in reversed(rows):
        message = row.message if isinstance(row.message, dict) else {}
        content = message.get("content")
        if not content:
            continue
        role = "assistant" if message.get("type") == AI else "user"
        history.append({"role": role, "content": content})
    return history
