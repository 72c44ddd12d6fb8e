from sqlalchemy import BigInteger, Column, Text, func
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

from relaybot.database import Base


class ChatHistory(Base):
    __tablename__ = "chatbot_history"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    session_id = Column(Text, nullable=False, index=True)
    message = Column(JSONB, nullable=False)  # {type: human|ai, content, media_id?, response_metadata?}
    customer = Column(JSONB, nullable=False, default=dict)  # {number, name?}
    date_time = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
