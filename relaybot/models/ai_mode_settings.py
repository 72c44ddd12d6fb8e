from sqlalchemy import Column, Integer, Text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

from relaybot.database import Base


class AiModeSettings(Base):
    __tablename__ = "ai_mode_settings"

    id = Column(Integer, primary_key=True)
    mode = Column(Text, nullable=False, default="all")  # all, allowlist, off
    allowed_numbers = Column(JSONB, nullable=False, default=list)
    updated_at = Column(TIMESTAMP(timezone=True))
