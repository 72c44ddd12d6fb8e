from sqlalchemy import Boolean, Column, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP

from relaybot.database import Base


class HumanControl(Base):
    __tablename__ = "human_control"

    session_id = Column(Text, primary_key=True)
    is_human_in_control = Column(Boolean, nullable=False, default=False)
    operator_name = Column(Text)
    updated_at = Column(TIMESTAMP(timezone=True))
