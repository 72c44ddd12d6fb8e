from sqlalchemy import BigInteger, Column
from sqlalchemy.dialects.postgresql import TIMESTAMP

from relaybot.database import Base


class InactivityAlertLog(Base):
    __tablename__ = "inactivity_alert_log"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    sent_at = Column(TIMESTAMP(timezone=True), nullable=False)
