from sqlalchemy import BigInteger, Column, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP

from relaybot.database import Base


class WhatsAppConnection(Base):
    __tablename__ = "whatsapp_connections"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    waba_id = Column(Text, nullable=False)
    phone_number_id = Column(Text, nullable=False, unique=True)
    access_token = Column(Text, nullable=False)
    display_phone_number = Column(Text)
    display_name = Column(Text)
    connected_by = Column(Text)
    connected_at = Column(TIMESTAMP(timezone=True), nullable=False)
