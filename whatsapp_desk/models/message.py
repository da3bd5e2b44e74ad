from sqlalchemy import BigInteger, Boolean, Column, Index, Integer, Text

from whatsapp_desk.database import Base


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_from_number_timestamp", "from_number", "timestamp"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_number = Column(Text, nullable=False)
    body = Column(Text, nullable=False, default="")
    tag = Column(Text, nullable=False)
    timestamp = Column(BigInteger, nullable=False)  # epoch millis
    direction = Column(Text, nullable=False)  # incoming, outgoing
    media_url = Column(Text)
    location_json = Column(Text)
    seen = Column(Boolean, nullable=False, default=False)
    closed = Column(Boolean, nullable=False, default=False)
