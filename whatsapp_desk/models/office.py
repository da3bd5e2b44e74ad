from sqlalchemy import Boolean, Column, Integer, Text, UniqueConstraint

from whatsapp_desk.database import Base


class AutoReply(Base):
    __tablename__ = "auto_replies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tag = Column(Text, nullable=False)
    hours = Column(Text)  # JSON: weekday -> "HH:MM-HH:MM" | "closed"
    reply = Column(Text, nullable=False, default="")


class OfficeHours(Base):
    __tablename__ = "office_hours"
    __table_args__ = (UniqueConstraint("tag", "day", name="uq_office_hours_tag_day"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tag = Column(Text, nullable=False)
    day = Column(Integer, nullable=False)  # 0 = Sunday
    open_time = Column(Text)
    close_time = Column(Text)
    closed = Column(Boolean, nullable=False, default=False)


class OfficeGlobal(Base):
    __tablename__ = "office_global"

    id = Column(Integer, primary_key=True, default=1)
    closed = Column(Boolean, nullable=False, default=False)
    message = Column(Text)


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Text, nullable=False)  # yyyy-mm-dd
    name = Column(Text, nullable=False, default="")
