from sqlalchemy import BigInteger, Boolean, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from whatsapp_desk.database import Base


class AdminUser(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default="agent")


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(Text, nullable=False)
    name = Column(Text)
    email = Column(Text)
    address = Column(Text)
    status = Column(Text, nullable=False, default="new")  # new, contacted
    created_at = Column(BigInteger, nullable=False)


class ChatSession(Base):
    __tablename__ = "chatsessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(Text, nullable=False)
    ticket = Column(Text, nullable=False)
    department = Column(Text)
    start_ts = Column(BigInteger, nullable=False)
    end_ts = Column(BigInteger)


class Flow(Base):
    __tablename__ = "flows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    trigger = Column(Text)
    active = Column(Boolean, nullable=False, default=True)

    steps = relationship(
        "FlowStep",
        back_populates="flow",
        cascade="all, delete-orphan",
        order_by="FlowStep.position",
    )


class FlowStep(Base):
    __tablename__ = "flow_steps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    flow_id = Column(Integer, ForeignKey("flows.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    message = Column(Text, nullable=False, default="")
    expected_reply = Column(Text)

    flow = relationship("Flow", back_populates="steps")
