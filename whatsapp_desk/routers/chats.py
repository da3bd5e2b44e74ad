"""Agent dashboard: threads, messages, replies and lead follow-up."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from whatsapp_desk.database import get_db
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.models import ChatSession, Lead, Message
from whatsapp_desk.security import require_admin_token
from whatsapp_desk.services import conversation_log, customer_service
from whatsapp_desk.services.dispatch_service import dispatch_and_log
from whatsapp_desk.services.thread_state import ThreadTag

logger = get_logger("chats")

router = APIRouter(prefix="/api", tags=["chats"], dependencies=[Depends(require_admin_token)])


# === SCHEMAS ===


class PhoneRequest(BaseModel):
    phone: str

    @field_validator("phone")
    @classmethod
    def phone_not_blank(cls, value: str) -> str:
        normalized = customer_service.normalize_phone(value)
        if not normalized:
            raise ValueError("phone is required")
        return normalized


class SendMessageRequest(PhoneRequest):
    body: str

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("body is required")
        return value.strip()


class SetTagRequest(BaseModel):
    from_number: str
    tag: str

    @field_validator("from_number")
    @classmethod
    def from_number_not_blank(cls, value: str) -> str:
        normalized = customer_service.normalize_phone(value)
        if not normalized:
            raise ValueError("from_number is required")
        return normalized

    @field_validator("tag")
    @classmethod
    def tag_not_blank(cls, value: str) -> str:
        tag = (value or "").strip().lower()
        if not tag:
            raise ValueError("tag is required")
        return tag


class IdRequest(BaseModel):
    id: int


def _message_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "from_number": message.from_number,
        "body": message.body,
        "tag": message.tag,
        "timestamp": message.timestamp,
        "direction": message.direction,
        "media_url": message.media_url,
        "location_json": message.location_json,
        "seen": bool(message.seen),
        "closed": bool(message.closed),
    }


# === THREADS ===


@router.get("/chats")
async def list_chats(db: Session = Depends(get_db)):
    return conversation_log.list_chats(db)


@router.get("/messages")
async def list_messages(phone: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    normalized = customer_service.normalize_phone(phone)
    return [_message_dict(m) for m in conversation_log.list_messages(db, normalized)]


@router.post("/close-chat")
async def close_chat(data: PhoneRequest, db: Session = Depends(get_db)):
    updated = conversation_log.close_thread(db, data.phone)
    db.commit()
    return {"ok": True, "updated": updated}


@router.post("/mark-seen")
async def mark_seen(data: PhoneRequest, db: Session = Depends(get_db)):
    updated = conversation_log.mark_seen(db, data.phone)
    db.commit()
    return {"ok": True, "updated": updated}


@router.post("/send-message")
def send_message(data: SendMessageRequest, db: Session = Depends(get_db)):
    sent = dispatch_and_log(db, data.phone, data.body, ThreadTag.SYSTEM.value, conversation_log.now_millis())
    return {"ok": True, "sent": sent}


@router.post("/set-tag")
async def set_tag(data: SetTagRequest, db: Session = Depends(get_db)):
    updated = conversation_log.retag_thread(db, data.from_number, data.tag)
    db.commit()
    logger.info("Thread retagged by agent", extra={"context": {"phone": data.from_number, "tag": data.tag}})
    return {"ok": True, "updated": updated}


# === LEADS AND SESSIONS ===


@router.get("/leads")
async def list_leads(status: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Lead)
    if status:
        query = query.filter(Lead.status == status)
    return [
        {
            "id": lead.id,
            "phone": lead.phone,
            "name": lead.name,
            "email": lead.email,
            "address": lead.address,
            "status": lead.status,
            "created_at": lead.created_at,
        }
        for lead in query.order_by(Lead.created_at.desc()).all()
    ]


@router.post("/lead-contacted")
async def lead_contacted(data: IdRequest, db: Session = Depends(get_db)):
    lead = db.query(Lead).filter(Lead.id == data.id).first()
    if not lead:
        raise HTTPException(status_code=404, detail=f"Lead {data.id} not found")
    lead.status = "contacted"
    db.commit()
    return {"ok": True}


@router.get("/chat-sessions")
async def list_chat_sessions(phone: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    normalized = customer_service.normalize_phone(phone)
    sessions = (
        db.query(ChatSession)
        .filter(ChatSession.phone == normalized)
        .order_by(ChatSession.start_ts.desc())
        .all()
    )
    return [
        {
            "id": s.id,
            "phone": s.phone,
            "ticket": s.ticket,
            "department": s.department,
            "start_ts": s.start_ts,
            "end_ts": s.end_ts,
        }
        for s in sessions
    ]
