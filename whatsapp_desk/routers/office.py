"""Admin API: office hours, global closure, public holidays and auto replies."""

import json
import re
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from whatsapp_desk.database import get_db
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.models import AutoReply, OfficeGlobal, OfficeHours, PublicHoliday
from whatsapp_desk.security import require_admin_token
from whatsapp_desk.services import availability_service

logger = get_logger("office")

router = APIRouter(prefix="/api", tags=["office"], dependencies=[Depends(require_admin_token)])

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# === SCHEMAS ===


class AutoReplyUpsert(BaseModel):
    id: Optional[int] = None
    tag: str
    hours: Optional[str] = None
    reply: str

    @field_validator("tag")
    @classmethod
    def tag_not_blank(cls, value: str) -> str:
        tag = (value or "").strip().lower()
        if not tag:
            raise ValueError("tag is required")
        return tag

    @field_validator("hours", mode="before")
    @classmethod
    def hours_is_json_object(cls, value: object) -> Optional[str]:
        if value is None or value == "":
            return None
        if isinstance(value, dict):
            return json.dumps(value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError as exc:
                raise ValueError("hours must be a JSON object") from exc
            if not isinstance(parsed, dict):
                raise ValueError("hours must be a JSON object")
            return value
        raise ValueError("hours must be a JSON object")


class OfficeHoursUpsert(BaseModel):
    tag: str
    day: int
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    closed: bool = False

    @field_validator("tag")
    @classmethod
    def tag_not_blank(cls, value: str) -> str:
        tag = (value or "").strip().lower()
        if not tag:
            raise ValueError("tag is required")
        return tag

    @field_validator("day")
    @classmethod
    def day_in_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError("day must be 0-6 (0 = Sunday)")
        return value

    @field_validator("open_time", "close_time")
    @classmethod
    def hhmm(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not HHMM_RE.match(value.strip()):
            raise ValueError("time must be HH:MM")
        return value.strip()

    @model_validator(mode="after")
    def times_when_open(self) -> "OfficeHoursUpsert":
        if not self.closed and (not self.open_time or not self.close_time):
            raise ValueError("open_time and close_time are required unless closed")
        return self


class OfficeGlobalUpdate(BaseModel):
    closed: bool
    message: Optional[str] = None


class HolidayCreate(BaseModel):
    date: str
    name: str = ""

    @field_validator("date")
    @classmethod
    def iso_date(cls, value: str) -> str:
        try:
            return date.fromisoformat((value or "").strip()).isoformat()
        except ValueError as exc:
            raise ValueError("date must be YYYY-MM-DD") from exc


class IdRequest(BaseModel):
    id: int


# === AUTO REPLIES ===


@router.get("/auto-replies")
async def list_auto_replies(db: Session = Depends(get_db)):
    replies = db.query(AutoReply).order_by(AutoReply.tag.asc()).all()
    return [{"id": r.id, "tag": r.tag, "hours": r.hours, "reply": r.reply} for r in replies]


@router.post("/auto-reply")
async def upsert_auto_reply(data: AutoReplyUpsert, db: Session = Depends(get_db)):
    if data.id is not None:
        auto_reply = db.query(AutoReply).filter(AutoReply.id == data.id).first()
        if not auto_reply:
            raise HTTPException(status_code=404, detail=f"Auto reply {data.id} not found")
    else:
        auto_reply = AutoReply()
        db.add(auto_reply)
    auto_reply.tag = data.tag
    auto_reply.hours = data.hours
    auto_reply.reply = data.reply
    db.commit()
    db.refresh(auto_reply)
    return {"ok": True, "id": auto_reply.id}


@router.post("/auto-reply-delete")
async def delete_auto_reply(data: IdRequest, db: Session = Depends(get_db)):
    auto_reply = db.query(AutoReply).filter(AutoReply.id == data.id).first()
    if not auto_reply:
        raise HTTPException(status_code=404, detail=f"Auto reply {data.id} not found")
    db.delete(auto_reply)
    db.commit()
    return {"ok": True}


# === OFFICE HOURS ===


@router.get("/office-hours")
async def list_office_hours(db: Session = Depends(get_db)):
    rows = db.query(OfficeHours).order_by(OfficeHours.tag.asc(), OfficeHours.day.asc()).all()
    return [
        {
            "id": r.id,
            "tag": r.tag,
            "day": r.day,
            "open_time": r.open_time,
            "close_time": r.close_time,
            "closed": bool(r.closed),
        }
        for r in rows
    ]


@router.post("/office-hours")
async def upsert_office_hours(data: OfficeHoursUpsert, db: Session = Depends(get_db)):
    row = db.query(OfficeHours).filter(OfficeHours.tag == data.tag, OfficeHours.day == data.day).first()
    if row is None:
        row = OfficeHours(tag=data.tag, day=data.day)
        db.add(row)
    row.open_time = data.open_time
    row.close_time = data.close_time
    row.closed = data.closed
    db.commit()
    return {"ok": True}


@router.get("/office-global")
async def get_office_global(db: Session = Depends(get_db)):
    status = availability_service.get_global_status(db)
    return {"closed": status.closed, "message": status.message}


@router.post("/office-global")
async def set_office_global(data: OfficeGlobalUpdate, db: Session = Depends(get_db)):
    row = db.query(OfficeGlobal).filter(OfficeGlobal.id == 1).first()
    if row is None:
        row = OfficeGlobal(id=1)
        db.add(row)
    row.closed = data.closed
    row.message = (data.message or "").strip()
    db.commit()
    logger.info("Global office status changed", extra={"context": {"closed": data.closed}})
    return {"ok": True}


@router.get("/office-status")
async def office_status(tag: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Whether a department is inside its office hours right now."""
    tag = tag.strip().lower()
    now = datetime.now(timezone.utc)
    is_open = availability_service.is_department_open(db, tag, now)
    return {
        "tag": tag,
        "open": is_open,
        "reply": None if is_open else availability_service.department_closure_reply(db, tag),
    }


# === PUBLIC HOLIDAYS ===


@router.get("/public-holidays")
async def list_public_holidays(db: Session = Depends(get_db)):
    holidays = db.query(PublicHoliday).order_by(PublicHoliday.date.asc()).all()
    return [{"id": h.id, "date": h.date, "name": h.name} for h in holidays]


@router.post("/public-holidays")
async def add_public_holiday(data: HolidayCreate, db: Session = Depends(get_db)):
    holiday = PublicHoliday(date=data.date, name=data.name.strip())
    db.add(holiday)
    db.commit()
    db.refresh(holiday)
    return {"ok": True, "id": holiday.id}


@router.post("/public-holidays/delete")
async def delete_public_holiday(data: IdRequest, db: Session = Depends(get_db)):
    holiday = db.query(PublicHoliday).filter(PublicHoliday.id == data.id).first()
    if not holiday:
        raise HTTPException(status_code=404, detail=f"Holiday {data.id} not found")
    db.delete(holiday)
    db.commit()
    return {"ok": True}
