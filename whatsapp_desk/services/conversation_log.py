"""Append-only message log; a thread is every row sharing a from_number."""

import time
from typing import Optional

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from whatsapp_desk.models import Customer, Message
from whatsapp_desk.services.normalizer import NormalizedInput
from whatsapp_desk.services.thread_state import Direction


def now_millis() -> int:
    return int(time.time() * 1000)


def append_message(
    db: Session,
    from_number: str,
    body: str,
    tag: str,
    timestamp: int,
    direction: str,
    media_url: Optional[str] = None,
    location_json: Optional[str] = None,
) -> Message:
    message = Message(
        from_number=from_number,
        body=body or "",
        tag=tag,
        timestamp=timestamp,
        direction=direction,
        media_url=media_url,
        location_json=location_json,
        seen=False,
        closed=False,
    )
    db.add(message)
    db.flush()
    return message


def log_inbound(db: Session, phone: str, normalized: NormalizedInput, tag: str, now_ms: int) -> Message:
    """Persist the inbound row and commit, before any reply is computed."""
    message = append_message(
        db,
        phone,
        normalized.text,
        tag,
        now_ms,
        Direction.INCOMING.value,
        media_url=normalized.media_url,
        location_json=normalized.location_json,
    )
    db.commit()
    return message


def log_outgoing(db: Session, phone: str, body: str, tag: str, now_ms: int) -> Message:
    message = append_message(db, phone, body, tag, now_ms, Direction.OUTGOING.value)
    db.commit()
    return message


def retag_thread(db: Session, from_number: str, tag: str) -> int:
    """Set the tag on every row of the thread. Last writer wins."""
    updated = (
        db.query(Message)
        .filter(Message.from_number == from_number)
        .update({Message.tag: tag}, synchronize_session=False)
    )
    db.flush()
    return updated


def latest_message(db: Session, from_number: str) -> Optional[Message]:
    return (
        db.query(Message)
        .filter(Message.from_number == from_number)
        .order_by(Message.timestamp.desc(), Message.id.desc())
        .first()
    )


def latest_tag(db: Session, from_number: str) -> Optional[str]:
    message = latest_message(db, from_number)
    return message.tag if message else None


def close_thread(db: Session, from_number: str) -> int:
    updated = (
        db.query(Message)
        .filter(Message.from_number == from_number)
        .update({Message.closed: True}, synchronize_session=False)
    )
    db.flush()
    return updated


def mark_seen(db: Session, from_number: str) -> int:
    updated = (
        db.query(Message)
        .filter(
            Message.from_number == from_number,
            Message.direction == Direction.INCOMING.value,
            Message.seen.is_not(True),
        )
        .update({Message.seen: True}, synchronize_session=False)
    )
    db.flush()
    return updated


def list_messages(db: Session, from_number: str, limit: int = 200) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.from_number == from_number)
        .order_by(Message.timestamp.asc(), Message.id.asc())
        .limit(limit)
        .all()
    )


def list_chats(db: Session, limit: int = 50) -> list[dict]:
    """Open threads, most recent first, with unread counts and the thread tag."""
    unread = func.sum(
        case(
            (and_(Message.direction == Direction.INCOMING.value, Message.seen.is_not(True)), 1),
            else_=0,
        )
    )
    last_ts = func.max(Message.timestamp)
    rows = (
        db.query(Message.from_number, last_ts.label("last_ts"), unread.label("unread_count"))
        .filter(Message.closed.is_not(True))
        .group_by(Message.from_number)
        .order_by(last_ts.desc())
        .limit(limit)
        .all()
    )

    chats = []
    for row in rows:
        customer = db.query(Customer).filter(Customer.phone == row.from_number).first()
        last = latest_message(db, row.from_number)
        chats.append(
            {
                "from_number": row.from_number,
                "name": customer.name if customer else None,
                "email": customer.email if customer else None,
                "customer_id": customer.customer_id if customer else None,
                "last_ts": row.last_ts,
                "last_message": last.body if last else None,
                "unread_count": int(row.unread_count or 0),
                "tag": last.tag if last else None,
            }
        )
    return chats
