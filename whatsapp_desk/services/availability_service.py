"""Organisation availability: global closure, public holidays and department hours.

Configuration is read from the store on every evaluation; nothing is cached.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from whatsapp_desk.config import settings
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.models import AutoReply, OfficeGlobal, OfficeHours, PublicHoliday

logger = get_logger("availability_service")

HOLIDAY_MESSAGE = (
    "Our offices are closed today for a public holiday. "
    "We'll respond to your message on the next business day."
)
DEPARTMENT_OFFLINE_MESSAGE = (
    "Our {tag} team is currently unavailable. You can leave a message or come back during office hours."
)

DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


class AvailabilityStatus(str, Enum):
    OPEN = "open"
    GLOBALLY_CLOSED = "globally_closed"
    HOLIDAY_CLOSED = "holiday_closed"


@dataclass(frozen=True)
class Availability:
    status: AvailabilityStatus
    message: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status == AvailabilityStatus.OPEN


@dataclass(frozen=True)
class GlobalStatus:
    closed: bool
    message: str


def local_now(now: datetime) -> datetime:
    """Convert to the operator's timezone; naive datetimes are taken as UTC."""
    tz = ZoneInfo(settings.operator_timezone)
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(tz)


def sunday_based_weekday(day: date) -> int:
    """0 = Sunday ... 6 = Saturday, the convention of the office_hours table."""
    return (day.weekday() + 1) % 7


def get_global_status(db: Session) -> GlobalStatus:
    row = db.query(OfficeGlobal).filter(OfficeGlobal.id == 1).first()
    if row is None:
        return GlobalStatus(closed=False, message="")
    return GlobalStatus(closed=bool(row.closed), message=(row.message or "").strip())


def is_holiday(db: Session, day: date) -> bool:
    return db.query(PublicHoliday).filter(PublicHoliday.date == day.isoformat()).first() is not None


def get_auto_reply(db: Session, tag: str) -> Optional[AutoReply]:
    return db.query(AutoReply).filter(AutoReply.tag == tag).order_by(AutoReply.id.asc()).first()


def evaluate(db: Session, now: datetime) -> Availability:
    """Global closure first, then today's holiday, otherwise open."""
    status = get_global_status(db)
    if status.closed:
        return Availability(
            AvailabilityStatus.GLOBALLY_CLOSED,
            status.message or settings.global_closed_default_message,
        )

    today = local_now(now).date()
    if is_holiday(db, today):
        return Availability(AvailabilityStatus.HOLIDAY_CLOSED, HOLIDAY_MESSAGE)

    return Availability(AvailabilityStatus.OPEN)


def _parse_hhmm(value: str) -> Optional[time]:
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError):
        return None


def _within(open_time: Optional[time], close_time: Optional[time], moment: time) -> bool:
    if open_time is None or close_time is None:
        return True
    return open_time <= moment < close_time


def _hours_entry_for_day(hours: dict, weekday: int) -> Optional[str]:
    name = DAY_NAMES[weekday]
    for key in (str(weekday), name):
        if key in hours:
            return hours[key]
    for key, value in hours.items():
        if str(key).strip().lower()[:3] == name:
            return value
    return None


def _open_by_auto_reply_hours(raw_hours: Optional[str], weekday: int, moment: time) -> Optional[bool]:
    if not raw_hours:
        return None
    try:
        hours = json.loads(raw_hours)
    except ValueError:
        logger.warning("Auto-reply hours are not valid JSON", extra={"context": {"hours": raw_hours}})
        return None
    if not isinstance(hours, dict):
        return None

    entry = _hours_entry_for_day(hours, weekday)
    if entry is None:
        return None
    entry = str(entry).strip().lower()
    if entry == "closed":
        return False
    start, _, end = entry.partition("-")
    return _within(_parse_hhmm(start), _parse_hhmm(end), moment)


def is_department_open(db: Session, tag: str, now: datetime) -> bool:
    """Whether a department is within its office hours.

    The office_hours row for (tag, weekday) wins; otherwise the tag's auto-reply
    hours map; with neither configured the department counts as open.
    """
    local = local_now(now)
    weekday = sunday_based_weekday(local.date())
    moment = local.time()

    row = db.query(OfficeHours).filter(OfficeHours.tag == tag, OfficeHours.day == weekday).first()
    if row is not None:
        if row.closed:
            return False
        return _within(_parse_hhmm(row.open_time or ""), _parse_hhmm(row.close_time or ""), moment)

    rule = get_auto_reply(db, tag)
    by_rule = _open_by_auto_reply_hours(rule.hours if rule else None, weekday, moment)
    if by_rule is not None:
        return by_rule
    return True


def department_closure_reply(db: Session, tag: str) -> str:
    rule = get_auto_reply(db, tag)
    if rule is not None and (rule.reply or "").strip():
        return rule.reply.strip()
    return DEPARTMENT_OFFLINE_MESSAGE.format(tag=tag)
