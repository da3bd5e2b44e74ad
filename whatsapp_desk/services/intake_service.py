"""Inbound message pipeline.

availability -> normalize -> resolve customer -> log inbound -> route -> dispatch and log.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from whatsapp_desk.logging_config import PhoneLoggerAdapter, get_logger
from whatsapp_desk.schemas.webhook import InboundMessage
from whatsapp_desk.services import (
    availability_service,
    command_router,
    conversation_log,
    customer_service,
    media_service,
    onboarding_router,
)
from whatsapp_desk.services.dispatch_service import dispatch_and_log
from whatsapp_desk.services.normalizer import VoiceRejected, normalize
from whatsapp_desk.services.thread_state import Direction, ThreadTag, verified_thread_tag

logger = get_logger("intake_service")

VOICE_NOTE_APOLOGY = "Sorry, we can't process voice notes. Please type your message instead."


class IntakeStage(str, Enum):
    CLOSED = "closed"
    VOICE_REJECTED = "voice_rejected"
    COMMAND = "command"
    ONBOARDING = "onboarding"


@dataclass
class IntakeOutcome:
    phone: str
    stage: IntakeStage
    reply: str
    tag: str
    sent: bool
    rule: Optional[str] = None


def _to_millis(now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return int(now.timestamp() * 1000)


def _handle_voice_note(db: Session, phone: str, rejected: VoiceRejected, now_ms: int) -> IntakeOutcome:
    media_url = media_service.resolve_media_url(phone, rejected.media_url)
    tag = ThreadTag.LEAD.value
    conversation_log.append_message(db, phone, rejected.text, tag, now_ms, Direction.INCOMING.value, media_url=media_url)
    customer_service.ensure_placeholder(db, phone)
    db.commit()
    sent = dispatch_and_log(db, phone, VOICE_NOTE_APOLOGY, tag, now_ms)
    return IntakeOutcome(phone, IntakeStage.VOICE_REJECTED, VOICE_NOTE_APOLOGY, tag, sent)


def process_inbound(db: Session, message: InboundMessage, now: Optional[datetime] = None) -> IntakeOutcome:
    """Handle one inbound WhatsApp message end to end.

    Store errors propagate to the caller; transport and account lookup failures do not.
    """
    now = now or datetime.now(timezone.utc)
    now_ms = _to_millis(now)
    phone = customer_service.normalize_phone(message.from_number)
    log = PhoneLoggerAdapter(logger, {"phone": phone})

    availability = availability_service.evaluate(db, now)
    if not availability.is_open:
        log.info("Organisation closed, sending closure reply", context={"status": availability.status.value})
        tag = ThreadTag.SYSTEM.value
        sent = dispatch_and_log(db, phone, availability.message, tag, now_ms)
        return IntakeOutcome(phone, IntakeStage.CLOSED, availability.message, tag, sent)

    normalized = normalize(message)
    if isinstance(normalized, VoiceRejected):
        log.info("Voice note rejected")
        return _handle_voice_note(db, phone, normalized, now_ms)

    normalized = normalized.with_media_url(
        media_service.resolve_media_url(phone, normalized.media_url)
    )

    customer, created = customer_service.resolve(db, phone)

    if customer.verified:
        thread_tag = verified_thread_tag(conversation_log.latest_tag(db, phone))
        conversation_log.log_inbound(db, phone, normalized, thread_tag, now_ms)
        routed = command_router.route(db, normalized.text, customer)
        reply_tag = routed.retagged_to or thread_tag
        stage = IntakeStage.COMMAND
    else:
        conversation_log.log_inbound(db, phone, normalized, ThreadTag.UNVERIFIED.value, now_ms)
        routed = onboarding_router.route(normalized.text, customer, created)
        reply_tag = ThreadTag.UNVERIFIED.value
        stage = IntakeStage.ONBOARDING

    log.info("Reply routed", context={"stage": stage.value, "rule": routed.rule, "tag": reply_tag})
    sent = dispatch_and_log(db, phone, routed.text, reply_tag, now_ms)
    return IntakeOutcome(phone, stage, routed.text, reply_tag, sent, rule=routed.rule)
