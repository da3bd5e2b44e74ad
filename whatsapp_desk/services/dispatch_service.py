from sqlalchemy.orm import Session

from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.services import conversation_log, whatsapp_service

logger = get_logger("dispatch_service")


def dispatch_and_log(db: Session, phone: str, text: str, tag: str, now_ms: int) -> bool:
    """Send a reply, then record it in the thread.

    The outgoing row is written even when delivery failed, so the log reflects what
    was said to the customer. Returns whether the send succeeded.
    """
    sent = whatsapp_service.send_text(phone, text)
    if not sent:
        logger.warning("Reply not delivered, logging anyway", extra={"context": {"phone": phone, "tag": tag}})
    conversation_log.log_outgoing(db, phone, text, tag, now_ms)
    return sent
