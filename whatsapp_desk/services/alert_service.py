"""Operational alerts to the ops Telegram chat."""

from typing import Optional

import httpx

from whatsapp_desk.config import settings
from whatsapp_desk.logging_config import get_logger

logger = get_logger("alert_service")

LEVEL_PREFIX = {"INFO": "[info]", "WARNING": "[warn]", "ERROR": "[error]", "CRITICAL": "[critical]"}


def send_alert(level: str, message: str, context: Optional[dict] = None) -> bool:
    """Send an alert. Returns True when Telegram accepted it.

    Alerting is optional: without ALERT_BOT_TOKEN/ALERT_CHAT_ID the alert is only logged.
    """
    if not settings.alert_bot_token or not settings.alert_chat_id:
        logger.warning(f"Alert not configured: {level} - {message}", extra={"context": context or {}})
        return False

    text = f"{LEVEL_PREFIX.get(level, '[alert]')} WhatsApp Desk: {message}"
    if context:
        text += "\n" + "\n".join(f"{key}: {value}" for key, value in context.items())

    try:
        with httpx.Client(timeout=settings.http_timeout_seconds) as client:
            response = client.post(
                f"https://api.telegram.org/bot{settings.alert_bot_token}/sendMessage",
                json={"chat_id": settings.alert_chat_id, "text": text},
            )
            return response.status_code == 200
    except httpx.HTTPError as e:
        logger.error(f"Failed to send alert: {e}")
        return False


def alert_warning(message: str, context: Optional[dict] = None) -> bool:
    return send_alert("WARNING", message, context)


def alert_error(message: str, context: Optional[dict] = None) -> bool:
    return send_alert("ERROR", message, context)
