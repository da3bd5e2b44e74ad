"""Outbound transport: WhatsApp Cloud API (Graph API) text messages."""

import httpx

from whatsapp_desk.config import settings
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.services.alert_service import alert_error

logger = get_logger("whatsapp_service")


def _messages_url() -> str:
    base = settings.graph_api_base_url.rstrip("/")
    return f"{base}/{settings.graph_api_version}/{settings.phone_number_id}/messages"


def _auth_headers() -> dict:
    return {"Authorization": f"Bearer {settings.whatsapp_token}"}


def send_text(phone: str, text: str) -> bool:
    """Send a text message. Never raises; returns False on any failure.

    There is no retry: a failed send is reported once and left to the agents.
    """
    if not settings.whatsapp_token or not settings.phone_number_id:
        logger.error("WhatsApp credentials missing (WHATSAPP_TOKEN / PHONE_NUMBER_ID not set)")
        return False

    if not phone or not text:
        logger.warning(f"send_text: missing phone={phone!r} or text")
        return False

    payload = {
        "messaging_product": "whatsapp",
        "to": phone,
        "type": "text",
        "text": {"body": text},
    }
    try:
        with httpx.Client(timeout=settings.http_timeout_seconds) as client:
            response = client.post(_messages_url(), json=payload, headers=_auth_headers())
    except httpx.HTTPError as e:
        logger.error(f"Error sending WhatsApp message: {e}", extra={"context": {"phone": phone}})
        alert_error("WhatsApp send failed", {"phone": phone, "error": str(e)})
        return False

    if response.status_code >= 400:
        logger.warning(
            "WhatsApp send rejected",
            extra={"context": {"phone": phone, "status": response.status_code, "body": response.text[:200]}},
        )
        alert_error("WhatsApp send failed", {"phone": phone, "status": response.status_code})
        return False

    logger.info("WhatsApp message sent", extra={"context": {"phone": phone, "status": response.status_code}})
    return True


def fetch_media(media_id: str, max_bytes: int) -> tuple[bytes | None, str | None, str | None]:
    """Download a media object by Graph id.

    Returns (data, mime_type, error). Bounded by the HTTP timeout and max_bytes.
    """
    if not settings.whatsapp_token:
        return None, None, "missing_token"

    base = settings.graph_api_base_url.rstrip("/")
    meta_url = f"{base}/{settings.graph_api_version}/{media_id}"
    try:
        with httpx.Client(timeout=settings.http_timeout_seconds) as client:
            meta = client.get(meta_url, headers=_auth_headers())
            if meta.status_code != 200:
                return None, None, f"metadata_status:{meta.status_code}"
            info = meta.json()
            direct_url = info.get("url")
            if not direct_url:
                return None, None, "missing_url"

            data = bytearray()
            with client.stream("GET", direct_url, headers=_auth_headers()) as response:
                if response.status_code != 200:
                    return None, None, f"download_status:{response.status_code}"
                for chunk in response.iter_bytes():
                    data.extend(chunk)
                    if len(data) > max_bytes:
                        return None, None, "too_large"
            mime_type = info.get("mime_type") or response.headers.get("Content-Type")
    except (httpx.HTTPError, ValueError) as e:
        return None, None, f"download_failed:{e}"

    return bytes(data), mime_type, None
