from whatsapp_desk.services.conversation_log import append_message, latest_tag, retag_thread
from whatsapp_desk.services.customer_service import ensure_placeholder, get_customer, resolve, verify

__all__ = [
    "get_customer",
    "ensure_placeholder",
    "resolve",
    "verify",
    "append_message",
    "retag_thread",
    "latest_tag",
]
