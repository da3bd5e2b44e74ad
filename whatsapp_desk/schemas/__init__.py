from whatsapp_desk.schemas.webhook import InboundMessage, WebhookAck, WebhookPayload

__all__ = ["InboundMessage", "WebhookPayload", "WebhookAck"]
