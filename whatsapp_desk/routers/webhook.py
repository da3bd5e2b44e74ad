from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from whatsapp_desk.config import settings
from whatsapp_desk.database import get_db
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.schemas.webhook import WebhookAck, WebhookPayload
from whatsapp_desk.security import verify_webhook_signature
from whatsapp_desk.services.alert_service import alert_warning
from whatsapp_desk.services import media_service
from whatsapp_desk.services.intake_service import process_inbound

logger = get_logger("webhook")

router = APIRouter(tags=["webhook"])


@router.get("/webhook")
async def verify_subscription(request: Request):
    """Meta subscription handshake: echo hub.challenge when the verify token matches."""
    params = request.query_params
    token = params.get("hub.verify_token")
    if settings.verify_token and token == settings.verify_token:
        return PlainTextResponse(params.get("hub.challenge") or "")
    logger.warning("Webhook verification rejected", extra={"context": {"mode": params.get("hub.mode")}})
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(request: Request, db: Session = Depends(get_db)):
    """Inbound WhatsApp notification. Always acknowledged unless the store fails."""
    try:
        raw = await request.body()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return WebhookAck()

    if not verify_webhook_signature(raw, request.headers.get("X-Hub-Signature-256")):
        alert_warning("Webhook signature rejected", {"client": request.client.host if request.client else None})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

    try:
        payload = WebhookPayload.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning(
            "Webhook payload could not be parsed",
            extra={"context": {"error": str(exc)[:300], "body_preview": raw[:200].decode("utf-8", "ignore")}},
        )
        return WebhookAck()

    message = payload.first_message()
    if message is None:
        # Status callbacks (delivered/read) carry no message object.
        return WebhookAck()

    try:
        outcome = await run_in_threadpool(process_inbound, db, message)
    except SQLAlchemyError:
        logger.exception("Store failure while processing inbound message", extra={"context": {"from": message.from_number}})
        db.rollback()
        raise

    logger.info(
        "Inbound message processed",
        extra={"context": {"phone": outcome.phone, "stage": outcome.stage.value, "sent": outcome.sent}},
    )
    return WebhookAck()


@router.get("/media/{key:path}")
async def serve_media(key: str):
    data = media_service.get(key)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    return Response(content=data, media_type=media_service.guess_content_type(key))
