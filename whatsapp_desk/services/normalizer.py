import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from whatsapp_desk.schemas.webhook import InboundMessage, MediaContent


class InputKind(str, Enum):
    TEXT = "text"
    MEDIA = "media"
    LOCATION = "location"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class NormalizedInput:
    kind: InputKind
    text: str
    media_url: Optional[str] = None
    location_json: Optional[str] = None

    def with_media_url(self, media_url: Optional[str]) -> "NormalizedInput":
        return NormalizedInput(self.kind, self.text, media_url, self.location_json)


@dataclass(frozen=True)
class VoiceRejected:
    media_url: Optional[str]
    text: str = "[Audio]"


MEDIA_PLACEHOLDERS = {
    "image": "[Image]",
    "audio": "[Audio]",
    "document": "[Document]",
}


def _media_reference(content: Any) -> Optional[str]:
    if isinstance(content, MediaContent):
        return content.reference
    if isinstance(content, dict):
        return content.get("link") or content.get("url") or content.get("id")
    return None


def normalize(message: InboundMessage) -> Union[NormalizedInput, VoiceRejected]:
    """Reduce an inbound message to (kind, text, media, location).

    Voice notes are not normalized: they come back as VoiceRejected so the caller can
    short-circuit with an apology.
    """
    message_type = (message.type or "unknown").strip().lower()

    if message_type == "text":
        body = message.text.body if message.text else ""
        return NormalizedInput(InputKind.TEXT, (body or "").strip())

    if message_type in MEDIA_PLACEHOLDERS:
        content = message.content_for(message_type)
        reference = _media_reference(content)
        if message_type == "audio" and isinstance(content, MediaContent) and content.voice:
            return VoiceRejected(media_url=reference)
        return NormalizedInput(InputKind.MEDIA, MEDIA_PLACEHOLDERS[message_type], media_url=reference)

    if message_type == "location" and message.location is not None:
        lat = message.location.latitude
        lon = message.location.longitude
        return NormalizedInput(
            InputKind.LOCATION,
            f"[LOCATION:{lat},{lon}]",
            location_json=json.dumps({"latitude": lat, "longitude": lon}),
        )

    content = message.content_for(message_type)
    return NormalizedInput(
        InputKind.UNKNOWN,
        f"[Unknown:{message_type}]",
        media_url=_media_reference(content),
    )


def matching_text(text: str) -> str:
    """Form used by the routers: trimmed, lower case, single spaces."""
    return " ".join((text or "").lower().split())
