"""WhatsApp Cloud API webhook envelope.

Only the fields the intake reads are declared; everything else is kept as extra data.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TextContent(BaseModel):
    body: str = ""


class MediaContent(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    link: Optional[str] = None
    url: Optional[str] = None
    mime_type: Optional[str] = None
    caption: Optional[str] = None
    filename: Optional[str] = None
    voice: Optional[bool] = None

    @property
    def reference(self) -> Optional[str]:
        return self.link or self.url or self.id


class LocationContent(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    name: Optional[str] = None
    address: Optional[str] = None


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    from_number: str = Field(validation_alias=AliasChoices("from", "from_number"))
    id: Optional[str] = None
    timestamp: Optional[str] = None
    type: str = "unknown"
    text: Optional[TextContent] = None
    image: Optional[MediaContent] = None
    audio: Optional[MediaContent] = None
    document: Optional[MediaContent] = None
    location: Optional[LocationContent] = None

    def content_for(self, key: str) -> Any:
        """Sub-object for a message type, including types not declared above."""
        declared = getattr(self, key, None) if key in type(self).model_fields else None
        if declared is not None:
            return declared
        return (self.model_extra or {}).get(key)


class ChangeValue(BaseModel):
    model_config = ConfigDict(extra="allow")

    messaging_product: Optional[str] = None
    messages: list[InboundMessage] = Field(default_factory=list)


class Change(BaseModel):
    field: Optional[str] = None
    value: Optional[ChangeValue] = None


class Entry(BaseModel):
    id: Optional[str] = None
    changes: list[Change] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object: Optional[str] = None
    entry: list[Entry] = Field(default_factory=list)

    def first_message(self) -> Optional[InboundMessage]:
        """entry[0].changes[0].value.messages[0], or None when any level is missing."""
        if not self.entry or not self.entry[0].changes:
            return None
        value = self.entry[0].changes[0].value
        if value is None or not value.messages:
            return None
        return value.messages[0]


class WebhookAck(BaseModel):
    ok: bool = True
