"""
Message payload variants.

A message carries either text or a media reference, never both.  Client
input is parsed into one of the two variants here, so everything past
this point can rely on the shape matching the message type.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .exceptions import ValidationError
from .models import Message

MEDIA_TYPES = (Message.Type.IMAGE, Message.Type.AUDIO, Message.Type.VIDEO)


@dataclass(frozen=True)
class TextPayload:
    content: str
    message_type: str = Message.Type.TEXT

    def as_fields(self) -> dict:
        return {"message_type": self.message_type, "content": self.content, "media_ref": ""}


@dataclass(frozen=True)
class MediaPayload:
    message_type: str
    media_ref: str

    def as_fields(self) -> dict:
        return {"message_type": self.message_type, "content": "", "media_ref": self.media_ref}


Payload = Union[TextPayload, MediaPayload]


def parse_payload(message_type: Optional[str], content=None, media_ref=None) -> Payload:
    """Build the payload variant for ``message_type`` or raise ``ValidationError``."""
    message_type = message_type or Message.Type.TEXT
    content = content.strip() if isinstance(content, str) else content
    media_ref = str(media_ref).strip() if media_ref not in (None, "") else ""

    if message_type == Message.Type.TEXT:
        if media_ref:
            raise ValidationError("Text messages cannot carry a media reference")
        if not isinstance(content, str) or not content:
            raise ValidationError("Message content is required for text messages")
        return TextPayload(content=content)

    if message_type in MEDIA_TYPES:
        if content:
            raise ValidationError(f"{message_type.capitalize()} messages cannot carry text content")
        if not media_ref:
            raise ValidationError(f"Media reference is required for {message_type} messages")
        if len(media_ref) > Message._meta.get_field("media_ref").max_length:
            raise ValidationError("Media reference is too long")
        return MediaPayload(message_type=str(message_type), media_ref=media_ref)

    raise ValidationError(f"Invalid message type: {message_type}")
