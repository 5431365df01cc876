from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass
class Attachment:
    """
    A reference to media attached to an inbound message.

    `ref` is whatever the channel needs to fetch the bytes later
    (a Telegram file ID, a Twilio media URL).
    """

    ref: str
    mime_type: Optional[str] = None
    file_name: Optional[str] = None


@dataclass
class TextMessage:
    sender_id: str
    display_name: str
    text: str


@dataclass
class MediaMessage:
    """
    Message carrying attachments.

    `kind` is one of "image", "document" or "other"; "other" covers
    everything the gateway cannot forward (audio, stickers, locations).
    """

    sender_id: str
    display_name: str
    kind: str
    caption: str = ""
    attachments: List[Attachment] = field(default_factory=list)


@dataclass
class CommandMessage:
    sender_id: str
    display_name: str
    command: str
    args: List[str] = field(default_factory=list)
    raw_text: Optional[str] = None

    @property
    def text(self) -> str:
        if self.raw_text is not None:
            return self.raw_text
        return " ".join([f"/{self.command}", *self.args])


InboundEvent = Union[TextMessage, MediaMessage, CommandMessage]


def text_event(sender_id: str, display_name: str, text: str) -> InboundEvent:
    """
    Build a `CommandMessage` for "/command args" text, else a `TextMessage`.

    Telegram's "/start@SomeBot" form is reduced to "start".
    """

    stripped = text.strip()
    if stripped.startswith("/") and len(stripped) > 1:
        parts = stripped.split()
        command = parts[0][1:].split("@", 1)[0].lower()
        return CommandMessage(
            sender_id=sender_id,
            display_name=display_name,
            command=command,
            args=parts[1:],
            raw_text=text,
        )
    return TextMessage(sender_id=sender_id, display_name=display_name, text=text)
