from __future__ import annotations

from typing import Optional

from domain.events import Attachment, InboundEvent, MediaMessage, text_event


def _display_name(user) -> str:
    parts = [user.first_name or "", getattr(user, "last_name", None) or ""]
    name = " ".join(part for part in parts if part)
    return name or getattr(user, "username", None) or str(user.id)


def to_inbound_event(message) -> Optional[InboundEvent]:
    """
    Translate a telebot `Message` into a channel-agnostic event.

    Returns None for messages the gateway never answers (sent by bots or
    without a sender). Telegram delivers every size of one photo; only
    the largest is kept.
    """

    sender = message.from_user
    if sender is None or sender.is_bot:
        return None

    sender_id = str(sender.id)
    display_name = _display_name(sender)
    content_type = message.content_type

    if content_type == "text":
        return text_event(sender_id, display_name, message.text or "")

    if content_type == "photo" and message.photo:
        largest = message.photo[-1]
        return MediaMessage(
            sender_id=sender_id,
            display_name=display_name,
            kind="image",
            caption=message.caption or "",
            attachments=[Attachment(ref=largest.file_id, mime_type="image/jpeg")],
        )

    if content_type == "document" and message.document is not None:
        document = message.document
        return MediaMessage(
            sender_id=sender_id,
            display_name=display_name,
            kind="document",
            caption=message.caption or "",
            attachments=[
                Attachment(
                    ref=document.file_id,
                    mime_type=document.mime_type,
                    file_name=document.file_name,
                )
            ],
        )

    return MediaMessage(
        sender_id=sender_id,
        display_name=display_name,
        kind="other",
        caption=message.caption or "",
    )
