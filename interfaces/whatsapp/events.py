from __future__ import annotations

from typing import Mapping, Optional

from domain.events import Attachment, InboundEvent, MediaMessage, text_event


def _media_count(form: Mapping[str, str]) -> int:
    try:
        return max(int(form.get("NumMedia") or 0), 0)
    except ValueError:
        return 0


def _kind(form: Mapping[str, str], attachments) -> str:
    message_type = (form.get("MessageType") or "").lower()
    if message_type in ("image", "document"):
        return message_type
    if message_type and message_type != "text":
        return "other"
    # Older webhooks carry no MessageType; fall back to the first media type.
    content_type = (attachments[0].mime_type or "").lower() if attachments else ""
    if content_type.startswith("image/"):
        return "image"
    if content_type == "application/pdf":
        return "document"
    return "other"


def to_inbound_event(form: Mapping[str, str]) -> Optional[InboundEvent]:
    """
    Translate a Twilio WhatsApp webhook form into a channel-agnostic event.

    Returns None when the sender cannot be identified.
    """

    sender_id = (form.get("WaId") or "").strip()
    if not sender_id:
        return None

    display_name = form.get("ProfileName") or sender_id
    body = form.get("Body") or ""
    count = _media_count(form)

    if count == 0:
        message_type = (form.get("MessageType") or "text").lower()
        if message_type != "text":
            return MediaMessage(sender_id=sender_id, display_name=display_name, kind="other", caption=body)
        return text_event(sender_id, display_name, body)

    attachments = [
        Attachment(ref=form[f"MediaUrl{index}"], mime_type=form.get(f"MediaContentType{index}"))
        for index in range(count)
        if form.get(f"MediaUrl{index}")
    ]
    return MediaMessage(
        sender_id=sender_id,
        display_name=display_name,
        kind=_kind(form, attachments),
        caption=body,
        attachments=attachments,
    )
