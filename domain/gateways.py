from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence


SUPPORTED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")


@dataclass
class ConversationTurn:
    role: str
    content: str


@dataclass
class ModelAttachment:
    """Image handed to the model, either inline (`data`) or by `url`."""

    mime_type: str
    data: Optional[bytes] = None
    url: Optional[str] = None


class MessageSender(Protocol):
    """
    Outbound delivery for one channel.

    `send` raises `DeliveryError` when the provider refuses or fails.
    """

    def send(self, recipient_id: str, text: str) -> None:
        ...


class ModelBackend(Protocol):
    """Black-box language model. Failures raise `ModelError`."""

    def complete(self, turns: Sequence[ConversationTurn]) -> str:
        ...

    def complete_with_attachments(
        self,
        items: List[ModelAttachment],
        prompt: str,
    ) -> str:
        """
        Answer `prompt` about the attached images.

        Only `SUPPORTED_IMAGE_TYPES` are accepted; anything else is
        rejected with `UnsupportedMediaError` before calling the model.
        """

        ...


class DocumentFetcher(Protocol):
    """Downloads attachment bytes. Failures raise `FetchError`."""

    def fetch_bytes(self, ref: str) -> bytes:
        ...
