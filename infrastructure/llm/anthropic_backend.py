from __future__ import annotations

import base64
import logging
from typing import List, Sequence

import anthropic

from domain.exceptions import ModelError, UnsupportedMediaError
from domain.gateways import SUPPORTED_IMAGE_TYPES, ConversationTurn, ModelAttachment

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
SYSTEM_PROMPT = "You are a highly knowledgeable teacher on every subject. Your name is Florence*."


class AnthropicModelBackend:
    """`ModelBackend` backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: anthropic.Anthropic,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

    def complete(self, turns: Sequence[ConversationTurn]) -> str:
        messages = [{"role": turn.role, "content": turn.content} for turn in turns]
        return self._create(messages)

    def complete_with_attachments(self, items: List[ModelAttachment], prompt: str) -> str:
        content = [self._image_block(item) for item in items]
        content.append({"type": "text", "text": prompt})
        return self._create([{"role": "user", "content": content}])

    @staticmethod
    def _image_block(item: ModelAttachment) -> dict:
        if item.mime_type not in SUPPORTED_IMAGE_TYPES:
            raise UnsupportedMediaError(
                f"Unsupported media type: {item.mime_type}. "
                "Only JPEG, PNG, GIF, and WebP images are supported."
            )
        if item.data is not None:
            source = {
                "type": "base64",
                "media_type": item.mime_type,
                "data": base64.b64encode(item.data).decode("ascii"),
            }
        elif item.url:
            source = {"type": "url", "url": item.url}
        else:
            raise ModelError("Attachment has neither data nor url.")
        return {"type": "image", "source": source}

    def _create(self, messages: list) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=self.system_prompt,
                messages=messages,
            )
        except anthropic.APIError as exc:
            raise ModelError(f"Claude request failed: {exc}") from exc

        for block in response.content:
            if block.type == "text":
                return block.text
        logger.warning("Claude returned no text block (stop_reason=%s)", response.stop_reason)
        raise ModelError("Claude returned no text.")
