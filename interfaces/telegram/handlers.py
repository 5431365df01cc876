from __future__ import annotations

import logging

import telebot

from application.services import Gateway
from interfaces.telegram.events import to_inbound_event

logger = logging.getLogger(__name__)

HANDLED_CONTENT_TYPES = [
    "text",
    "photo",
    "document",
    "audio",
    "voice",
    "video",
    "video_note",
    "sticker",
    "location",
    "contact",
]


def register_handlers(bot: telebot.TeleBot, gateway: Gateway) -> telebot.TeleBot:
    """
    Wire a TeleBot instance to the gateway.

    This module contains only Telegram-specific concerns: turning
    Telegram messages into inbound events. Commands, payments and
    prompts are all decided by the gateway.
    """

    @bot.message_handler(content_types=HANDLED_CONTENT_TYPES)
    def handle_message(message):
        event = to_inbound_event(message)
        if event is None:
            return
        logger.debug("Incoming Telegram %s from %s", message.content_type, event.sender_id)
        gateway.handle(event)

    return bot


def process_update(bot: telebot.TeleBot, payload: str) -> None:
    """Feed one webhook request body (Telegram update JSON) to the bot."""

    update = telebot.types.Update.de_json(payload)
    if update is None:
        return
    bot.process_new_updates([update])
