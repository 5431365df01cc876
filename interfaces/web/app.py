from __future__ import annotations

import logging
from typing import Optional

import telebot
from flask import Flask, request

from application.services import Gateway
from interfaces.telegram.handlers import process_update
from interfaces.whatsapp.events import to_inbound_event

logger = logging.getLogger(__name__)


def create_app(
    whatsapp_gateway: Gateway,
    telegram_bot: Optional[telebot.TeleBot] = None,
) -> Flask:
    """
    HTTP surface for both channels.

    POST /whatsapp receives Twilio's form-encoded webhook, POST /telegram
    receives Telegram update JSON when the bot runs in webhook mode.
    """

    app = Flask(__name__)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/whatsapp")
    def whatsapp_webhook():
        event = to_inbound_event(request.form)
        if event is None:
            logger.warning("Ignoring WhatsApp webhook without a sender")
            return "Missing sender", 400
        try:
            whatsapp_gateway.handle(event)
        except Exception:
            logger.exception("Error processing WhatsApp request from %s", event.sender_id)
            return "An error occurred while processing your request", 500
        return "Request processed successfully", 200

    if telegram_bot is not None:

        @app.post("/telegram")
        def telegram_webhook():
            process_update(telegram_bot, request.get_data(as_text=True))
            return "", 200

    return app
