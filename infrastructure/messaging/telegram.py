from __future__ import annotations

import requests
import telebot
from telebot.apihelper import ApiException

from domain.exceptions import DeliveryError, FetchError


class TelegramSender:
    def __init__(self, bot: telebot.TeleBot) -> None:
        self._bot = bot

    def send(self, recipient_id: str, text: str) -> None:
        try:
            self._bot.send_message(int(recipient_id), text)
        except (ApiException, requests.RequestException) as exc:
            raise DeliveryError(f"Telegram refused message to {recipient_id}: {exc}") from exc


class TelegramFileFetcher:
    """Resolves a Telegram file ID to its bytes via getFile + download."""

    def __init__(self, bot: telebot.TeleBot) -> None:
        self._bot = bot

    def fetch_bytes(self, ref: str) -> bytes:
        try:
            file_info = self._bot.get_file(ref)
            return self._bot.download_file(file_info.file_path)
        except (ApiException, requests.RequestException) as exc:
            raise FetchError(f"Could not download Telegram file {ref}: {exc}") from exc
