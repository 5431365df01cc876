import logging
import os
import signal
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import anthropic
import telebot
from dotenv import load_dotenv
from twilio.rest import Client

from application.ledger import UserLedger
from application.payment_requests import RequestWindowTracker
from application.services import TELEGRAM, WHATSAPP, ChannelPolicy, Gateway, build_policy
from application.verification import PaymentProofVerifier
from domain.exceptions import ConfigurationError
from domain.repositories import PaymentRequestRepository, UserRepository
from infrastructure.documents.pdf_text import extract_pdf_text
from infrastructure.llm.anthropic_backend import DEFAULT_MODEL, AnthropicModelBackend
from infrastructure.messaging.telegram import TelegramFileFetcher, TelegramSender
from infrastructure.messaging.whatsapp import (
    DEFAULT_FROM_NUMBER,
    TwilioMediaFetcher,
    TwilioWhatsAppSender,
)
from interfaces.telegram.handlers import register_handlers
from interfaces.telegram.webhook import RetryPolicy, register_webhook_with_retry
from interfaces.web.app import create_app

logger = logging.getLogger(__name__)

REQUIRED_VARIABLES = (
    "TELEGRAM_BOT_TOKEN",
    "ANTHROPIC_API_KEY",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
)
STORAGE_BACKENDS = ("memory", "sqlite", "postgres")


@dataclass
class Settings:
    telegram_bot_token: str
    anthropic_api_key: str
    twilio_account_sid: str
    twilio_auth_token: str
    port: int = 4000
    webhook_url: Optional[str] = None
    whatsapp_from_number: str = DEFAULT_FROM_NUMBER
    admin_whatsapp_ids: List[str] = field(default_factory=list)
    model: str = DEFAULT_MODEL
    storage_backend: str = "memory"
    db_path: str = "florence.db"
    database_url: Optional[str] = None
    timezone: str = "UTC"
    log_level: str = "INFO"


def load_settings(environ: Mapping[str, str]) -> Settings:
    """
    Build `Settings` from environment variables.

    Raises `ConfigurationError` for anything that would stop the gateway
    from serving traffic correctly, before any client is constructed.
    """

    missing = [name for name in REQUIRED_VARIABLES if not environ.get(name)]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    try:
        port = int(environ.get("PORT", "4000"))
    except ValueError as exc:
        raise ConfigurationError(f"PORT must be a number, got {environ.get('PORT')!r}") from exc

    storage_backend = environ.get("STORAGE_BACKEND", "memory").lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise ConfigurationError(
            f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got {storage_backend!r}"
        )
    database_url = environ.get("DATABASE_URL") or None
    if storage_backend == "postgres" and not database_url:
        raise ConfigurationError("DATABASE_URL is required when STORAGE_BACKEND=postgres")

    timezone_name = environ.get("TIMEZONE", "UTC")
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown TIMEZONE {timezone_name!r}") from exc

    admins = [part.strip() for part in environ.get("ADMIN_WHATSAPP_IDS", "").split(",") if part.strip()]

    return Settings(
        telegram_bot_token=environ["TELEGRAM_BOT_TOKEN"],
        anthropic_api_key=environ["ANTHROPIC_API_KEY"],
        twilio_account_sid=environ["TWILIO_ACCOUNT_SID"],
        twilio_auth_token=environ["TWILIO_AUTH_TOKEN"],
        port=port,
        webhook_url=environ.get("WEBHOOK_URL") or None,
        whatsapp_from_number=environ.get("WHATSAPP_FROM_NUMBER", DEFAULT_FROM_NUMBER),
        admin_whatsapp_ids=admins,
        model=environ.get("MODEL", DEFAULT_MODEL),
        storage_backend=storage_backend,
        db_path=environ.get("DB_PATH", "florence.db"),
        database_url=database_url,
        timezone=timezone_name,
        log_level=environ.get("LOG_LEVEL", "INFO").upper(),
    )


def build_repositories(
    settings: Settings,
    channel: str,
) -> Tuple[UserRepository, PaymentRequestRepository]:
    if settings.storage_backend == "sqlite":
        from infrastructure.db.payment_request_repository_sqlite import SqlitePaymentRequestRepository
        from infrastructure.db.user_repository_sqlite import SqliteUserRepository

        return (
            SqliteUserRepository(settings.db_path, channel),
            SqlitePaymentRequestRepository(settings.db_path, channel),
        )

    if settings.storage_backend == "postgres":
        from infrastructure.db.payment_request_repository_postgres import PostgresPaymentRequestRepository
        from infrastructure.db.user_repository_postgres import PostgresUserRepository

        db_params = {"dsn": settings.database_url}
        return (
            PostgresUserRepository(db_params, channel),
            PostgresPaymentRequestRepository(db_params, channel),
        )

    from infrastructure.db.payment_request_repository_memory import InMemoryPaymentRequestRepository
    from infrastructure.db.user_repository_memory import InMemoryUserRepository

    return InMemoryUserRepository(), InMemoryPaymentRequestRepository()


def build_gateway(settings: Settings, policy: ChannelPolicy, model, sender, fetcher) -> Gateway:
    user_repo, request_repo = build_repositories(settings, policy.name)
    zone = ZoneInfo(settings.timezone)
    return Gateway(
        policy=policy,
        ledger=UserLedger(policy.name, user_repo),
        requests=RequestWindowTracker(request_repo),
        verifier=PaymentProofVerifier(extract_pdf_text),
        model=model,
        sender=sender,
        fetcher=fetcher,
        clock=lambda: datetime.now(zone),
    )


def start_polling(bot: telebot.TeleBot) -> threading.Thread:
    logger.info("Falling back to long polling...")
    bot.remove_webhook()
    thread = threading.Thread(target=bot.infinity_polling, name="telegram-polling", daemon=True)
    thread.start()
    return thread


def shutdown_handler(bot: telebot.TeleBot):
    """Signal handler that stops Telegram polling before the process exits."""

    def handle(signum, frame) -> None:
        logger.info("Received %s, stopping the Telegram bot", signal.Signals(signum).name)
        bot.stop_polling()
        raise SystemExit(0)

    return handle


def main() -> None:
    load_dotenv()
    try:
        settings = load_settings(os.environ)
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    model = AnthropicModelBackend(anthropic.Anthropic(api_key=settings.anthropic_api_key), settings.model)

    twilio_client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
    whatsapp_gateway = build_gateway(
        settings,
        build_policy(WHATSAPP, settings.admin_whatsapp_ids),
        model,
        TwilioWhatsAppSender(twilio_client, settings.whatsapp_from_number),
        TwilioMediaFetcher(settings.twilio_account_sid, settings.twilio_auth_token),
    )

    bot = telebot.TeleBot(settings.telegram_bot_token, threaded=False)
    telegram_gateway = build_gateway(
        settings,
        TELEGRAM,
        model,
        TelegramSender(bot),
        TelegramFileFetcher(bot),
    )
    register_handlers(bot, telegram_gateway)

    if settings.webhook_url:
        webhook_url = f"{settings.webhook_url.rstrip('/')}/telegram"

        def set_webhook() -> None:
            if not bot.set_webhook(url=webhook_url):
                raise RuntimeError(f"Telegram rejected webhook {webhook_url}")

        registered = register_webhook_with_retry(set_webhook, RetryPolicy())
        if registered:
            logger.info("Webhook successfully set to: %s", webhook_url)
        else:
            start_polling(bot)
    else:
        start_polling(bot)

    on_shutdown = shutdown_handler(bot)
    signal.signal(signal.SIGINT, on_shutdown)
    signal.signal(signal.SIGTERM, on_shutdown)

    app = create_app(whatsapp_gateway, bot)
    logger.info("Server is running on port %s", settings.port)
    app.run(host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
