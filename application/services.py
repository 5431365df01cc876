from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Sequence

from application import messages
from application.ledger import UserLedger
from application.media import determine_media_type, is_pdf
from application.payment_requests import RequestWindowTracker
from application.rewards import IDLE_REWARD_MAX_BALANCE, evaluate_idle_reward, evaluate_streak
from application.verification import PaymentProofVerifier
from domain.events import CommandMessage, InboundEvent, MediaMessage, TextMessage
from domain.exceptions import GatewayError
from domain.gateways import (
    ConversationTurn,
    DocumentFetcher,
    MessageSender,
    ModelAttachment,
    ModelBackend,
)
from domain.models import UserRecord

logger = logging.getLogger(__name__)

TEXT_PROMPT_COST = 1
ATTACHMENT_COST = 2
MAX_ATTACHMENTS = 5
PAYMENT_TOKENS = 10
DEFAULT_ATTACHMENT_PROMPT = "Please analyze this attachment."

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChannelPolicy:
    """
    Per-channel differences in how users are onboarded.

    `greet_only_on_first_message`: the message that created the user only
    produces the walkthrough and is not processed further.
    """

    name: str
    initial_tokens: int
    issue_referral_code: bool = False
    greet_only_on_first_message: bool = False
    refresh_display_name: bool = False
    admin_recipients: List[str] = field(default_factory=list)


WHATSAPP = ChannelPolicy(
    name="whatsapp",
    initial_tokens=100,
    issue_referral_code=True,
    greet_only_on_first_message=True,
)

TELEGRAM = ChannelPolicy(
    name="telegram",
    initial_tokens=10,
    refresh_display_name=True,
)


def _first_name(user: UserRecord) -> str:
    parts = user.display_name.split()
    return parts[0] if parts else user.display_name


class Gateway:
    """
    Handles inbound events for one channel.

    The interface layer turns SDK payloads into `InboundEvent`s and calls
    `handle`; everything channel-specific beyond that lives in the
    injected collaborators and the `ChannelPolicy`.
    """

    def __init__(
        self,
        policy: ChannelPolicy,
        ledger: UserLedger,
        requests: RequestWindowTracker,
        verifier: PaymentProofVerifier,
        model: ModelBackend,
        sender: MessageSender,
        fetcher: DocumentFetcher,
        clock: Clock = _utc_now,
    ) -> None:
        self.policy = policy
        self.ledger = ledger
        self.requests = requests
        self.verifier = verifier
        self.model = model
        self.sender = sender
        self.fetcher = fetcher
        self._clock = clock

    def handle(self, event: InboundEvent) -> None:
        """
        Process one inbound event to completion.

        Collaborator failures are logged and answered with an apology; any
        tokens spent on the failed request have already been refunded.
        """

        # TODO: deduplicate on the provider message ID; a redelivered
        # webhook is currently charged and answered twice.
        with self.ledger.lock(event.sender_id):
            try:
                self._handle(event)
            except GatewayError:
                logger.exception(
                    "Failed to handle %s event from %s", self.policy.name, event.sender_id
                )
                self._apologise(event.sender_id)

    def _handle(self, event: InboundEvent) -> None:
        now = self._clock()
        user = self.ledger.get_user(event.sender_id)
        if user is None:
            user = self._register(event, now)
            if self.policy.greet_only_on_first_message:
                return
        elif self.policy.refresh_display_name and event.display_name:
            user.display_name = event.display_name

        previous_activity = self.ledger.touch_activity(user, now)
        tokens_awarded = evaluate_idle_reward(user, now)
        outcome = evaluate_streak(user, now, previous_activity)
        self.ledger.save(user)

        if tokens_awarded:
            logger.info("Idle reward of %s tokens for %s", tokens_awarded, user.id)
            self._reply(user.id, messages.idle_reward(tokens_awarded))
        if outcome.streak_broken:
            logger.info("Streak reset for %s", user.id)
        if outcome.streak_reward:
            self._reply(user.id, messages.streak_reward(user.streak, outcome.streak_reward))

        if isinstance(event, CommandMessage):
            self._handle_command(user, event, now)
        elif isinstance(event, MediaMessage) and event.kind == "document":
            self._handle_payment_proof(user, event)
        else:
            self._handle_prompt(user, event)

    def _register(self, event: InboundEvent, now: datetime) -> UserRecord:
        referral_id = None
        if self.policy.issue_referral_code:
            referral_id = f"{event.display_name[:1]}{event.sender_id}"

        user = self.ledger.create_user(
            event.sender_id,
            event.display_name,
            self.policy.initial_tokens,
            0,
            now,
            referral_id=referral_id,
        )
        logger.info("New %s user %s (%s)", self.policy.name, user.id, user.display_name)

        for admin_id in self.policy.admin_recipients:
            try:
                self.sender.send(admin_id, messages.new_user_alert(user.display_name, user.id))
            except GatewayError:
                logger.exception("Could not alert admin %s about new user %s", admin_id, user.id)

        self._reply(user.id, messages.walkthrough(user.tokens))
        return user

    def _handle_command(self, user: UserRecord, event: CommandMessage, now: datetime) -> None:
        command = event.command
        if command == "start":
            self._reply(user.id, messages.start(user.display_name, user.tokens))
        elif command == "about":
            self._reply(user.id, messages.about())
        elif command == "tokens":
            self._reply(user.id, messages.tokens(_first_name(user), user.tokens))
            if user.tokens <= IDLE_REWARD_MAX_BALANCE:
                self._reply(user.id, messages.LOW_BALANCE)
        elif command == "streak":
            self._reply(user.id, messages.streak(_first_name(user), user.streak))
        elif command == "payments":
            self.requests.open_request(user.id, now)
            logger.info("Payment request opened for %s", user.id)
            self._reply(user.id, messages.payments())
        else:
            self._handle_prompt(
                user,
                TextMessage(sender_id=event.sender_id, display_name=event.display_name, text=event.text),
            )

    def _handle_payment_proof(self, user: UserRecord, event: MediaMessage) -> None:
        document = next(iter(event.attachments), None)
        if document is None or not is_pdf(document.mime_type, document.file_name):
            self._reply(user.id, messages.PDF_REQUIRED)
            return

        requested_at = self.requests.has_open_request(user.id)
        if requested_at is None:
            self._reply(user.id, messages.PAYMENTS_FIRST)
            return

        self._reply(user.id, messages.VERIFYING)
        try:
            data = self.fetcher.fetch_bytes(document.ref)
        except GatewayError:
            logger.exception("Could not download payment proof from %s", user.id)
            self._reply(user.id, messages.PROOF_ERROR)
            return

        result = self.verifier.verify(data, requested_at)
        if not result.valid:
            logger.info("Payment proof from %s rejected: %s", user.id, result.reason)
            self._reply(user.id, messages.payment_rejected(result.reason or "unknown reason"))
            return

        self.ledger.credit(user, PAYMENT_TOKENS)
        self.ledger.save(user)
        self.requests.close_request(user.id)
        logger.info("Payment verified for %s dated %s", user.id, result.date)
        self._reply(user.id, messages.payment_verified(PAYMENT_TOKENS))

    def _handle_prompt(self, user: UserRecord, event: InboundEvent) -> None:
        if user.tokens <= 0:
            self._reply(user.id, messages.OUT_OF_TOKENS)
            return

        if isinstance(event, TextMessage):
            self._spend_and_ask(
                user,
                TEXT_PROMPT_COST,
                lambda: self.model.complete([ConversationTurn(role="user", content=event.text)]),
            )
            return

        if not isinstance(event, MediaMessage) or event.kind != "image" or not event.attachments:
            self._reply(user.id, messages.UNSUPPORTED_MESSAGE)
            return

        if len(event.attachments) > MAX_ATTACHMENTS:
            self._reply(user.id, messages.TOO_MANY_ATTACHMENTS)
            return

        mime_types = [determine_media_type(a.ref, a.mime_type) for a in event.attachments]
        if None in mime_types:
            self._reply(user.id, messages.UNSUPPORTED_MEDIA)
            return

        def ask() -> str:
            items = [
                ModelAttachment(mime_type=mime_type, data=self.fetcher.fetch_bytes(attachment.ref))
                for attachment, mime_type in zip(event.attachments, mime_types)
            ]
            return self.model.complete_with_attachments(items, event.caption or DEFAULT_ATTACHMENT_PROMPT)

        self._spend_and_ask(user, ATTACHMENT_COST * len(event.attachments), ask)

    def _spend_and_ask(self, user: UserRecord, cost: int, ask: Callable[[], str]) -> None:
        if not self.ledger.spend(user, cost):
            self._reply(user.id, messages.NOT_ENOUGH_TOKENS)
            return
        self.ledger.save(user)

        try:
            answer = ask()
            self._reply(user.id, answer)
        except Exception:
            self.ledger.refund(user, cost)
            self.ledger.save(user)
            logger.info("Refunded %s tokens to %s", cost, user.id)
            raise

    def _reply(self, recipient_id: str, text: str) -> None:
        self.sender.send(recipient_id, text)

    def _apologise(self, recipient_id: str) -> None:
        try:
            self.sender.send(recipient_id, messages.PROCESSING_ERROR)
        except GatewayError:
            logger.exception("Could not deliver apology to %s", recipient_id)


def build_policy(base: ChannelPolicy, admin_recipients: Sequence[str] = ()) -> ChannelPolicy:
    """Copy of `base` with the admin recipients filled in."""

    return ChannelPolicy(
        name=base.name,
        initial_tokens=base.initial_tokens,
        issue_referral_code=base.issue_referral_code,
        greet_only_on_first_message=base.greet_only_on_first_message,
        refresh_display_name=base.refresh_display_name,
        admin_recipients=list(admin_recipients),
    )

