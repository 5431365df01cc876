import unittest
from datetime import datetime, timedelta, timezone

from application import messages
from application.ledger import UserLedger
from application.payment_requests import RequestWindowTracker
from application.services import TELEGRAM, WHATSAPP, Gateway, build_policy
from application.verification import PaymentProofVerifier
from domain.events import Attachment, CommandMessage, MediaMessage, TextMessage
from domain.exceptions import DeliveryError, FetchError, ModelError
from infrastructure.db.payment_request_repository_memory import InMemoryPaymentRequestRepository
from infrastructure.db.user_repository_memory import InMemoryUserRepository

NOW = datetime(2025, 3, 5, 10, 0, tzinfo=timezone.utc)
VALID_PROOF = b"Payment successful via Flutterwave for Florence, NGN1000, date 05/03/2025"


class FakeSender:
    def __init__(self):
        self.sent = []
        self.failing_texts = set()

    def send(self, recipient_id, text):
        if text in self.failing_texts:
            raise DeliveryError("boom")
        self.sent.append((recipient_id, text))

    def texts_to(self, recipient_id):
        return [text for rid, text in self.sent if rid == recipient_id]


class FakeModel:
    def __init__(self, answer="The answer is 42."):
        self.answer = answer
        self.error = None
        self.prompts = []
        self.attachment_calls = []

    def complete(self, turns):
        self.prompts.append(turns)
        if self.error:
            raise self.error
        return self.answer

    def complete_with_attachments(self, items, prompt):
        self.attachment_calls.append((items, prompt))
        if self.error:
            raise self.error
        return self.answer


class FakeFetcher:
    def __init__(self, files=None):
        self.files = files or {}

    def fetch_bytes(self, ref):
        if ref not in self.files:
            raise FetchError(f"no such file {ref}")
        return self.files[ref]


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class GatewayTestCase(unittest.TestCase):
    policy = TELEGRAM

    def setUp(self) -> None:
        self.user_repo = InMemoryUserRepository()
        self.request_repo = InMemoryPaymentRequestRepository()
        self.ledger = UserLedger(self.policy.name, self.user_repo)
        self.requests = RequestWindowTracker(self.request_repo)
        self.sender = FakeSender()
        self.model = FakeModel()
        self.fetcher = FakeFetcher()
        self.clock = FakeClock(NOW)
        self.gateway = Gateway(
            policy=self.policy,
            ledger=self.ledger,
            requests=self.requests,
            verifier=PaymentProofVerifier(lambda data: data.decode("utf-8")),
            model=self.model,
            sender=self.sender,
            fetcher=self.fetcher,
            clock=self.clock,
        )

    def add_user(self, user_id="42", tokens=10, name="Ada Lovelace"):
        user = self.ledger.create_user(user_id, name, tokens, 0, NOW - timedelta(hours=1))
        return user

    def text(self, body, user_id="42"):
        return TextMessage(sender_id=user_id, display_name="Ada Lovelace", text=body)

    def command(self, name, user_id="42"):
        return CommandMessage(sender_id=user_id, display_name="Ada Lovelace", command=name)

    def images(self, count, user_id="42", mime_type="image/png"):
        attachments = [Attachment(ref=f"img{i}.png", mime_type=mime_type) for i in range(count)]
        for attachment in attachments:
            self.fetcher.files[attachment.ref] = b"\x89PNG"
        return MediaMessage(
            sender_id=user_id,
            display_name="Ada Lovelace",
            kind="image",
            caption="What is this?",
            attachments=attachments,
        )

    def document(self, ref="proof.pdf", mime_type="application/pdf", user_id="42"):
        return MediaMessage(
            sender_id=user_id,
            display_name="Ada Lovelace",
            kind="document",
            attachments=[Attachment(ref=ref, mime_type=mime_type, file_name=ref)],
        )


class NewUserTests(GatewayTestCase):
    def test_telegram_user_is_created_and_first_prompt_processed(self):
        self.gateway.handle(self.text("What is photosynthesis?"))

        user = self.user_repo.get_user("42")
        self.assertIsNotNone(user)
        self.assertIsNone(user.referral_id)
        self.assertEqual(user.tokens, 9)
        replies = self.sender.texts_to("42")
        self.assertEqual(replies[0], messages.walkthrough(10))
        self.assertEqual(replies[-1], "The answer is 42.")

    def test_display_name_is_refreshed_on_telegram(self):
        self.add_user(name="Old Name")
        self.gateway.handle(self.command("about"))
        self.assertEqual(self.user_repo.get_user("42").display_name, "Ada Lovelace")


class WhatsAppNewUserTests(GatewayTestCase):
    policy = build_policy(WHATSAPP, ["2340000000000"])

    def test_first_message_only_greets_and_alerts_admins(self):
        self.gateway.handle(self.text("Hi", user_id="2348000000000"))

        user = self.user_repo.get_user("2348000000000")
        self.assertEqual(user.tokens, 100)
        self.assertEqual(user.streak, 0)
        self.assertEqual(user.referral_id, "A2348000000000")
        self.assertEqual(user.last_activity, NOW)
        self.assertEqual(user.last_token_reward, NOW)
        self.assertEqual(user.streak_date, NOW)
        self.assertEqual(
            self.sender.texts_to("2340000000000"),
            [messages.new_user_alert("Ada Lovelace", "2348000000000")],
        )
        self.assertEqual(self.sender.texts_to("2348000000000"), [messages.walkthrough(100)])
        self.assertEqual(self.model.prompts, [])

    def test_failed_admin_alert_does_not_block_walkthrough(self):
        self.sender.failing_texts.add(messages.new_user_alert("Ada Lovelace", "2348000000000"))
        self.gateway.handle(self.text("Hi", user_id="2348000000000"))
        self.assertEqual(self.sender.texts_to("2348000000000"), [messages.walkthrough(100)])


class CommandTests(GatewayTestCase):
    def test_start_reports_balance(self):
        self.add_user(tokens=7)
        self.gateway.handle(self.command("start"))
        self.assertEqual(self.sender.texts_to("42"), [messages.start("Ada Lovelace", 7)])

    def test_tokens_warns_on_low_balance(self):
        self.add_user(tokens=3)
        self.gateway.handle(self.command("tokens"))
        self.assertEqual(
            self.sender.texts_to("42"),
            [messages.tokens("Ada", 3), messages.LOW_BALANCE],
        )

    def test_streak_reports_current_streak(self):
        user = self.add_user()
        user.streak = 4
        self.gateway.handle(self.command("streak"))
        self.assertEqual(self.sender.texts_to("42"), [messages.streak("Ada", 4)])

    def test_payments_opens_request_window(self):
        self.add_user()
        self.gateway.handle(self.command("payments"))
        self.assertEqual(self.requests.has_open_request("42"), NOW)
        self.assertEqual(self.sender.texts_to("42"), [messages.payments()])

    def test_second_payments_replaces_the_first(self):
        self.add_user()
        self.gateway.handle(self.command("payments"))
        self.clock.now = NOW + timedelta(hours=3)
        self.gateway.handle(self.command("payments"))
        self.assertEqual(self.requests.has_open_request("42"), NOW + timedelta(hours=3))

    def test_unknown_command_is_treated_as_prompt(self):
        self.add_user(tokens=5)
        self.gateway.handle(self.command("explain"))
        self.assertEqual(self.model.prompts[0][0].content, "/explain")
        self.assertEqual(self.user_repo.get_user("42").tokens, 4)


class PromptTests(GatewayTestCase):
    def test_text_prompt_costs_one_token(self):
        self.add_user(tokens=5)
        self.gateway.handle(self.text("Explain gravity"))

        self.assertEqual(self.user_repo.get_user("42").tokens, 4)
        self.assertEqual(self.model.prompts[0][0].role, "user")
        self.assertEqual(self.model.prompts[0][0].content, "Explain gravity")
        self.assertEqual(self.sender.texts_to("42"), ["The answer is 42."])

    def test_empty_balance_is_refused(self):
        self.add_user(tokens=0)
        self.gateway.handle(self.text("Explain gravity"))

        self.assertEqual(self.sender.texts_to("42"), [messages.OUT_OF_TOKENS])
        self.assertEqual(self.model.prompts, [])
        self.assertEqual(self.user_repo.get_user("42").tokens, 0)

    def test_model_failure_refunds_and_apologises(self):
        self.add_user(tokens=5)
        self.model.error = ModelError("overloaded")
        self.gateway.handle(self.text("Explain gravity"))

        self.assertEqual(self.user_repo.get_user("42").tokens, 5)
        self.assertEqual(self.sender.texts_to("42"), [messages.PROCESSING_ERROR])

    def test_reply_delivery_failure_refunds(self):
        self.add_user(tokens=5)
        self.sender.failing_texts.add("The answer is 42.")
        self.gateway.handle(self.text("Explain gravity"))

        self.assertEqual(self.user_repo.get_user("42").tokens, 5)
        self.assertEqual(self.sender.texts_to("42"), [messages.PROCESSING_ERROR])

    def test_unexpected_error_still_refunds_before_propagating(self):
        self.add_user(tokens=5)
        self.model.error = RuntimeError("bug in backend")

        with self.assertRaises(RuntimeError):
            self.gateway.handle(self.text("Explain gravity"))

        self.assertEqual(self.user_repo.get_user("42").tokens, 5)

    def test_images_cost_two_tokens_each(self):
        self.add_user(tokens=10)
        self.gateway.handle(self.images(2))

        self.assertEqual(self.user_repo.get_user("42").tokens, 6)
        items, prompt = self.model.attachment_calls[0]
        self.assertEqual(prompt, "What is this?")
        self.assertEqual([item.mime_type for item in items], ["image/png", "image/png"])
        self.assertEqual(items[0].data, b"\x89PNG")

    def test_more_than_five_attachments_are_rejected(self):
        self.add_user(tokens=50)
        self.gateway.handle(self.images(6))

        self.assertEqual(self.sender.texts_to("42"), [messages.TOO_MANY_ATTACHMENTS])
        self.assertEqual(self.user_repo.get_user("42").tokens, 50)
        self.assertEqual(self.model.attachment_calls, [])

    def test_unsupported_media_type_is_rejected_before_spending(self):
        self.add_user(tokens=10)
        event = self.images(1, mime_type="video/mp4")
        event.attachments[0].ref = "clip.mp4"
        self.gateway.handle(event)

        self.assertEqual(self.sender.texts_to("42"), [messages.UNSUPPORTED_MEDIA])
        self.assertEqual(self.user_repo.get_user("42").tokens, 10)

    def test_insufficient_balance_for_attachments_is_rejected(self):
        self.add_user(tokens=3)
        self.gateway.handle(self.images(2))

        self.assertEqual(self.sender.texts_to("42"), [messages.NOT_ENOUGH_TOKENS])
        self.assertEqual(self.user_repo.get_user("42").tokens, 3)

    def test_attachment_fetch_failure_refunds(self):
        self.add_user(tokens=10)
        event = self.images(1)
        del self.fetcher.files[event.attachments[0].ref]
        self.gateway.handle(event)

        self.assertEqual(self.user_repo.get_user("42").tokens, 10)
        self.assertEqual(self.sender.texts_to("42"), [messages.PROCESSING_ERROR])

    def test_other_media_is_not_forwarded(self):
        self.add_user(tokens=10)
        self.gateway.handle(MediaMessage(sender_id="42", display_name="Ada", kind="other"))
        self.assertEqual(self.sender.texts_to("42"), [messages.UNSUPPORTED_MESSAGE])
        self.assertEqual(self.user_repo.get_user("42").tokens, 10)


class RewardNotificationTests(GatewayTestCase):
    def test_idle_reward_is_granted_and_announced(self):
        user = self.add_user(tokens=2)
        user.last_token_reward = NOW - timedelta(hours=17)
        self.gateway.handle(self.command("about"))

        self.assertEqual(self.user_repo.get_user("42").tokens, 22)
        self.assertEqual(self.sender.texts_to("42")[0], messages.idle_reward(20))

    def test_streak_milestone_is_rewarded(self):
        user = self.add_user(tokens=20)
        user.streak = 9
        user.streak_date = NOW - timedelta(days=1)
        user.last_activity = NOW - timedelta(hours=20)
        self.gateway.handle(self.command("about"))

        stored = self.user_repo.get_user("42")
        self.assertEqual(stored.streak, 10)
        self.assertEqual(stored.tokens, 30)
        self.assertEqual(self.sender.texts_to("42")[0], messages.streak_reward(10, 10))

    def test_long_absence_breaks_streak(self):
        user = self.add_user()
        user.streak = 6
        user.last_activity = NOW - timedelta(hours=50)
        self.gateway.handle(self.command("streak"))

        self.assertEqual(self.user_repo.get_user("42").streak, 0)
        self.assertEqual(self.sender.texts_to("42"), [messages.streak("Ada", 0)])


class PaymentProofTests(GatewayTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.add_user(tokens=1)

    def test_valid_proof_credits_tokens_and_closes_window(self):
        self.fetcher.files["proof.pdf"] = VALID_PROOF
        self.gateway.handle(self.command("payments"))
        self.gateway.handle(self.document())

        self.assertEqual(self.user_repo.get_user("42").tokens, 11)
        self.assertIsNone(self.requests.has_open_request("42"))
        self.assertEqual(
            self.sender.texts_to("42")[-2:],
            [messages.VERIFYING, messages.payment_verified(10)],
        )

    def test_rejected_proof_keeps_window_for_retry(self):
        self.fetcher.files["proof.pdf"] = b"Payment successful via Flutterwave, NGN1000, date 05/03/2025"
        self.gateway.handle(self.command("payments"))
        self.gateway.handle(self.document())

        self.assertEqual(self.user_repo.get_user("42").tokens, 1)
        self.assertEqual(self.requests.has_open_request("42"), NOW)
        self.assertIn("identifier", self.sender.texts_to("42")[-1])

        self.fetcher.files["proof.pdf"] = VALID_PROOF
        self.gateway.handle(self.document())
        self.assertEqual(self.user_repo.get_user("42").tokens, 11)
        self.assertIsNone(self.requests.has_open_request("42"))

    def test_proof_without_payments_command_is_refused(self):
        self.fetcher.files["proof.pdf"] = VALID_PROOF
        self.gateway.handle(self.document())

        self.assertEqual(self.sender.texts_to("42"), [messages.PAYMENTS_FIRST])
        self.assertEqual(self.user_repo.get_user("42").tokens, 1)

    def test_non_pdf_document_is_refused(self):
        self.gateway.handle(self.command("payments"))
        self.gateway.handle(self.document(ref="proof.docx", mime_type="application/msword"))

        self.assertEqual(self.sender.texts_to("42")[-1], messages.PDF_REQUIRED)
        self.assertIsNotNone(self.requests.has_open_request("42"))

    def test_download_failure_keeps_window(self):
        self.gateway.handle(self.command("payments"))
        self.gateway.handle(self.document(ref="missing.pdf"))

        self.assertEqual(self.sender.texts_to("42")[-1], messages.PROOF_ERROR)
        self.assertIsNotNone(self.requests.has_open_request("42"))

    def test_proof_does_not_require_tokens(self):
        self.user_repo.get_user("42").tokens = 0
        self.fetcher.files["proof.pdf"] = VALID_PROOF
        self.gateway.handle(self.command("payments"))
        self.gateway.handle(self.document())
        self.assertEqual(self.user_repo.get_user("42").tokens, 10)


if __name__ == "__main__":
    unittest.main()
