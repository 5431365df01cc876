"""User-facing reply texts shared by both channels."""

from __future__ import annotations

PAYMENT_LINK = "https://flutterwave.com/pay/jinkrgxqambh"
ABOUT_LINK = "<link>"


def walkthrough(tokens: int) -> str:
    return (
        "Hello there! Welcome to Florence*, your educational assistant at your fingertips.\n\n"
        "Interacting with Florence* costs you tokens*. Every now and then you'll get these, "
        "but you can also purchase more of them at any time.\n\n"
        f"You currently have {tokens} tokens*. Feel free to send your text (one token*), "
        "images (two tokens*), or documents (two tokens*) and get answers immediately.\n\n"
        "Here are a few helpful commands for a smooth experience:\n\n"
        "/start - Florence* is now listening to you.\n"
        "/about - for more about Florence*.\n"
        "/tokens - see how many tokens you have left.\n"
        "/streak - see your streak.\n"
        "/payments - Top up your tokens* in a click.\n\n"
        "Please note: Every message except commands will be considered a prompt."
    )


def new_user_alert(display_name: str, user_id: str) -> str:
    return f"A new user, {display_name} ({user_id}) has joined Florence*."


def start(display_name: str, tokens: int) -> str:
    return (
        f"Hello {display_name}, welcome to Florence*! What do you need help with today?\n\n"
        f"You have {tokens} tokens."
    )


def about() -> str:
    return f"Florence* is the educational assistant at your fingertips. More info here: {ABOUT_LINK}."


def tokens(first_name: str, balance: int) -> str:
    return f"Hey {first_name}, you have {balance} tokens. To top up, send /payments."


LOW_BALANCE = "You are running low on tokens. Top up by sending /payments."


def streak(first_name: str, days: int) -> str:
    return (
        f"Hey {first_name}, you are on a {days}-day streak. "
        "Send one prompt a day to keep it going!"
    )


def payments() -> str:
    return (
        "Tokens cost 1000 naira for 10. Make your payments here:\n\n"
        f"{PAYMENT_LINK}\n\n"
        "then send the proof of payment (PDFs only) to get your tokens."
    )


def idle_reward(tokens_awarded: int) -> str:
    return f"You've earned {tokens_awarded} tokens for staying active! 🎉"


def streak_reward(days: int, tokens_awarded: int) -> str:
    return (
        f"🔥 Congratulations! You've maintained a {days}-day streak! "
        f"You've earned {tokens_awarded} bonus tokens! 🎉"
    )


OUT_OF_TOKENS = "You've run out of tokens. Please purchase more using /payments"
NOT_ENOUGH_TOKENS = "You do not have enough tokens for this request. Top up with /payments."
TOO_MANY_ATTACHMENTS = (
    "Sorry, we can't handle that many images/documents right now. "
    "Please send 5 or fewer at a time."
)
UNSUPPORTED_MEDIA = "Only JPEG, PNG, GIF and WebP images are supported."
UNSUPPORTED_MESSAGE = (
    "Sorry, this is a little too much for us to handle now. "
    "Could you try simplifying your prompt?"
)
PROCESSING_ERROR = "Sorry, there was an error processing your request. Please try again."

PDF_REQUIRED = "Please send a PDF file for payment verification."
PAYMENTS_FIRST = "Please use /payments command first before sending proof of payment."
VERIFYING = "Verifying payment proof..."
PROOF_ERROR = "Error processing payment proof. Please try again or contact support."


def payment_verified(tokens_added: int) -> str:
    return f"Payment verified! {tokens_added} tokens have been added to your account."


def payment_rejected(reason: str) -> str:
    return f"Payment verification failed: {reason}"
