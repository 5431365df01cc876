from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Sequence, Union

from domain.models import PaymentDetails, VerificationResult

logger = logging.getLogger(__name__)

TextExtractor = Callable[[bytes], str]

REQUIRED_KEYWORDS: Dict[str, Sequence[str]] = {
    "payment": ("payment", "paid", "transaction"),
    "platform": ("flutterwave", "flutter", "wave"),
    "amount": ("1000", "1,000", "ngn1000", "ngn1,000"),
    "identifier": ("florence", "flo"),
}

DATE_PATTERN = re.compile(r"\d{2}[-/]\d{2}[-/]\d{4}|\d{4}[-/]\d{2}[-/]\d{2}")
MAX_PAYMENT_DELAY = timedelta(hours=24)
ACCEPTED_DETAILS = PaymentDetails(amount="1000 NGN", platform="Flutterwave")


@dataclass
class Rejection:
    reason: str

    def to_result(self) -> VerificationResult:
        return VerificationResult(valid=False, reason=self.reason)


class PaymentProofVerifier:
    """
    Heuristic check of an uploaded payment receipt.

    The receipt text must mention a payment, the Flutterwave platform,
    the 1000 NGN amount and Florence, and carry a date within a day of
    the user's /payments request. Each step either produces a value for
    the next one or a `Rejection`; the first rejection ends the check.
    """

    def __init__(self, extract_text: TextExtractor) -> None:
        self._extract_text = extract_text

    def verify(self, document: object, request_timestamp: datetime) -> VerificationResult:
        try:
            return self._verify(document, request_timestamp)
        except Exception as exc:
            logger.exception("Unexpected failure while verifying payment proof")
            return VerificationResult(valid=False, reason=f"Error processing PDF: {exc}")

    def _verify(self, document: object, request_timestamp: datetime) -> VerificationResult:
        if not isinstance(document, (bytes, bytearray, memoryview)) or not len(document):
            return Rejection("Invalid PDF data provided").to_result()

        text = self._read_text(bytes(document))
        if isinstance(text, Rejection):
            return text.to_result()

        missing = missing_categories(text)
        if missing:
            return Rejection(f"Missing required information: {', '.join(missing)}").to_result()

        candidates = DATE_PATTERN.findall(text)
        if not candidates:
            return Rejection("No valid date found in payment proof").to_result()

        dates = parse_dates(candidates, request_timestamp)
        if not dates:
            return Rejection("Could not parse any valid dates from payment proof").to_result()

        payment_date = max(dates)
        window = _check_window(payment_date, request_timestamp)
        if isinstance(window, Rejection):
            return window.to_result()

        return VerificationResult(valid=True, date=payment_date, details=ACCEPTED_DETAILS)

    def _read_text(self, document: bytes) -> Union[str, Rejection]:
        try:
            return self._extract_text(document).lower()
        except Exception as exc:
            logger.warning("Could not extract text from payment proof: %s", exc)
            return Rejection(f"Error processing PDF: {exc}")


def missing_categories(text: str) -> List[str]:
    """Return the keyword categories with no synonym present in `text`."""

    return [
        category
        for category, keywords in REQUIRED_KEYWORDS.items()
        if not any(keyword in text for keyword in keywords)
    ]


def parse_dates(candidates: Sequence[str], reference: datetime) -> List[datetime]:
    """
    Turn matched date strings into datetimes at midnight.

    A four-digit first component means year-month-day, anything else
    day-month-year. Impossible dates (31/02/2025) are dropped. Results
    share `reference`'s timezone so they can be compared with it.
    """

    dates = []
    for candidate in candidates:
        parts = re.split(r"[-/]", candidate)
        if len(parts[0]) == 4:
            year, month, day = parts
        else:
            day, month, year = parts
        try:
            dates.append(datetime(int(year), int(month), int(day), tzinfo=reference.tzinfo))
        except ValueError:
            continue
    return dates


def _check_window(payment_date: datetime, request_timestamp: datetime) -> Union[datetime, Rejection]:
    if abs(payment_date - request_timestamp) > MAX_PAYMENT_DELAY:
        return Rejection("Payment date is outside acceptable timeframe")
    return payment_date
