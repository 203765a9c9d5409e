"""
Receipt and Voice Text Extraction

Turns raw text (OCR output of a receipt, or a voice transcript) into an
ExpenseSuggestion.

CRITICAL: The suggestion is NOT validated here. It becomes an expense only
through LedgerCoordinator.add_expense, which validates it like any other
input. An amount that could not be found is left as None, never guessed.

DESIGN DECISION: We use simple keyword matching rather than ML because:
1. More transparent to user
2. Easier to debug
3. User confirms anyway
"""

import re
from datetime import date, datetime
from typing import Optional

import structlog

from finvoice.models.ledger import ExpenseSuggestion


logger = structlog.get_logger(__name__)


class ExtractionError(Exception):
    """Base exception for text extraction errors."""
    pass


class EmptyTextError(ExtractionError):
    """No text was provided to extract from."""
    pass


# Tried in order; the first pattern with a positive match wins, and within a
# pattern the last match is taken (usually the total).
AMOUNT_PATTERNS = [
    re.compile(r"(?:\brs\.?|₹)\s*(\d+(?:,\d+)*(?:\.\d{2})?)", re.IGNORECASE),
    re.compile(
        r"(?:grand total|subtotal|total|amount)[\s:]*(?:\brs\.?|₹)?\s*(\d+(?:,\d+)*(?:\.\d{2})?)",
        re.IGNORECASE,
    ),
    re.compile(r"(\d+(?:,\d+)*\.\d{2})"),
]

DATE_PATTERNS = [
    re.compile(r"(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})"),
    re.compile(
        r"(\d{1,2}\s+(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\s+\d{2,4})",
        re.IGNORECASE,
    ),
]

DATE_FORMATS = [
    "%d-%m-%Y", "%d/%m/%Y", "%d-%m-%y", "%d/%m/%y",
    "%d %b %Y", "%d %B %Y", "%d %b %y", "%d %B %y",
]

# Checked in order; the first category with a keyword in the text wins.
RECEIPT_CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "food": [
        "restaurant", "cafe", "coffee", "food", "dining", "pizza", "burger",
        "kfc", "mcdonald", "subway", "domino",
    ],
    "transport": [
        "uber", "ola", "taxi", "fuel", "petrol", "gas", "parking", "metro",
        "bus", "train",
    ],
    "shopping": [
        "mall", "store", "shop", "market", "retail", "amazon", "flipkart",
        "clothing", "fashion",
    ],
    "entertainment": ["movie", "cinema", "theater", "concert", "entertainment", "pvr", "inox"],
    "health": [
        "hospital", "clinic", "pharmacy", "medical", "doctor", "health",
        "medicine", "apollo",
    ],
    "utilities": [
        "electricity", "water", "gas", "internet", "phone", "mobile", "bill",
        "recharge",
    ],
    "housing": ["rent", "mortgage", "housing", "apartment", "maintenance"],
    "education": ["school", "college", "university", "course", "tuition", "education", "book"],
    "fitness": ["gym", "fitness", "sports", "yoga", "workout"],
}

VOICE_CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "food": ["food", "restaurant", "lunch", "dinner", "breakfast", "coffee", "pizza", "burger"],
    "transport": ["uber", "taxi", "bus", "train", "gas", "fuel", "parking"],
    "shopping": ["shopping", "store", "amazon", "clothes", "shoes"],
    "entertainment": ["movie", "cinema", "game", "concert", "show"],
    "health": ["doctor", "pharmacy", "medicine", "hospital"],
    "utilities": ["electricity", "water", "internet", "phone", "bill"],
}

VOICE_AMOUNT_PATTERN = re.compile(r"\$?(\d+(?:\.\d{2})?)")


def guess_category(text: str, keywords: dict[str, list[str]]) -> str:
    """
    Make an educated guess about the category from keywords.

    This is a SUGGESTION only - user must confirm.
    """
    lowered = text.lower()
    for category, words in keywords.items():
        if any(word in lowered for word in words):
            return category
    return "other"


class ReceiptTextExtractor:
    """
    Regex and keyword based extraction of expense data from text.

    IMPORTANT BOUNDARIES:
    1. This class ONLY extracts data - it does NOT validate
    2. Fields it cannot find are left empty, never invented
    """

    def _safe_date(self, value: Optional[str]) -> Optional[date]:
        """Safely convert matched date text to a date."""
        if not value:
            return None
        normalized = " ".join(value.split())
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(normalized, fmt).date()
            except ValueError:
                continue
        return None

    def _find_amount(self, text: str) -> Optional[float]:
        for pattern in AMOUNT_PATTERNS:
            matches = pattern.findall(text)
            if not matches:
                continue
            amount = float(matches[-1].replace(",", ""))
            if amount > 0:
                return amount
        return None

    def _find_date(self, text: str) -> Optional[str]:
        for pattern in DATE_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1)
        return None

    def extract(self, text: str) -> ExpenseSuggestion:
        """
        Extract a suggestion from receipt text.

        The first non-empty line is taken as the merchant.

        Raises:
            EmptyTextError: If `text` is empty or whitespace only
        """
        if not text or not text.strip():
            raise EmptyTextError("No text provided")

        lines = [line.strip() for line in text.splitlines() if line.strip()]
        merchant = lines[0] if lines else None

        amount = self._find_amount(text)
        raw_date = self._find_date(text)
        category = guess_category(f"{text} {merchant or ''}", RECEIPT_CATEGORY_KEYWORDS)

        description = merchant or "Expense from receipt"
        if amount:
            description += f" - ₹{amount:.2f}"

        suggestion = ExpenseSuggestion(
            amount=amount,
            description=description,
            category=category,
            merchant=merchant,
            date=self._safe_date(raw_date),
            raw_date=raw_date,
            source="receipt",
        )
        logger.debug(
            "receipt_text_extracted",
            found_amount=amount is not None,
            found_date=suggestion.date is not None,
            category=category,
        )
        return suggestion

    def extract_transcript(self, transcript: str) -> ExpenseSuggestion:
        """
        Extract a suggestion from a voice transcript.

        The first number spoken is taken as the amount and the whole
        transcript becomes the description.

        Raises:
            EmptyTextError: If `transcript` is empty or whitespace only
        """
        if not transcript or not transcript.strip():
            raise EmptyTextError("No transcript provided")

        match = VOICE_AMOUNT_PATTERN.search(transcript)
        amount = float(match.group(1)) if match else None

        return ExpenseSuggestion(
            amount=amount if amount else None,
            description=transcript.strip(),
            category=guess_category(transcript, VOICE_CATEGORY_KEYWORDS),
            source="voice",
        )
