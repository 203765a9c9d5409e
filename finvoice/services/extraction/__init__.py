"""Text extraction package."""

from finvoice.services.extraction.receipt_text import (
    EmptyTextError,
    ExtractionError,
    ReceiptTextExtractor,
    guess_category,
)

__all__ = [
    "EmptyTextError",
    "ExtractionError",
    "ReceiptTextExtractor",
    "guess_category",
]
