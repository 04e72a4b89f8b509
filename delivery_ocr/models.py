"""Data model shared by the providers, the extractor and the orchestrator.

``ProcessingResult.to_dict`` is the JSON contract consumed by callers;
it has the same shape whichever provider produced the text.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import Any

DEFAULT_CURRENCY = "EUR"


class ProviderName(StrEnum):
    """Known OCR/IDP backends."""

    TESSERACT = "tesseract"
    DOCUMENT_AI = "document_ai"
    AZURE = "azure"


@dataclass(frozen=True)
class RawDocument:
    """An image handed to the pipeline by the caller."""

    document_id: str
    content: bytes
    mime_type: str = "image/jpeg"
    url: str | None = None


@dataclass
class LineItem:
    """One itemized row. Numeric fields come only from IDP providers."""

    description: str
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    total_price: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "quantity": _number(self.quantity),
            "unitPrice": _number(self.unit_price),
            "totalPrice": _number(self.total_price),
        }


@dataclass
class ExtractedFields:
    """Structured fields recovered from a delivery note or invoice."""

    supplier: str | None = None
    document_number: str | None = None
    document_date: str | None = None
    tax_id: str | None = None
    total_amount: Decimal | None = None
    currency: str = DEFAULT_CURRENCY
    items: list[LineItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Render the fields with the camelCase keys of the JSON contract."""
        return {
            "supplier": self.supplier,
            "documentNumber": self.document_number,
            "documentDate": self.document_date,
            "taxId": self.tax_id,
            "totalAmount": _number(self.total_amount),
            "currency": self.currency,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class ExtractionInput:
    """Text produced by one provider, consumed once by the extractor.

    ``fields`` holds whatever structured output an IDP service returned
    alongside the text (entities, line items, currency).
    """

    text: str
    source_provider: ProviderName
    confidence: float | None = None
    fields: ExtractedFields | None = None


@dataclass(frozen=True)
class ProviderAttempt:
    """Diagnostic record of one provider call within an attempt."""

    provider: str
    ok: bool
    reason: str | None = None
    message: str | None = None
    confidence: float | None = None


@dataclass(frozen=True)
class ProcessingResult:
    """Terminal outcome of one document-processing attempt."""

    success: bool
    data: ExtractedFields | None = None
    raw_text: str | None = None
    error: str | None = None
    provider: ProviderName | None = None
    attempts: tuple[ProviderAttempt, ...] = ()

    @property
    def confidence(self) -> float | None:
        """OCR confidence reported by the provider that produced the text."""
        for attempt in self.attempts:
            if attempt.ok:
                return attempt.confidence
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data.to_dict() if self.data is not None else None,
            "rawText": self.raw_text,
            "error": self.error,
            "provider": self.provider.value if self.provider else None,
        }


def _number(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None
