"""Provider fallback chain for delivery-note processing.

Providers are awaited strictly one after another in priority order, so
a paid IDP service is only called once the cheaper ones have failed.
The first provider that returns usable text wins; its text goes through
the shared :class:`FieldExtractor`, and any structured fields the
provider reported take precedence over the heuristic ones.
"""

from collections.abc import Sequence

from delivery_ocr.extraction.field_extractor import FieldExtractor
from delivery_ocr.models import (
    ExtractedFields,
    ExtractionInput,
    ProcessingResult,
    ProviderAttempt,
    RawDocument,
)
from delivery_ocr.providers.base import REASON_TRANSPORT, ProviderAdapter, ProviderError
from delivery_ocr.utils.config import ExtractionConfig
from delivery_ocr.utils.logger import get_logger

from .store import DocumentStatus, DocumentStore

logger = get_logger(__name__)

_SCALAR_FIELDS = ("supplier", "document_number", "document_date", "tax_id")


class ProcessingOrchestrator:
    """Runs one document through the provider chain and the extractor.

    Args:
        providers: Adapters in priority order.
        store: Receives status transitions and the final result.
        extractor: Field extractor; built from ``config`` when omitted.
        config: Extraction thresholds used for the default extractor.
    """

    def __init__(
        self,
        providers: Sequence[ProviderAdapter],
        store: DocumentStore,
        extractor: FieldExtractor | None = None,
        config: ExtractionConfig | None = None,
    ) -> None:
        self.providers = list(providers)
        self.store = store
        self.extractor = extractor or FieldExtractor(config)

    async def process(self, document: RawDocument) -> ProcessingResult:
        """Process one document image.

        Provider failures never escape: they are recorded and the next
        provider is tried. When every provider fails, the result has
        ``success=False`` and the document ends ``failed``. If the attempt
        is cancelled or the store raises mid-attempt, the document is
        marked ``failed`` before the exception propagates, so a later
        request can start over from ``pending``.

        Args:
            document: Image bytes plus document identifier.

        Returns:
            The terminal result of this attempt.
        """
        doc_id = document.document_id
        self.store.set_status(doc_id, DocumentStatus.PENDING)
        self.store.set_status(doc_id, DocumentStatus.PROCESSING)
        try:
            return await self._run_chain(document)
        except BaseException as exc:
            self._abandon(doc_id, exc)
            raise

    async def _run_chain(self, document: RawDocument) -> ProcessingResult:
        doc_id = document.document_id
        attempts: list[ProviderAttempt] = []
        for provider in self.providers:
            try:
                extraction_input = await provider.recognize(document)
            except ProviderError as exc:
                logger.warning("Provider %s unusable for %s: %s", provider.name, doc_id, exc)
                attempts.append(
                    ProviderAttempt(str(provider.name), False, exc.reason, str(exc))
                )
                continue
            except Exception as exc:
                logger.warning(
                    "Provider %s raised unexpectedly for %s: %s", provider.name, doc_id, exc
                )
                attempts.append(
                    ProviderAttempt(
                        str(provider.name),
                        False,
                        REASON_TRANSPORT,
                        f"{provider.name}: unexpected error: {exc}",
                    )
                )
                continue

            attempts.append(
                ProviderAttempt(
                    str(provider.name), True, confidence=extraction_input.confidence
                )
            )
            result = ProcessingResult(
                success=True,
                data=self.build_fields(extraction_input),
                raw_text=extraction_input.text,
                provider=extraction_input.source_provider,
                attempts=tuple(attempts),
            )
            self.store.save_result(doc_id, result)
            self.store.set_status(doc_id, DocumentStatus.COMPLETED)
            if extraction_input.confidence is not None:
                logger.info(
                    "Document %s completed via %s (confidence %.2f)",
                    doc_id,
                    provider.name,
                    extraction_input.confidence,
                )
            else:
                logger.info("Document %s completed via %s", doc_id, provider.name)
            return result

        if attempts:
            error = "All OCR providers failed: " + "; ".join(
                a.message or a.provider for a in attempts
            )
        else:
            error = "No OCR providers configured"
        result = ProcessingResult(success=False, error=error, attempts=tuple(attempts))
        self.store.save_result(doc_id, result)
        self.store.set_status(doc_id, DocumentStatus.FAILED)
        logger.error("Document %s failed: %s", doc_id, error)
        return result

    def _abandon(self, doc_id: str, exc: BaseException) -> None:
        """Close an interrupted attempt so the document is not left ``processing``."""
        record = self.store.get(doc_id)
        if record is None or record.status is not DocumentStatus.PROCESSING:
            return
        logger.error("Attempt for %s interrupted: %r", doc_id, exc)
        self.store.set_status(doc_id, DocumentStatus.FAILED)

    def build_fields(self, extraction_input: ExtractionInput) -> ExtractedFields:
        """Run the extractor and overlay provider-structured fields."""
        fields = self.extractor.extract(extraction_input.text)
        structured = extraction_input.fields
        if structured is None:
            return fields

        for name in _SCALAR_FIELDS:
            value = getattr(structured, name)
            if value:
                setattr(fields, name, value)

        amount = structured.total_amount
        if amount is not None and self.extractor.amount_in_range(amount):
            fields.total_amount = amount
        if structured.currency:
            fields.currency = structured.currency
        if structured.items:
            fields.items = structured.items[: self.extractor.config.max_items]
        return fields
