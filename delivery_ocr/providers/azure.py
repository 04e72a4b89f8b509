"""Azure AI Document Intelligence provider.

Uses the ``prebuilt-invoice`` model by default. Documents that carry a
URL are analyzed by reference; otherwise the image bytes are streamed.
"""

import io
from decimal import Decimal
from typing import Any

from azure.ai.documentintelligence import DocumentIntelligenceClient
from azure.ai.documentintelligence.models import AnalyzeDocumentRequest
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError, ClientAuthenticationError, HttpResponseError

from delivery_ocr.models import (
    ExtractedFields,
    ExtractionInput,
    LineItem,
    ProviderName,
    RawDocument,
)
from delivery_ocr.utils.config import AzureConfig
from delivery_ocr.utils.logger import get_logger

from .base import ProviderAdapter, ProviderError, describe_http_status

logger = get_logger(__name__)


class AzureDocumentIntelligenceProvider(ProviderAdapter):
    """Document Intelligence client wrapper.

    Args:
        config: Endpoint, key and model id.
        client: Pre-built SDK client; created from ``config`` on first use
            when omitted.
    """

    name = ProviderName.AZURE

    def __init__(
        self,
        config: AzureConfig | None = None,
        client: DocumentIntelligenceClient | None = None,
    ) -> None:
        self.config = config or AzureConfig()
        super().__init__(min_text_length=self.config.min_text_length)
        self._client = client

    def _get_client(self) -> DocumentIntelligenceClient:
        if self._client is None:
            if not (self.config.endpoint and self.config.api_key):
                raise ProviderError(self.name, "not configured")
            self._client = DocumentIntelligenceClient(
                endpoint=self.config.endpoint,
                credential=AzureKeyCredential(self.config.api_key),
            )
        return self._client

    def _recognize(self, document: RawDocument) -> ExtractionInput:
        client = self._get_client()
        model_id = self.config.model_id

        try:
            if document.url:
                poller = client.begin_analyze_document(
                    model_id=model_id,
                    body=AnalyzeDocumentRequest(url_source=document.url),
                )
            else:
                poller = client.begin_analyze_document(
                    model_id=model_id,
                    body=io.BytesIO(document.content),
                    content_type="application/octet-stream",
                )
            result = poller.result()
        except ClientAuthenticationError as exc:
            raise ProviderError(self.name, "authentication rejected") from exc
        except HttpResponseError as exc:
            raise ProviderError(
                self.name, describe_http_status(exc.status_code or 0)
            ) from exc
        except AzureError as exc:
            raise ProviderError(self.name, f"unreachable: {exc}") from exc

        if result is None:
            raise ProviderError(self.name, "returned no result")

        result_dict = result.as_dict()
        text = result_dict.get("content") or ""
        documents = result_dict.get("documents") or []
        fields = invoice_to_fields(documents[0].get("fields") or {}) if documents else None

        logger.info(
            "Azure %s returned %d characters for %s",
            model_id,
            len(text),
            document.document_id,
        )
        return ExtractionInput(text=text, source_provider=self.name, fields=fields)


def invoice_to_fields(azure_fields: dict[str, Any]) -> ExtractedFields:
    """Map ``prebuilt-invoice`` document fields onto extracted fields.

    ``currency`` is left empty unless the invoice total carries a code.
    """
    fields = ExtractedFields(
        currency="",
        supplier=_string(azure_fields.get("VendorName")),
        document_number=_string(azure_fields.get("InvoiceId")),
        # keep the printed date token, not the normalized ISO value
        document_date=(azure_fields.get("InvoiceDate") or {}).get("content"),
        tax_id=_upper(_string(azure_fields.get("VendorTaxId"))),
    )

    total = (azure_fields.get("InvoiceTotal") or {}).get("valueCurrency") or {}
    fields.total_amount = _decimal(total.get("amount"))
    if total.get("currencyCode"):
        fields.currency = total["currencyCode"]

    for entry in (azure_fields.get("Items") or {}).get("valueArray") or []:
        row = entry.get("valueObject") or {}
        description = _string(row.get("Description")) or entry.get("content")
        if not description:
            continue
        fields.items.append(
            LineItem(
                description=description,
                quantity=_decimal((row.get("Quantity") or {}).get("valueNumber")),
                unit_price=_decimal(_amount(row.get("UnitPrice"))),
                total_price=_decimal(_amount(row.get("Amount"))),
            )
        )
    return fields


def _string(field: dict[str, Any] | None) -> str | None:
    if not field:
        return None
    return field.get("valueString") or field.get("content")


def _upper(value: str | None) -> str | None:
    return value.upper() if value else None


def _amount(field: dict[str, Any] | None) -> float | None:
    return ((field or {}).get("valueCurrency") or {}).get("amount")


def _decimal(value: float | int | None) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None
