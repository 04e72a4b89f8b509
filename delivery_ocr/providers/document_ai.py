"""Google Cloud Document AI provider (REST, base64 payload).

Sends the image inline to a Document AI processor and maps the
returned entities (supplier, invoice id, dates, totals, line items)
onto :class:`ExtractedFields` next to the raw document text.
"""

import base64
from typing import Any

import requests

from delivery_ocr.extraction.field_extractor import parse_amount
from delivery_ocr.models import (
    ExtractedFields,
    ExtractionInput,
    LineItem,
    ProviderName,
    RawDocument,
)
from delivery_ocr.utils.config import DocumentAIConfig
from delivery_ocr.utils.logger import get_logger

from .base import ProviderAdapter, ProviderError, describe_http_status

logger = get_logger(__name__)

_ENDPOINT = (
    "https://{location}-documentai.googleapis.com/v1/projects/{project_id}"
    "/locations/{location}/processors/{processor_id}:process"
)

# Document AI entity type -> ExtractedFields attribute
_ENTITY_FIELDS: dict[str, str] = {
    "supplier_name": "supplier",
    "invoice_id": "document_number",
    "invoice_number": "document_number",
    "invoice_date": "document_date",
    "supplier_tax_id": "tax_id",
    "tax_id": "tax_id",
    "total_amount": "total_amount",
    "currency": "currency",
}

_LINE_ITEM_PROPERTIES: dict[str, str] = {
    "description": "description",
    "quantity": "quantity",
    "unit_price": "unit_price",
    "amount": "total_price",
    "total_price": "total_price",
}


class DocumentAIProvider(ProviderAdapter):
    """Document AI processor client.

    Args:
        config: Project, location, processor and access token.
        session: HTTP session; a new ``requests.Session`` by default.
    """

    name = ProviderName.DOCUMENT_AI

    def __init__(
        self,
        config: DocumentAIConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config or DocumentAIConfig()
        super().__init__(min_text_length=self.config.min_text_length)
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return _ENDPOINT.format(
            location=self.config.location,
            project_id=self.config.project_id,
            processor_id=self.config.processor_id,
        )

    def _recognize(self, document: RawDocument) -> ExtractionInput:
        cfg = self.config
        if not (cfg.project_id and cfg.processor_id and cfg.api_key):
            raise ProviderError(self.name, "not configured")

        payload = {
            "rawDocument": {
                "content": base64.b64encode(document.content).decode("ascii"),
                "mimeType": document.mime_type,
            }
        }
        headers = {
            "Authorization": f"Bearer {cfg.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.session.post(
                self.endpoint, json=payload, headers=headers, timeout=cfg.timeout
            )
        except requests.RequestException as exc:
            raise ProviderError(self.name, f"unreachable: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(self.name, describe_http_status(response.status_code))

        try:
            doc = response.json().get("document") or {}
        except ValueError as exc:
            raise ProviderError(self.name, "malformed response body") from exc

        text = doc.get("text") or ""
        logger.info(
            "Document AI returned %d characters and %d entities for %s",
            len(text),
            len(doc.get("entities") or []),
            document.document_id,
        )
        return ExtractionInput(
            text=text,
            source_provider=self.name,
            fields=entities_to_fields(doc.get("entities") or []),
        )


def entities_to_fields(entities: list[dict[str, Any]]) -> ExtractedFields:
    """Map Document AI entities onto extracted fields.

    Unknown entity types are ignored. ``currency`` is left empty unless
    the processor reported one.
    """
    fields = ExtractedFields(currency="")
    for entity in entities:
        entity_type = entity.get("type", "")
        if entity_type == "line_item":
            item = _line_item(entity)
            if item is not None:
                fields.items.append(item)
            continue

        attr = _ENTITY_FIELDS.get(entity_type)
        mention = (entity.get("mentionText") or "").strip()
        if attr is None or not mention:
            continue
        if attr == "total_amount":
            fields.total_amount = parse_amount(mention)
        elif attr == "currency":
            fields.currency = mention.upper()
        elif attr == "tax_id":
            fields.tax_id = mention.upper()
        else:
            setattr(fields, attr, mention)
    return fields


def _line_item(entity: dict[str, Any]) -> LineItem | None:
    values: dict[str, str] = {}
    for prop in entity.get("properties") or []:
        # property types are namespaced: "line_item/unit_price"
        key = prop.get("type", "").split("/")[-1]
        attr = _LINE_ITEM_PROPERTIES.get(key)
        if attr and prop.get("mentionText"):
            values[attr] = prop["mentionText"].strip()

    description = values.pop("description", "") or (entity.get("mentionText") or "").strip()
    if not description:
        return None
    return LineItem(
        description=description,
        **{attr: parse_amount(value) for attr, value in values.items()},
    )
