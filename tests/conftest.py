"""Shared test fixtures for the delivery-note OCR test suite."""

import io
import time
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from delivery_ocr.models import ExtractedFields, ExtractionInput, ProviderName, RawDocument
from delivery_ocr.processing.store import InMemoryDocumentStore
from delivery_ocr.providers.base import ProviderAdapter

SAMPLE_NOTE = (
    "Ferretería Hermanos López\n"
    "Nº Albarán: 2024-0456\n"
    "Tornillos M6 caja 100 unidades 12,50\n"
    "Total: 12,50 €\n"
)


class FakeProvider(ProviderAdapter):
    """Scripted provider: returns fixed text or raises a fixed error."""

    def __init__(
        self,
        name: ProviderName,
        text: str = "",
        error: Exception | None = None,
        fields: ExtractedFields | None = None,
        min_text_length: int = 10,
        confidence: float | None = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(min_text_length=min_text_length)
        self.name = name
        self.text = text
        self.error = error
        self.fields = fields
        self.confidence = confidence
        self.delay = delay
        self.calls = 0

    def _recognize(self, document: RawDocument) -> ExtractionInput:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ExtractionInput(
            text=self.text,
            source_provider=self.name,
            confidence=self.confidence,
            fields=self.fields,
        )


@pytest.fixture
def sample_note() -> str:
    """OCR text of a small hardware-store delivery note."""
    return SAMPLE_NOTE


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A small white JPEG image."""
    img = Image.fromarray(np.full((120, 200, 3), 255, dtype=np.uint8))
    buf = io.BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def document(jpeg_bytes: bytes) -> RawDocument:
    return RawDocument(document_id="doc-1", content=jpeg_bytes)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    """Factory for scripted providers."""
    return FakeProvider
