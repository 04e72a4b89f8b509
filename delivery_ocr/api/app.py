"""FastAPI application for delivery-note processing.

Accepts photographed delivery notes, runs them through the OCR provider
chain and returns the structured result. Chain exhaustion is reported as
``success: false`` in a normal 200 response, not as an HTTP error.
"""

import shutil
import uuid
from functools import lru_cache
from typing import Annotated

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from delivery_ocr.models import ProcessingResult, RawDocument
from delivery_ocr.processing.orchestrator import ProcessingOrchestrator
from delivery_ocr.processing.store import InMemoryDocumentStore, InvalidStatusTransition
from delivery_ocr.providers.registry import build_providers
from delivery_ocr.utils.config import load_config
from delivery_ocr.utils.logger import get_logger

from .schemas import (
    DocumentStatusResponse,
    HealthResponse,
    ProcessingResponse,
    StatsResponse,
)

logger = get_logger(__name__)

_VERSION = "1.0.0"

app = FastAPI(
    title="Delivery Note OCR API",
    description="Extract supplier, number, date, tax id, total and items "
    "from photographed delivery notes and invoices",
    version=_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/octet-stream",
}


@lru_cache(maxsize=1)
def _get_components() -> tuple[ProcessingOrchestrator, InMemoryDocumentStore]:
    """Build the orchestrator and its store once per process.

    Returns:
        Tuple of (orchestrator, document_store).
    """
    config = load_config()
    store = InMemoryDocumentStore()
    orchestrator = ProcessingOrchestrator(
        build_providers(config), store, config=config.extraction
    )
    return orchestrator, store


def _to_response(document_id: str, result: ProcessingResult) -> ProcessingResponse:
    return ProcessingResponse.model_validate(
        {"documentId": document_id, **result.to_dict()}
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return service health and the configured provider chain."""
    orchestrator, _ = _get_components()
    return HealthResponse(
        status="healthy",
        version=_VERSION,
        tesseract_available=shutil.which("tesseract") is not None,
        providers=[str(p.name) for p in orchestrator.providers],
    )


@app.post("/documents", response_model=ProcessingResponse)
async def process_document(
    file: Annotated[UploadFile, File(...)],
    document_id: Annotated[str | None, Query()] = None,
) -> ProcessingResponse:
    """Process an uploaded delivery-note image.

    Args:
        file: Uploaded image (JPEG, PNG or WebP).
        document_id: Caller's identifier; a UUID is generated if omitted.

    Returns:
        The processing result for this attempt.
    """
    if file.content_type and file.content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}",
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty upload")

    document = RawDocument(
        document_id=document_id or str(uuid.uuid4()),
        content=content,
        mime_type=file.content_type or "image/jpeg",
    )

    try:
        orchestrator, _ = _get_components()
        result = await orchestrator.process(document)
    except InvalidStatusTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("Processing failed for %s: %s", document.document_id, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return _to_response(document.document_id, result)


@app.get("/documents/{document_id}", response_model=DocumentStatusResponse)
async def get_document(document_id: str) -> DocumentStatusResponse:
    """Return the status and latest result of a document."""
    _, store = _get_components()
    record = store.get(document_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Unknown document: {document_id}")

    return DocumentStatusResponse(
        document_id=record.document_id,
        status=record.status.value,
        status_history=[s.value for s in record.status_history],
        updated_at=record.updated_at,
        result=_to_response(record.document_id, record.result) if record.result else None,
    )


@app.get("/stats", response_model=StatsResponse)
async def get_stats() -> StatsResponse:
    """Count documents per status."""
    _, store = _get_components()
    return StatsResponse(**store.stats())
