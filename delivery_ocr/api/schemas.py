"""Pydantic response schemas for the FastAPI endpoints.

Field names are snake_case in Python and camelCase on the wire, matching
the processing-result JSON contract.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItemResponse(_CamelModel):
    """One itemized row of a document."""

    description: str
    quantity: float | None = None
    unit_price: float | None = None
    total_price: float | None = None


class ExtractedFieldsResponse(_CamelModel):
    """Structured fields recovered from the document."""

    supplier: str | None = None
    document_number: str | None = None
    document_date: str | None = None
    tax_id: str | None = None
    total_amount: float | None = None
    currency: str
    items: list[LineItemResponse] = []


class ProcessingResponse(_CamelModel):
    """Outcome of one processing attempt for an uploaded image."""

    document_id: str
    success: bool
    data: ExtractedFieldsResponse | None = None
    raw_text: str | None = None
    error: str | None = None
    provider: str | None = None


class DocumentStatusResponse(_CamelModel):
    """Current status of a document and its latest result."""

    document_id: str
    status: str
    status_history: list[str]
    updated_at: datetime
    result: ProcessingResponse | None = None


class StatsResponse(BaseModel):
    """Document counts per status."""

    total: int
    pending: int
    processing: int
    completed: int
    failed: int


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    providers: list[str]
