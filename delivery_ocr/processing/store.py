"""Document status tracking.

The orchestrator drives a document through
``pending -> processing -> completed | failed``. Persistence belongs to
the caller, so the orchestrator only talks to the :class:`DocumentStore`
interface; :class:`InMemoryDocumentStore` backs the API, the CLI and
the tests.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum

from delivery_ocr.models import ProcessingResult
from delivery_ocr.utils.logger import get_logger

logger = get_logger(__name__)


class DocumentStatus(StrEnum):
    """Lifecycle of one processing attempt."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[DocumentStatus | None, set[DocumentStatus]] = {
    None: {DocumentStatus.PENDING},
    DocumentStatus.PENDING: {DocumentStatus.PROCESSING},
    DocumentStatus.PROCESSING: {DocumentStatus.COMPLETED, DocumentStatus.FAILED},
    # a terminal status only ends the current attempt; a retry starts over
    DocumentStatus.COMPLETED: {DocumentStatus.PENDING},
    DocumentStatus.FAILED: {DocumentStatus.PENDING},
}


def can_transition(current: DocumentStatus | None, new: DocumentStatus) -> bool:
    """Whether ``current -> new`` is a legal forward move."""
    return new in _ALLOWED_TRANSITIONS[current]


class InvalidStatusTransition(Exception):
    """Raised when a status change would move a document backwards."""

    def __init__(
        self, document_id: str, current: DocumentStatus | None, new: DocumentStatus
    ) -> None:
        super().__init__(
            f"Document {document_id}: cannot move from {current or 'new'} to {new}"
        )
        self.document_id = document_id
        self.current = current
        self.new = new


@dataclass
class DocumentRecord:
    """Status and latest result for one document id."""

    document_id: str
    status: DocumentStatus
    status_history: list[DocumentStatus] = field(default_factory=list)
    result: ProcessingResult | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class DocumentStore(ABC):
    """Persistence seam for document status and results."""

    @abstractmethod
    def set_status(self, document_id: str, status: DocumentStatus) -> None:
        """Atomically write the status of one document."""

    @abstractmethod
    def save_result(self, document_id: str, result: ProcessingResult) -> None:
        """Attach the terminal result of the current attempt."""

    @abstractmethod
    def get(self, document_id: str) -> DocumentRecord | None:
        """Return the record for a document, or ``None`` if unknown."""


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe, process-local store that enforces status transitions."""

    def __init__(self) -> None:
        self._records: dict[str, DocumentRecord] = {}
        self._lock = threading.Lock()

    def set_status(self, document_id: str, status: DocumentStatus) -> None:
        with self._lock:
            record = self._records.get(document_id)
            current = record.status if record else None
            if not can_transition(current, status):
                raise InvalidStatusTransition(document_id, current, status)

            if record is None:
                record = DocumentRecord(document_id=document_id, status=status)
                self._records[document_id] = record
            else:
                record.status = status
                record.updated_at = datetime.now(timezone.utc)
            if status is DocumentStatus.PENDING:
                # new attempt: forget the previous outcome
                record.result = None
            record.status_history.append(status)
        logger.debug("Document %s -> %s", document_id, status)

    def save_result(self, document_id: str, result: ProcessingResult) -> None:
        with self._lock:
            record = self._records.get(document_id)
            if record is None:
                raise KeyError(document_id)
            record.result = result
            record.updated_at = datetime.now(timezone.utc)

    def get(self, document_id: str) -> DocumentRecord | None:
        with self._lock:
            return self._records.get(document_id)

    def stats(self) -> dict[str, int]:
        """Count documents per current status."""
        with self._lock:
            counts = {status.value: 0 for status in DocumentStatus}
            for record in self._records.values():
                counts[record.status.value] += 1
            counts["total"] = len(self._records)
        return counts
