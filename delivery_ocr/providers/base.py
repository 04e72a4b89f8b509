"""Common contract for OCR/IDP provider adapters.

Every backend exposes ``recognize(document) -> ExtractionInput``. The
blocking backend call runs in a worker thread so the orchestrator can
await providers one after another without blocking the event loop.
"""

import asyncio
from abc import ABC, abstractmethod

from delivery_ocr.models import ExtractionInput, ProviderName, RawDocument
from delivery_ocr.utils.logger import get_logger

logger = get_logger(__name__)

REASON_TRANSPORT = "transport"
REASON_INSUFFICIENT_TEXT = "insufficient_text"


class ProviderError(Exception):
    """A provider could not produce usable text.

    Attributes:
        provider: Name of the failing provider.
        reason: ``"transport"`` or ``"insufficient_text"``.
    """

    def __init__(
        self, provider: str, message: str, reason: str = REASON_TRANSPORT
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.reason = reason


class InsufficientTextError(ProviderError):
    """The call succeeded but returned too little text to be useful."""

    def __init__(self, provider: str, length: int, minimum: int) -> None:
        super().__init__(
            provider,
            f"returned {length} characters, below the minimum of {minimum}",
            reason=REASON_INSUFFICIENT_TEXT,
        )
        self.length = length
        self.minimum = minimum


def describe_http_status(status_code: int) -> str:
    """Human-readable cause for a failed HTTP status."""
    if status_code in (401, 403):
        return f"authentication rejected (HTTP {status_code})"
    if status_code == 429:
        return "quota exceeded (HTTP 429)"
    if status_code >= 500:
        return f"service unavailable (HTTP {status_code})"
    return f"request failed (HTTP {status_code})"


class ProviderAdapter(ABC):
    """Base class for a single OCR/IDP backend.

    Args:
        min_text_length: Shortest stripped text accepted as usable.
    """

    name: ProviderName

    def __init__(self, min_text_length: int = 10) -> None:
        self.min_text_length = min_text_length

    async def recognize(self, document: RawDocument) -> ExtractionInput:
        """Run the backend and enforce the minimum-text bar.

        Raises:
            ProviderError: On transport, auth or quota failures.
            InsufficientTextError: When the text is too short.
        """
        logger.debug("Calling provider %s for %s", self.name, document.document_id)
        result = await asyncio.to_thread(self._recognize, document)
        length = len(result.text.strip())
        if length < self.min_text_length:
            raise InsufficientTextError(self.name, length, self.min_text_length)
        return result

    @abstractmethod
    def _recognize(self, document: RawDocument) -> ExtractionInput:
        """Blocking backend call returning the recognized text."""
