"""Build the configured provider chain."""

from delivery_ocr.models import ProviderName
from delivery_ocr.utils.config import AppConfig
from delivery_ocr.utils.logger import get_logger

from .azure import AzureDocumentIntelligenceProvider
from .base import ProviderAdapter
from .document_ai import DocumentAIProvider
from .tesseract import TesseractProvider

logger = get_logger(__name__)


def create_provider(name: str, config: AppConfig) -> ProviderAdapter:
    """Instantiate one provider by name.

    Raises:
        ValueError: If the name is not a known provider.
    """
    try:
        provider = ProviderName(name)
    except ValueError:
        raise ValueError(f"Provider {name} not supported") from None

    if provider is ProviderName.TESSERACT:
        return TesseractProvider(config.providers.tesseract, config.preprocessing)
    if provider is ProviderName.DOCUMENT_AI:
        return DocumentAIProvider(config.providers.document_ai)
    return AzureDocumentIntelligenceProvider(config.providers.azure)


def build_providers(config: AppConfig) -> list[ProviderAdapter]:
    """Create providers in priority order from ``config.providers.order``."""
    providers = [create_provider(name, config) for name in config.providers.order]
    logger.info("Provider chain: %s", " -> ".join(p.name for p in providers) or "(empty)")
    return providers
