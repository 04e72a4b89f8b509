"""Configuration management for the delivery-note OCR service.

Loads and validates YAML configuration with sensible defaults for
image preprocessing, the OCR provider chain, and field extraction.
Provider secrets may also be supplied through environment variables.
"""

import logging
import os
from decimal import Decimal
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class PreprocessingConfig(BaseModel):
    """Configuration for image cleanup before local OCR."""

    enabled: bool = True
    deskew_enabled: bool = True
    denoise_enabled: bool = True
    denoise_method: str = "bilateral"
    binarize_enabled: bool = True
    binarize_method: str = "adaptive"


class TesseractConfig(BaseModel):
    """Configuration for the local Tesseract provider."""

    tesseract_cmd: str | None = None
    lang: str = "spa"
    psm: int = 3
    min_text_length: int = 10


class DocumentAIConfig(BaseModel):
    """Configuration for the Google Cloud Document AI provider."""

    project_id: str | None = None
    location: str = "us"
    processor_id: str | None = None
    api_key: str | None = None
    timeout: float = 30.0
    min_text_length: int = 10


class AzureConfig(BaseModel):
    """Configuration for the Azure AI Document Intelligence provider."""

    endpoint: str | None = None
    api_key: str | None = None
    model_id: str = "prebuilt-invoice"
    min_text_length: int = 10


class ProvidersConfig(BaseModel):
    """Provider chain, tried strictly in ``order``."""

    order: list[str] = Field(
        default_factory=lambda: ["tesseract", "document_ai", "azure"]
    )
    tesseract: TesseractConfig = Field(default_factory=TesseractConfig)
    document_ai: DocumentAIConfig = Field(default_factory=DocumentAIConfig)
    azure: AzureConfig = Field(default_factory=AzureConfig)


class ExtractionConfig(BaseModel):
    """Thresholds for the heuristic field extractor."""

    default_currency: str = "EUR"
    amount_min: Decimal = Decimal("0")
    amount_max: Decimal = Decimal("999999")
    min_document_number_length: int = 3
    supplier_scan_lines: int = 8
    supplier_min_length: int = 8
    supplier_max_length: int = 60
    item_min_length: int = 15
    item_max_length: int = 100
    max_items: int = 8


class ServerConfig(BaseModel):
    """Bind address for the HTTP API."""

    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: str = "INFO"


# environment variable -> (provider section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DOCUMENT_AI_PROJECT_ID": ("document_ai", "project_id"),
    "DOCUMENT_AI_PROCESSOR_ID": ("document_ai", "processor_id"),
    "DOCUMENT_AI_API_KEY": ("document_ai", "api_key"),
    "AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT": ("azure", "endpoint"),
    "AZURE_DOCUMENT_INTELLIGENCE_KEY": ("azure", "api_key"),
}


def _apply_env_overrides(raw: dict) -> dict:
    """Merge provider secrets from the environment into raw config data."""
    providers = raw.setdefault("providers", {}) or {}
    raw["providers"] = providers
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            section_data = providers.get(section) or {}
            section_data[key] = value
            providers[section] = section_data
            logger.debug("Using %s from environment", env_name)
    return raw


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    raw: dict = {}
    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    else:
        logger.info("No config file found at %s, using defaults", path)

    return AppConfig(**_apply_env_overrides(raw))
