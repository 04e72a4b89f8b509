"""Local Tesseract OCR provider.

Decodes the uploaded image bytes, cleans the page up with OpenCV and
runs Tesseract on it. Free and offline, so it sits first in the
default provider order.
"""

import io

import numpy as np
import pytesseract
from PIL import Image, UnidentifiedImageError

from delivery_ocr.models import ExtractionInput, ProviderName, RawDocument
from delivery_ocr.utils.config import PreprocessingConfig, TesseractConfig
from delivery_ocr.utils.logger import get_logger

from .base import ProviderAdapter, ProviderError
from .preprocessing import prepare_for_ocr

logger = get_logger(__name__)


class TesseractProvider(ProviderAdapter):
    """Wrapper around Tesseract for photographed delivery notes.

    Args:
        config: Tesseract settings (binary path, language, page mode).
        preprocessing: Image cleanup settings. Defaults to all steps on.
    """

    name = ProviderName.TESSERACT

    def __init__(
        self,
        config: TesseractConfig | None = None,
        preprocessing: PreprocessingConfig | None = None,
    ) -> None:
        self.config = config or TesseractConfig()
        super().__init__(min_text_length=self.config.min_text_length)
        self.preprocessing = preprocessing or PreprocessingConfig()
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

    def _recognize(self, document: RawDocument) -> ExtractionInput:
        page = self._load_page(document)
        tess_config = f"--psm {self.config.psm}"

        try:
            text = pytesseract.image_to_string(
                page, lang=self.config.lang, config=tess_config
            )
            data = pytesseract.image_to_data(
                page,
                lang=self.config.lang,
                config=tess_config,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
            raise ProviderError(self.name, f"tesseract failed: {exc}") from exc

        confidence = _mean_word_confidence(data)
        logger.info(
            "Tesseract read %d characters from %s (confidence %.2f)",
            len(text),
            document.document_id,
            confidence,
        )
        return ExtractionInput(
            text=text,
            source_provider=self.name,
            confidence=confidence,
        )

    def _load_page(self, document: RawDocument) -> Image.Image:
        """Decode the document bytes into a cleaned-up grayscale image."""
        try:
            with Image.open(io.BytesIO(document.content)) as img:
                gray = np.array(img.convert("L"))
        except (UnidentifiedImageError, OSError) as exc:
            raise ProviderError(self.name, f"cannot decode image: {exc}") from exc

        return Image.fromarray(prepare_for_ocr(gray, self.preprocessing))


def _mean_word_confidence(data: dict) -> float:
    """Average Tesseract word confidence on a 0-1 scale."""
    confidences = [
        float(conf)
        for conf, word in zip(data.get("conf", []), data.get("text", []))
        if float(conf) > 0 and str(word).strip()
    ]
    if not confidences:
        return 0.0
    return sum(confidences) / len(confidences) / 100.0
