"""Heuristic field extraction from noisy delivery-note OCR text.

Recovers supplier, document number, date, tax id, total amount and
line items from a flattened sequence of text lines. Every field is
optional: a field that cannot be matched is left unset rather than
guessed. Pattern precedence lives in the module-level pattern tuples
below, most specific first.
"""

import re
from decimal import Decimal, InvalidOperation

from delivery_ocr.models import ExtractedFields, LineItem
from delivery_ocr.utils.config import ExtractionConfig
from delivery_ocr.utils.logger import get_logger

from .rules import Rule, compile_rules, first_accepted

logger = get_logger(__name__)

_TOKEN = r"([a-z0-9\-/]+)"

_DOCUMENT_NUMBER_PATTERNS: tuple[str, ...] = (
    # Labeled: "Albarán: A-123", "Factura Nº 2024/15", "Ref. 88231"
    r"\b(?:albar[aá]n|factura|n[uú]mero|doc(?:umento)?|ref(?:erencia)?|invoice|bill)\b"
    r"[\s:.#]*(?:n[º°]\.?[\s:]*)?" + _TOKEN,
    # "Nº 4567", "N° A-88", "No. 123"; "nombre" must not match
    r"\bn(?:[º°]|o\b)\.?[\s:]*" + _TOKEN,
    # bare number at the start of a line
    r"^(\d{4,}[a-z0-9\-/]*)",
    # a whole letter run followed by digits: "ALB0042"
    r"(?<![a-z])([a-z]+\d{3,})",
)

_AMOUNT = (
    r"(?<![\d.,])"
    r"(\d{1,3}(?:\.\d{3})+,\d{2}|\d{1,3}(?:,\d{3})+\.\d{2}|\d+[.,]\d{2})"
    r"(?!\d)"
)
_CURRENCY_MARK = r"(?:€|eur(?:os?)?)"

_AMOUNT_PATTERNS: tuple[str, ...] = (
    r"\b(?:total|importe|suma|amount|due)\b[^\d\n]{0,25}?" + _AMOUNT,
    _CURRENCY_MARK + r"\s*" + _AMOUNT,
    _AMOUNT + r"\s*" + _CURRENCY_MARK,
    r"(?<!\S)(\d{1,4}[.,]\d{2})(?!\S)",
)

_DATE_PATTERNS: tuple[str, ...] = (
    r"(?<!\d)(\d{1,2}/\d{1,2}/\d{4})(?!\d)",
    r"(?<!\d)(\d{1,2}-\d{1,2}-\d{4})(?!\d)",
    r"(?<!\d)(\d{4}-\d{1,2}-\d{1,2})(?!\d)",
    r"\b(?:fecha|date)\b[\s:]*(\d{1,2}[./]\d{1,2}[./]\d{2,4})(?!\d)",
)

# Matched against the lowercased whole document, not line by line.
_TAX_ID_PATTERNS: tuple[str, ...] = (
    # labeled value must sit on the label's line
    r"\b(?:cif|nif|vat|tax)\b[ \t:.\-]*([a-z0-9\-]{8,12})\b",
    r"\b([a-z]\d{8})\b",
    r"\b(\d{8}[a-z])\b",
)

_SUPPLIER_EXCLUSIONS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\d{1,2}[/\-]\d{1,2}[/\-]\d{4}",
        r"^\d+[.,]\d+",
        r"\b(?:total|subtotal|iva|tax)\b",
        r"\b(?:calle|street|avenue|avenida|avda|plaza)\b",
        r"^\d{5}",
        r"^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}$",
    )
)

_ITEM_EXCLUSIONS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"^(?:fecha|total|subtotal|iva|cif|nif|albar[aá]n|factura|n[º°]|n[uú]mero)",
        re.IGNORECASE,
    ),
    re.compile(r"^(?:calle|street|tel|email|www)", re.IGNORECASE),
)

_LETTER_RUN = re.compile(r"[^\W\d_]{3,}")
_DIGIT = re.compile(r"\d")


def split_lines(text: str) -> list[str]:
    """Split raw text into trimmed, non-empty lines in original order."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def flatten(lines: list[str]) -> str:
    """Lowercase single-string view for whole-document scans."""
    return "\n".join(lines).lower()


def parse_amount(token: str) -> Decimal | None:
    """Parse a locale-formatted money token into a ``Decimal``.

    Accepts ``45,90``, ``45.90``, ``1.234,56`` and ``1,234.56``; the
    right-most separator is taken as the decimal point. Currency symbols
    and other noise are ignored. Returns ``None`` if nothing numeric
    remains.
    """
    cleaned = re.sub(r"[^\d.,]", "", token)
    if not cleaned:
        return None

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif cleaned.count(",") > 1:
        cleaned = cleaned.replace(",", "")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")
    else:
        cleaned = cleaned.replace(",", ".")

    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


class FieldExtractor:
    """Pure text-to-fields extractor shared by every provider.

    ``extract`` never raises and performs no I/O; thresholds come from
    :class:`ExtractionConfig`.

    Args:
        config: Extraction thresholds. Defaults to ``ExtractionConfig()``.
    """

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self.config = config or ExtractionConfig()
        self.document_number_rules: tuple[Rule, ...] = compile_rules(
            "document_number",
            _DOCUMENT_NUMBER_PATTERNS,
            validator=self._valid_document_number,
        )
        self.amount_rules: tuple[Rule, ...] = compile_rules(
            "total_amount",
            _AMOUNT_PATTERNS,
            validator=self._valid_amount,
            scan_all=True,
        )
        self.date_rules: tuple[Rule, ...] = compile_rules("document_date", _DATE_PATTERNS)
        self.tax_id_rules: tuple[Rule, ...] = compile_rules("tax_id", _TAX_ID_PATTERNS)

    def extract(self, raw_text: str) -> ExtractedFields:
        """Extract structured fields from raw OCR text.

        Args:
            raw_text: Untrusted OCR output; may be empty.

        Returns:
            Extracted fields, with unmatched fields left as ``None``.
        """
        lines = split_lines(raw_text or "")
        fields = ExtractedFields(currency=self.config.default_currency)
        if not lines:
            logger.debug("No text lines to extract from")
            return fields

        match = first_accepted(self.document_number_rules, lines)
        if match:
            fields.document_number = match.value

        fields.supplier = self.find_supplier(lines)

        match = first_accepted(self.amount_rules, lines)
        if match:
            fields.total_amount = parse_amount(match.value)

        match = first_accepted(self.date_rules, lines)
        if match:
            fields.document_date = match.value

        match = first_accepted(self.tax_id_rules, [flatten(lines)])
        if match:
            fields.tax_id = match.value.upper()

        fields.items = [LineItem(description=line) for line in self.find_items(lines)]

        found = sum(
            value is not None
            for value in (
                fields.supplier,
                fields.document_number,
                fields.document_date,
                fields.tax_id,
                fields.total_amount,
            )
        )
        logger.info(
            "Field extraction matched %d/5 fields and %d items from %d lines",
            found,
            len(fields.items),
            len(lines),
        )
        return fields

    def find_supplier(self, lines: list[str]) -> str | None:
        """Return the first plausible company-name line near the top."""
        cfg = self.config
        for line in lines[: cfg.supplier_scan_lines]:
            if not cfg.supplier_min_length < len(line) < cfg.supplier_max_length:
                continue
            if not _LETTER_RUN.search(line):
                continue
            if any(p.search(line) for p in _SUPPLIER_EXCLUSIONS):
                continue
            return line
        return None

    def find_items(self, lines: list[str]) -> list[str]:
        """Return up to ``max_items`` lines shaped like item rows."""
        cfg = self.config
        items = [
            line
            for line in lines
            if cfg.item_min_length < len(line) < cfg.item_max_length
            and _DIGIT.search(line)
            and _LETTER_RUN.search(line)
            and not any(p.match(line) for p in _ITEM_EXCLUSIONS)
        ]
        return items[: cfg.max_items]

    def amount_in_range(self, value: Decimal) -> bool:
        return self.config.amount_min < value < self.config.amount_max

    def _valid_document_number(self, token: str) -> bool:
        return len(token) >= self.config.min_document_number_length

    def _valid_amount(self, token: str) -> bool:
        value = parse_amount(token)
        return value is not None and self.amount_in_range(value)
