"""Command-line interface for processing delivery-note images.

``extract`` runs one image through the provider chain and prints the
result JSON; ``batch`` processes a folder and exports one CSV row per
document.
"""

import argparse
import asyncio
import csv
import json
import sys
import time
from pathlib import Path

from delivery_ocr.models import ProcessingResult, RawDocument
from delivery_ocr.processing.orchestrator import ProcessingOrchestrator
from delivery_ocr.processing.store import InMemoryDocumentStore
from delivery_ocr.providers.registry import build_providers
from delivery_ocr.utils.config import load_config
from delivery_ocr.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.jpg", "*.jpeg", "*.png", "*.webp")
_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}
_CSV_COLUMNS = [
    "filename",
    "status",
    "provider",
    "supplier",
    "document_number",
    "document_date",
    "tax_id",
    "total_amount",
    "currency",
    "item_count",
    "confidence",
    "processing_time_s",
    "error",
]


def build_orchestrator(config_path: Path | None = None) -> ProcessingOrchestrator:
    """Create an orchestrator from the YAML configuration."""
    config = load_config(config_path)
    return ProcessingOrchestrator(
        build_providers(config), InMemoryDocumentStore(), config=config.extraction
    )


def _find_images(input_dir: Path) -> list[Path]:
    """Find all supported image files in a directory.

    Args:
        input_dir: Directory to scan.

    Returns:
        Sorted list of image paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def _load_document(file_path: Path, document_id: str | None = None) -> RawDocument:
    return RawDocument(
        document_id=document_id or file_path.stem,
        content=file_path.read_bytes(),
        mime_type=_MIME_TYPES.get(file_path.suffix.lower(), "image/jpeg"),
    )


def extract_single(
    file_path: Path,
    orchestrator: ProcessingOrchestrator,
    document_id: str | None = None,
) -> dict[str, object]:
    """Process one image and return the result JSON as a dict."""
    document = _load_document(file_path, document_id)
    result = asyncio.run(orchestrator.process(document))
    return {"documentId": document.document_id, **result.to_dict()}


def _result_row(filename: str, result: ProcessingResult) -> dict[str, object]:
    row: dict[str, object] = {
        "filename": filename,
        "status": "completed" if result.success else "failed",
        "provider": result.provider.value if result.provider else None,
        "confidence": round(result.confidence, 2) if result.confidence is not None else None,
        "error": result.error,
    }
    if result.data is not None:
        data = result.data
        row.update(
            supplier=data.supplier,
            document_number=data.document_number,
            document_date=data.document_date,
            tax_id=data.tax_id,
            total_amount=str(data.total_amount) if data.total_amount is not None else None,
            currency=data.currency,
            item_count=len(data.items),
        )
    return row


def process_folder(
    input_dir: Path,
    output_csv: Path,
    orchestrator: ProcessingOrchestrator,
    verbose: bool = False,
) -> dict[str, int]:
    """Process every image in a folder and export results to CSV.

    Args:
        input_dir: Directory containing images.
        output_csv: Path for the output CSV file.
        orchestrator: Configured provider chain.
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    files = _find_images(input_dir)
    if not files:
        logger.warning("No images found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d images to process", len(files))

    rows: list[dict[str, object]] = []
    successful = 0
    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")

        start_time = time.time()
        result = asyncio.run(orchestrator.process(_load_document(file_path)))
        row = _result_row(file_path.name, result)
        row["processing_time_s"] = round(time.time() - start_time, 2)
        rows.append(row)
        if result.success:
            successful += 1

    _write_csv(rows, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {
        "total": len(files),
        "successful": successful,
        "failed": len(files) - successful,
    }
    _print_summary(summary, output_csv)
    return summary


def _write_csv(rows: list[dict[str, object]], output_path: Path) -> None:
    if not rows:
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=_CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Batch Processing Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Delivery note OCR processor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("extract", help="Process a single image")
    single_parser.add_argument("file", type=Path, help="Image file to process")
    single_parser.add_argument("--id", dest="document_id", help="Document identifier")
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    batch_parser = subparsers.add_parser("batch", help="Process a folder of images")
    batch_parser.add_argument("input_dir", type=Path, help="Directory with images")
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    setup_logging(load_config(args.config).log_level)

    if args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        result = extract_single(args.file, build_orchestrator(args.config), args.document_id)
        output_str = json.dumps(result, indent=2, ensure_ascii=False)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str, encoding="utf-8")
            print(f"Output written to {args.output}")
        else:
            print(output_str)
        if not result["success"]:
            sys.exit(2)
    elif args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(
            args.input_dir, args.output, build_orchestrator(args.config), args.verbose
        )


if __name__ == "__main__":
    main()
