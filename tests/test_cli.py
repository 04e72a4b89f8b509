"""Tests for the command-line interface and CSV export."""

import csv
import json
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from delivery_ocr.cli import (
    _find_images,
    _load_document,
    _print_summary,
    _result_row,
    _write_csv,
    extract_single,
    main,
    process_folder,
)
from delivery_ocr.models import ExtractedFields, ProcessingResult, ProviderAttempt, ProviderName
from delivery_ocr.processing.orchestrator import ProcessingOrchestrator
from delivery_ocr.processing.store import InMemoryDocumentStore
from delivery_ocr.providers.base import ProviderError


@pytest.fixture
def orchestrator(fake_provider, sample_note: str) -> ProcessingOrchestrator:
    """Orchestrator whose only provider returns the sample delivery note."""
    return ProcessingOrchestrator(
        [fake_provider(ProviderName.TESSERACT, text=sample_note)], InMemoryDocumentStore()
    )


@pytest.fixture
def failing_orchestrator(fake_provider) -> ProcessingOrchestrator:
    provider = fake_provider(
        ProviderName.TESSERACT, error=ProviderError(ProviderName.TESSERACT, "tesseract failed")
    )
    return ProcessingOrchestrator([provider], InMemoryDocumentStore())


def _ok_result() -> ProcessingResult:
    return ProcessingResult(
        success=True,
        data=ExtractedFields(
            supplier="Ferretería Hermanos López",
            document_number="2024-0456",
            total_amount=Decimal("12.50"),
        ),
        raw_text="...",
        provider=ProviderName.TESSERACT,
    )


class TestFindImages:
    """Tests for image discovery."""

    def test_find_supported_images(self, tmp_path: Path) -> None:
        (tmp_path / "note1.jpg").touch()
        (tmp_path / "note2.jpeg").touch()
        (tmp_path / "note3.png").touch()
        (tmp_path / "scan.pdf").touch()
        (tmp_path / "readme.txt").touch()
        files = _find_images(tmp_path)
        assert [f.name for f in files] == ["note1.jpg", "note2.jpeg", "note3.png"]

    def test_find_uppercase_extensions(self, tmp_path: Path) -> None:
        (tmp_path / "NOTE.JPG").touch()
        assert len(_find_images(tmp_path)) == 1

    def test_find_no_images(self, tmp_path: Path) -> None:
        (tmp_path / "readme.txt").touch()
        assert _find_images(tmp_path) == []


class TestLoadDocument:
    """Tests for turning a file into a pipeline document."""

    def test_id_from_stem(self, tmp_path: Path, jpeg_bytes: bytes) -> None:
        path = tmp_path / "albaran-0456.jpg"
        path.write_bytes(jpeg_bytes)
        doc = _load_document(path)
        assert doc.document_id == "albaran-0456"
        assert doc.content == jpeg_bytes
        assert doc.mime_type == "image/jpeg"

    def test_explicit_id_and_png(self, tmp_path: Path) -> None:
        path = tmp_path / "note.PNG"
        path.write_bytes(b"png")
        doc = _load_document(path, "doc-9")
        assert doc.document_id == "doc-9"
        assert doc.mime_type == "image/png"


class TestExtractSingle:
    """Tests for single-image processing."""

    def test_returns_result_json(
        self, tmp_path: Path, orchestrator: ProcessingOrchestrator
    ) -> None:
        path = tmp_path / "note.jpg"
        path.touch()
        result = extract_single(path, orchestrator)
        assert result["documentId"] == "note"
        assert result["success"] is True
        assert result["data"]["documentNumber"] == "2024-0456"


class TestResultRow:
    """Tests for CSV row construction."""

    def test_success_row(self) -> None:
        row = _result_row("note.jpg", _ok_result())
        assert row["status"] == "completed"
        assert row["provider"] == "tesseract"
        assert row["total_amount"] == "12.50"
        assert row["item_count"] == 0
        assert row["error"] is None

    def test_failure_row(self) -> None:
        row = _result_row("note.jpg", ProcessingResult(success=False, error="boom"))
        assert row["status"] == "failed"
        assert row["provider"] is None
        assert row["error"] == "boom"
        assert "supplier" not in row

    def test_confidence_rounded(self) -> None:
        result = replace(
            _ok_result(), attempts=(ProviderAttempt("tesseract", True, confidence=0.876),)
        )
        row = _result_row("note.jpg", result)
        assert row["confidence"] == 0.88

    def test_confidence_missing(self) -> None:
        assert _result_row("note.jpg", _ok_result())["confidence"] is None


class TestWriteCsv:
    """Tests for CSV writing."""

    def test_write_csv_content(self, tmp_path: Path) -> None:
        output = tmp_path / "results.csv"
        _write_csv([_result_row("note.jpg", _ok_result())], output)

        with open(output, encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 1
        assert rows[0]["filename"] == "note.jpg"
        assert rows[0]["supplier"] == "Ferretería Hermanos López"
        assert rows[0]["document_date"] == ""

    def test_write_csv_empty_results(self, tmp_path: Path) -> None:
        output = tmp_path / "results.csv"
        _write_csv([], output)
        assert not output.exists()

    def test_write_csv_creates_parent_dirs(self, tmp_path: Path) -> None:
        output = tmp_path / "subdir" / "results.csv"
        _write_csv([{"filename": "note.jpg", "status": "failed"}], output)
        assert output.exists()

    def test_column_order(self, tmp_path: Path) -> None:
        output = tmp_path / "results.csv"
        _write_csv([{"filename": "note.jpg", "status": "failed"}], output)
        with open(output, encoding="utf-8") as f:
            headers = next(csv.reader(f))
        assert headers[:3] == ["filename", "status", "provider"]
        assert "confidence" in headers


class TestPrintSummary:
    """Tests for summary printing."""

    def test_print_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        _print_summary({"total": 5, "successful": 4, "failed": 1}, Path("results.csv"))
        captured = capsys.readouterr()
        assert "Total:      5" in captured.out
        assert "Successful: 4" in captured.out
        assert "Failed:     1" in captured.out
        assert "results.csv" in captured.out


class TestProcessFolder:
    """Tests for batch folder processing."""

    def test_process_folder_success(
        self, tmp_path: Path, orchestrator: ProcessingOrchestrator
    ) -> None:
        (tmp_path / "a.jpg").touch()
        (tmp_path / "b.jpg").touch()
        output_csv = tmp_path / "out" / "results.csv"

        summary = process_folder(tmp_path, output_csv, orchestrator)

        assert summary == {"total": 2, "successful": 2, "failed": 0}
        with open(output_csv, encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["filename"] for r in rows] == ["a.jpg", "b.jpg"]
        assert rows[0]["document_number"] == "2024-0456"

    def test_process_folder_with_failure(self, tmp_path: Path) -> None:
        orchestrator = MagicMock()
        orchestrator.process = AsyncMock(
            side_effect=[_ok_result(), ProcessingResult(success=False, error="failed")]
        )
        (tmp_path / "a.jpg").touch()
        (tmp_path / "b.jpg").touch()

        summary = process_folder(tmp_path, tmp_path / "results.csv", orchestrator)

        assert summary["successful"] == 1
        assert summary["failed"] == 1

    def test_process_folder_empty(
        self, tmp_path: Path, orchestrator: ProcessingOrchestrator
    ) -> None:
        output_csv = tmp_path / "results.csv"
        summary = process_folder(tmp_path, output_csv, orchestrator)
        assert summary["total"] == 0
        assert not output_csv.exists()

    def test_process_folder_verbose(
        self,
        tmp_path: Path,
        orchestrator: ProcessingOrchestrator,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        (tmp_path / "a.jpg").touch()
        process_folder(tmp_path, tmp_path / "results.csv", orchestrator, verbose=True)
        assert "Processing [1/1]: a.jpg" in capsys.readouterr().out


class TestMain:
    """Tests for argument parsing and command dispatch."""

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "extract" in capsys.readouterr().out

    def test_extract_prints_json(
        self,
        tmp_path: Path,
        orchestrator: ProcessingOrchestrator,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = tmp_path / "note.jpg"
        path.touch()
        with patch("delivery_ocr.cli.build_orchestrator", return_value=orchestrator):
            main(["extract", str(path), "--id", "doc-3"])

        output = json.loads(capsys.readouterr().out)
        assert output["documentId"] == "doc-3"
        assert output["data"]["supplier"] == "Ferretería Hermanos López"

    def test_extract_to_file(
        self, tmp_path: Path, orchestrator: ProcessingOrchestrator
    ) -> None:
        path = tmp_path / "note.jpg"
        path.touch()
        output = tmp_path / "json" / "note.json"
        with patch("delivery_ocr.cli.build_orchestrator", return_value=orchestrator):
            main(["extract", str(path), "-o", str(output)])

        assert json.loads(output.read_text(encoding="utf-8"))["success"] is True

    def test_extract_failure_exit_code(
        self, tmp_path: Path, failing_orchestrator: ProcessingOrchestrator
    ) -> None:
        path = tmp_path / "note.jpg"
        path.touch()
        with patch("delivery_ocr.cli.build_orchestrator", return_value=failing_orchestrator):
            with pytest.raises(SystemExit) as exc_info:
                main(["extract", str(path)])
        assert exc_info.value.code == 2

    def test_extract_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["extract", str(tmp_path / "missing.jpg")])
        assert exc_info.value.code == 1

    def test_batch_not_a_directory(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["batch", str(tmp_path / "missing")])
        assert exc_info.value.code == 1

    def test_batch(self, tmp_path: Path, orchestrator: ProcessingOrchestrator) -> None:
        (tmp_path / "a.jpg").touch()
        output_csv = tmp_path / "results.csv"
        with patch("delivery_ocr.cli.build_orchestrator", return_value=orchestrator):
            main(["batch", str(tmp_path), "-o", str(output_csv)])
        assert output_csv.exists()
