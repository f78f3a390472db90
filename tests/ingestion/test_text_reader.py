from __future__ import annotations

from pathlib import Path

import pytest
from openpyxl import Workbook

from casefile.common.errors import CasefileError
from casefile.ingestion.components.extractors.text_reader import read_text_document, read_xlsx
from casefile.ingestion.models import AnalysisType, ExtractionMethod


async def test_plain_text_is_read_locally(tmp_path: Path) -> None:
    path = tmp_path / "note.txt"
    path.write_text("Hello world", encoding="utf-8")

    result = await read_text_document(str(path), "text/plain")

    assert result.text == "Hello world"
    assert result.confidence == 100
    assert result.method is ExtractionMethod.DOCUMENT_ANALYSIS
    assert result.analysis_type is AnalysisType.TEXT


async def test_csv_is_cleaned(tmp_path: Path) -> None:
    path = tmp_path / "ledger.csv"
    path.write_text("date,   amount\n\n2024-01-02,  350\n", encoding="utf-8")

    result = await read_text_document(str(path), "text/csv")

    assert result.text == "date, amount\n2024-01-02, 350"


async def test_latin1_text_file(tmp_path: Path) -> None:
    path = tmp_path / "lettre.txt"
    path.write_bytes("Procès-verbal de réunion".encode("latin-1"))

    result = await read_text_document(str(path), "text/plain")

    assert result.text == "Procès-verbal de réunion"


async def test_empty_file_raises(tmp_path: Path) -> None:
    path = tmp_path / "empty.txt"
    path.write_text("   \n  ", encoding="utf-8")

    with pytest.raises(CasefileError):
        await read_text_document(str(path), "text/plain")


def _write_workbook(path: Path) -> None:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Payments"
    sheet.append(["Date", "Amount", None])
    sheet.append(["2024-03-01", 1200, "wire"])
    workbook.create_sheet("Empty")
    workbook.save(path)


def test_read_xlsx_sections_per_sheet(tmp_path: Path) -> None:
    path = tmp_path / "payments.xlsx"
    _write_workbook(path)

    text = read_xlsx(path)

    assert text.startswith("Sheet: Payments")
    assert "Date | Amount" in text
    assert "2024-03-01 | 1200 | wire" in text
    assert "Sheet: Empty" not in text


async def test_xlsx_through_reader(tmp_path: Path) -> None:
    path = tmp_path / "payments.xlsx"
    _write_workbook(path)

    result = await read_text_document(
        str(path), "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

    assert "1200" in result.text
    assert result.confidence == 100
