"""
Lecture locale des documents texte (aucun appel IA, confiance 100).

Couvre texte brut, CSV/TSV, tableurs (xlsx via openpyxl, xls binaire nettoye),
Word legacy, RTF, HTML, XML, JSON, Markdown, YAML et code source.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import List, Tuple

from openpyxl import load_workbook

from casefile.common.errors import CasefileError
from casefile.ingestion.components.validators.content_validator import (
    clean_csv_text,
    clean_spreadsheet_text,
    clean_word_text,
    decode_bytes,
)
from casefile.ingestion.mime_types import XLSX_MIME_TYPE
from casefile.ingestion.models import AnalysisType, ExtractionMethod, ExtractionResult

logger = logging.getLogger(__name__)

# Formats binaires legacy: UTF-16 n'a pas de sens
BINARY_ENCODINGS = ("utf-8", "latin-1", "cp1252")


def read_xlsx(path: Path) -> str:
    """Contenu cellule par cellule, une ligne par rangee, une section par feuille."""
    workbook = load_workbook(filename=str(path), read_only=True, data_only=True)
    sections: List[str] = []
    try:
        for sheet in workbook.worksheets:
            rows: List[str] = []
            for row in sheet.iter_rows(values_only=True):
                cells = ["" if value is None else str(value).strip() for value in row]
                if any(cells):
                    rows.append(" | ".join(cells).strip(" |"))
            if rows:
                sections.append(f"Sheet: {sheet.title}\n" + "\n".join(rows))
    finally:
        workbook.close()
    return "\n\n".join(sections)


def _read_sync(path: Path, mime_type: str) -> Tuple[str, str]:
    if mime_type == XLSX_MIME_TYPE:
        return read_xlsx(path), "xlsx"

    data = path.read_bytes()
    source = str(path)

    if mime_type in ("text/csv", "text/tab-separated-values"):
        text, encoding = decode_bytes(data, source=source)
        return clean_csv_text(text), encoding

    if "spreadsheet" in mime_type or "excel" in mime_type:
        text, encoding = decode_bytes(data, BINARY_ENCODINGS, source=source)
        return clean_spreadsheet_text(text), encoding

    if mime_type == "application/msword":
        text, encoding = decode_bytes(data, BINARY_ENCODINGS, source=source)
        return clean_word_text(text), encoding

    return decode_bytes(data, source=source)


async def read_text_document(file_path: str, mime_type: str) -> ExtractionResult:
    """
    Lit et nettoie un document texte.

    Raises:
        EncodingDetectionFailure: aucun encodage lisible
        CasefileError: document vide apres nettoyage
    """
    start = time.monotonic()
    path = Path(file_path)
    logger.info(f"[TextReader] Processing text document: {path.name} ({mime_type})")

    text, encoding = await asyncio.to_thread(_read_sync, path, mime_type)
    text = text.strip()
    if not text:
        raise CasefileError("Text document is empty or contains no readable content")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(f"[TextReader] {path.name}: {len(text)} chars read ({encoding})")
    return ExtractionResult(
        text=text,
        confidence=100,
        processing_time_ms=elapsed_ms,
        method=ExtractionMethod.DOCUMENT_ANALYSIS,
        analysis_type=AnalysisType.TEXT,
        description=f"Text read locally ({encoding})",
    )


__all__ = ["read_text_document", "read_xlsx"]
