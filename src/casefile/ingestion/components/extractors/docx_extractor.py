"""
Extraction DOCX: texte via python-docx, images embarquees via le conteneur ZIP.

Le modele multimodal n'accepte pas les DOCX: le texte est lu localement et
chaque image raster de `word/media/` est analysee a part.
"""

from __future__ import annotations

import asyncio
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List

import docx

logger = logging.getLogger(__name__)

MEDIA_PREFIX = "word/media/"
IMAGE_EXTENSIONS = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg"}


@dataclass(frozen=True)
class EmbeddedImage:
    name: str
    data: bytes
    mime_type: str


def _docx_text_sync(path: Path) -> str:
    document = docx.Document(str(path))
    parts: List[str] = [para.text for para in document.paragraphs if para.text.strip()]

    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                parts.append(" | ".join(cells))

    return "\n".join(parts)


def _embedded_images_sync(path: Path) -> List[EmbeddedImage]:
    images: List[EmbeddedImage] = []
    with zipfile.ZipFile(path) as archive:
        for entry in archive.infolist():
            if entry.is_dir() or not entry.filename.startswith(MEDIA_PREFIX):
                continue
            mime_type = IMAGE_EXTENSIONS.get(Path(entry.filename).suffix.lower())
            if mime_type is None:
                continue
            images.append(EmbeddedImage(name=entry.filename, data=archive.read(entry), mime_type=mime_type))
            logger.info(f"[DOCX] Found image in DOCX: {entry.filename}")
    return images


async def extract_docx_text(file_path: str) -> str:
    """Texte des paragraphes et tableaux, vide si le document n'en contient pas."""
    return await asyncio.to_thread(_docx_text_sync, Path(file_path))


async def extract_embedded_images(file_path: str) -> List[EmbeddedImage]:
    """Liste complete des images raster (png/jpg) du conteneur, dans l'ordre de l'archive."""
    return await asyncio.to_thread(_embedded_images_sync, Path(file_path))


__all__ = ["EmbeddedImage", "extract_docx_text", "extract_embedded_images"]
