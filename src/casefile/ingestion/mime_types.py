"""
Surface de capacites exposee a la passerelle d'upload.

Regroupe les types MIME acceptes par famille (documents, images, videos, audio)
et le drapeau "traitement video disponible" avec ses instructions d'installation.
"""

from __future__ import annotations

from typing import Dict, List

from casefile.ingestion.components.ocr.video import detect_video_toolchain

# Lus localement, confiance 100, aucun appel IA
TEXT_BASED_TYPES = [
    "text/plain",
    "text/csv",
    "text/tab-separated-values",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/msword",
    "application/rtf",
    "text/rtf",
    "text/html",
    "text/xml",
    "application/xml",
    "application/json",
    "text/markdown",
    "text/md",
    "text/yaml",
    "text/x-yaml",
    "application/x-yaml",
    "text/javascript",
    "application/javascript",
    "application/x-javascript",
    "text/x-typescript",
    "text/x-python",
    "text/css",
]

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIME_TYPE = "application/pdf"

# Documents envoyes tels quels au modele multimodal
MULTIMODAL_DOCUMENT_TYPES = [PDF_MIME_TYPE]

IMAGE_TYPES = [
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/heic",
    "image/heif",
    "image/bmp",
    "image/tiff",
]

VIDEO_TYPES = [
    "video/mp4",
    "video/mpeg",
    "video/mov",
    "video/quicktime",
    "video/avi",
    "video/x-flv",
    "video/mpg",
    "video/webm",
    "video/wmv",
    "video/3gpp",
]

# Formats acceptes nativement par le modele
NATIVE_AUDIO_TYPES = [
    "audio/wav",
    "audio/mp3",
    "audio/mpeg",
    "audio/aiff",
    "audio/aac",
    "audio/ogg",
    "audio/flac",
    "audio/x-wav",
    "audio/x-aiff",
]

# Variantes envoyees par les navigateurs/mobiles: converties en WAV si ffmpeg est present
CONVERTIBLE_AUDIO_TYPES = [
    "audio/mp4",
    "audio/x-mp3",
    "audio/x-mpeg",
    "audio/x-mp4",
    "audio/x-aac",
    "audio/x-ogg",
    "audio/x-flac",
    "audio/mp4a-latm",
    "audio/mpeg3",
    "audio/x-mpeg3",
    "audio/mpg",
    "audio/x-mpg",
    "audio/x-mpegaudio",
    "audio/webm",
    "audio/3gpp",
    "audio/3gpp2",
    "audio/amr",
    "audio/x-m4a",
    "audio/m4a",
    "audio/x-ms-wma",
    "audio/wma",
    "audio/x-ms-wax",
    "audio/x-caf",
    "audio/x-ape",
    "audio/ape",
]

AUDIO_TYPES = NATIVE_AUDIO_TYPES + CONVERTIBLE_AUDIO_TYPES


def is_text_based(mime_type: str) -> bool:
    return mime_type in TEXT_BASED_TYPES


def is_docx(mime_type: str) -> bool:
    return mime_type == DOCX_MIME_TYPE


def is_image(mime_type: str) -> bool:
    return mime_type.startswith("image/")


def is_video(mime_type: str) -> bool:
    return mime_type.startswith("video/")


def is_audio(mime_type: str) -> bool:
    return mime_type.startswith("audio/")


def get_supported_mime_types() -> Dict[str, List[str]]:
    """Types acceptes par famille, tels qu'annonces a la passerelle."""
    return {
        "documents": TEXT_BASED_TYPES + [DOCX_MIME_TYPE] + MULTIMODAL_DOCUMENT_TYPES,
        "images": list(IMAGE_TYPES),
        "videos": list(VIDEO_TYPES),
        "audio": list(AUDIO_TYPES),
    }


def is_supported(mime_type: str) -> bool:
    return any(mime_type in types for types in get_supported_mime_types().values())


def is_video_processing_supported() -> bool:
    return detect_video_toolchain().available


def get_video_processing_instructions() -> str:
    if is_video_processing_supported():
        return "Video processing is available"

    return """Video processing requires FFmpeg to be installed on the system.

Installation instructions:
- macOS: brew install ffmpeg
- Ubuntu/Debian: sudo apt update && sudo apt install ffmpeg
- Windows: Download from https://ffmpeg.org/download.html
- Docker: Use an image with FFmpeg pre-installed

After installation, restart the worker."""


def priority_for_mime_type(mime_type: str) -> int:
    """Priorite de file (1 = la plus haute): textes avant PDF, images, videos."""
    if mime_type.startswith("text/"):
        return 1
    if mime_type == PDF_MIME_TYPE:
        return 2
    if is_image(mime_type):
        return 3
    if is_video(mime_type):
        return 4
    return 5


__all__ = [
    "TEXT_BASED_TYPES",
    "DOCX_MIME_TYPE",
    "XLSX_MIME_TYPE",
    "PDF_MIME_TYPE",
    "IMAGE_TYPES",
    "VIDEO_TYPES",
    "AUDIO_TYPES",
    "NATIVE_AUDIO_TYPES",
    "is_text_based",
    "is_docx",
    "is_image",
    "is_video",
    "is_audio",
    "is_supported",
    "get_supported_mime_types",
    "is_video_processing_supported",
    "get_video_processing_instructions",
    "priority_for_mime_type",
]
