"""
Taxonomie des erreurs du pipeline d'ingestion.

Chaque erreur porte un drapeau `retryable` consulte par les jobs RQ:
une erreur non rejouable termine le job sans consommer de retry.
"""

from __future__ import annotations

from typing import Optional


class CasefileError(Exception):
    """Erreur de base du pipeline."""

    retryable: bool = False


class UnsupportedMimeType(CasefileError):
    def __init__(self, mime_type: str):
        super().__init__(f"Unsupported file type: {mime_type}")
        self.mime_type = mime_type


class EncodingDetectionFailure(CasefileError):
    def __init__(self, path: str, tried: tuple[str, ...]):
        super().__init__(f"Failed to read {path} with any supported encoding ({', '.join(tried)})")
        self.path = path
        self.tried = tried


class OCRLowConfidence(CasefileError):
    """OCR insuffisant alors que du texte est present (declenche le mode hybride)."""

    def __init__(self, confidence: float, length: int):
        super().__init__(f"OCR extracted minimal text ({length} chars, {confidence:.0f}% confidence)")
        self.confidence = confidence
        self.length = length


class AIProcessingFailure(CasefileError):
    """Echec d'appel au modele multimodal (reseau, quota, blocage securite, contenu insuffisant)."""

    retryable = True

    def __init__(self, message: str, attempts: int = 1, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class VideoToolchainUnavailable(CasefileError):
    def __init__(self, message: str = "FFmpeg/FFprobe not available for video processing"):
        super().__init__(message)


class TimelineParseFailure(CasefileError):
    pass


class QueueUnavailable(CasefileError):
    def __init__(self, message: str = "Queue is not available (Redis not running)"):
        super().__init__(message)


class DuplicateJobError(CasefileError):
    def __init__(self, idempotency_key: str, job_id: Optional[str] = None):
        super().__init__(f"A job is already queued or running for {idempotency_key}")
        self.idempotency_key = idempotency_key
        self.job_id = job_id


class ResultPersistenceFailure(CasefileError):
    retryable = True


class InvalidStatusTransition(CasefileError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid processing status transition {current} -> {target}")
        self.current = current
        self.target = target


class DocumentNotFound(CasefileError):
    def __init__(self, document_id: int):
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class MissingCredentials(CasefileError):
    pass


def is_retryable(error: BaseException) -> bool:
    return bool(getattr(error, "retryable", False))


__all__ = [
    "CasefileError",
    "UnsupportedMimeType",
    "EncodingDetectionFailure",
    "OCRLowConfidence",
    "AIProcessingFailure",
    "VideoToolchainUnavailable",
    "TimelineParseFailure",
    "QueueUnavailable",
    "DuplicateJobError",
    "ResultPersistenceFailure",
    "InvalidStatusTransition",
    "DocumentNotFound",
    "MissingCredentials",
    "is_retryable",
]
