"""
Modeles de donnees du pipeline d'ingestion.

- ExtractionResult: sortie unique des composants OCR / multimodal / lecture locale
- VideoFrame: resultat OCR d'une frame video (ephemere)
- TimelineEvent: evenement date normalise, rattache au document
- DocumentJobPayload: charge utile d'un job `document-processing`
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class ExtractionMethod(str, Enum):
    VISUAL_OCR = "visual_ocr"
    AUDIO_TRANSCRIPTION = "audio_transcription"
    DOCUMENT_ANALYSIS = "document_analysis"


class AnalysisType(str, Enum):
    OCR = "ocr"
    VISUAL = "visual"
    HYBRID = "hybrid"
    TEXT = "text"


def clamp_confidence(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


@dataclass
class ExtractionResult:
    """
    Resultat d'extraction: soit entierement renseigne, soit l'appel echoue.

    `confidence` est dans [0, 100]; une valeur hors bornes leve ValueError.
    """

    text: str
    confidence: float
    processing_time_ms: int
    method: ExtractionMethod
    analysis_type: Optional[AnalysisType] = None
    description: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.confidence) <= 100.0:
            raise ValueError(f"confidence must be within [0, 100], got {self.confidence}")
        self.confidence = float(self.confidence)
        self.method = ExtractionMethod(self.method)
        if self.analysis_type is not None:
            self.analysis_type = AnalysisType(self.analysis_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "processing_time_ms": self.processing_time_ms,
            "method": self.method.value,
            "analysis_type": self.analysis_type.value if self.analysis_type else None,
            "description": self.description,
        }


@dataclass
class VideoFrame:
    timestamp_seconds: float
    text: str
    confidence: float


@dataclass(frozen=True)
class TimelineEvent:
    date: str
    event: str

    def to_dict(self) -> Dict[str, str]:
        return {"date": self.date, "event": self.event}


@dataclass
class DocumentJobPayload:
    document_id: int
    file_path: str
    mime_type: str
    user_id: Optional[int] = None
    case_id: Optional[int] = None

    @property
    def idempotency_key(self) -> str:
        return f"doc-{self.document_id}"

    def to_kwargs(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EnrichmentResult:
    """Sorties de la chaine langue/resume/chronologie/traduction (chaque champ peut etre degrade)."""

    language: str = "other"
    summary: Optional[str] = None
    timeline: List[TimelineEvent] = field(default_factory=list)
    translation_en: Optional[str] = None
    translation_ar: Optional[str] = None
    title: Optional[str] = None

    def timeline_json(self) -> List[Dict[str, str]]:
        return [event.to_dict() for event in self.timeline]


__all__ = [
    "ProcessingStatus",
    "ExtractionMethod",
    "AnalysisType",
    "ExtractionResult",
    "VideoFrame",
    "TimelineEvent",
    "DocumentJobPayload",
    "EnrichmentResult",
    "clamp_confidence",
]
