from .document_pipeline import DocumentPipeline, ProcessingOutcome
from .router import ExtractionRouter, accept_ocr

__all__ = [
    "DocumentPipeline",
    "ProcessingOutcome",
    "ExtractionRouter",
    "accept_ocr",
]
