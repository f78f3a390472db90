"""
Machine a etats du document.

    PENDING -> PROCESSING -> PROCESSED
                          -> FAILED -> PENDING (relance)

Un document PROCESSED n'est jamais reecrit.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Union

from casefile.common.errors import InvalidStatusTransition
from casefile.ingestion.models import ProcessingStatus

ERROR_MARKER = "[ERROR] "

ALLOWED_TRANSITIONS: Dict[ProcessingStatus, FrozenSet[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.PROCESSING: frozenset({ProcessingStatus.PROCESSED, ProcessingStatus.FAILED}),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.PENDING}),
    ProcessingStatus.PROCESSED: frozenset(),
}

StatusLike = Union[ProcessingStatus, str]


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    return ProcessingStatus(target) in ALLOWED_TRANSITIONS[ProcessingStatus(current)]


def assert_transition(current: StatusLike, target: StatusLike) -> None:
    if not can_transition(current, target):
        raise InvalidStatusTransition(ProcessingStatus(current).value, ProcessingStatus(target).value)


def is_terminal(status: StatusLike) -> bool:
    return ProcessingStatus(status) in (ProcessingStatus.PROCESSED, ProcessingStatus.FAILED)


def error_text(message: str) -> str:
    """Message d'erreur stocke dans extracted_text pour distinguer "echec" de "aucun texte"."""
    message = (message or "Unknown error").strip()
    return message if message.startswith(ERROR_MARKER) else f"{ERROR_MARKER}{message}"


__all__ = [
    "ERROR_MARKER",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "assert_transition",
    "is_terminal",
    "error_text",
]
