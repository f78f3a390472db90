from .document_state import ERROR_MARKER, assert_transition, can_transition, error_text, is_terminal
from .result_writer import DocumentSnapshot, ResultWriter

__all__ = [
    "ERROR_MARKER",
    "assert_transition",
    "can_transition",
    "error_text",
    "is_terminal",
    "DocumentSnapshot",
    "ResultWriter",
]
