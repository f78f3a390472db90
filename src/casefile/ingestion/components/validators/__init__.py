from .content_validator import (
    build_hybrid_content,
    clean_csv_text,
    clean_spreadsheet_text,
    clean_word_text,
    decode_bytes,
    has_meaningful_text,
    is_readable_text,
)

__all__ = [
    "build_hybrid_content",
    "clean_csv_text",
    "clean_spreadsheet_text",
    "clean_word_text",
    "decode_bytes",
    "has_meaningful_text",
    "is_readable_text",
]
