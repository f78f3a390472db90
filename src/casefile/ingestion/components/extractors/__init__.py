from .docx_extractor import EmbeddedImage, extract_docx_text, extract_embedded_images
from .text_reader import read_text_document, read_xlsx

__all__ = [
    "EmbeddedImage",
    "extract_docx_text",
    "extract_embedded_images",
    "read_text_document",
    "read_xlsx",
]
