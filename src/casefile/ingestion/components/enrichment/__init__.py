from .chain import EnrichmentChain
from .language import detect_language
from .timeline import normalize_date, normalize_timeline, parse_timeline_response
from .title import generate_title, heuristic_title
from .translation import translate_bidirectional

__all__ = [
    "EnrichmentChain",
    "detect_language",
    "normalize_date",
    "normalize_timeline",
    "parse_timeline_response",
    "generate_title",
    "heuristic_title",
    "translate_bidirectional",
]
