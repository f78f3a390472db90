from .processor import MultimodalProcessor, format_image_analysis
from .visual_analyzer import VisualAnalyzer, validate_visual_response

__all__ = ["MultimodalProcessor", "VisualAnalyzer", "format_image_analysis", "validate_visual_response"]
