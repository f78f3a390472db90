from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from casefile.common.errors import AIProcessingFailure, CasefileError, UnsupportedMimeType
from casefile.common.retry import BackoffPolicy
from casefile.ingestion.components.multimodal.processor import (
    DEFAULT_CONFIDENCE,
    MultimodalProcessor,
    processing_method,
    validate_content_length,
)
from casefile.ingestion.components.multimodal.visual_analyzer import (
    VISUAL_ONLY_CONFIDENCE,
    VisualAnalyzer,
    mime_type_from_path,
    validate_visual_response,
)
from casefile.ingestion.components.ocr import video
from casefile.ingestion.components.ocr.video import VideoToolchain
from casefile.ingestion.models import AnalysisType, ExtractionMethod, ExtractionResult

NO_TOOLCHAIN = VideoToolchain(ffmpeg=None, ffprobe=None)
FULL_TOOLCHAIN = VideoToolchain(ffmpeg="/usr/bin/ffmpeg", ffprobe="/usr/bin/ffprobe")
FAST_POLICY = BackoffPolicy(attempts=3, base_delay=0.001)


@pytest.fixture
def media_file(tmp_path: Path) -> Path:
    path = tmp_path / "exhibit.bin"
    path.write_bytes(b"\x00\x01binary")
    return path


class TestHelpers:
    @pytest.mark.parametrize(
        "mime_type, expected",
        [
            ("audio/mpeg", ExtractionMethod.AUDIO_TRANSCRIPTION),
            ("image/png", ExtractionMethod.VISUAL_OCR),
            ("video/mp4", ExtractionMethod.VISUAL_OCR),
            ("application/pdf", ExtractionMethod.DOCUMENT_ANALYSIS),
        ],
    )
    def test_processing_method(self, mime_type, expected):
        assert processing_method(mime_type) is expected

    @pytest.mark.parametrize("content", ["", "   ", "too short"])
    def test_insufficient_content_is_rejected(self, content):
        with pytest.raises(AIProcessingFailure, match="insufficient content"):
            validate_content_length(content, "Document analysis")

    def test_sufficient_content_is_returned(self):
        assert validate_content_length("Contract between the parties", "op") == "Contract between the parties"

    def test_language_assumption_is_trimmed(self):
        response = "This document appears to be in Arabic and shows a signed lease."
        corrected = validate_visual_response(response)
        assert corrected.startswith("VISUAL ANALYSIS:")
        assert "This document" not in corrected

    def test_neutral_response_is_untouched(self):
        assert validate_visual_response("A signed lease on a desk.") == "A signed lease on a desk."

    def test_mime_type_from_path(self):
        assert mime_type_from_path("/tmp/scan.PNG") == "image/png"
        assert mime_type_from_path("/tmp/scan.unknown") == "image/jpeg"


class TestProcessWithRetry:
    async def test_document_analysis(self, gemini_client, media_file):
        gemini_client.generate_with_media.return_value = "Full contract text extracted by the model"
        processor = MultimodalProcessor(gemini_client, policy=FAST_POLICY, toolchain=NO_TOOLCHAIN)

        result = await processor.process_with_retry(str(media_file), "application/pdf")

        assert result.text == "Full contract text extracted by the model"
        assert result.confidence == DEFAULT_CONFIDENCE
        assert result.method is ExtractionMethod.DOCUMENT_ANALYSIS
        assert result.analysis_type is None

    async def test_native_audio_is_sent_as_is(self, gemini_client, media_file):
        gemini_client.generate_with_media.return_value = "Speaker 1: the hearing is adjourned."
        processor = MultimodalProcessor(gemini_client, policy=FAST_POLICY, toolchain=NO_TOOLCHAIN)

        result = await processor.process_with_retry(str(media_file), "audio/mpeg")

        assert result.method is ExtractionMethod.AUDIO_TRANSCRIPTION
        _, data, mime_type = gemini_client.generate_with_media.call_args.args
        assert data == media_file.read_bytes()
        assert mime_type == "audio/mpeg"

    async def test_transient_failure_is_retried(self, gemini_client, media_file):
        gemini_client.generate_with_media.side_effect = [
            AIProcessingFailure("503 overloaded"),
            "Recovered content from the model",
        ]
        processor = MultimodalProcessor(gemini_client, policy=FAST_POLICY, toolchain=NO_TOOLCHAIN)

        result = await processor.process_with_retry(str(media_file), "application/pdf")

        assert result.text == "Recovered content from the model"
        assert gemini_client.generate_with_media.await_count == 2

    async def test_exhausted_attempts(self, gemini_client, media_file):
        gemini_client.generate_with_media.return_value = "tiny"
        processor = MultimodalProcessor(gemini_client, policy=FAST_POLICY, toolchain=NO_TOOLCHAIN)

        with pytest.raises(AIProcessingFailure, match="failed after 3 attempts") as excinfo:
            await processor.process_with_retry(str(media_file), "application/pdf")

        assert excinfo.value.attempts == 3
        assert "insufficient content" in str(excinfo.value.last_error)
        assert gemini_client.generate_with_media.await_count == 3


class TestVisualAnalyzer:
    async def test_precheck_yes(self, gemini_client, media_file):
        gemini_client.generate_with_media.return_value = " yes. "
        analyzer = VisualAnalyzer(gemini_client, toolchain=NO_TOOLCHAIN)

        assert await analyzer.has_extractable_text(str(media_file), "image/png") is True

    async def test_precheck_error_counts_as_no(self, gemini_client, media_file):
        gemini_client.generate_with_media.side_effect = AIProcessingFailure("blocked")
        analyzer = VisualAnalyzer(gemini_client, toolchain=NO_TOOLCHAIN)

        assert await analyzer.has_extractable_text(str(media_file), "image/png") is False

    async def test_precheck_video_without_toolchain_sends_whole_video(self, gemini_client, media_file):
        gemini_client.generate_with_media.return_value = "NO"
        analyzer = VisualAnalyzer(gemini_client, toolchain=NO_TOOLCHAIN)

        assert await analyzer.has_extractable_text(str(media_file), "video/mp4") is False
        assert gemini_client.generate_with_media.call_args.args[2] == "video/mp4"

    @pytest.mark.parametrize("error", [CasefileError("ffprobe failed on clip.mp4"), asyncio.TimeoutError()])
    async def test_precheck_video_probe_failure_counts_as_no(self, gemini_client, media_file, monkeypatch, error):
        monkeypatch.setattr(video, "probe_duration", AsyncMock(side_effect=error))
        analyzer = VisualAnalyzer(gemini_client, toolchain=FULL_TOOLCHAIN)

        assert await analyzer.has_extractable_text(str(media_file), "video/mp4") is False
        gemini_client.generate_with_media.assert_not_awaited()

    async def test_visual_only(self, gemini_client, media_file):
        gemini_client.generate_with_media.return_value = "A courtroom with three people."
        analyzer = VisualAnalyzer(gemini_client, toolchain=NO_TOOLCHAIN)

        result = await analyzer.visual_only(str(media_file), "image/jpeg")

        assert result.text == "A courtroom with three people."
        assert result.confidence == VISUAL_ONLY_CONFIDENCE
        assert result.analysis_type is AnalysisType.VISUAL

    async def test_hybrid_combines_ocr_and_visual(self, gemini_client, media_file):
        gemini_client.generate_with_media.return_value = "A handwritten note on lined paper."
        analyzer = VisualAnalyzer(gemini_client, toolchain=NO_TOOLCHAIN)
        ocr = ExtractionResult(text="Pay by", confidence=40.0, processing_time_ms=12, method=ExtractionMethod.VISUAL_OCR)

        result = await analyzer.hybrid(str(media_file), "image/png", ocr)

        assert result.text == (
            "OCR EXTRACTED TEXT (Low Confidence):\nPay by\n\nVISUAL ANALYSIS:\nA handwritten note on lined paper."
        )
        assert result.confidence == 75.0
        assert result.analysis_type is AnalysisType.HYBRID
        assert result.processing_time_ms >= 12

    async def test_unsupported_visual_type(self, gemini_client, media_file):
        analyzer = VisualAnalyzer(gemini_client, toolchain=NO_TOOLCHAIN)

        with pytest.raises(UnsupportedMimeType):
            await analyzer.analyze_visual(str(media_file), "application/pdf")
