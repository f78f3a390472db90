from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from rq.job import Job

from casefile.common.errors import AIProcessingFailure, UnsupportedMimeType
from casefile.common.redis_lock import InflightLock
from casefile.config.settings import Settings
from casefile.ingestion.models import ProcessingStatus
from casefile.ingestion.pipelines.document_pipeline import ProcessingOutcome
from casefile.ingestion.queue import jobs
from casefile.ingestion.queue.dispatcher import QueueService

DOC_KWARGS = {"document_id": 42, "file_path": "/data/uploads/42.png", "mime_type": "image/png"}


@pytest.fixture
def service(queue_connection):
    return QueueService(queue_connection, Settings(_env_file=None))


@pytest.fixture
def current_job(service, queue_connection, monkeypatch):
    job_id = service.submit_document_processing_job(DOC_KWARGS)["job_id"]
    job = Job.fetch(job_id, connection=queue_connection.redis)
    monkeypatch.setattr(jobs, "get_current_job", lambda: job)
    return job


@pytest.fixture
def pipeline(monkeypatch):
    pipeline = MagicMock(name="DocumentPipeline")
    pipeline.run = AsyncMock(return_value=ProcessingOutcome(42, ProcessingStatus.PROCESSED, confidence=91.0))
    factory = MagicMock()
    factory.from_settings.return_value = pipeline
    monkeypatch.setattr(jobs, "DocumentPipeline", factory)
    return pipeline


def _holder(job: Job) -> str:
    return InflightLock(job.connection, job.meta["idempotency_key"]).get_holder()


def test_success_releases_lock(current_job, pipeline):
    result = jobs.process_document_job(**DOC_KWARGS)

    assert result["success"] is True
    assert result["status"] == "PROCESSED"
    assert result["confidence"] == 91.0
    assert _holder(current_job) is None
    pipeline.close.assert_called_once()
    assert pipeline.run.await_args.args[0].document_id == 42


def test_retryable_error_keeps_lock_while_retries_remain(current_job, pipeline):
    pipeline.run.side_effect = AIProcessingFailure("quota exceeded")

    with pytest.raises(AIProcessingFailure):
        jobs.process_document_job(**DOC_KWARGS)

    assert _holder(current_job) == current_job.id
    pipeline.close.assert_called_once()


def test_last_attempt_releases_lock_and_raises(current_job, pipeline):
    current_job.retries_left = 0
    pipeline.run.side_effect = AIProcessingFailure("quota exceeded")

    with pytest.raises(AIProcessingFailure):
        jobs.process_document_job(**DOC_KWARGS)

    assert _holder(current_job) is None


def test_non_retryable_error_returns_failure(current_job, pipeline):
    pipeline.run.side_effect = UnsupportedMimeType("application/zip")

    result = jobs.process_document_job(**DOC_KWARGS)

    assert result == {"success": False, "error": "Unsupported file type: application/zip", "document_id": 42}
    assert _holder(current_job) is None


def test_progress_is_written_to_job_meta(current_job):
    jobs.update_job_progress("Extraction", 1, 5, "Extraction du contenu")

    current_job.refresh()
    assert current_job.meta["current_step"] == "Extraction"
    assert current_job.meta["progress"] == 1
    assert current_job.meta["total_steps"] == 5
    assert current_job.meta["step_message"] == "Extraction du contenu"
    assert "last_heartbeat" in current_job.meta


def test_heartbeat_outside_worker_is_noop(monkeypatch):
    monkeypatch.setattr(jobs, "get_current_job", lambda: None)

    jobs.send_worker_heartbeat()
    jobs.update_job_progress("Extraction", 1, 5)


def test_user_request_job(service, queue_connection, monkeypatch, gemini_client):
    job_id = service.submit_user_request_job({
        "request_id": "r-1", "user_id": 1, "case_id": 2, "request_type": "case_analysis",
        "request_data": {"parties": ["A", "B"]},
    })["job_id"]
    job = Job.fetch(job_id, connection=queue_connection.redis)
    monkeypatch.setattr(jobs, "get_current_job", lambda: job)
    monkeypatch.setattr(jobs, "get_gemini_client", lambda: gemini_client)
    gemini_client.generate_text.return_value = '{"issues": []}'

    result = jobs.process_user_request_job(**job.kwargs)

    assert result == {"success": True, "request_id": "r-1", "result": '{"issues": []}'}
    assert _holder(job) is None


def test_unknown_analysis_type_is_not_retried(monkeypatch, gemini_client):
    monkeypatch.setattr(jobs, "get_current_job", lambda: None)
    monkeypatch.setattr(jobs, "get_gemini_client", lambda: gemini_client)

    result = jobs.process_ai_analysis_job(
        analysis_id="a-9", document_id=42, case_id=2, analysis_type="astrology", content="text"
    )

    assert result["success"] is False
    assert "Unknown analysis type" in result["error"]
    gemini_client.generate_text.assert_not_awaited()


def test_sweep_job(runtime_env, monkeypatch, database, make_document):
    monkeypatch.setattr(jobs, "get_database", lambda: database)
    make_document()

    assert jobs.sweep_stale_documents_job() == {"success": True, "swept": []}
