from __future__ import annotations

import pytest
from rq.job import Job, JobStatus

from casefile.common.errors import DuplicateJobError, QueueUnavailable
from casefile.common.redis_lock import InflightLock
from casefile.config.settings import Settings
from casefile.ingestion.queue import dispatcher
from casefile.ingestion.queue.config import AI_ANALYSIS, DOCUMENT_PROCESSING, QUEUE_NAMES, USER_REQUESTS
from casefile.ingestion.queue.connection import QueueConnection
from casefile.ingestion.queue.dispatcher import QueueService


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def service(queue_connection, settings):
    return QueueService(queue_connection, settings)


def _doc(document_id: int = 42, mime_type: str = "image/png") -> dict:
    return {"document_id": document_id, "file_path": f"/data/uploads/{document_id}.bin", "mime_type": mime_type}


class TestSubmission:
    def test_document_job_is_enqueued(self, service, queue_connection, settings):
        job_id = service.submit_document_processing_job(_doc())["job_id"]

        job = Job.fetch(job_id, connection=queue_connection.redis)
        assert job_id.startswith("doc-42-")
        assert job.origin == DOCUMENT_PROCESSING
        assert job.func_name == "casefile.ingestion.queue.jobs.process_document_job"
        assert job.kwargs["document_id"] == 42
        assert job.meta["priority"] == 3
        assert job.meta["idempotency_key"] == "doc-42"
        assert job.timeout == settings.job_timeout
        assert job.retries_left == 2
        assert InflightLock(queue_connection.redis, "doc-42").get_holder() == job_id

    def test_duplicate_document_is_refused(self, service):
        first = service.submit_document_processing_job(_doc())["job_id"]

        with pytest.raises(DuplicateJobError) as excinfo:
            service.submit_document_processing_job(_doc())

        assert excinfo.value.job_id == first

    def test_same_document_allowed_once_previous_job_finished(self, service, queue_connection):
        first = service.submit_document_processing_job(_doc())["job_id"]
        Job.fetch(first, connection=queue_connection.redis).set_status(JobStatus.FINISHED)

        second = service.submit_document_processing_job(_doc())["job_id"]

        assert second != first
        assert InflightLock(queue_connection.redis, "doc-42").get_holder() == second

    def test_orphan_lock_is_reclaimed(self, service, queue_connection):
        InflightLock(queue_connection.redis, "doc-42").try_acquire("doc-42-vanished")

        job_id = service.submit_document_processing_job(_doc())["job_id"]

        assert InflightLock(queue_connection.redis, "doc-42").get_holder() == job_id

    def test_text_documents_jump_the_queue(self, service, queue_connection):
        pdf = service.submit_document_processing_job(_doc(1, "application/pdf"))["job_id"]
        text = service.submit_document_processing_job(_doc(2, "text/plain"))["job_id"]

        assert queue_connection.get_queue(DOCUMENT_PROCESSING).job_ids == [text, pdf]

    def test_explicit_priority_wins(self, service, queue_connection):
        job_id = service.submit_document_processing_job(_doc(mime_type="video/mp4"), priority=1)["job_id"]

        assert Job.fetch(job_id, connection=queue_connection.redis).meta["priority"] == 1

    def test_user_request_job(self, service, queue_connection):
        payload = {
            "request_id": "r-7",
            "user_id": 3,
            "case_id": 9,
            "request_type": "legal_advice",
            "request_data": {"situation": "Unpaid rent"},
            "priority": "urgent",
        }

        job_id = service.submit_user_request_job(payload)["job_id"]

        job = Job.fetch(job_id, connection=queue_connection.redis)
        assert job.origin == USER_REQUESTS
        assert job.meta["priority"] == 1
        assert job.retries_left == 1

    def test_ai_analysis_job(self, service, queue_connection):
        payload = {
            "analysis_id": "a-1",
            "document_id": 42,
            "case_id": 9,
            "analysis_type": "risk_assessment",
            "content": "Clause 4 is ambiguous.",
        }

        job_id = service.submit_ai_analysis_job(payload)["job_id"]

        job = Job.fetch(job_id, connection=queue_connection.redis)
        assert job.origin == AI_ANALYSIS
        assert job.meta["priority"] == 3

    def test_closed_connection(self, settings, fake_redis):
        closed = QueueService(QueueConnection("redis://fake:6379/0", client=fake_redis), settings)

        with pytest.raises(QueueUnavailable):
            closed.submit_document_processing_job(_doc())


class TestLookups:
    def test_job_status(self, service):
        job_id = service.submit_document_processing_job(_doc(mime_type="application/pdf"))["job_id"]

        status = service.get_job_status(DOCUMENT_PROCESSING, job_id)

        assert status["id"] == job_id
        assert status["status"] == "queued"
        assert status["priority"] == 2
        assert status["progress"]["progress"] == 0
        assert status["result"] is None
        assert status["timestamps"]["enqueued_at"] is not None

    def test_job_status_on_other_queue(self, service):
        job_id = service.submit_document_processing_job(_doc())["job_id"]

        assert service.get_job_status(USER_REQUESTS, job_id) is None
        assert service.get_job_status(DOCUMENT_PROCESSING, "missing") is None

    def test_unknown_queue(self, service):
        with pytest.raises(ValueError, match="Unknown queue"):
            service.get_job_status("emails", "whatever")

    def test_remove_queued_job_releases_lock(self, service, queue_connection):
        job_id = service.submit_document_processing_job(_doc())["job_id"]

        assert service.remove_job(DOCUMENT_PROCESSING, job_id) == {"success": True}

        assert InflightLock(queue_connection.redis, "doc-42").get_holder() is None
        assert service.get_job_status(DOCUMENT_PROCESSING, job_id) is None

    def test_running_job_is_not_removed(self, service, queue_connection):
        job_id = service.submit_document_processing_job(_doc())["job_id"]
        Job.fetch(job_id, connection=queue_connection.redis).set_status(JobStatus.STARTED)

        assert service.remove_job(DOCUMENT_PROCESSING, job_id) == {"success": False}

    def test_retry_only_failed_jobs(self, service):
        job_id = service.submit_document_processing_job(_doc())["job_id"]

        assert service.retry_job(DOCUMENT_PROCESSING, job_id) == {"success": False}
        assert service.retry_job(DOCUMENT_PROCESSING, "missing") == {"success": False}

    def test_retry_failed_job(self, service, queue_connection):
        job_id = service.submit_document_processing_job(_doc())["job_id"]
        queue = queue_connection.get_queue(DOCUMENT_PROCESSING)
        job = Job.fetch(job_id, connection=queue_connection.redis)
        queue.remove(job)
        job.set_status(JobStatus.FAILED)
        queue.failed_job_registry.add(job, ttl=600, exc_string="AIProcessingFailure: quota")
        InflightLock(queue_connection.redis, "doc-42").release(job_id)

        assert service.retry_job(DOCUMENT_PROCESSING, job_id) == {"success": True}

        assert job_id in queue.job_ids
        assert InflightLock(queue_connection.redis, "doc-42").get_holder() == job_id


class TestHealth:
    def test_unhealthy_when_connection_closed(self, settings, fake_redis):
        closed = QueueService(QueueConnection("redis://fake:6379/0", client=fake_redis), settings)

        health = closed.check_queue_health()

        assert health["status"] == "unhealthy"
        assert "Redis" in health["error"]

    def test_healthy_lists_every_queue(self, service):
        service.submit_document_processing_job(_doc(1))
        service.submit_document_processing_job(_doc(2))

        health = service.check_queue_health()

        assert health["status"] == "healthy"
        by_name = {queue["name"]: queue for queue in health["queues"]}
        assert set(by_name) == set(QUEUE_NAMES)
        assert by_name[DOCUMENT_PROCESSING]["waiting"] == 2
        assert by_name[USER_REQUESTS]["waiting"] == 0
        assert set(by_name[AI_ANALYSIS]) == {"name", "waiting", "active", "completed", "failed", "delayed"}

    def test_queue_stats(self, service):
        service.submit_document_processing_job(_doc())

        stats = service.get_queue_stats()

        assert stats[DOCUMENT_PROCESSING]["queued"] == 1
        assert stats[AI_ANALYSIS] == {
            "queued": 0, "started": 0, "finished": 0, "failed": 0, "deferred": 0, "scheduled": 0,
        }

    def test_module_health_when_redis_down(self, monkeypatch):
        def _unavailable():
            raise QueueUnavailable()

        monkeypatch.setattr(dispatcher, "get_queue_service", _unavailable)

        assert dispatcher.check_queue_health() == {
            "status": "unhealthy",
            "error": "Queue is not available (Redis not running)",
        }
