from __future__ import annotations

import logging
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import redis
from rq.exceptions import NoSuchJobError
from rq.job import Job, JobStatus

from casefile.common.errors import DuplicateJobError, QueueUnavailable
from casefile.common.redis_lock import InflightLock
from casefile.config.settings import Settings, get_settings
from casefile.ingestion.mime_types import priority_for_mime_type
from casefile.ingestion.models import DocumentJobPayload
from casefile.ingestion.queue.config import (
    AI_ANALYSIS,
    DOCUMENT_PROCESSING,
    QUEUE_NAMES,
    USER_REQUESTS,
    QueueSpec,
    get_queue_spec,
)
from casefile.ingestion.queue.connection import QueueConnection
from casefile.ingestion.queue.requests import AIAnalysisPayload, UserRequestPayload, priority_for_request

logger = logging.getLogger(__name__)

# Un job replanifie (backoff) ou en attente de dependance est toujours "en vol"
ACTIVE_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.STARTED, JobStatus.SCHEDULED, JobStatus.DEFERRED})

DEFAULT_PRIORITY = 3


def _as_payload(payload: Any, cls):
    return payload if isinstance(payload, cls) else cls(**dict(payload))


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


class QueueService:
    """
    Soumission et suivi des jobs sur les trois files.

    Usage:
        connection = QueueConnection.from_settings().open()
        service = QueueService(connection)
        job = service.submit_document_processing_job({"document_id": 42, "file_path": path, "mime_type": "image/png"})
        service.get_job_status("document-processing", job["job_id"])
    """

    def __init__(self, connection: QueueConnection, settings: Optional[Settings] = None):
        self.connection = connection
        self.settings = settings or get_settings()

    # ------------------------------------------------------------- submission

    def submit_document_processing_job(
        self,
        payload: Union[DocumentJobPayload, Mapping[str, Any]],
        priority: Optional[int] = None,
    ) -> Dict[str, str]:
        payload = _as_payload(payload, DocumentJobPayload)
        if priority is None:
            priority = priority_for_mime_type(payload.mime_type)
        return self._submit(
            get_queue_spec(DOCUMENT_PROCESSING),
            idempotency_key=payload.idempotency_key,
            kwargs=payload.to_kwargs(),
            priority=priority,
            description=f"Document processing for {Path(payload.file_path).name}",
            meta={"document_id": payload.document_id, "case_id": payload.case_id, "job_type": "document"},
        )

    def submit_user_request_job(
        self,
        payload: Union[UserRequestPayload, Mapping[str, Any]],
        priority: Optional[int] = None,
    ) -> Dict[str, str]:
        payload = _as_payload(payload, UserRequestPayload)
        if priority is None:
            priority = priority_for_request(payload.priority)
        return self._submit(
            get_queue_spec(USER_REQUESTS),
            idempotency_key=f"req-{payload.request_id}",
            kwargs=payload.to_kwargs(),
            priority=priority,
            description=f"User request {payload.request_type} for case {payload.case_id}",
            meta={"request_type": payload.request_type, "case_id": payload.case_id, "job_type": "user_request"},
        )

    def submit_ai_analysis_job(
        self,
        payload: Union[AIAnalysisPayload, Mapping[str, Any]],
        priority: int = DEFAULT_PRIORITY,
    ) -> Dict[str, str]:
        payload = _as_payload(payload, AIAnalysisPayload)
        return self._submit(
            get_queue_spec(AI_ANALYSIS),
            idempotency_key=f"analysis-{payload.analysis_id}",
            kwargs=payload.to_kwargs(),
            priority=priority,
            description=f"AI analysis {payload.analysis_type} for document {payload.document_id}",
            meta={"analysis_type": payload.analysis_type, "document_id": payload.document_id, "job_type": "ai_analysis"},
        )

    def _lock_ttl(self, spec: QueueSpec) -> int:
        return self.settings.job_timeout * spec.policy.attempts + sum(spec.policy.intervals()) + 60

    def _acquire_inflight(self, spec: QueueSpec, idempotency_key: str, job_id: str) -> InflightLock:
        lock = InflightLock(self.connection.redis, idempotency_key, ttl_seconds=self._lock_ttl(spec))
        if lock.try_acquire(job_id):
            return lock

        holder = lock.get_holder()
        if holder and self._is_active(holder):
            raise DuplicateJobError(idempotency_key, holder)
        # Verrou orphelin: le job detenteur est termine ou a disparu
        if not lock.reclaim(holder, job_id):
            raise DuplicateJobError(idempotency_key, lock.get_holder())
        return lock

    def _is_active(self, job_id: str) -> bool:
        try:
            job = Job.fetch(job_id, connection=self.connection.redis)
        except NoSuchJobError:
            return False
        return job.get_status() in ACTIVE_STATUSES

    def _submit(
        self,
        spec: QueueSpec,
        *,
        idempotency_key: str,
        kwargs: Dict[str, Any],
        priority: int,
        description: str,
        meta: Dict[str, Any],
    ) -> Dict[str, str]:
        job_id = f"{idempotency_key}-{uuid.uuid4().hex[:12]}"
        try:
            lock = self._acquire_inflight(spec, idempotency_key, job_id)
            queue = self.connection.get_queue(spec.name)
            try:
                job = queue.enqueue_call(
                    func=spec.job_func,
                    kwargs=kwargs,
                    job_id=job_id,
                    timeout=self.settings.job_timeout,
                    result_ttl=self.settings.result_ttl,
                    failure_ttl=self.settings.result_ttl,
                    retry=spec.policy.to_rq_retry(),
                    at_front=priority <= 1,
                    description=description,
                    meta={**meta, "priority": priority, "idempotency_key": idempotency_key},
                )
            except redis.RedisError:
                lock.release(job_id)
                raise
        except redis.RedisError as exc:
            logger.error(f"[QueueService] Failed to submit job to {spec.name}: {exc}")
            raise QueueUnavailable(f"Failed to submit job to {spec.name}: {exc}") from exc

        logger.info(f"[QueueService] Job {job.id} submitted to {spec.name} (priority {priority})")
        return {"job_id": job.id}

    # ---------------------------------------------------------------- lookups

    def _fetch(self, queue_name: str, job_id: str) -> Optional[Job]:
        get_queue_spec(queue_name)
        try:
            job = Job.fetch(job_id, connection=self.connection.redis)
        except NoSuchJobError:
            return None
        if job.origin != queue_name:
            return None
        return job

    def get_job_status(self, queue_name: str, job_id: str) -> Optional[Dict[str, Any]]:
        try:
            job = self._fetch(queue_name, job_id)
            if job is None:
                return None
            status = job.get_status()
            failed_reason = None
            if status == JobStatus.FAILED and job.exc_info:
                failed_reason = job.exc_info.strip().splitlines()[-1]
            return {
                "id": job.id,
                "status": status.value if status else None,
                "progress": {
                    "current_step": job.meta.get("current_step"),
                    "progress": job.meta.get("progress", 0),
                    "total_steps": job.meta.get("total_steps", 0),
                    "message": job.meta.get("step_message"),
                },
                "priority": job.meta.get("priority"),
                "result": job.return_value() if status == JobStatus.FINISHED else None,
                "failed_reason": failed_reason,
                "timestamps": {
                    "created_at": _isoformat(job.created_at),
                    "enqueued_at": _isoformat(job.enqueued_at),
                    "started_at": _isoformat(job.started_at),
                    "ended_at": _isoformat(job.ended_at),
                },
                "worker_id": job.meta.get("worker_id"),
                "last_heartbeat": job.meta.get("last_heartbeat"),
            }
        except redis.RedisError as exc:
            raise QueueUnavailable(f"Failed to get job status: {exc}") from exc

    def retry_job(self, queue_name: str, job_id: str) -> Dict[str, bool]:
        """Remet en file un job FAILED (le verrou en vol est repris au passage)."""
        try:
            job = self._fetch(queue_name, job_id)
            if job is None or job.get_status() != JobStatus.FAILED:
                return {"success": False}

            key = job.meta.get("idempotency_key")
            if key:
                try:
                    self._acquire_inflight(get_queue_spec(queue_name), key, job.id)
                except DuplicateJobError as exc:
                    logger.warning(f"[QueueService] Retry refused for {job_id}: {exc}")
                    return {"success": False}

            self.connection.get_queue(queue_name).failed_job_registry.requeue(job.id)
        except redis.RedisError as exc:
            raise QueueUnavailable(f"Failed to retry job: {exc}") from exc

        logger.info(f"[QueueService] Job {job_id} requeued on {queue_name}")
        return {"success": True}

    def remove_job(self, queue_name: str, job_id: str) -> Dict[str, bool]:
        """Supprime un job non demarre; un job en cours n'est jamais interrompu."""
        try:
            job = self._fetch(queue_name, job_id)
            if job is None:
                return {"success": False}
            if job.get_status() == JobStatus.STARTED:
                logger.warning(f"[QueueService] Job {job_id} is running, not removed")
                return {"success": False}

            key = job.meta.get("idempotency_key")
            job.delete()
            if key:
                InflightLock(self.connection.redis, key).release(job_id)
        except redis.RedisError as exc:
            raise QueueUnavailable(f"Failed to remove job: {exc}") from exc

        logger.info(f"[QueueService] Job {job_id} removed from {queue_name}")
        return {"success": True}

    # ----------------------------------------------------------------- health

    def _counts(self, queue_name: str) -> Dict[str, int]:
        queue = self.connection.get_queue(queue_name)
        return {
            "queued": queue.count,
            "started": queue.started_job_registry.count,
            "finished": queue.finished_job_registry.count,
            "failed": queue.failed_job_registry.count,
            "deferred": queue.deferred_job_registry.count,
            "scheduled": queue.scheduled_job_registry.count,
        }

    def check_queue_health(self) -> Dict[str, Any]:
        if not self.connection.is_open:
            return {"status": "unhealthy", "error": "Queue is not available (Redis not running)"}
        try:
            self.connection.redis.ping()
            queues: List[Dict[str, Any]] = []
            for name in QUEUE_NAMES:
                counts = self._counts(name)
                queues.append({
                    "name": name,
                    "waiting": counts["queued"],
                    "active": counts["started"],
                    "completed": counts["finished"],
                    "failed": counts["failed"],
                    "delayed": counts["scheduled"] + counts["deferred"],
                })
        except redis.RedisError as exc:
            logger.error(f"[QueueService] Health check failed: {exc}")
            return {"status": "unhealthy", "error": str(exc)}
        return {"status": "healthy", "queues": queues}

    def get_queue_stats(self) -> Dict[str, Dict[str, int]]:
        try:
            return {name: self._counts(name) for name in QUEUE_NAMES}
        except redis.RedisError as exc:
            raise QueueUnavailable(f"Failed to read queue statistics: {exc}") from exc


@lru_cache(maxsize=1)
def get_queue_service() -> QueueService:
    """Service partage, connexion ouverte au premier appel."""
    return QueueService(QueueConnection.from_settings(get_settings()).open())


def submit_document_processing_job(payload, priority: Optional[int] = None) -> Dict[str, str]:
    return get_queue_service().submit_document_processing_job(payload, priority)


def submit_user_request_job(payload, priority: Optional[int] = None) -> Dict[str, str]:
    return get_queue_service().submit_user_request_job(payload, priority)


def submit_ai_analysis_job(payload, priority: int = DEFAULT_PRIORITY) -> Dict[str, str]:
    return get_queue_service().submit_ai_analysis_job(payload, priority)


def get_job_status(queue_name: str, job_id: str) -> Optional[Dict[str, Any]]:
    return get_queue_service().get_job_status(queue_name, job_id)


def retry_job(queue_name: str, job_id: str) -> Dict[str, bool]:
    return get_queue_service().retry_job(queue_name, job_id)


def remove_job(queue_name: str, job_id: str) -> Dict[str, bool]:
    return get_queue_service().remove_job(queue_name, job_id)


def check_queue_health() -> Dict[str, Any]:
    try:
        service = get_queue_service()
    except QueueUnavailable as exc:
        return {"status": "unhealthy", "error": str(exc)}
    return service.check_queue_health()


__all__ = [
    "QueueService",
    "ACTIVE_STATUSES",
    "get_queue_service",
    "submit_document_processing_job",
    "submit_user_request_job",
    "submit_ai_analysis_job",
    "get_job_status",
    "retry_job",
    "remove_job",
    "check_queue_health",
]
