"""
Fonctions executees par les workers RQ.

Un job relache son verrou "en vol" uniquement sur son issue finale:
succes, erreur non rejouable, ou derniere tentative epuisee. Tant qu'un
retry RQ reste possible, l'erreur est re-levee et le verrou conserve.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
from datetime import datetime
from typing import Any, Optional

from rq import get_current_job
from rq.job import Job

from casefile.common.clients.gemini_client import get_gemini_client
from casefile.common.errors import is_retryable
from casefile.common.redis_lock import InflightLock
from casefile.config.settings import get_settings
from casefile.db.base import get_database
from casefile.ingestion.models import DocumentJobPayload
from casefile.ingestion.pipelines.document_pipeline import DocumentPipeline
from casefile.ingestion.queue.requests import (
    AIAnalysisPayload,
    UserRequestPayload,
    handle_ai_analysis,
    handle_user_request,
)
from casefile.ingestion.state.result_writer import ResultWriter

logger = logging.getLogger(__name__)


def _worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


def send_worker_heartbeat() -> None:
    """Envoie un heartbeat pour signaler que le worker est toujours actif."""
    job = get_current_job()
    if job:
        job.meta.update({
            "last_heartbeat": datetime.now().timestamp(),
            "worker_id": _worker_id(),
        })
        job.save_meta()


def update_job_progress(step: str, progress: int = 0, total_steps: int = 0, message: str = "") -> None:
    """Met a jour la progression du job actuel et envoie un heartbeat."""
    job = get_current_job()
    if job:
        job.meta.update({
            "current_step": step,
            "progress": progress,
            "total_steps": total_steps,
            "step_message": message,
            "last_heartbeat": datetime.now().timestamp(),
            "worker_id": _worker_id(),
        })
        job.save_meta()


def _has_retries_left(job: Optional[Job]) -> bool:
    return job is not None and bool(getattr(job, "retries_left", None))


def release_inflight(job: Optional[Job]) -> None:
    if job is None:
        return
    key = job.meta.get("idempotency_key")
    if not key:
        return
    InflightLock(job.connection, key).release(job.id)


def _fail_or_retry(job: Optional[Job], error: Exception, label: str) -> dict[str, Any]:
    """
    Decide de l'issue d'une tentative en erreur.

    - rejouable avec retries restants: re-levee (RQ replanifie, verrou conserve)
    - rejouable sans retry restant: verrou libere puis re-levee (job FAILED cote RQ)
    - non rejouable: verrou libere, resultat d'echec sans retry
    """
    if is_retryable(error):
        if _has_retries_left(job):
            logger.warning(f"[Jobs] {label} failed, RQ retry scheduled ({job.retries_left} left): {error}")
        else:
            logger.error(f"[Jobs] ❌ {label} failed after all retries: {error}")
            release_inflight(job)
        raise error

    logger.error(f"[Jobs] ❌ {label} failed (not retryable): {error}")
    release_inflight(job)
    return {"success": False, "error": str(error)}


def process_document_job(
    *,
    document_id: int,
    file_path: str,
    mime_type: str,
    user_id: Optional[int] = None,
    case_id: Optional[int] = None,
) -> dict[str, Any]:
    payload = DocumentJobPayload(
        document_id=document_id,
        file_path=file_path,
        mime_type=mime_type,
        user_id=user_id,
        case_id=case_id,
    )
    job = get_current_job()
    send_worker_heartbeat()
    logger.info(f"[Jobs] Document job {job.id if job else '-'} for document {document_id} ({mime_type})")

    pipeline = DocumentPipeline.from_settings(progress_callback=update_job_progress)
    try:
        outcome = asyncio.run(pipeline.run(payload))
    except Exception as exc:
        result = _fail_or_retry(job, exc, f"Document {document_id}")
        return {**result, "document_id": document_id}
    finally:
        pipeline.close()

    release_inflight(job)
    return {"success": True, **outcome.to_dict()}


def process_user_request_job(**kwargs: Any) -> dict[str, Any]:
    payload = UserRequestPayload(**kwargs)
    job = get_current_job()
    send_worker_heartbeat()
    try:
        result = asyncio.run(handle_user_request(get_gemini_client(), payload))
    except Exception as exc:
        failure = _fail_or_retry(job, exc, f"User request {payload.request_id}")
        return {**failure, "request_id": payload.request_id}
    release_inflight(job)
    return result


def process_ai_analysis_job(**kwargs: Any) -> dict[str, Any]:
    """Le resultat est journalise et renvoye; il n'est pas persiste en base."""
    payload = AIAnalysisPayload(**kwargs)
    job = get_current_job()
    send_worker_heartbeat()
    try:
        result = asyncio.run(handle_ai_analysis(get_gemini_client(), payload))
    except Exception as exc:
        failure = _fail_or_retry(job, exc, f"AI analysis {payload.analysis_id}")
        return {**failure, "analysis_id": payload.analysis_id, "document_id": payload.document_id}
    release_inflight(job)
    return result


def sweep_stale_documents_job() -> dict[str, Any]:
    """Passe en FAILED les documents restes PROCESSING apres expiration de leur bail."""
    settings = get_settings()
    writer = ResultWriter(get_database(), lease_seconds=settings.processing_lease_seconds)
    swept = writer.sweep_stale_processing()
    return {"success": True, "swept": swept}


__all__ = [
    "send_worker_heartbeat",
    "update_job_progress",
    "release_inflight",
    "process_document_job",
    "process_user_request_job",
    "process_ai_analysis_job",
    "sweep_stale_documents_job",
]
