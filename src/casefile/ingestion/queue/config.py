"""
Declaration des trois files et de leur politique de retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from casefile.common.retry import BackoffPolicy
from casefile.config.settings import Settings, get_settings

DOCUMENT_PROCESSING = "document-processing"
USER_REQUESTS = "user-requests"
AI_ANALYSIS = "ai-analysis"


@dataclass(frozen=True)
class QueueSpec:
    name: str
    concurrency_setting: str
    policy: BackoffPolicy
    job_func: str

    def concurrency(self, settings: Optional[Settings] = None) -> int:
        settings = settings or get_settings()
        return int(getattr(settings, self.concurrency_setting))


QUEUE_SPECS: Dict[str, QueueSpec] = {
    DOCUMENT_PROCESSING: QueueSpec(
        name=DOCUMENT_PROCESSING,
        concurrency_setting="doc_worker_concurrency",
        policy=BackoffPolicy(attempts=3, base_delay=2.0),
        job_func="casefile.ingestion.queue.jobs.process_document_job",
    ),
    USER_REQUESTS: QueueSpec(
        name=USER_REQUESTS,
        concurrency_setting="user_requests_concurrency",
        policy=BackoffPolicy(attempts=2, base_delay=1.0),
        job_func="casefile.ingestion.queue.jobs.process_user_request_job",
    ),
    AI_ANALYSIS: QueueSpec(
        name=AI_ANALYSIS,
        concurrency_setting="ai_analysis_concurrency",
        policy=BackoffPolicy(attempts=3, base_delay=3.0),
        job_func="casefile.ingestion.queue.jobs.process_ai_analysis_job",
    ),
}

QUEUE_NAMES = tuple(QUEUE_SPECS)


def get_queue_spec(queue_name: str) -> QueueSpec:
    try:
        return QUEUE_SPECS[queue_name]
    except KeyError:
        raise ValueError(f"Unknown queue: {queue_name} (expected one of {', '.join(QUEUE_NAMES)})") from None


__all__ = [
    "DOCUMENT_PROCESSING",
    "USER_REQUESTS",
    "AI_ANALYSIS",
    "QueueSpec",
    "QUEUE_SPECS",
    "QUEUE_NAMES",
    "get_queue_spec",
]
