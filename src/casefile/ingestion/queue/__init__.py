from .config import AI_ANALYSIS, DOCUMENT_PROCESSING, QUEUE_NAMES, USER_REQUESTS
from .connection import QueueConnection
from .dispatcher import (
    QueueService,
    check_queue_health,
    get_job_status,
    get_queue_service,
    remove_job,
    retry_job,
    submit_ai_analysis_job,
    submit_document_processing_job,
    submit_user_request_job,
)
from .jobs import (
    send_worker_heartbeat,
    update_job_progress,
)

__all__ = [
    "AI_ANALYSIS",
    "DOCUMENT_PROCESSING",
    "QUEUE_NAMES",
    "USER_REQUESTS",
    "QueueConnection",
    "QueueService",
    "check_queue_health",
    "get_job_status",
    "get_queue_service",
    "remove_job",
    "retry_job",
    "submit_ai_analysis_job",
    "submit_document_processing_job",
    "submit_user_request_job",
    "send_worker_heartbeat",
    "update_job_progress",
]
