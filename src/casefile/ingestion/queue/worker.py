from __future__ import annotations

import argparse
import logging
import multiprocessing
from typing import Iterable, List, Optional

from rq.worker_pool import WorkerPool

from casefile.common.clients.gemini_client import is_gemini_configured
from casefile.common.errors import MissingCredentials
from casefile.common.logging import setup_logging
from casefile.config.settings import Settings, get_settings
from casefile.db.base import get_database
from casefile.ingestion.queue.config import DOCUMENT_PROCESSING, QUEUE_NAMES, get_queue_spec
from casefile.ingestion.queue.connection import QueueConnection
from casefile.ingestion.queue.jobs import sweep_stale_documents_job

logger = logging.getLogger(__name__)


def validate_credentials(settings: Settings) -> None:
    """Aucun worker n'est lance sans cle Gemini."""
    if not is_gemini_configured(settings):
        raise MissingCredentials("FATAL: GEMINI_API_KEY is not defined in the environment or .env file")


def run_sweep() -> List[int]:
    swept = sweep_stale_documents_job()["swept"]
    logger.info(f"[Worker] Stale PROCESSING sweep done: {len(swept)} document(s) reset to FAILED")
    return swept


def run_worker_pool(
    queue_name: str = DOCUMENT_PROCESSING,
    *,
    settings: Optional[Settings] = None,
    connection: Optional[QueueConnection] = None,
    burst: bool = False,
) -> None:
    """Lance un pool RQ de `concurrency` workers sur une file (bloquant)."""
    settings = settings or get_settings()
    spec = get_queue_spec(queue_name)
    setup_logging(settings.logs_dir, f"worker-{queue_name}.log")
    validate_credentials(settings)

    connection = connection or QueueConnection.from_settings(settings)
    if not connection.is_open:
        connection.open()

    if queue_name == DOCUMENT_PROCESSING:
        get_database().create_all()
        run_sweep()

    concurrency = spec.concurrency(settings)
    logger.info(f"[Worker] Starting {concurrency} worker(s) on '{queue_name}'")
    pool = WorkerPool([queue_name], connection=connection.redis, num_workers=concurrency)
    try:
        pool.start(burst=burst, logging_level="INFO")
    finally:
        connection.close()
        logger.info(f"[Worker] Pool on '{queue_name}' stopped")


def run_all_pools(queue_names: Iterable[str] = QUEUE_NAMES) -> None:
    """Un process (et donc un pool independant) par file."""
    validate_credentials(get_settings())
    processes = [
        multiprocessing.Process(target=run_worker_pool, args=(name,), name=f"pool-{name}")
        for name in queue_names
    ]
    for process in processes:
        process.start()
    for process in processes:
        process.join()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="casefile-worker", description="Casefile ingestion workers")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--queue", choices=QUEUE_NAMES, default=DOCUMENT_PROCESSING, help="queue to consume")
    group.add_argument("--all", action="store_true", help="run one worker pool per queue")
    group.add_argument("--sweep", action="store_true", help="reset stale PROCESSING documents to FAILED and exit")
    parser.add_argument("--burst", action="store_true", help="exit once the queue is empty")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    if args.sweep:
        run_sweep()
    elif args.all:
        run_all_pools()
    else:
        run_worker_pool(args.queue, burst=args.burst)


__all__ = [
    "validate_credentials",
    "run_sweep",
    "run_worker_pool",
    "run_all_pools",
    "build_parser",
    "main",
]
