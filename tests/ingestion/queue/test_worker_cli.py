from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from casefile.common.errors import MissingCredentials
from casefile.config.settings import Settings
from casefile.ingestion.queue import worker
from casefile.ingestion.queue.config import AI_ANALYSIS, DOCUMENT_PROCESSING, QUEUE_SPECS, get_queue_spec


def test_missing_api_key_is_fatal():
    with pytest.raises(MissingCredentials, match="GEMINI_API_KEY"):
        worker.validate_credentials(Settings(_env_file=None, gemini_api_key=None))


def test_api_key_present():
    worker.validate_credentials(Settings(_env_file=None, gemini_api_key="test-key"))


def test_parser_defaults():
    args = worker.build_parser().parse_args([])

    assert args.queue == DOCUMENT_PROCESSING
    assert not args.all
    assert not args.sweep
    assert not args.burst


def test_parser_rejects_unknown_queue():
    with pytest.raises(SystemExit):
        worker.build_parser().parse_args(["--queue", "emails"])


def test_parser_options_are_exclusive():
    with pytest.raises(SystemExit):
        worker.build_parser().parse_args(["--all", "--sweep"])


def test_main_dispatch(monkeypatch):
    run_pool = MagicMock()
    run_all = MagicMock()
    run_sweep = MagicMock()
    monkeypatch.setattr(worker, "run_worker_pool", run_pool)
    monkeypatch.setattr(worker, "run_all_pools", run_all)
    monkeypatch.setattr(worker, "run_sweep", run_sweep)

    worker.main(["--queue", AI_ANALYSIS, "--burst"])
    run_pool.assert_called_once_with(AI_ANALYSIS, burst=True)

    worker.main(["--all"])
    run_all.assert_called_once_with()

    worker.main(["--sweep"])
    run_sweep.assert_called_once_with()


def test_pool_refuses_to_start_without_credentials(runtime_env, queue_connection, monkeypatch):
    pool_class = MagicMock()
    monkeypatch.setattr(worker, "WorkerPool", pool_class)
    settings = Settings(_env_file=None, gemini_api_key=None, logs_dir=runtime_env.data_dir / "logs")

    with pytest.raises(MissingCredentials):
        worker.run_worker_pool(AI_ANALYSIS, settings=settings, connection=queue_connection)

    pool_class.assert_not_called()


def test_pool_uses_queue_concurrency(runtime_env, queue_connection, monkeypatch):
    pool_class = MagicMock()
    monkeypatch.setattr(worker, "WorkerPool", pool_class)
    settings = Settings(
        _env_file=None,
        gemini_api_key="test-key",
        AI_ANALYSIS_CONCURRENCY=4,
        logs_dir=runtime_env.data_dir / "logs",
    )

    worker.run_worker_pool(AI_ANALYSIS, settings=settings, connection=queue_connection, burst=True)

    args, kwargs = pool_class.call_args
    assert args == ([AI_ANALYSIS],)
    assert kwargs["num_workers"] == 4
    pool_class.return_value.start.assert_called_once_with(burst=True, logging_level="INFO")


def test_queue_specs():
    assert get_queue_spec(DOCUMENT_PROCESSING).policy.attempts == 3
    assert get_queue_spec(DOCUMENT_PROCESSING).policy.to_rq_retry().intervals == [2, 4]
    assert QUEUE_SPECS[AI_ANALYSIS].concurrency(Settings(_env_file=None)) == 3
    with pytest.raises(ValueError):
        get_queue_spec("emails")
