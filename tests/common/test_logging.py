from __future__ import annotations

import logging
from pathlib import Path

from casefile.common.logging import LazyFlushingFileHandler, setup_logging


def test_setup_logging_creates_console_and_lazy_file_handlers(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    logger = setup_logging(log_dir, "test.log", "casefile.test")

    try:
        handler_types = {type(handler) for handler in logger.handlers}
        assert logging.StreamHandler in handler_types
        assert LazyFlushingFileHandler in handler_types

        # Le fichier n'existe qu'apres le premier message
        log_file = log_dir / "test.log"
        assert not log_file.exists()
        logger.info("[Test] hello")
        assert log_file.exists()
        assert "[Test] hello" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_setup_logging_replaces_existing_handlers(tmp_path: Path) -> None:
    logger = setup_logging(tmp_path, "first.log", "casefile.reconfigured")
    logger = setup_logging(tmp_path, "second.log", "casefile.reconfigured", enable_console=False)

    try:
        assert len(logger.handlers) == 1
        assert logger.handlers[0].filename.endswith("second.log")
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
