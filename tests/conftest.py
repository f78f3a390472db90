from __future__ import annotations

import importlib
from dataclasses import dataclass
from pathlib import Path
import sys
from types import ModuleType
from typing import Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@dataclass
class RuntimeEnv:
    """Container providing access to reloaded config modules for tests."""

    data_dir: Path
    paths: ModuleType
    settings_module: ModuleType


@pytest.fixture
def runtime_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> RuntimeEnv:
    """Reload configuration modules against an isolated data directory."""

    data_dir = tmp_path / "data"
    monkeypatch.setenv("CASEFILE_DATA_DIR", str(data_dir))

    paths_module = importlib.import_module("casefile.config.paths")
    paths_module = importlib.reload(paths_module)

    settings_module = importlib.import_module("casefile.config.settings")
    settings_module = importlib.reload(settings_module)
    settings_module.get_settings.cache_clear()

    yield RuntimeEnv(
        data_dir=data_dir,
        paths=paths_module,
        settings_module=settings_module,
    )

    settings_module.get_settings.cache_clear()


# ========================================
# Base documentaire (SQLite memoire)
# ========================================

@pytest.fixture
def database():
    from casefile.db.base import Database

    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def writer(database):
    from casefile.ingestion.state.result_writer import ResultWriter

    return ResultWriter(database, lease_seconds=600)


@pytest.fixture
def make_document(database) -> Callable[..., int]:
    """Insere un document et retourne son id."""
    from casefile.db.models import DocumentRecord

    def _make(
        file_name: str = "evidence.txt",
        mime_type: str = "text/plain",
        status: str = "PENDING",
        storage_path: Optional[str] = None,
        case_id: int = 1,
    ) -> int:
        with database.session() as session:
            record = DocumentRecord(
                case_id=case_id,
                file_name=file_name,
                mime_type=mime_type,
                file_size=0,
                storage_path=storage_path,
                processing_status=status,
            )
            session.add(record)
            session.flush()
            return record.id

    return _make


# ========================================
# Redis / RQ
# ========================================

@pytest.fixture
def fake_redis():
    client = fakeredis.FakeStrictRedis()
    yield client
    client.flushall()


@pytest.fixture
def queue_connection(fake_redis):
    from casefile.ingestion.queue.connection import QueueConnection

    connection = QueueConnection("redis://fake:6379/0", client=fake_redis).open()
    yield connection
    connection.close()


# ========================================
# Client Gemini simule
# ========================================

@pytest.fixture
def gemini_client() -> MagicMock:
    """Aucun appel reseau: chaque test fixe les reponses dont il a besoin."""
    client = MagicMock(name="GeminiClient")
    client.generate_text = AsyncMock(return_value="")
    client.generate_with_media = AsyncMock(return_value="")
    client.generate = AsyncMock(return_value="")
    return client
