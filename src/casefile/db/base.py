"""
Base SQLAlchemy et gestion des sessions.

La table `documents` appartient au backend applicatif; le pipeline n'y accede
que via le ResultWriter. L'engine est porte par une instance `Database`
construite explicitement (pas d'engine global au niveau module).
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from casefile.config.settings import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Engine + session factory pour la base documentaire."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.is_sqlite = url.startswith("sqlite")
        if self.is_sqlite:
            kwargs = {"connect_args": {"check_same_thread": False}}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # Base memoire partagee entre threads (tests)
                kwargs["poolclass"] = StaticPool
            self.engine: Engine = create_engine(url, echo=echo, **kwargs)
        else:
            self.engine = create_engine(
                url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                echo=echo,
            )
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )
        logger.info(f"[DB] Engine ready ({'sqlite' if self.is_sqlite else self.engine.dialect.name})")

    def create_all(self) -> None:
        from casefile.db import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session transactionnelle: commit en sortie, rollback sur exception."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


@lru_cache(maxsize=1)
def get_database() -> Database:
    settings = get_settings()
    return Database(settings.resolved_database_url, echo=settings.debug_mode)
