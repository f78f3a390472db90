from __future__ import annotations

import pytest
from pydantic import ValidationError


def test_configure_runtime_invokes_directory_setup(runtime_env, monkeypatch) -> None:
    settings_module = runtime_env.settings_module
    settings = settings_module.Settings()

    captured_paths = []

    def fake_ensure(paths=None):
        captured_paths.append(list(paths or []))

    monkeypatch.setattr(settings_module, "ensure_directories", fake_ensure)

    settings.configure_runtime()

    assert captured_paths, "ensure_directories should be called during configuration"
    assert set(captured_paths[0]) == {
        settings.data_dir,
        settings.logs_dir,
        settings.tmp_dir,
        settings.uploads_dir,
    }


def test_settings_defaults_follow_queue_contract(runtime_env, monkeypatch) -> None:
    for name in ("DOC_WORKER_CONCURRENCY", "USER_REQUESTS_CONCURRENCY", "AI_ANALYSIS_CONCURRENCY", "REDIS_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    settings = runtime_env.settings_module.Settings(_env_file=None)

    assert settings.doc_worker_concurrency == 2
    assert settings.user_requests_concurrency == 5
    assert settings.ai_analysis_concurrency == 3
    assert settings.redis_url == "redis://localhost:6379/0"
    assert settings.data_dir == runtime_env.data_dir


def test_environment_overrides_concurrency(runtime_env, monkeypatch) -> None:
    monkeypatch.setenv("DOC_WORKER_CONCURRENCY", "4")
    monkeypatch.setenv("REDIS_PASSWORD", "s3cret")

    settings = runtime_env.settings_module.Settings(_env_file=None)

    assert settings.doc_worker_concurrency == 4
    assert settings.redis_url.startswith("redis://:s3cret@")


def test_database_url_falls_back_to_sqlite(runtime_env, monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = runtime_env.settings_module.Settings(_env_file=None)

    assert settings.resolved_database_url == f"sqlite:///{runtime_env.data_dir}/casefile.db"


def test_get_settings_creates_runtime_directories(runtime_env) -> None:
    settings = runtime_env.settings_module.get_settings()

    assert settings.logs_dir.is_dir()
    assert settings.tmp_dir.is_dir()
    assert runtime_env.settings_module.get_settings() is settings


def test_language_codes_are_normalized(runtime_env, monkeypatch) -> None:
    monkeypatch.setenv("PRIMARY_LANGUAGE", " AR ")
    monkeypatch.setenv("SECONDARY_LANGUAGE", "En")

    settings = runtime_env.settings_module.Settings(_env_file=None)

    assert (settings.primary_language, settings.secondary_language) == ("ar", "en")


@pytest.mark.parametrize(("primary", "secondary"), [("fr", "ar"), ("en", "en"), ("en", "de")])
def test_languages_without_translation_column_are_rejected(runtime_env, monkeypatch, primary, secondary) -> None:
    monkeypatch.setenv("PRIMARY_LANGUAGE", primary)
    monkeypatch.setenv("SECONDARY_LANGUAGE", secondary)

    with pytest.raises(ValidationError, match="PRIMARY_LANGUAGE/SECONDARY_LANGUAGE must be en and ar"):
        runtime_env.settings_module.Settings(_env_file=None)
