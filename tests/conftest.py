from __future__ import annotations

from pathlib import Path

import pytest

from tests.factories import ThreadFactory
from threadfork.branching import RetryCoordinator
from threadfork.config import Settings
from threadfork.storage.backends import SQLiteMessageStore


@pytest.fixture(autouse=True)
def _isolated_xdg(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("THREADFORK_CONFIG", raising=False)
    for name in ("DB_PATH", "MAX_VARIANTS", "INSERT_ATTEMPTS", "VERBOSE", "JSON_LOGS"):
        monkeypatch.delenv(f"THREADFORK_{name}", raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "threadfork.db"


@pytest.fixture
def settings(db_path: Path) -> Settings:
    return Settings(db_path=db_path, retry_jitter=0)


@pytest.fixture
def store(db_path: Path):
    message_store = SQLiteMessageStore(db_path)
    yield message_store
    message_store.close()


@pytest.fixture
def coordinator(store: SQLiteMessageStore, settings: Settings) -> RetryCoordinator:
    return RetryCoordinator(store, settings)


@pytest.fixture
def threads(coordinator: RetryCoordinator) -> ThreadFactory:
    return ThreadFactory(coordinator)
