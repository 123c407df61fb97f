from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from linkharvest.config.settings import SessionSettings  # noqa: E402
from linkharvest.etl.steps import store as store_module  # noqa: E402
from linkharvest.etl.steps.store import LinkStore  # noqa: E402

from fakes import FakeMongoClient  # noqa: E402


@pytest.fixture(autouse=True)
def patch_mongo(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(store_module, "MongoClient", FakeMongoClient)
    yield
    FakeMongoClient.reset()


@pytest.fixture
def link_store() -> LinkStore:
    store = LinkStore("mongodb://fake", db_name="test_db", collection="links")
    store.connect()
    store.ensure_unique_index()
    yield store
    store.close()


@pytest.fixture
def fast_settings() -> SessionSettings:
    return SessionSettings(
        cycle_delay_seconds=0,
        idle_delay_seconds=0,
        max_session_seconds=None,
        cancel_grace_seconds=1.0,
    )
