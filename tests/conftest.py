import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

import pytest
from fastapi.testclient import TestClient

from medrec.db.base import Base
from medrec.db.session import build_engine, build_session_factory
from medrec.main import app, get_ingestor, get_store
from medrec.services import Entity, RecordStore, UploadIngestor


class FakeClock:
    """Fake wall clock advancing a quarter second per reading."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        self.current += 0.25
        return self.current


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'records.db'}")
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return RecordStore(session_factory)


@pytest.fixture
def ingestor(tmp_path):
    uploads = UploadIngestor(tmp_path / "uploads", clock=FakeClock())
    uploads.ensure_directories()
    return uploads


@pytest.fixture
def client(store, ingestor):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_ingestor] = lambda: ingestor
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def patient(store):
    return store.insert(
        Entity.PATIENTS,
        {"full_name": "Maria Silva", "gender": "female", "blood_type": "O+"},
    )
