from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from frontdesk import api_main, clock, db
from frontdesk.auth_security import create_access_token
from frontdesk.services import init_db


class FakeClock:
    """Orologio controllabile: ``advance`` sposta l'ora corrente."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def database(tmp_path):
    """DB SQLite temporaneo per ogni test."""
    engine = db.configure_engine(f"sqlite:///{tmp_path / 'frontdesk_test.sqlite'}")
    init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def fake_clock(monkeypatch) -> FakeClock:
    fc = FakeClock(datetime(2026, 3, 10, 9, 30))
    monkeypatch.setattr(clock, "now", fc.now)
    return fc


@pytest.fixture
def client(monkeypatch) -> TestClient:
    monkeypatch.setattr(api_main, "setup_logging", lambda: None)
    with TestClient(api_main.app) as c:
        yield c


@pytest.fixture
def auth_headers() -> dict:
    token = create_access_token(subject="admin", extra={"role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def jane() -> dict:
    return {
        "name": "Jane Doe",
        "date_of_birth": "1990-01-01",
        "phone": "555-1111",
        "address": "1 Elm St",
        "medical_history": "None",
    }
