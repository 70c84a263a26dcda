from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from byos.config import settings
from byos.main import app, get_database
from byos.trmnl.database import DeviceDatabase

MAC = "AA:BB:CC:DD:EE:FF"


@pytest.fixture
def db(tmp_path):
    return DeviceDatabase(str(tmp_path / "devices.db"))


@pytest.fixture
def device(db):
    return db.create_device(
        mac_address=MAC,
        api_key="key-1",
        friendly_id="TRMNL_ABC123",
        name="Kitchen",
        timezone="UTC",
    )


@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setattr(settings, "app_url", "")
    app.dependency_overrides[get_database] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def noon():
    return datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)
