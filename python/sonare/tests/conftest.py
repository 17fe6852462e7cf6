"""Pytest configuration and shared fixtures for Sonare tests."""

from concurrent.futures import Executor, Future

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from sonare.analytics import AnalyticsRecorder
from sonare.api import create_app
from sonare.config import Settings
from sonare.database import Database


# Use in-memory SQLite for tests
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

WARM_TRACKS = [
    "WARM_OPEN-FirstLight.m4a",
    "WARM_PEAK-CoreFlow.m4a",
    "WARM_OFFPEAK-DriftState.m4a",
    "WARM_CLOSE-LastCall.m4a",
    "WARM_Sonare.m4a",
    "MODERN_Sonare.m4a",
    "README.txt",
]


class ImmediateExecutor(Executor):
    """Runs submitted work inline so tests can assert on its effects."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def fake_geo_lookup(ip):
    return "Testland", "Test City"


@pytest.fixture(scope="function")
def test_db():
    """Create a fresh test database for each test."""
    db = Database(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.create_all()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def web_dir(tmp_path):
    """A small static site with preview tracks."""
    root = tmp_path / "web"
    (root / "assets").mkdir(parents=True)
    (root / "music").mkdir()
    (root / "index.html").write_text("<html><body>Sonare</body></html>")
    (root / "assets" / "app.js").write_text("console.log('sonare');")
    (root / "favicon.ico").write_bytes(b"\x00")
    (root / "robots.txt").write_text("User-agent: *")
    for name in WARM_TRACKS:
        (root / "music" / name).write_bytes(b"x")
    return root


@pytest.fixture
def settings(web_dir):
    return Settings(web_dir=str(web_dir), hsts=True)


@pytest.fixture
def executor():
    return ImmediateExecutor()


@pytest.fixture
def recorder(test_db, executor):
    return AnalyticsRecorder(test_db, geo_lookup=fake_geo_lookup, executor=executor)


@pytest.fixture
def app(test_db, settings, recorder):
    return create_app(test_db, settings, recorder)


@pytest.fixture(scope="function")
def client(app):
    """Create a test client with the test database."""
    with TestClient(app) as c:
        yield c
