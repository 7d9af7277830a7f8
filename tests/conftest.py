"""Pytest configuration and fixtures."""

import shutil
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from mainwebdb.config import settings
from mainwebdb.engine import WebDB, reset_webdb
from mainwebdb.main import app
from mainwebdb.schema import ColumnDefinition
from mainwebdb.storage import DocumentStore

# Test admin API key for snapshot routes
TEST_ADMIN_API_KEY = "test_admin_key_for_testing"

TEST_PASSWORD = "correct horse battery staple"


@pytest.fixture
def temp_data_dir(monkeypatch):
    """Point every store at a temporary data directory."""
    tmpdir = tempfile.mkdtemp()
    data_dir = Path(tmpdir) / "data"
    data_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setattr(settings, "data_dir", data_dir)
    monkeypatch.setattr(settings, "store_path", data_dir / "mainwebdb.duckdb")
    monkeypatch.setattr(settings, "admin_api_key", TEST_ADMIN_API_KEY)
    # Minimum bcrypt cost keeps the suite fast
    monkeypatch.setattr(settings, "password_hash_rounds", 4)
    monkeypatch.setattr(settings, "strict_row_validation", False)
    reset_webdb()

    yield data_dir

    reset_webdb()
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def missing_data_dir(monkeypatch):
    """Configure settings with a non-existent data directory."""
    nonexistent = Path("/nonexistent/path/that/does/not/exist")
    monkeypatch.setattr(settings, "data_dir", nonexistent)
    yield nonexistent


@pytest.fixture
def store(temp_data_dir) -> DocumentStore:
    """Initialized document store in the temporary directory."""
    document_store = DocumentStore()
    document_store.initialize()
    return document_store


@pytest.fixture
def engine(temp_data_dir) -> WebDB:
    """Initialized engine in the temporary directory."""
    webdb = WebDB()
    webdb.initialize()
    return webdb


@pytest.fixture
def alice(engine):
    """Signed-up user alice as a (User, Session) pair."""
    return engine.identity.sign_up("alice@example.com", TEST_PASSWORD, "Alice")


@pytest.fixture
def bob(engine):
    """Signed-up user bob as a (User, Session) pair."""
    return engine.identity.sign_up("bob@example.com", TEST_PASSWORD, "Bob")


@pytest.fixture
def shop(engine, alice):
    """Alice's 'Shop' database with a 'products' table, plus its API key."""
    _, session = alice
    database, api_key, _ = engine.schema.create_database(session, "Shop", "Online store")
    table = engine.schema.create_table(
        session,
        database.id,
        "products",
        [
            ColumnDefinition(name="title", data_type="text", is_nullable=False),
            ColumnDefinition(name="price", data_type="float"),
            ColumnDefinition(name="in_stock", data_type="boolean", default_value="true"),
        ],
    )
    return {"database": database, "table": table, "api_key": api_key, "session": session}


# ============================================
# HTTP fixtures
# ============================================


@pytest.fixture
def client(temp_data_dir):
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def admin_headers():
    """Return headers with admin API key for snapshot routes."""
    return {"Authorization": f"Bearer {TEST_ADMIN_API_KEY}"}


@pytest.fixture
def user_headers(client):
    """Sign up a user over HTTP and return bearer headers for its session."""
    response = client.post(
        "/auth/signup",
        json={"email": "carol@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}
