# tests/conftest.py
import io
import os
import sys
import tempfile

import pytest
from docx import Document
from fastapi.testclient import TestClient

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Environment must be in place before docchat.config is imported
_TEST_ROOT = tempfile.mkdtemp(prefix="docchat-tests-")
os.environ["STORAGE_DIR"] = os.path.join(_TEST_ROOT, "storage")
os.environ["LOG_DIR"] = os.path.join(_TEST_ROOT, "logs")
os.environ["QDRANT_URL"] = ":memory:"
os.environ["API_TOKENS"] = "token-alice:alice,token-bob:bob"
os.environ.pop("POSTHOG_API_KEY", None)

from docchat.main import app
from docchat.api import routes
from docchat.memory.object_store import LocalObjectStore
from docchat.memory.registry import DocumentRegistry, ProfileStore
from docchat.observability.metrics import metrics_tracker

from fakes import DEFAULT_REPLY, FakeCompletionClient, FakeEmbedder, make_vector_store


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def client():
    """
    FastAPI test client.

    Server exceptions are rendered by the app's handlers rather than
    re-raised into the test.
    """
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture(autouse=True)
def reset_app_state(tmp_path, monkeypatch):
    """
    Fresh stores and fake providers for every test.
    """

    monkeypatch.setattr(routes, "vector_store", make_vector_store())
    monkeypatch.setattr(
        routes, "document_registry",
        DocumentRegistry(str(tmp_path / "documents.json")),
    )
    monkeypatch.setattr(
        routes, "profile_store",
        ProfileStore(str(tmp_path / "profiles.json")),
    )
    monkeypatch.setattr(
        routes, "object_store",
        LocalObjectStore(str(tmp_path / "objects")),
    )
    monkeypatch.setattr(routes, "embedder_factory", FakeEmbedder)
    monkeypatch.setattr(routes, "completion_client_factory", FakeCompletionClient)

    FakeEmbedder.calls = []
    FakeEmbedder.fail_on = None
    FakeCompletionClient.reply = DEFAULT_REPLY
    FakeCompletionClient.prompts = []

    metrics_tracker.reset()

    yield


@pytest.fixture
def alice_headers():
    return {"Authorization": "Bearer token-alice"}


@pytest.fixture
def bob_headers():
    return {"Authorization": "Bearer token-bob"}


@pytest.fixture
def alice_profile():
    """Alice has an OpenAI key on file."""
    return routes.profile_store.upsert("alice", openai_api_key="sk-test-alice-1234")


@pytest.fixture
def bob_profile():
    return routes.profile_store.upsert("bob", openai_api_key="sk-test-bob-5678")


@pytest.fixture
def sample_csv_content():
    return (
        b"name,role,city\n"
        b"Ada Lovelace,engineer,London\n"
        b"Alan Turing,mathematician,Manchester\n"
    )


@pytest.fixture
def sample_docx_content():
    """A real .docx built with python-docx."""

    document = Document()
    document.add_paragraph("The quarterly budget is twelve thousand euros.")
    document.add_paragraph("The project lead is Grace Hopper.")

    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Deadline"
    table.rows[0].cells[1].text = "March"

    buffer = io.BytesIO()
    document.save(buffer)

    return buffer.getvalue()


@pytest.fixture
def upload_document(client):
    """
    Upload a file as the given owner and return the response JSON.
    """

    def _upload(headers, filename, content, content_type="text/csv", title=None):

        data = {"title": title} if title else None

        response = client.post(
            "/api/docs/upload",
            headers=headers,
            files={"file": (filename, content, content_type)},
            data=data,
        )

        assert response.status_code == 200, f"Upload failed: {response.json()}"

        return response.json()

    return _upload
