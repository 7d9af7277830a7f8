"""Tests for the DuckDB-backed document store."""

import json

import duckdb
import pytest

from mainwebdb.config import settings
from mainwebdb.errors import InvalidPayloadError, WriteConflictError
from mainwebdb.models.documents import DocumentGraph, User
from mainwebdb.storage import DocumentStore


def _user(email: str = "a@example.com") -> User:
    return User(email=email, password="$2b$04$notarealhash", display_name="a")


class TestLoadSave:
    """Tests for load/save of the document graph."""

    def test_load_missing_store_returns_empty_graph(self, store):
        """A fresh store yields every collection empty."""
        graph = store.load()

        assert graph.users == []
        assert graph.databases == []
        assert graph.api_keys == []
        assert graph.query_logs == []
        assert graph.copyright_strikes == []

    def test_load_persists_initialized_graph(self, store):
        """Loading an empty store writes the empty graph back."""
        store.load()
        assert store.get_item(settings.document_key) is not None

    def test_save_then_load(self, store):
        graph = store.load()
        graph.users.append(_user())
        store.save(graph)

        reloaded = DocumentStore().load()
        assert [u.email for u in reloaded.users] == ["a@example.com"]

    def test_malformed_blob_recovers_to_empty_graph(self, store):
        """Malformed JSON under the document key is replaced, not raised."""
        store.set_item(settings.document_key, "{not json")

        graph = store.load()

        assert graph.users == []
        assert json.loads(store.get_item(settings.document_key))["users"] == []

    def test_wrong_shape_blob_recovers_to_empty_graph(self, store):
        store.set_item(settings.document_key, json.dumps({"users": "nope"}))
        assert store.load().users == []

    def test_null_collections_load_as_empty(self, store):
        """Missing or null collections are filled with empty lists."""
        store.set_item(settings.document_key, json.dumps({"users": None}))

        graph = store.load()

        assert graph.users == []
        assert graph.databases == []

    def test_unreadable_file_is_quarantined(self, temp_data_dir):
        """A store file DuckDB cannot open is moved aside and recreated."""
        store_path = temp_data_dir / "mainwebdb.duckdb"
        store_path.write_bytes(b"this is not a duckdb file" * 100)

        store = DocumentStore()
        graph = store.load()

        assert graph.users == []
        assert any(p.name.startswith("mainwebdb.duckdb.corrupt-") for p in temp_data_dir.iterdir())
        with duckdb.connect(str(store_path)) as conn:
            assert conn.execute("SELECT count(*) FROM kv_store").fetchone()[0] >= 1


class TestTransactions:
    """Tests for the load -> mutate -> save cycle."""

    def test_transaction_saves_on_success(self, store):
        with store.transaction() as graph:
            graph.users.append(_user())

        assert len(store.load().users) == 1

    def test_transaction_discards_on_error(self, store):
        """An exception inside the block leaves the persisted state untouched."""
        with pytest.raises(RuntimeError):
            with store.transaction() as graph:
                graph.users.append(_user())
                raise RuntimeError("boom")

        assert store.load().users == []

    def test_stale_revision_conflicts(self, store):
        graph, revision = store.load_with_revision()
        store.save(graph)

        with pytest.raises(WriteConflictError):
            store.save(graph, expected_revision=revision)

    def test_revision_increments(self, store):
        _, first = store.load_with_revision()
        second = store.save(DocumentGraph())
        assert second == first + 1


class TestSnapshot:
    """Tests for export, import and clear."""

    def test_export_import_round_trip(self, store):
        with store.transaction() as graph:
            graph.users.append(_user())
        payload = store.export_snapshot()

        store.clear()
        assert store.load().users == []

        imported = store.import_snapshot(payload)
        assert [u.email for u in imported.users] == ["a@example.com"]
        assert store.load() == imported

    def test_export_is_indented_json(self, store):
        payload = store.export_snapshot().decode("utf-8")
        assert payload.startswith("{\n  ")
        assert set(json.loads(payload)) == {
            "users",
            "databases",
            "api_keys",
            "query_logs",
            "copyright_strikes",
        }

    @pytest.mark.parametrize(
        "payload",
        [b"not json", b"", b"[1, 2, 3]", b'{"users": [{"email": 1}]}'],
    )
    def test_import_invalid_payload_leaves_store_untouched(self, store, payload):
        with store.transaction() as graph:
            graph.users.append(_user())

        with pytest.raises(InvalidPayloadError) as exc_info:
            store.import_snapshot(payload)

        assert exc_info.value.message == "Invalid JSON file"
        assert len(store.load().users) == 1

    def test_clear_removes_session_keys(self, store):
        store.set_item(settings.session_key, json.dumps({"user_id": "x"}))
        store.set_item(settings.session_tokens_key, json.dumps({"t": "x"}))

        store.clear()

        assert store.get_item(settings.session_key) is None
        assert store.get_item(settings.session_tokens_key) is None

    def test_size_bytes(self, store):
        store.load()
        assert store.size_bytes() > 0
