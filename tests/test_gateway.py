"""Tests for the API-key query gateway."""

import pytest

from mainwebdb.config import settings
from mainwebdb.errors import DatabaseNotFoundError


@pytest.fixture
def key(shop) -> str:
    return shop["api_key"].key_value


def _logs(engine):
    return engine.store.load().query_logs


class TestEnvelopeValidation:
    """Requests rejected before key resolution are never logged."""

    @pytest.mark.parametrize(
        "envelope",
        [
            None,
            [],
            "select",
            {},
            {"action": "select", "table": "products"},
            {"api_key": "", "action": "select", "table": "products"},
            {"api_key": "gfx_x", "table": "products"},
            {"api_key": "gfx_x", "action": "select"},
            {"api_key": "gfx_x", "action": "select", "table": 5},
        ],
    )
    def test_missing_fields(self, engine, shop, envelope):
        result = engine.execute(envelope)

        assert result.status_code == 400
        assert "error" in result.body
        assert _logs(engine) == []

    def test_unknown_key(self, engine, shop):
        result = engine.execute({"api_key": "gfx_nope", "action": "select", "table": "products"})

        assert result.status_code == 401
        assert result.body == {"error": "Invalid or inactive API key"}
        assert _logs(engine) == []

    def test_inactive_key(self, engine, shop, key):
        engine.set_key_active(shop["session"], shop["database"].id, shop["api_key"].id, False)

        result = engine.execute({"api_key": key, "action": "select", "table": "products"})

        assert result.status_code == 401
        assert _logs(engine) == []


class TestActions:
    """Tests for select/insert/update/delete through the gateway."""

    def test_insert_then_select(self, engine, key):
        inserted = engine.execute(
            {"api_key": key, "action": "insert", "table": "products", "data": {"title": "Lamp", "price": 9.5}}
        )
        assert inserted.status_code == 201
        row = inserted.body["data"]
        assert row["data"] == {"title": "Lamp", "price": 9.5, "in_stock": True}

        selected = engine.execute(
            {"api_key": key, "action": "select", "table": "products", "filters": {"title": "Lamp"}}
        )
        assert selected.status_code == 200
        assert [r["id"] for r in selected.body["data"]] == [row["id"]]

    def test_select_empty_filters_returns_all(self, engine, key):
        for title in ("a", "b"):
            engine.execute({"api_key": key, "action": "insert", "table": "products", "data": {"title": title}})

        result = engine.execute({"api_key": key, "action": "select", "table": "products", "filters": {}})
        assert len(result.body["data"]) == 2

    def test_update_merges(self, engine, key):
        inserted = engine.execute(
            {"api_key": key, "action": "insert", "table": "products", "data": {"title": "Lamp", "price": 1}}
        )
        row_id = inserted.body["data"]["id"]

        result = engine.execute(
            {"api_key": key, "action": "update", "table": "products", "row_id": row_id, "data": {"price": 2}}
        )

        assert result.status_code == 200
        assert result.body["data"]["data"]["title"] == "Lamp"
        assert result.body["data"]["data"]["price"] == 2

    def test_delete(self, engine, key, shop):
        inserted = engine.execute(
            {"api_key": key, "action": "insert", "table": "products", "data": {"title": "Lamp"}}
        )
        row_id = inserted.body["data"]["id"]

        result = engine.execute({"api_key": key, "action": "delete", "table": "products", "row_id": row_id})

        assert result.body == {"data": {"id": row_id, "deleted": True}}
        assert engine.list_rows(shop["session"], shop["database"].id, shop["table"].id) == []

    @pytest.mark.parametrize("action", ["update", "delete"])
    def test_unknown_row(self, engine, key, action):
        result = engine.execute(
            {"api_key": key, "action": action, "table": "products", "row_id": "missing", "data": {}}
        )
        assert result.status_code == 404

    def test_unknown_table(self, engine, key):
        result = engine.execute({"api_key": key, "action": "select", "table": "orders"})
        assert result.status_code == 404
        assert "orders" in result.body["error"]

    def test_invalid_action(self, engine, key):
        result = engine.execute({"api_key": key, "action": "drop", "table": "products"})
        assert result.status_code == 400

    def test_insert_requires_data(self, engine, key):
        result = engine.execute({"api_key": key, "action": "insert", "table": "products"})
        assert result.status_code == 400

    def test_key_only_reaches_its_database(self, engine, shop, key):
        """A table with the same name in another database is invisible."""
        from mainwebdb.schema import ColumnDefinition

        session = shop["session"]
        other, _, _ = engine.schema.create_database(session, "Other")
        engine.schema.create_table(session, other.id, "orders", [ColumnDefinition(name="n")])

        result = engine.execute({"api_key": key, "action": "select", "table": "orders"})
        assert result.status_code == 404

    def test_strict_mode_rejects_unknown_columns(self, engine, key, monkeypatch):
        monkeypatch.setattr(settings, "strict_row_validation", True)

        result = engine.execute(
            {"api_key": key, "action": "insert", "table": "products", "data": {"title": "x", "color": "red"}}
        )

        assert result.status_code == 400
        assert len(_logs(engine)) == 1


class TestQueryLogging:
    """Every request that passes key resolution is logged exactly once."""

    def test_success_logged_once(self, engine, shop, key):
        engine.execute({"api_key": key, "action": "select", "table": "products", "filters": {"a": 1}})

        (log,) = _logs(engine)
        assert log.method == "select"
        assert log.status_code == 200
        assert log.endpoint == f"{settings.query_endpoint}/products"
        assert log.database_id == shop["database"].id
        assert log.user_id == shop["database"].user_id
        assert log.response_time_ms is not None
        assert log.request_body == {"action": "select", "table": "products", "filters": {"a": 1}}

    def test_api_key_not_stored_in_log(self, engine, key):
        engine.execute({"api_key": key, "action": "select", "table": "products"})
        assert "api_key" not in _logs(engine)[0].request_body

    def test_failure_after_resolution_logged(self, engine, key):
        engine.execute({"api_key": key, "action": "delete", "table": "products", "row_id": "missing"})

        (log,) = _logs(engine)
        assert log.status_code == 404
        assert log.method == "delete"

    def test_last_used_at_stamped(self, engine, shop, key):
        assert shop["api_key"].last_used_at is None

        engine.execute({"api_key": key, "action": "select", "table": "products"})

        (api_key,) = engine.list_keys(shop["session"], shop["database"].id)
        assert api_key.last_used_at is not None

    def test_failed_mutation_not_persisted(self, engine, shop, key, monkeypatch):
        monkeypatch.setattr(settings, "strict_row_validation", True)
        engine.execute({"api_key": key, "action": "insert", "table": "products", "data": {"price": 3}})

        assert engine.list_rows(shop["session"], shop["database"].id, shop["table"].id) == []

    def test_unexpected_error_returns_500_and_logs(self, engine, shop, key, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr("mainwebdb.rows.select_rows", explode)

        result = engine.execute({"api_key": key, "action": "select", "table": "products"})

        assert result.status_code == 500
        assert result.body == {"error": "Internal server error"}
        (log,) = _logs(engine)
        assert log.status_code == 500

    def test_key_of_deleted_database_cannot_resolve(self, engine, shop, key):
        engine.schema.delete_database(shop["session"], shop["database"].id)

        result = engine.execute({"api_key": key, "action": "select", "table": "products"})
        assert result.status_code == 401

    def test_orphaned_key_returns_404(self, engine, shop, key):
        """A key whose database vanished outside the cascade reports 404."""
        with engine.store.transaction() as graph:
            graph.databases = []

        result = engine.execute({"api_key": key, "action": "select", "table": "products"})
        assert result.status_code == DatabaseNotFoundError.status_code
