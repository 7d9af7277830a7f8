"""Tests for database and table lifecycle, including cascade deletes."""

import pytest

from mainwebdb.errors import (
    DatabaseNotFoundError,
    EmptyColumnSetError,
    MissingFieldsError,
    SchemaViolationError,
    TableNotFoundError,
)
from mainwebdb.schema import ColumnDefinition, build_columns


class TestBuildColumns:
    """Tests for column definition handling."""

    def test_positions_follow_input_order(self):
        columns = build_columns(
            [ColumnDefinition(name="a"), ColumnDefinition(name="b"), ColumnDefinition(name="c")]
        )
        assert [(c.name, c.position) for c in columns] == [("a", 0), ("b", 1), ("c", 2)]

    def test_blank_names_dropped(self):
        """Blank names vanish and positions close the gap."""
        columns = build_columns(
            [ColumnDefinition(name="a"), ColumnDefinition(name="  "), ColumnDefinition(name="b")]
        )
        assert [(c.name, c.position) for c in columns] == [("a", 0), ("b", 1)]

    def test_all_blank_rejected(self):
        with pytest.raises(EmptyColumnSetError) as exc_info:
            build_columns([ColumnDefinition(name=""), ColumnDefinition(name=" ")])
        assert exc_info.value.message == "Add at least one column"

    def test_no_columns_rejected(self):
        with pytest.raises(EmptyColumnSetError):
            build_columns([])

    def test_duplicate_names_rejected(self):
        with pytest.raises(SchemaViolationError):
            build_columns([ColumnDefinition(name="a"), ColumnDefinition(name="a")])

    def test_defaults(self):
        (column,) = build_columns([ColumnDefinition(name="a", default_value="")])
        assert column.data_type == "text"
        assert column.is_nullable is True
        assert column.default_value is None

    def test_unknown_data_type_rejected(self):
        with pytest.raises(ValueError):
            ColumnDefinition(name="a", data_type="varchar")


class TestDatabases:
    """Tests for database CRUD."""

    def test_create_database_provisions_one_key(self, engine, alice):
        user, session = alice
        database, api_key, strike = engine.schema.create_database(session, "Blog")

        assert database.user_id == user.id
        assert database.tables == []
        assert strike is None
        assert api_key.database_id == database.id
        assert api_key.is_active is True
        assert api_key.name == "Key for Blog"
        assert api_key.key_value.startswith("gfx_")
        assert [k.id for k in engine.store.load().api_keys] == [api_key.id]

    def test_create_database_requires_name(self, engine, alice):
        _, session = alice
        with pytest.raises(MissingFieldsError):
            engine.schema.create_database(session, "   ")

    def test_databases_are_scoped_to_owner(self, engine, shop, bob):
        _, bob_session = bob
        assert engine.schema.list_databases(bob_session) == []
        with pytest.raises(DatabaseNotFoundError):
            engine.schema.get_database(bob_session, shop["database"].id)

    def test_update_database(self, engine, shop):
        database = engine.schema.update_database(
            shop["session"], shop["database"].id, description="Renamed", status="archived"
        )
        assert database.description == "Renamed"
        assert database.status == "archived"
        assert database.name == "Shop"
        assert database.updated_at >= shop["database"].updated_at


class TestCascadeDelete:
    """Deleting a database removes everything that references it."""

    def test_delete_database_cascades(self, engine, shop):
        session = shop["session"]
        other, other_key, _ = engine.schema.create_database(session, "Other")
        engine.execute({"api_key": shop["api_key"].key_value, "action": "select", "table": "products"})
        engine.execute({"api_key": other_key.key_value, "action": "select", "table": "missing"})

        deleted = engine.schema.delete_database(session, shop["database"].id)

        assert deleted == {"tables": 1, "api_keys": 1, "query_logs": 1}
        graph = engine.store.load()
        assert [d.id for d in graph.databases] == [other.id]
        assert [k.id for k in graph.api_keys] == [other_key.id]
        assert [log.database_id for log in graph.query_logs] == [other.id]

    def test_delete_keeps_strikes(self, engine, shop, bob):
        _, bob_session = bob
        copy, _, strike = engine.schema.create_database(bob_session, "shop")

        engine.schema.delete_database(bob_session, copy.id)

        assert [s.id for s in engine.store.load().copyright_strikes] == [strike.id]

    def test_delete_foreign_database_rejected(self, engine, shop, bob):
        _, bob_session = bob
        with pytest.raises(DatabaseNotFoundError):
            engine.schema.delete_database(bob_session, shop["database"].id)
        assert len(engine.store.load().databases) == 1


class TestTables:
    """Tests for table CRUD."""

    def test_create_table(self, engine, shop):
        table = shop["table"]
        assert [c.name for c in table.columns] == ["title", "price", "in_stock"]
        assert table.rows == []
        assert engine.schema.list_tables(shop["session"], shop["database"].id)[0].id == table.id

    def test_create_table_with_only_blank_columns(self, engine, shop):
        with pytest.raises(EmptyColumnSetError):
            engine.schema.create_table(
                shop["session"], shop["database"].id, "empty", [ColumnDefinition(name=" ")]
            )
        assert len(engine.schema.list_tables(shop["session"], shop["database"].id)) == 1

    def test_create_table_in_foreign_database(self, engine, shop, bob):
        _, bob_session = bob
        with pytest.raises(DatabaseNotFoundError):
            engine.schema.create_table(
                bob_session, shop["database"].id, "t", [ColumnDefinition(name="a")]
            )

    def test_delete_table_removes_rows(self, engine, shop):
        session = shop["session"]
        database_id = shop["database"].id
        table_id = shop["table"].id
        engine.insert_row(session, database_id, table_id, {"title": "Lamp"})

        engine.schema.delete_table(session, database_id, table_id)

        with pytest.raises(TableNotFoundError):
            engine.schema.get_table(session, database_id, table_id)
        assert engine.store.load().find_database(database_id).tables == []
