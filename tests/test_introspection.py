from pathlib import Path
from types import SimpleNamespace

import pytest

from db_explorer_mcp.db.connection import ConnectionManager
from db_explorer_mcp.db.models import ColumnInfo, ForeignKey, IndexInfo, TableSummary
from db_explorer_mcp.dialects import MysqlDialect, PostgresDialect
from db_explorer_mcp.dialects.sqlite import extract_partial_predicate
from db_explorer_mcp.errors import QueryError
from db_explorer_mcp.introspection import (
    NO_TABLES_MESSAGE,
    describe_table,
    format_table_description,
    format_table_list,
    get_full_schema,
    list_tables,
)

from conftest import FakeExecute, build_sqlite


def fake_manager(dialect, *responses):
    return SimpleNamespace(dialect=dialect, execute=FakeExecute(*responses))


class TestSqlite:
    def test_users_table_end_to_end(self, users_db: Path) -> None:
        manager = ConnectionManager()
        manager.connect(str(users_db))
        try:
            assert list_tables(manager) == [TableSummary(name="users", estimated_row_count=3)]
            description = describe_table(manager, "users")
        finally:
            manager.disconnect()

        id_column = description.columns[0]
        assert id_column.name == "id"
        assert id_column.is_primary_key
        assert not id_column.nullable
        assert description.columns[1] == ColumnInfo(
            name="name", type="TEXT", nullable=False, default_value=None, is_primary_key=False
        )
        assert description.foreign_keys == []
        assert description.indexes == []

    def test_list_tables_counts_rows(self, manager: ConnectionManager) -> None:
        assert list_tables(manager) == [
            TableSummary(name="orders", estimated_row_count=4),
            TableSummary(name="users", estimated_row_count=2),
        ]

    def test_describe_orders(self, manager: ConnectionManager) -> None:
        description = describe_table(manager, "orders")

        assert [c.name for c in description.columns] == ["id", "user_id", "status", "total"]
        status = description.columns[2]
        assert status.nullable
        assert status.default_value == "'new'"
        assert description.foreign_keys == [
            ForeignKey(column="user_id", referenced_table="users", referenced_column="id")
        ]

        indexes = {index.name: index for index in description.indexes}
        assert indexes["idx_orders_user"] == IndexInfo(
            name="idx_orders_user", columns=["user_id"], unique=False
        )
        partial = indexes["idx_orders_open"]
        assert partial.columns == ["status", "total"]
        assert partial.partial_predicate == "status = 'open'"
        assert not partial.unique

    def test_unique_index_without_foreign_keys(self, manager: ConnectionManager) -> None:
        description = describe_table(manager, "users")
        assert description.foreign_keys == []
        assert description.indexes == [
            IndexInfo(name="idx_users_name", columns=["name"], unique=True)
        ]

    def test_unknown_table(self, manager: ConnectionManager) -> None:
        with pytest.raises(QueryError, match="Table 'nope' not found"):
            describe_table(manager, "nope")

    def test_index_key_order_is_preserved(self, tmp_path: Path) -> None:
        path = build_sqlite(
            tmp_path / "keys.db",
            """
            CREATE TABLE events (a INTEGER, b INTEGER, c INTEGER);
            CREATE INDEX idx_events_cba ON events (c, b, a);
            """,
        )
        manager = ConnectionManager()
        manager.connect(str(path))
        try:
            description = describe_table(manager, "events")
        finally:
            manager.disconnect()
        assert description.indexes[0].columns == ["c", "b", "a"]

    def test_empty_database(self, tmp_path: Path) -> None:
        path = build_sqlite(tmp_path / "empty.db", "")
        manager = ConnectionManager()
        manager.connect(str(path))
        try:
            assert list_tables(manager) == []
            assert format_table_list(list_tables(manager)) == NO_TABLES_MESSAGE
            assert get_full_schema(manager) == NO_TABLES_MESSAGE
        finally:
            manager.disconnect()

    def test_full_schema_is_capped(self, tmp_path: Path) -> None:
        script = "\n".join(f"CREATE TABLE t{i:03d} (id INTEGER PRIMARY KEY);" for i in range(150))
        path = build_sqlite(tmp_path / "wide.db", script)
        manager = ConnectionManager()
        manager.connect(str(path))
        try:
            schema = get_full_schema(manager)
        finally:
            manager.disconnect()

        assert schema.startswith("Database Schema (100 tables)")
        assert schema.count("Table: ") == 100
        assert "Table: t099" in schema
        assert "Table: t100" not in schema

    def test_full_schema_sections(self, manager: ConnectionManager) -> None:
        schema = get_full_schema(manager)
        assert schema.startswith("Database Schema (2 tables)")
        assert "Table: orders" in schema
        assert "  Estimated rows: 4" in schema
        assert "  user_id → users.id" in schema


def test_extract_partial_predicate() -> None:
    assert (
        extract_partial_predicate("CREATE INDEX i ON t (a) WHERE a > 0 AND b IS NULL")
        == "a > 0 AND b IS NULL"
    )
    assert extract_partial_predicate("CREATE INDEX i ON t (a)\nwhere\n  deleted = 0;") == "deleted = 0"
    assert extract_partial_predicate("CREATE INDEX i ON t (a)") is None
    assert extract_partial_predicate(None) is None


class TestPostgres:
    def test_list_tables_normalizes_negative_estimates(self) -> None:
        manager = fake_manager(
            PostgresDialect(),
            [
                {"name": "users", "estimated_rows": 42},
                {"name": "audit_log", "estimated_rows": -1},
                {"name": "orders", "estimated_rows": None},
            ],
        )
        assert list_tables(manager) == [
            TableSummary(name="audit_log", estimated_row_count=0),
            TableSummary(name="orders", estimated_row_count=0),
            TableSummary(name="users", estimated_row_count=42),
        ]

    def test_describe_table(self) -> None:
        manager = fake_manager(
            PostgresDialect(),
            [
                {"name": "id", "type": "integer", "nullable": False,
                 "default_value": "nextval('orders_id_seq'::regclass)", "is_primary_key": True},
                {"name": "user_id", "type": "integer", "nullable": False,
                 "default_value": None, "is_primary_key": False},
                {"name": "note", "type": "text", "nullable": True,
                 "default_value": None, "is_primary_key": False},
            ],
            [{"column_name": "user_id", "referenced_table": "users", "referenced_column": "id"}],
            [
                {"name": "orders_pkey", "is_unique": True, "is_primary": True,
                 "index_type": "btree", "predicate": None, "columns": ["id"]},
                {"name": "orders_user_note", "is_unique": False, "is_primary": False,
                 "index_type": "btree", "predicate": "(note IS NOT NULL)",
                 "columns": "{user_id,note}"},
            ],
        )
        description = describe_table(manager, "orders")

        assert [c.name for c in description.columns] == ["id", "user_id", "note"]
        assert description.columns[0].is_primary_key
        assert description.columns[2].nullable
        assert description.foreign_keys == [
            ForeignKey(column="user_id", referenced_table="users", referenced_column="id")
        ]
        assert description.indexes == [
            IndexInfo(name="orders_pkey", columns=["id"], unique=True, type="btree", is_primary=True),
            IndexInfo(
                name="orders_user_note",
                columns=["user_id", "note"],
                unique=False,
                type="btree",
                partial_predicate="(note IS NOT NULL)",
            ),
        ]
        assert [params for _, params in manager.execute.calls] == [("orders",)] * 3

    def test_no_foreign_keys_is_an_empty_list(self) -> None:
        manager = fake_manager(
            PostgresDialect(),
            [{"name": "id", "type": "integer", "nullable": False,
              "default_value": None, "is_primary_key": True}],
            [],
            [],
        )
        assert describe_table(manager, "tags").foreign_keys == []

    def test_expression_index_keeps_expression_keys(self) -> None:
        manager = fake_manager(
            PostgresDialect(),
            [{"name": "email", "type": "text", "nullable": False,
              "default_value": None, "is_primary_key": False}],
            [],
            [{"name": "users_lower_email", "is_unique": True, "is_primary": False,
              "index_type": "btree", "predicate": None,
              "columns": ["lower(email)", "id"]}],
        )
        description = describe_table(manager, "users")

        assert description.indexes[0].columns == ["lower(email)", "id"]
        index_sql = manager.execute.calls[2][0]
        assert "LEFT JOIN pg_catalog.pg_attribute" in index_sql
        assert "pg_get_indexdef(ix.indexrelid, k.ord::int, true)" in index_sql


class TestMysql:
    def test_list_tables_normalizes_null_estimates(self) -> None:
        manager = fake_manager(
            MysqlDialect(),
            [
                {"name": "orders", "estimated_rows": None},
                {"TABLE_NAME": "users", "TABLE_ROWS": 7},
            ],
        )
        assert list_tables(manager) == [
            TableSummary(name="orders", estimated_row_count=0),
            TableSummary(name="users", estimated_row_count=7),
        ]

    def test_describe_table(self) -> None:
        manager = fake_manager(
            MysqlDialect(),
            [
                {"name": "id", "type": "int unsigned", "nullable": 0,
                 "default_value": None, "is_primary_key": 1},
                {"name": "user_id", "type": "int", "nullable": 0,
                 "default_value": None, "is_primary_key": 0},
                {"name": "status", "type": "varchar(16)", "nullable": 1,
                 "default_value": "new", "is_primary_key": 0},
            ],
            [{"column_name": "user_id", "REFERENCED_TABLE_NAME": "users",
              "REFERENCED_COLUMN_NAME": "id"}],
            [
                {"name": "PRIMARY", "is_unique": 1, "index_type": "BTREE",
                 "cardinality": 1200, "columns": "id"},
                {"name": bytearray(b"idx_user_status"), "is_unique": 0, "index_type": "BTREE",
                 "cardinality": None, "columns": b"user_id,status"},
            ],
        )
        description = describe_table(manager, "orders")

        assert description.columns[0] == ColumnInfo(
            name="id", type="int unsigned", nullable=False, is_primary_key=True
        )
        assert description.columns[2].default_value == "new"
        assert description.columns[2].nullable
        assert description.foreign_keys == [
            ForeignKey(column="user_id", referenced_table="users", referenced_column="id")
        ]
        assert description.indexes == [
            IndexInfo(name="PRIMARY", columns=["id"], unique=True, type="BTREE",
                      is_primary=True, cardinality=1200),
            IndexInfo(name="idx_user_status", columns=["user_id", "status"], unique=False,
                      type="BTREE"),
        ]

    def test_no_foreign_keys_is_an_empty_list(self) -> None:
        manager = fake_manager(
            MysqlDialect(),
            [{"name": "id", "type": "int", "nullable": 0,
              "default_value": None, "is_primary_key": 1}],
            [],
            [],
        )
        assert describe_table(manager, "tags").foreign_keys == []


def test_format_table_list() -> None:
    text = format_table_list(
        [TableSummary("orders", 1234567), TableSummary("line_items", 12)]
    )
    assert text.splitlines() == [
        "Table       Est. Rows",
        "──────────  ──────────",
        "orders      1,234,567",
        "line_items  12",
    ]


def test_format_table_description(manager: ConnectionManager) -> None:
    text = format_table_description(describe_table(manager, "orders"))
    lines = text.splitlines()
    assert lines[0] == "Table: orders"
    assert "  id       INTEGER  [PK, NOT NULL]" in lines
    assert "  status   TEXT     [DEFAULT 'new']" in lines
    assert "Foreign Keys:" in lines
    assert "  idx_orders_open: (status, total) WHERE status = 'open'" in lines
    assert "  idx_orders_user: (user_id)" in lines
