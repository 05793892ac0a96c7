import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Iterator

import pytest

from db_explorer_mcp.db.connection import ConnectionManager


def build_sqlite(path: Path, script: str) -> Path:
    with closing(sqlite3.connect(path)) as conn:
        conn.executescript(script)
        conn.commit()
    return path


class FakeExecute:
    """Stands in for ConnectionManager.execute, answering calls in order."""

    def __init__(self, *responses: list[dict[str, Any]]) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, Any]] = []

    def __call__(self, sql: str, params: Any = None) -> list[dict[str, Any]]:
        self.calls.append((sql, params))
        return self.responses.pop(0)


@pytest.fixture
def users_db(tmp_path: Path) -> Path:
    return build_sqlite(
        tmp_path / "users.db",
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        INSERT INTO users (name) VALUES ('ada'), ('grace'), ('linus');
        """,
    )


@pytest.fixture
def shop_db(tmp_path: Path) -> Path:
    return build_sqlite(
        tmp_path / "shop.sqlite",
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE UNIQUE INDEX idx_users_name ON users (name);
        CREATE TABLE orders (
            id INTEGER PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users (id),
            status TEXT DEFAULT 'new',
            total REAL
        );
        CREATE INDEX idx_orders_user ON orders (user_id);
        CREATE INDEX idx_orders_open ON orders (status, total) WHERE status = 'open';
        INSERT INTO users (name) VALUES ('ada'), ('grace');
        INSERT INTO orders (user_id, status, total) VALUES
            (1, 'open', 10.5), (1, 'closed', 20.0), (2, 'open', 7.25), (2, 'closed', 1.0);
        """,
    )


@pytest.fixture
def manager(shop_db: Path) -> Iterator[ConnectionManager]:
    manager = ConnectionManager()
    manager.connect(str(shop_db))
    yield manager
    manager.disconnect()
