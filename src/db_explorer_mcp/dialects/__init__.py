"""Backend strategies for catalog introspection and plan reduction."""

from .base import Dialect
from .mysql import MysqlDialect
from .postgres import PostgresDialect
from .sqlite import SqliteDialect

__all__ = ["Dialect", "MysqlDialect", "PostgresDialect", "SqliteDialect"]
