"""Read-only database explorer MCP server."""

# Modules are imported explicitly by callers to keep server start-up out of
# plain library use:
# from db_explorer_mcp.db.connection import ConnectionManager
# from db_explorer_mcp.introspection import list_tables, describe_table
# from db_explorer_mcp.explain import explain_query
# from db_explorer_mcp.gateway import run_query

__all__ = [
    "config",
    "server",
]
