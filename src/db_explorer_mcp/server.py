"""FastAPI application configuration and entry point for the DB Explorer MCP server.

This module sets up the core application and registers all MCP tools. The
server runs over streamable HTTP by default, or over stdio for local MCP hosts.
"""

import argparse
import os
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastmcp import FastMCP

from .config import AppConfig, load_config
from .db.connection import ConnectionManager
from .logging_utils import configure_logging
from .tools import register_data_tools


def _config_path() -> Path | None:
    """Get the configuration file path from the environment, if one is set."""
    path = os.environ.get("DB_EXPLORER_CONFIG")
    return Path(path) if path else None


def create_mcp_server(config: AppConfig) -> tuple[FastMCP, ConnectionManager]:
    """Create the FastMCP server and the connection manager its tools share.

    Args:
        config: Loaded application configuration

    Returns:
        tuple: (mcp_server, manager)
    """
    manager = ConnectionManager(
        pool_size=config.connection.pool_size,
        default_connection_string=config.connection.default_connection_string,
    )
    mcp_server = FastMCP(name="db-explorer")
    register_data_tools(mcp_server, manager, config.limits)
    return mcp_server, manager


def create_app(config_path: Path | None = None) -> tuple[FastAPI, ConnectionManager]:
    """Create and configure the FastMCP server application.

    Args:
        config_path: Optional path to config file. If None, uses default from environment.

    Returns:
        tuple: (combined_app, manager)
    """
    if config_path is None:
        config_path = _config_path()

    config = load_config(config_path)
    configure_logging(config.observability.log_level)

    mcp_server, manager = create_mcp_server(config)
    mcp_app = mcp_server.http_app()

    app = FastAPI(
        title="DB Explorer MCP Server",
        description="Read-only explorer for PostgreSQL, MySQL and SQLite databases",
        version="0.1.0",
        lifespan=mcp_app.lifespan,
    )

    @app.get("/", include_in_schema=False)
    async def health_check() -> dict:
        """Health check endpoint."""
        return {
            "message": "DB Explorer MCP Server is running",
            "status": "healthy",
            "connected": manager.is_connected,
        }

    combined_app = FastAPI(
        title="DB Explorer MCP App",
        routes=[
            *mcp_app.routes,
            *app.routes,
        ],
        lifespan=mcp_app.lifespan,
    )

    return combined_app, manager


def main() -> None:
    """Start the MCP server.

    Configuration:
        - transport: "http" (default) serves on 0.0.0.0 via uvicorn, "stdio" talks to a local host
        - port: Configurable via --port argument (default: 8000)
    """
    parser = argparse.ArgumentParser(description="Start the DB Explorer MCP server")
    parser.add_argument(
        "--port", type=int, default=8000, help="Port to run the server on (default: 8000)"
    )
    parser.add_argument(
        "--transport",
        choices=["http", "stdio"],
        default="http",
        help="MCP transport (default: http)",
    )
    args = parser.parse_args()

    if args.transport == "stdio":
        config = load_config(_config_path())
        configure_logging(config.observability.log_level)
        mcp_server, _ = create_mcp_server(config)
        mcp_server.run()
        return

    uvicorn.run(
        "db_explorer_mcp.server:combined_app",
        host="0.0.0.0",
        port=args.port,
    )


combined_app, _manager = create_app()
