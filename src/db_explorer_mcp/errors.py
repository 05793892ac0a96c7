class ExplorerError(Exception):
    """Base for failures reported back to the caller as a tool error."""


class ConfigError(ExplorerError, ValueError):
    """Configuration is missing or invalid."""


class DatabaseConnectionError(ExplorerError, ConnectionError):
    """Connection string is unrecognized or the backend could not be reached."""


class NotConnectedError(ExplorerError, RuntimeError):
    """An operation needs a connection but none is active."""


class ValidationError(ExplorerError, ValueError):
    """Statement is not a read-only query."""


class QueryError(ExplorerError, RuntimeError):
    """Query execution failed in a user-facing way."""


class PlanParseError(ExplorerError, ValueError):
    """Execution plan has an unexpected structure."""
