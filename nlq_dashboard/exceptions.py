"""Custom exceptions for the NL query backend."""


class NLQueryError(Exception):
    """Base class for all errors raised by the query pipeline."""

    retryable = False


class InvalidArgumentError(NLQueryError, ValueError):
    """Raised when a required field is missing or empty."""
    pass


class ConfigurationError(NLQueryError):
    """Raised when there is a configuration error."""
    pass


class UnsupportedEngineError(ConfigurationError):
    """Raised when a database engine kind is not supported."""

    def __init__(self, engine_kind):
        super().__init__(f"Unsupported database type: {engine_kind}")
        self.engine_kind = engine_kind


class DatabaseNotFoundError(NLQueryError):
    """Raised when a database target does not exist or is inactive."""

    def __init__(self, database_id: int):
        super().__init__(f"Database with ID {database_id} not found or inactive")
        self.database_id = database_id


class ConnectionFailureError(NLQueryError):
    """Raised when a target database is unreachable or rejects the credentials."""
    pass


class ProviderCallError(NLQueryError):
    """Raised when an LLM provider returns a non-success status."""

    def __init__(self, provider: str, status_code: int = None):
        detail = f" ({status_code})" if status_code is not None else ""
        super().__init__(f"{provider} API error{detail}")
        self.provider = provider
        self.status_code = status_code


class ExecutionFailureError(NLQueryError):
    """Raised when SQL execution fails on the target database."""

    def __init__(self, message: str, sql: str = None):
        super().__init__(message)
        self.sql = sql


class QueryTimeoutError(NLQueryError):
    """Raised when a provider call or database operation exceeds its deadline."""

    retryable = True


class SchemaSyncError(NLQueryError):
    """Raised when a schema synchronization is rolled back."""
    pass
