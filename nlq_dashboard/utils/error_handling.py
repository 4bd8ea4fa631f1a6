from typing import Optional, Tuple

from fastapi import HTTPException

from ..exceptions import (
    ConfigurationError,
    ConnectionFailureError,
    DatabaseNotFoundError,
    ExecutionFailureError,
    InvalidArgumentError,
    NLQueryError,
    ProviderCallError,
    QueryTimeoutError,
    SchemaSyncError,
)

PROVIDER_FAILURE_MESSAGE = "The language model provider could not complete the request."

# error_type -> HTTP status for failed workflow responses
ERROR_STATUS_CODES = {
    "invalid_argument": 422,
    "timeout": 504,
}


def describe_error(error: Exception) -> Tuple[str, str, bool]:
    """Map an exception to (message, error_type, retryable) for a failure response."""
    if isinstance(error, InvalidArgumentError):
        return str(error), "invalid_argument", False
    elif isinstance(error, QueryTimeoutError):
        return f"The operation timed out: {error}", "timeout", True
    elif isinstance(error, ProviderCallError):
        return PROVIDER_FAILURE_MESSAGE, "provider", False
    elif isinstance(error, ExecutionFailureError):
        return f"Error executing SQL query: {error}", "execution", False
    elif isinstance(error, DatabaseNotFoundError):
        return str(error), "not_found", False
    elif isinstance(error, ConnectionFailureError):
        return str(error), "connection", False
    elif isinstance(error, ConfigurationError):
        return str(error), "configuration", False
    elif isinstance(error, SchemaSyncError):
        return str(error), "schema_sync", False
    elif isinstance(error, NLQueryError):
        return str(error), "internal", error.retryable
    return f"An unexpected error occurred: {error}", "internal", False


def status_code_for(error_type: Optional[str]) -> int:
    """HTTP status used when returning a failed workflow response."""
    return ERROR_STATUS_CODES.get(error_type, 500)


def handle_error(error: Exception) -> HTTPException:
    """Handle application errors raised outside the orchestrator."""
    if isinstance(error, HTTPException):
        return error
    elif isinstance(error, DatabaseNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    elif isinstance(error, (InvalidArgumentError, ConfigurationError)):
        return HTTPException(status_code=422, detail=str(error))
    elif isinstance(error, QueryTimeoutError):
        return HTTPException(status_code=504, detail=str(error))
    elif isinstance(error, ProviderCallError):
        return HTTPException(status_code=502, detail=PROVIDER_FAILURE_MESSAGE)
    elif isinstance(error, (SchemaSyncError, ConnectionFailureError, ExecutionFailureError)):
        return HTTPException(status_code=500, detail=str(error))
    elif isinstance(error, ValueError):
        return HTTPException(status_code=422, detail=str(error))
    else:
        return HTTPException(status_code=500, detail=f"Unexpected error: {str(error)}")


def validate_required(value, field_name: str) -> None:
    """Raise InvalidArgumentError when a required field is missing or blank."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgumentError(f"{field_name} is required")
