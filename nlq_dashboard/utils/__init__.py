"""
Utils package initialization.
"""
from .error_handling import (
    PROVIDER_FAILURE_MESSAGE,
    describe_error,
    handle_error,
    status_code_for,
    validate_required,
)

__all__ = [
    'PROVIDER_FAILURE_MESSAGE',
    'describe_error',
    'handle_error',
    'status_code_for',
    'validate_required',
]
