"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- TopologyError hierarchy for typed exceptions
- Classification utilities for mapping SDK/transport failures
"""

from core.errors.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DependencyError,
    # Enums
    ErrorCategory,
    # Base classes
    TopologyError,
    ValidationError,
    # Classification utilities
    classify_exception,
    classify_http_status,
    client_message,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "TopologyError",
    "ValidationError",
    "AuthenticationError",
    "DependencyError",
    "ConfigurationError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
    "wrap_exception",
    "client_message",
]
