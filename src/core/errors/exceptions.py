"""
Unified exception hierarchy for the topology services.

Provides typed exceptions carrying an error category and HTTP status so the
request layer can map any failure to the uniform error envelope.
"""

from core.types import ErrorCategory


class TopologyError(Exception):
    """
    Base exception for all service errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for response mapping
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN
    http_status: int = 500

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.http_status < 500

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Request Errors
# =============================================================================


class ValidationError(TopologyError):
    """Required request fields are missing or malformed."""

    category = ErrorCategory.VALIDATION
    http_status = 400


# =============================================================================
# Server-side Errors
# =============================================================================


class AuthenticationError(TopologyError):
    """Identity could not be resolved or the audience was rejected."""

    category = ErrorCategory.AUTH


class DependencyError(TopologyError):
    """An external service rejected or timed out the operation."""

    category = ErrorCategory.DEPENDENCY

    def __init__(
        self,
        message: str,
        dependency: str = "unknown",
        status_code: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.dependency = dependency
        self.status_code = status_code
        self.context.setdefault("dependency", dependency)


class ConfigurationError(TopologyError):
    """A required environment setting is absent."""

    category = ErrorCategory.CONFIGURATION

    def __init__(
        self,
        setting: str,
        message: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message or f"{setting} not configured", cause, {"setting": setting})
        self.setting = setting


# =============================================================================
# Error Classification Utilities
# =============================================================================

# Azure SDK / transport exception type names, matched by name so that the
# classifier does not need every SDK importable.
AUTH_EXCEPTION_TYPES = frozenset(
    {
        "clientauthenticationerror",
        "credentialunavailableerror",
        "authenticationrequirederror",
    }
)

DEPENDENCY_EXCEPTION_TYPES = frozenset(
    {
        "httpresponseerror",
        "resourcenotfounderror",
        "resourceexistserror",
        "serviceresponseerror",
        "servicerequesterror",
        "clienterror",
        "clientresponseerror",
        "clientconnectorerror",
        "servertimeouterror",
        "timeouterror",
        "operationalerror",
        "interfaceerror",
        "databaseerror",
        "programmingerror",
    }
)

# Fallback markers for string-based detection
AUTH_ERROR_MARKERS = frozenset(
    {
        "401",
        "unauthorized",
        "authentication",
        "managed identity",
        "aadsts",
    }
)


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify an upstream HTTP status code into an error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    return ErrorCategory.DEPENDENCY


def classify_exception(exc: Exception) -> ErrorCategory:
    """Classify an exception into error category."""
    if isinstance(exc, TopologyError):
        return exc.category

    for klass in type(exc).__mro__:
        name = klass.__name__.lower()
        if name in AUTH_EXCEPTION_TYPES:
            return ErrorCategory.AUTH
        if name in DEPENDENCY_EXCEPTION_TYPES:
            return ErrorCategory.DEPENDENCY

    exc_str = str(exc).lower()
    if any(marker in exc_str for marker in AUTH_ERROR_MARKERS):
        return ErrorCategory.AUTH

    if isinstance(exc, (OSError, TimeoutError)):
        return ErrorCategory.DEPENDENCY

    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    dependency: str = "unknown",
    context: dict | None = None,
) -> TopologyError:
    """Wrap a generic exception in the appropriate TopologyError subclass."""
    if isinstance(exc, TopologyError):
        if context:
            exc.context.update(context)
        return exc

    category = classify_exception(exc)
    message = str(exc) or type(exc).__name__

    if category == ErrorCategory.AUTH:
        return AuthenticationError(message, cause=exc, context=context)

    if category == ErrorCategory.DEPENDENCY:
        status_code = getattr(exc, "status_code", None) or getattr(exc, "status", None)
        return DependencyError(
            message,
            dependency=dependency,
            status_code=status_code if isinstance(status_code, int) else None,
            cause=exc,
            context=context,
        )

    return TopologyError(message, cause=exc, context=context)


# Client-facing text used when error details are sanitized
SANITIZED_MESSAGES = {
    ErrorCategory.VALIDATION: "Invalid request",
    ErrorCategory.AUTH: "Authentication with the identity provider failed",
    ErrorCategory.DEPENDENCY: "An upstream service call failed",
    ErrorCategory.CONFIGURATION: "Service is not fully configured",
    ErrorCategory.UNKNOWN: "Internal server error",
}


def client_message(exc: TopologyError, sanitized: bool = False) -> str:
    """
    Message returned to the caller in the error envelope.

    Validation messages are always passed through since they only describe
    the caller's own input.
    """
    if not sanitized or exc.category == ErrorCategory.VALIDATION:
        return exc.message
    return SANITIZED_MESSAGES[exc.category]
