"""
Core library: shared building blocks for the public API and private processor.

Modules:
    auth     - Azure identity, audience-scoped tokens, per-audience token cache
    clients  - Key Vault, Blob Storage, SQL Database and peer-service clients
    errors   - Error taxonomy and classification of SDK/transport failures
    logging  - Structured JSON logging with request correlation IDs
    metrics  - Prometheus request, token and dependency metrics
    web      - Response envelope and aiohttp middlewares

Design Principles:
    - One credential provider per process, injected into handlers
    - Client construction is side-effect free; failures surface on first call
    - Async-first; blocking drivers run in worker threads
"""

from .types import AccessGrant, ErrorCategory, TokenProvider

__version__ = "1.0.0"

__all__ = [
    "AccessGrant",
    "ErrorCategory",
    "TokenProvider",
]
