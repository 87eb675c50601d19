"""
Public API service.

Internet-facing routes that each reach one managed Azure service using the
process-wide credential provider, plus a route that calls the private
processor over the private network.
"""

from api.app import SERVICE_NAME, ApiService, create_app

__all__ = ["ApiService", "SERVICE_NAME", "create_app"]
