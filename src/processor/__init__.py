"""Private processor service: the HTTP-triggered ``process`` handler."""

from processor.app import SERVICE_NAME, ProcessorService, create_app, process_payload

__all__ = ["ProcessorService", "SERVICE_NAME", "create_app", "process_payload"]
