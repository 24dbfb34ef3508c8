from shared.middleware.error_handler import error_envelope_middleware
from shared.middleware.request_context import request_context_middleware, resolve_client_ip

__all__ = ["error_envelope_middleware", "request_context_middleware", "resolve_client_ip"]
