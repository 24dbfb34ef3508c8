"""
Global slowapi rate limiter.

Imported by the enrollment and payment routers for per-endpoint limits.
Mounted onto app.state in main.py so slowapi can find it.

Keyed on the socket peer. X-Forwarded-For is client-controlled, so it is
only recorded for audit logs (see shared.middleware.request_context).

Storage: RATE_LIMIT_STORAGE_URI (a Redis URL in deployed envs, in-memory
by default for local dev and tests).
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import Settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=Settings().rate_limit_storage_uri,
)
