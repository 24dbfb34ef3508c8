from shared.database.engine import (
    AsyncSessionFactory,
    Base,
    dispose_session_factory,
    get_async_session_factory,
)
from shared.database.types import UTCDateTime, utcnow

__all__ = [
    "AsyncSessionFactory",
    "Base",
    "dispose_session_factory",
    "get_async_session_factory",
    "UTCDateTime",
    "utcnow",
]
