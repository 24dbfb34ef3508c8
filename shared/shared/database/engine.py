"""Async engine and session factories shared by the services.

``DATABASE_SSL`` selects TLS for asyncpg:

* unset / ``disable``: plain connection
* ``require``: encrypted, certificate not verified
* ``verify-full``: verified against ``RDS_SSL_CERT`` (CA bundle path)
"""

import os
import ssl
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

AsyncSessionFactory = async_sessionmaker[AsyncSession]


class Base(DeclarativeBase):
    pass


def ssl_connect_args(mode: str | None = None, cert_path: str | None = None) -> dict[str, Any]:
    mode = (mode if mode is not None else os.environ.get("DATABASE_SSL", "")).lower()
    cert_path = cert_path if cert_path is not None else os.environ.get("RDS_SSL_CERT", "")
    if not mode or mode == "disable":
        return {}
    if mode == "verify-full":
        if not cert_path or not Path(cert_path).exists():
            raise RuntimeError(f"DATABASE_SSL=verify-full but CA bundle not found: {cert_path!r}")
        return {"ssl": ssl.create_default_context(cafile=cert_path)}
    return {"ssl": "require"}


def get_async_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    # SQLite has no pool sizing or TLS
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, **kwargs)

    connect_args = {**ssl_connect_args(), **kwargs.pop("connect_args", {})}
    options: dict[str, Any] = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 3600,
        **kwargs,
    }
    if connect_args:
        options["connect_args"] = connect_args
    return create_async_engine(database_url, **options)


def get_async_session_factory(
    database_url: str,
    *,
    expire_on_commit: bool = False,
    **engine_kwargs: Any,
) -> AsyncSessionFactory:
    engine = get_async_engine(database_url, **engine_kwargs)
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=expire_on_commit,
        autoflush=False,
    )


async def dispose_session_factory(factory: AsyncSessionFactory) -> None:
    """Close the pooled connections behind a factory built here."""
    engine = factory.kw.get("bind")
    if engine is not None:
        await engine.dispose()
