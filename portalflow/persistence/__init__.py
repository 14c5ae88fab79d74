"""Persistence layer for portal proposals and saved contact lists."""

from __future__ import annotations

from typing import Optional

from ..config import PortalflowConfig, load_config
from .inmemory import InMemoryPortalRepository
from .models import ContactList, ProposalRecord
from .repository import PortalRepository
from .sqlite import SQLitePortalRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresPortalRepository
except ImportError:  # pragma: no cover - optional dependency
    PostgresPortalRepository = None  # type: ignore

_repository_instance: PortalRepository | None = None
_repository_url: str | None = None


def _open(database_url: str) -> PortalRepository:
    scheme = database_url.split("://", 1)[0]
    if scheme == "sqlite":
        return SQLitePortalRepository(database_url[len("sqlite://"):])
    if scheme in ("postgres", "postgresql"):
        if PostgresPortalRepository is None:
            raise RuntimeError("Postgres support requires asyncpg")
        return PostgresPortalRepository(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_repository(
    database_url: Optional[str] = None, config: Optional[PortalflowConfig] = None
) -> PortalRepository:
    """Return the shared repository for the configured database.

    An explicit ``database_url`` wins over ``config.database_url``; loading
    the configuration already applies ``PORTALFLOW_DATABASE_URL`` and
    ``DATABASE_URL``. Without any URL, proposals and lists live in memory.
    The instance is reused for as long as the URL stays the same.
    """

    global _repository_instance, _repository_url
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    if database_url is None:
        database_url = (config or load_config()).database_url
    if _repository_instance is not None and database_url == _repository_url:
        return _repository_instance

    _repository_instance = _open(database_url) if database_url else InMemoryPortalRepository()
    _repository_url = database_url
    return _repository_instance


__all__ = [
    "ContactList",
    "InMemoryPortalRepository",
    "PortalRepository",
    "PostgresPortalRepository",
    "ProposalRecord",
    "SQLitePortalRepository",
    "get_repository",
]
