"""Time-bounded cache backends for financial retrieval results."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Protocol

from pydantic import ValidationError
from sqlalchemy import delete, func, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from findata.config import settings
from findata.models.cache_record import FinancialCacheRecord
from findata.models.financial import CacheEntry, FinancialRecord
from findata.observability.metrics import metrics
from findata.services.retrieval.errors import CacheStorageError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

PURGE_AFTER_HOURS = 24 * 7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FinancialCache(Protocol):
    """Storage contract for cached retrieval results."""

    def get(self, company_name: str, domain: str = "") -> CacheEntry | None:
        ...

    def put(
        self, company_name: str, domain: str, record: FinancialRecord, source: str
    ) -> CacheEntry:
        ...

    def ping(self) -> bool:
        ...


def _matches(entry: CacheEntry, company_name: str, domain: str) -> bool:
    needle = company_name.strip().lower()
    if needle and needle in entry.company_name.lower():
        return True
    return bool(domain) and entry.domain == domain


class InMemoryFinancialCache(FinancialCache):
    """Thread-safe cache used for local development and tests."""

    def __init__(self, *, ttl_hours: float | None = None, clock: Clock = _utcnow) -> None:
        hours = settings.cache_ttl_hours if ttl_hours is None else ttl_hours
        self._ttl_seconds = hours * 3600
        self._clock = clock
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = Lock()

    def get(self, company_name: str, domain: str = "") -> CacheEntry | None:
        now = self._clock()
        with self._lock:
            candidates = [
                entry
                for entry in self._entries.values()
                if _matches(entry, company_name, domain)
                and entry.is_fresh(self._ttl_seconds, now=now)
            ]
        if not candidates:
            return None
        entry = max(candidates, key=lambda item: item.created_at)
        metrics.increment("cache.hit", tags={"backend": "memory"})
        logger.info(
            "cache.hit",
            extra={"company_name": company_name, "domain": domain, "backend": "memory"},
        )
        return entry

    def put(
        self, company_name: str, domain: str, record: FinancialRecord, source: str
    ) -> CacheEntry:
        entry = CacheEntry(
            company_name=company_name,
            domain=domain,
            record=record,
            source=source,
            created_at=self._clock(),
        )
        with self._lock:
            self._entries[(company_name, domain)] = entry
        metrics.increment("cache.persisted", tags={"backend": "memory"})
        logger.info(
            "cache.persisted",
            extra={"company_name": company_name, "domain": domain, "source": source},
        )
        return entry

    def purge_expired(self, *, max_age_hours: float = PURGE_AFTER_HOURS) -> int:
        """Drop entries older than ``max_age_hours``; returns how many were removed."""
        cutoff = self._clock() - timedelta(hours=max_age_hours)
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.created_at < cutoff]
            for key in stale:
                del self._entries[key]
        logger.info("cache.purged", extra={"removed": len(stale), "backend": "memory"})
        return len(stale)

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SQLFinancialCache(FinancialCache):
    """SQLModel-backed cache persisted to Postgres or SQLite."""

    def __init__(
        self,
        database_url: str,
        *,
        ttl_hours: float | None = None,
        pool_min_size: int | None = None,
        pool_max_size: int | None = None,
        auto_create_schema: bool = False,
        clock: Clock = _utcnow,
    ) -> None:
        if not database_url:
            raise ValueError("DATABASE_URL is required for SQLFinancialCache.")

        parsed_url = make_url(database_url)
        sync_url, connect_args, drivername = _coerce_sync_database_url(parsed_url)
        pool_min = max(pool_min_size or settings.db_pool_min_size, 1)
        pool_max = max(pool_max_size or settings.db_pool_max_size, pool_min)
        is_sqlite = drivername.startswith("sqlite")
        engine_kwargs: dict[str, Any] = {
            "echo": False,
            "connect_args": connect_args,
            "pool_pre_ping": not is_sqlite,
        }
        if not is_sqlite:
            engine_kwargs["pool_size"] = pool_min
            engine_kwargs["max_overflow"] = max(pool_max - pool_min, 0)

        self._engine: Engine = create_engine(sync_url, **engine_kwargs)
        if auto_create_schema:
            SQLModel.metadata.create_all(self._engine, tables=[FinancialCacheRecord.__table__])
        hours = settings.cache_ttl_hours if ttl_hours is None else ttl_hours
        self._ttl = timedelta(hours=hours)
        self._clock = clock
        self._metrics_tags = {"backend": "sqlite" if is_sqlite else "postgres"}

    def dispose(self) -> None:
        """Close the underlying SQLAlchemy engine."""
        self._engine.dispose()

    def get(self, company_name: str, domain: str = "") -> CacheEntry | None:
        cutoff = self._clock() - self._ttl
        conditions = []
        needle = company_name.strip().lower()
        if needle:
            conditions.append(
                func.lower(FinancialCacheRecord.company_name).contains(needle, autoescape=True)
            )
        if domain:
            conditions.append(FinancialCacheRecord.domain == domain)
        if not conditions:
            return None
        try:
            with self._session() as session:
                statement = (
                    select(FinancialCacheRecord)
                    .where(FinancialCacheRecord.created_at >= cutoff, or_(*conditions))
                    .order_by(FinancialCacheRecord.created_at.desc())
                    .limit(1)
                )
                row = session.exec(statement).first()
                if row is None:
                    return None
                entry = row.to_cache_entry()
                metrics.increment("cache.hit", tags=self._metrics_tags)
                logger.info(
                    "cache.hit",
                    extra={
                        "company_name": company_name,
                        "domain": domain,
                        "backend": self._metrics_tags["backend"],
                    },
                )
                return entry
        except ValidationError as exc:
            logger.warning(
                "cache.decode_error", extra={"company_name": company_name, "domain": domain}
            )
            raise CacheStorageError("Cached financial data could not be decoded.") from exc
        except SQLAlchemyError as exc:
            logger.exception(
                "cache.read_error", extra={"company_name": company_name, "domain": domain}
            )
            raise CacheStorageError("Failed to read cached financial data.") from exc

    def put(
        self, company_name: str, domain: str, record: FinancialRecord, source: str
    ) -> CacheEntry:
        entry = CacheEntry(
            company_name=company_name,
            domain=domain,
            record=record,
            source=source,
            created_at=self._clock(),
        )
        row = FinancialCacheRecord.from_cache_entry(entry)
        try:
            with self._session() as session:
                statement = select(FinancialCacheRecord).where(
                    FinancialCacheRecord.company_name == company_name,
                    FinancialCacheRecord.domain == domain,
                )
                existing = session.exec(statement).first()
                if existing:
                    existing.financial_data = row.financial_data
                    existing.source = row.source
                    existing.created_at = row.created_at
                    existing.updated_at = row.updated_at
                    session.add(existing)
                else:
                    session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception(
                "cache.write_error",
                extra={"company_name": company_name, "domain": domain, "source": source},
            )
            raise CacheStorageError("Failed to persist financial data.") from exc

        metrics.increment("cache.persisted", tags=self._metrics_tags)
        logger.info(
            "cache.persisted",
            extra={"company_name": company_name, "domain": domain, "source": source},
        )
        return entry

    def purge_expired(self, *, max_age_hours: float = PURGE_AFTER_HOURS) -> int:
        """Delete rows older than ``max_age_hours``; returns how many were removed."""
        cutoff = self._clock() - timedelta(hours=max_age_hours)
        statement = delete(FinancialCacheRecord).where(FinancialCacheRecord.created_at < cutoff)
        try:
            with self._engine.begin() as connection:
                removed = connection.execute(statement).rowcount or 0
        except SQLAlchemyError as exc:
            logger.exception("cache.purge_error")
            raise CacheStorageError("Failed to purge expired cache rows.") from exc
        logger.info(
            "cache.purged", extra={"removed": removed, "backend": self._metrics_tags["backend"]}
        )
        return removed

    def ping(self) -> bool:
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("cache.ping_failed")
            return False

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with Session(self._engine) as session:
            yield session


def _coerce_sync_database_url(url: URL) -> tuple[str, dict[str, Any], str]:
    """Convert async connection strings into sync SQLAlchemy URLs."""
    drivername = url.drivername
    connect_args: dict[str, Any] = {}
    if drivername.endswith("+asyncpg"):
        drivername = drivername.replace("+asyncpg", "+psycopg2")
    elif drivername.endswith("+psycopg"):
        drivername = drivername.replace("+psycopg", "+psycopg2")
    sync_url = url.set(drivername=drivername)

    query = dict(sync_url.query) if sync_url.query else {}
    removed_ssl = query.pop("ssl", None) is not None
    sync_url = sync_url.set(query=query)

    if drivername.startswith("postgresql") and "sslmode" not in query and removed_ssl:
        connect_args["sslmode"] = "require"
    if drivername.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
    return sync_url.render_as_string(hide_password=False), connect_args, drivername


def build_financial_cache(database_url: str | None = None) -> FinancialCache:
    """Pick the SQL cache when a database URL is configured, memory otherwise."""
    resolved_url = database_url or settings.database_url
    if not resolved_url:
        logger.info("cache.initialized", extra={"backend": "memory"})
        return InMemoryFinancialCache()
    try:
        cache = SQLFinancialCache(
            resolved_url,
            pool_min_size=settings.db_pool_min_size,
            pool_max_size=settings.db_pool_max_size,
            auto_create_schema=settings.cache_auto_create_schema,
        )
        logger.info("cache.initialized", extra={"backend": "database"})
        return cache
    except Exception:
        logger.exception("cache.init_failed", extra={"backend": "database"})
        raise
