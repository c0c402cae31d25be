"""
Key-value store abstraction with Redis, SQL and in-memory backends.

Values are opaque strings; callers that store structured data encode it as
JSON themselves and read it back with ``get_json``.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence

import redis
from redis import exceptions as redis_exceptions
from sqlalchemy import Column, String, Text, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from community.errors import StoreError

_INCR_ATTEMPTS = 2


class KeyValueStore(Protocol):
    """Operations the handlers need from the key-value backend."""

    def get(self, key: str) -> Optional[str]:
        ...

    def get_json(self, key: str) -> Any:
        ...

    def get_many(self, keys: Sequence[str]) -> list[Optional[str]]:
        ...

    def put(self, key: str, value: str) -> None:
        ...

    def put_many(self, items: Mapping[str, str]) -> None:
        """Write every pair at once; readers see all of them or none."""
        ...

    def incr(self, key: str) -> int:
        ...


def decode_json(key: str, raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StoreError(f"Stored value under {key!r} is not valid JSON") from exc


def _parse_counter(key: str, raw: Optional[str]) -> int:
    if raw is None:
        return 0
    try:
        return int(raw)
    except ValueError as exc:
        raise StoreError(f"Stored value under {key!r} is not an integer") from exc


@dataclass
class InMemoryKeyValueStore:
    """Dict-backed store for tests and local runs."""

    values: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def get_json(self, key: str) -> Any:
        return decode_json(key, self.get(key))

    def get_many(self, keys: Sequence[str]) -> list[Optional[str]]:
        return [self.values.get(key) for key in keys]

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self.values[key] = value

    def put_many(self, items: Mapping[str, str]) -> None:
        with self._lock:
            self.values.update(items)

    def incr(self, key: str) -> int:
        with self._lock:
            value = _parse_counter(key, self.values.get(key)) + 1
            self.values[key] = str(value)
            return value

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.values.clear()


@dataclass
class RedisKeyValueStore:
    """Redis-backed store using plain string keys."""

    url: str

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis_exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def get_json(self, key: str) -> Any:
        return decode_json(key, self.get(key))

    def get_many(self, keys: Sequence[str]) -> list[Optional[str]]:
        if not keys:
            return []
        try:
            return list(self.client.mget(list(keys)))
        except redis_exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def put(self, key: str, value: str) -> None:
        try:
            self.client.set(key, value)
        except redis_exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def put_many(self, items: Mapping[str, str]) -> None:
        if not items:
            return
        try:
            self.client.mset(dict(items))
        except redis_exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def incr(self, key: str) -> int:
        try:
            return int(self.client.incr(key))
        except redis_exceptions.RedisError as exc:
            raise StoreError(str(exc)) from exc


class SqlKeyValueStore:
    """
    Key-value pairs kept in a single ``kv_entries`` table, one row per key.

    Counters are rows too; ``incr`` bumps them under a row lock.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlKeyValueStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get(self, key: str) -> Optional[str]:
        try:
            with self.Session() as session:
                row = session.get(KvRow, key)
                return row.value if row else None
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def get_json(self, key: str) -> Any:
        return decode_json(key, self.get(key))

    def get_many(self, keys: Sequence[str]) -> list[Optional[str]]:
        if not keys:
            return []
        try:
            with self.Session() as session:
                rows = session.execute(
                    select(KvRow).where(KvRow.key.in_(list(keys)))
                ).scalars()
                found = {row.key: row.value for row in rows}
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return [found.get(key) for key in keys]

    def put(self, key: str, value: str) -> None:
        self.put_many({key: value})

    def put_many(self, items: Mapping[str, str]) -> None:
        try:
            with self.Session() as session:
                for key, value in items.items():
                    row = session.get(KvRow, key)
                    if row:
                        row.value = value
                    else:
                        session.add(KvRow(key=key, value=value))
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def incr(self, key: str) -> int:
        for attempt in range(_INCR_ATTEMPTS):
            try:
                return self._incr_once(key)
            except IntegrityError as exc:
                # A concurrent writer created the counter row first; retry
                # so the second pass locks and bumps that row instead.
                if attempt == _INCR_ATTEMPTS - 1:
                    raise StoreError(str(exc)) from exc
            except SQLAlchemyError as exc:
                raise StoreError(str(exc)) from exc
        raise StoreError(f"Could not increment {key!r}")

    def _incr_once(self, key: str) -> int:
        with self.Session() as session:
            row = session.get(KvRow, key, with_for_update=True)
            if row is None:
                value = 1
                session.add(KvRow(key=key, value=str(value)))
            else:
                value = _parse_counter(key, row.value) + 1
                row.value = str(value)
            session.commit()
            return value


@dataclass
class NamespacedStore:
    """View over a store that prefixes every key with ``namespace:``."""

    store: KeyValueStore
    namespace: str

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        return self.store.get(self._key(key))

    def get_json(self, key: str) -> Any:
        return self.store.get_json(self._key(key))

    def get_many(self, keys: Sequence[str]) -> list[Optional[str]]:
        return self.store.get_many([self._key(key) for key in keys])

    def put(self, key: str, value: str) -> None:
        self.store.put(self._key(key), value)

    def put_many(self, items: Mapping[str, str]) -> None:
        self.store.put_many({self._key(key): value for key, value in items.items()})

    def incr(self, key: str) -> int:
        return self.store.incr(self._key(key))


Base = declarative_base()


class KvRow(Base):
    __tablename__ = "kv_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
