"""Named, durable cache stores.

A :class:`CacheStorage` holds any number of named :class:`CacheStore`
objects, each mapping a request key to a :class:`ResponseSnapshot`. Writes
overwrite, so a store never holds more than one entry per key. Stores are
created on first :meth:`CacheStorage.open` and only disappear through
:meth:`CacheStorage.delete`.

Three backends are available, selected by ``CACHE_TYPE``: ``inmemory``,
``redis`` and ``database``.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import redis.asyncio as aioredis
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import Settings
from app.db.models.cache import CacheEntry, CacheStoreRecord
from app.offline.stores import ResponseSnapshot


class CacheStore(ABC):
    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def match(self, key: str) -> Optional[ResponseSnapshot]: ...

    @abstractmethod
    async def put(self, key: str, snapshot: ResponseSnapshot) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def keys(self) -> List[str]: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class CacheStorage(ABC):
    @abstractmethod
    async def open(self, name: str) -> CacheStore: ...

    @abstractmethod
    async def keys(self) -> List[str]: ...

    @abstractmethod
    async def has(self, name: str) -> bool: ...

    @abstractmethod
    async def delete(self, name: str) -> bool: ...

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryCacheStore(CacheStore):
    def __init__(self, name: str, entries: Dict[str, ResponseSnapshot]):
        super().__init__(name)
        self._entries = entries

    async def match(self, key: str) -> Optional[ResponseSnapshot]:
        return self._entries.get(key)

    async def put(self, key: str, snapshot: ResponseSnapshot) -> None:
        self._entries[key] = snapshot

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def keys(self) -> List[str]:
        return list(self._entries)


class InMemoryCacheStorage(CacheStorage):
    def __init__(self):
        self._stores: Dict[str, Dict[str, ResponseSnapshot]] = {}

    async def open(self, name: str) -> CacheStore:
        entries = self._stores.setdefault(name, {})
        return InMemoryCacheStore(name, entries)

    async def keys(self) -> List[str]:
        return list(self._stores)

    async def has(self, name: str) -> bool:
        return name in self._stores

    async def delete(self, name: str) -> bool:
        return self._stores.pop(name, None) is not None


# ---------------------------------------------------------------------------
# Redis: a set of store names plus one hash per store
# ---------------------------------------------------------------------------


class RedisCacheStore(CacheStore):
    def __init__(self, name: str, client: aioredis.Redis, hash_key: str):
        super().__init__(name)
        self._redis = client
        self._hash_key = hash_key

    async def match(self, key: str) -> Optional[ResponseSnapshot]:
        value = await self._redis.hget(self._hash_key, key)
        return ResponseSnapshot.loads(value) if value else None

    async def put(self, key: str, snapshot: ResponseSnapshot) -> None:
        await self._redis.hset(self._hash_key, key, snapshot.dumps())

    async def delete(self, key: str) -> bool:
        return bool(await self._redis.hdel(self._hash_key, key))

    async def keys(self) -> List[str]:
        return [_text(k) for k in await self._redis.hkeys(self._hash_key)]


class RedisCacheStorage(CacheStorage):
    def __init__(self, client: aioredis.Redis, namespace: str = "cache-storage"):
        self._redis = client
        self._namespace = namespace

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStorage":
        return cls(aioredis.from_url(url))

    @property
    def _names_key(self) -> str:
        return f"{self._namespace}:stores"

    def _hash_key(self, name: str) -> str:
        return f"{self._namespace}:store:{name}"

    async def open(self, name: str) -> CacheStore:
        await self._redis.sadd(self._names_key, name)
        return RedisCacheStore(name, self._redis, self._hash_key(name))

    async def keys(self) -> List[str]:
        names = await self._redis.smembers(self._names_key)
        return sorted(_text(n) for n in names)

    async def has(self, name: str) -> bool:
        return bool(await self._redis.sismember(self._names_key, name))

    async def delete(self, name: str) -> bool:
        removed = await self._redis.srem(self._names_key, name)
        await self._redis.delete(self._hash_key(name))
        return bool(removed)

    async def close(self) -> None:
        await self._redis.aclose()


def _text(value) -> str:
    return value.decode() if isinstance(value, bytes) else value


# ---------------------------------------------------------------------------
# SQL database
# ---------------------------------------------------------------------------


class DatabaseCacheStore(CacheStore):
    def __init__(self, name: str, store_id: int, session_factory: async_sessionmaker):
        super().__init__(name)
        self._store_id = store_id
        self._session_factory = session_factory

    async def match(self, key: str) -> Optional[ResponseSnapshot]:
        async with self._session_factory() as db:
            value = await db.scalar(
                select(CacheEntry.value).where(
                    CacheEntry.store_id == self._store_id, CacheEntry.key == key
                )
            )
        return ResponseSnapshot.loads(value) if value else None

    async def put(self, key: str, snapshot: ResponseSnapshot) -> None:
        try:
            await self._replace(key, snapshot)
        except IntegrityError:
            # A concurrent writer inserted the same key between our delete and
            # insert; replace again so the latest write wins.
            await self._replace(key, snapshot)

    async def _replace(self, key: str, snapshot: ResponseSnapshot) -> None:
        async with self._session_factory() as db:
            async with db.begin():
                # Delete existing
                await db.execute(
                    delete(CacheEntry).where(
                        CacheEntry.store_id == self._store_id, CacheEntry.key == key
                    )
                )
                # Insert new
                db.add(
                    CacheEntry(
                        store_id=self._store_id,
                        key=key,
                        value=snapshot.dumps(),
                        captured_at=snapshot.captured_at,
                    )
                )

    async def delete(self, key: str) -> bool:
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    delete(CacheEntry).where(
                        CacheEntry.store_id == self._store_id, CacheEntry.key == key
                    )
                )
        return result.rowcount > 0

    async def keys(self) -> List[str]:
        async with self._session_factory() as db:
            result = await db.scalars(
                select(CacheEntry.key)
                .where(CacheEntry.store_id == self._store_id)
                .order_by(CacheEntry.id)
            )
            return list(result)


class DatabaseCacheStorage(CacheStorage):
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def open(self, name: str) -> CacheStore:
        store_id = await self._store_id(name)
        if store_id is None:
            try:
                async with self._session_factory() as db:
                    async with db.begin():
                        record = CacheStoreRecord(name=name)
                        db.add(record)
                        await db.flush()
                        store_id = record.id
            except IntegrityError:
                store_id = await self._store_id(name)
        return DatabaseCacheStore(name, store_id, self._session_factory)

    async def _store_id(self, name: str) -> Optional[int]:
        async with self._session_factory() as db:
            return await db.scalar(
                select(CacheStoreRecord.id).where(CacheStoreRecord.name == name)
            )

    async def keys(self) -> List[str]:
        async with self._session_factory() as db:
            result = await db.scalars(
                select(CacheStoreRecord.name).order_by(CacheStoreRecord.id)
            )
            return list(result)

    async def has(self, name: str) -> bool:
        return await self._store_id(name) is not None

    async def delete(self, name: str) -> bool:
        store_id = await self._store_id(name)
        if store_id is None:
            return False
        async with self._session_factory() as db:
            async with db.begin():
                await db.execute(
                    delete(CacheEntry).where(CacheEntry.store_id == store_id)
                )
                await db.execute(
                    delete(CacheStoreRecord).where(CacheStoreRecord.id == store_id)
                )
        return True


def build_storage(
    config: Settings, session_factory: async_sessionmaker | None = None
) -> CacheStorage:
    cache_type = config.CACHE_TYPE.lower()
    if cache_type == "redis" and config.REDIS_URL:
        return RedisCacheStorage.from_url(config.REDIS_URL)
    if cache_type == "database":
        if session_factory is None:
            from app.db.session import SessionLocal

            session_factory = SessionLocal
        return DatabaseCacheStorage(session_factory)
    return InMemoryCacheStorage()
