"""
Append-only storage for USD-pivoted price snapshots.

Two backends share the ``SnapshotStore`` interface:

* ``DatabaseSnapshotStore`` keeps one row per snapshot in a SQLAlchemy
  database; the default URL is an in-memory SQLite database, so history
  is lost on restart.
* ``RedisSnapshotStore`` pushes JSON-encoded snapshots onto a Redis list.

Neither backend evicts anything: history grows for the life of the store.
"""

from __future__ import annotations

import abc
import datetime
import json
import logging
from collections.abc import Mapping

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.config.settings import Settings
from app.db.models import Base, PriceSample
from app.db.session import create_engine, create_session_factory
from app.errors import StaleDataUnavailable, StartupFailure
from app.schemas.prices import PriceSnapshot

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class SnapshotStore(abc.ABC):
    async def init(self) -> None:
        """Prepare the backend; raise ``StartupFailure`` if it is unusable."""

    @abc.abstractmethod
    async def append(self, prices: Mapping[str, float]) -> PriceSnapshot:
        """Store a new snapshot after every existing one and return it."""

    @abc.abstractmethod
    async def latest(self) -> PriceSnapshot | None:
        """Return the most recently appended snapshot, or ``None`` when empty."""

    @abc.abstractmethod
    async def count(self) -> int: ...

    async def close(self) -> None:
        return None


class DatabaseSnapshotStore(SnapshotStore):
    def __init__(self, database_url: str) -> None:
        self._engine = create_engine(database_url)
        self._sessions = create_session_factory(self._engine)

    async def init(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as exc:
            raise StartupFailure(f"could not initialise snapshot database: {exc}") from exc

    async def append(self, prices: Mapping[str, float]) -> PriceSnapshot:
        sample = PriceSample(prices=dict(prices), captured_at=_utcnow())
        async with self._sessions() as session:
            session.add(sample)
            await session.commit()
        return self._to_snapshot(sample)

    async def latest(self) -> PriceSnapshot | None:
        try:
            async with self._sessions() as session:
                result = await session.execute(
                    select(PriceSample).order_by(PriceSample.id.desc()).limit(1)
                )
                sample = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StaleDataUnavailable(f"snapshot database unavailable: {exc}") from exc
        if sample is None:
            return None
        return self._to_snapshot(sample)

    async def count(self) -> int:
        async with self._sessions() as session:
            result = await session.execute(select(func.count()).select_from(PriceSample))
            return int(result.scalar_one())

    async def close(self) -> None:
        await self._engine.dispose()

    @staticmethod
    def _to_snapshot(sample: PriceSample) -> PriceSnapshot:
        return PriceSnapshot(id=sample.id, prices=sample.prices, captured_at=sample.captured_at)


class RedisSnapshotStore(SnapshotStore):
    def __init__(self, redis_url: str, key: str, client: Redis | None = None) -> None:
        self._client = client if client is not None else Redis.from_url(redis_url)
        self._key = key

    async def init(self) -> None:
        try:
            await self._client.ping()
        except (RedisError, OSError) as exc:
            raise StartupFailure(f"could not reach redis snapshot store: {exc}") from exc

    async def append(self, prices: Mapping[str, float]) -> PriceSnapshot:
        captured_at = _utcnow()
        payload = json.dumps({"prices": dict(prices), "captured_at": captured_at.isoformat()})
        # RPUSH returns the new list length, which is the snapshot's position.
        position = await self._client.rpush(self._key, payload)
        return PriceSnapshot(id=int(position), prices=dict(prices), captured_at=captured_at)

    async def latest(self) -> PriceSnapshot | None:
        # MULTI/EXEC so an RPUSH cannot land between reading the entry and its position
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                raw, position = await pipe.lindex(self._key, -1).llen(self._key).execute()
        except RedisError as exc:
            raise StaleDataUnavailable(f"redis snapshot store unavailable: {exc}") from exc
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
            return PriceSnapshot(
                id=int(position),
                prices=payload["prices"],
                captured_at=payload["captured_at"],
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StaleDataUnavailable(f"latest snapshot is unreadable: {exc}") from exc

    async def count(self) -> int:
        return int(await self._client.llen(self._key))

    async def close(self) -> None:
        await self._client.aclose()


def create_snapshot_store(settings: Settings) -> SnapshotStore:
    if settings.snapshot_backend == "redis":
        logger.info("using redis snapshot store (key=%s)", settings.redis_snapshot_key)
        return RedisSnapshotStore(settings.redis_url, settings.redis_snapshot_key)
    logger.info("using database snapshot store")
    return DatabaseSnapshotStore(settings.database_url)
