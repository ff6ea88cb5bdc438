"""Storage ports for earned badges and prestige.

``AchievementStore`` is the interface the achievement pipeline talks to.
Adapters:

- ``DatabaseAchievementStore``: the authoritative remote store (SQLAlchemy),
  with retries and a circuit breaker; failures surface as
  ``RemoteStoreError``.
- ``LocalAchievementStore``: a durable key/value cache holding JSON under
  ``achievements:<user>`` and ``prestigeLevel:<user>``.
- ``FallbackAchievementStore``: remote first, mirrored locally, and falling
  back to the local copy when the remote fails. Writes the remote rejected
  are journaled under ``pendingAchievements:<user>`` and
  ``pendingPrestige:<user>`` and replayed before the next read.

Only earned badges are stored; a missing record means "not earned".
"""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Protocol, TypeVar
from urllib.parse import quote

from circuitbreaker import CircuitBreaker, CircuitBreakerError
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from core.errors import RemoteStoreError
from core.logger import get_logger
from repositories.achievement_repository import AchievementRepository
from repositories.prestige_repository import PrestigeRepository

logger = get_logger(__name__)

T = TypeVar("T")

# Connection drops, timeouts and similar; constraint violations are not retried
RETRIABLE_EXCEPTIONS = (OperationalError, ConnectionError, TimeoutError, OSError)


@dataclass(frozen=True)
class EarnedRecord:
    badge_id: str
    earned_at: datetime | None = None


class PendingOp(StrEnum):
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class PendingWrite:
    """A badge write the remote store has not accepted yet."""

    badge_id: str
    op: PendingOp
    earned_at: datetime | None = None


class AchievementStore(Protocol):
    async def list_earned(self, user_id: str) -> list[EarnedRecord]: ...

    async def upsert_earned(
        self, user_id: str, badge_id: str, earned_at: datetime
    ) -> None: ...

    async def delete_earned(self, user_id: str, badge_id: str) -> None: ...

    async def get_prestige(self, user_id: str) -> int | None: ...

    async def set_prestige(self, user_id: str, level: int) -> None: ...


# =============================================================================
# Durable local cache
# =============================================================================


class LocalCache(Protocol):
    """String key/value storage that survives restarts."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryLocalCache:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileLocalCache:
    """One file per key under ``directory``; writes replace the file atomically."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def achievements_key(user_id: str) -> str:
    return f"achievements:{user_id}"


def prestige_key(user_id: str) -> str:
    return f"prestigeLevel:{user_id}"


def pending_achievements_key(user_id: str) -> str:
    return f"pendingAchievements:{user_id}"


def pending_prestige_key(user_id: str) -> str:
    return f"pendingPrestige:{user_id}"


class LocalAchievementStore:
    """Earned badges and prestige kept as JSON in a ``LocalCache``.

    The badge value is a list of ``{"id", "earned", "date"}`` objects.
    Unparseable values are discarded and treated as empty.
    """

    def __init__(self, cache: LocalCache) -> None:
        self.cache = cache

    def _read_json(self, key: str) -> object | None:
        raw = self.cache.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("local_cache.malformed", key=key)
            self.cache.delete(key)
            return None

    def _read_records(self, user_id: str) -> dict[str, EarnedRecord]:
        key = achievements_key(user_id)
        data = self._read_json(key)
        if data is None:
            return {}
        if not isinstance(data, list):
            logger.warning("local_cache.malformed", key=key)
            self.cache.delete(key)
            return {}

        records: dict[str, EarnedRecord] = {}
        for item in data:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                continue
            if not item.get("earned", True):
                continue
            records[item["id"]] = EarnedRecord(item["id"], _parse_date(item.get("date")))
        return records

    def _write_records(self, user_id: str, records: dict[str, EarnedRecord]) -> None:
        payload = [
            {
                "id": record.badge_id,
                "earned": True,
                "date": record.earned_at.isoformat() if record.earned_at else None,
            }
            for record in records.values()
        ]
        self.cache.set(achievements_key(user_id), json.dumps(payload))

    async def list_earned(self, user_id: str) -> list[EarnedRecord]:
        return list(self._read_records(user_id).values())

    async def upsert_earned(self, user_id: str, badge_id: str, earned_at: datetime) -> None:
        records = self._read_records(user_id)
        records[badge_id] = EarnedRecord(badge_id, earned_at)
        self._write_records(user_id, records)

    async def delete_earned(self, user_id: str, badge_id: str) -> None:
        records = self._read_records(user_id)
        if records.pop(badge_id, None) is not None:
            self._write_records(user_id, records)

    async def replace_earned(self, user_id: str, earned: list[EarnedRecord]) -> None:
        self._write_records(user_id, {record.badge_id: record for record in earned})

    async def get_prestige(self, user_id: str) -> int | None:
        key = prestige_key(user_id)
        data = self._read_json(key)
        if data is None:
            return None
        if isinstance(data, bool) or not isinstance(data, int):
            logger.warning("local_cache.malformed", key=key)
            self.cache.delete(key)
            return None
        return data

    async def set_prestige(self, user_id: str, level: int) -> None:
        self.cache.set(prestige_key(user_id), json.dumps(level))

    # -- pending remote writes -------------------------------------------------

    def pending_writes(self, user_id: str) -> list[PendingWrite]:
        """Journaled badge writes, at most one per badge (the latest)."""
        key = pending_achievements_key(user_id)
        data = self._read_json(key)
        if data is None:
            return []
        if not isinstance(data, dict):
            logger.warning("local_cache.malformed", key=key)
            self.cache.delete(key)
            return []

        writes = []
        for badge_id, item in data.items():
            if not isinstance(item, dict):
                continue
            try:
                op = PendingOp(item.get("op"))
            except ValueError:
                continue
            writes.append(PendingWrite(badge_id, op, _parse_date(item.get("date"))))
        return writes

    def _write_pending(self, user_id: str, writes: list[PendingWrite]) -> None:
        key = pending_achievements_key(user_id)
        if not writes:
            self.cache.delete(key)
            return
        payload = {
            write.badge_id: {
                "op": write.op.value,
                "date": write.earned_at.isoformat() if write.earned_at else None,
            }
            for write in writes
        }
        self.cache.set(key, json.dumps(payload))

    def add_pending(self, user_id: str, write: PendingWrite) -> None:
        writes = [w for w in self.pending_writes(user_id) if w.badge_id != write.badge_id]
        writes.append(write)
        self._write_pending(user_id, writes)

    def drop_pending(self, user_id: str, badge_id: str) -> None:
        writes = self.pending_writes(user_id)
        remaining = [w for w in writes if w.badge_id != badge_id]
        if len(remaining) != len(writes):
            self._write_pending(user_id, remaining)

    def pending_prestige(self, user_id: str) -> int | None:
        key = pending_prestige_key(user_id)
        data = self._read_json(key)
        if data is None:
            return None
        if isinstance(data, bool) or not isinstance(data, int):
            logger.warning("local_cache.malformed", key=key)
            self.cache.delete(key)
            return None
        return data

    def set_pending_prestige(self, user_id: str, level: int | None) -> None:
        key = pending_prestige_key(user_id)
        if level is None:
            self.cache.delete(key)
        else:
            self.cache.set(key, json.dumps(level))


def _parse_date(value: object) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


# =============================================================================
# Remote store
# =============================================================================


class DatabaseAchievementStore:
    """Authoritative store backed by the ``earned_achievements`` and
    ``user_prestige`` tables.

    Each call opens its own session and commits, independent of any request
    session. Transient failures are retried with jittered backoff; repeated
    failures open the circuit so later calls fail fast.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        retry_attempts: int = 3,
        failure_threshold: int = 5,
        recovery_timeout: int = 30,
        retry_max_wait: float = 2.0,
    ) -> None:
        self._session_maker = session_maker
        self._retry_attempts = max(1, retry_attempts)
        self._retry_max_wait = retry_max_wait
        self._breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            expected_exception=SQLAlchemyError,
            name="achievement_store_circuit",
        )

    async def _run(
        self,
        operation: str,
        user_id: str,
        work: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        @self._breaker
        async def _call() -> T:
            async with self._session_maker() as session:
                result = await work(session)
                await session.commit()
                return result

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential_jitter(initial=0.1, max=self._retry_max_wait),
                reraise=True,
            ):
                with attempt:
                    return await _call()
        except (SQLAlchemyError, OSError, CircuitBreakerError) as e:
            logger.warning(
                "achievement_store.remote.failed",
                operation=operation,
                user_id=user_id,
                error_type=type(e).__name__,
            )
            raise RemoteStoreError(operation, user_id) from e
        raise RemoteStoreError(operation, user_id)

    async def list_earned(self, user_id: str) -> list[EarnedRecord]:
        async def work(session: AsyncSession) -> list[EarnedRecord]:
            rows = await AchievementRepository(session).list_for_user(user_id)
            return [EarnedRecord(row.badge_id, _as_utc(row.earned_at)) for row in rows]

        return await self._run("list_earned", user_id, work)

    async def upsert_earned(self, user_id: str, badge_id: str, earned_at: datetime) -> None:
        async def work(session: AsyncSession) -> None:
            await AchievementRepository(session).upsert(user_id, badge_id, earned_at)

        await self._run("upsert_earned", user_id, work)

    async def delete_earned(self, user_id: str, badge_id: str) -> None:
        async def work(session: AsyncSession) -> None:
            await AchievementRepository(session).delete(user_id, badge_id)

        await self._run("delete_earned", user_id, work)

    async def get_prestige(self, user_id: str) -> int | None:
        async def work(session: AsyncSession) -> int | None:
            return await PrestigeRepository(session).get(user_id)

        return await self._run("get_prestige", user_id, work)

    async def set_prestige(self, user_id: str, level: int) -> None:
        async def work(session: AsyncSession) -> None:
            await PrestigeRepository(session).set(user_id, level)

        await self._run("set_prestige", user_id, work)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# =============================================================================
# Composition
# =============================================================================


class FallbackAchievementStore:
    """Remote store with a local mirror.

    Reads go to the remote and refresh the mirror; when the remote fails the
    mirror answers instead. Writes always land in the mirror and are
    attempted remotely. A remote write failure is logged and journaled in
    the local cache; the journal is replayed before the next remote read, so
    the remote never answers without the writes it missed.
    """

    def __init__(self, remote: AchievementStore, local: LocalAchievementStore) -> None:
        self.remote = remote
        self.local = local

    async def _replay_pending(self, user_id: str) -> None:
        for write in self.local.pending_writes(user_id):
            if write.op is PendingOp.UPSERT:
                earned_at = write.earned_at or datetime.now(UTC)
                await self.remote.upsert_earned(user_id, write.badge_id, earned_at)
            else:
                await self.remote.delete_earned(user_id, write.badge_id)
            self.local.drop_pending(user_id, write.badge_id)
            logger.info(
                "achievement_store.pending.replayed",
                user_id=user_id,
                badge_id=write.badge_id,
                op=write.op.value,
            )

    async def list_earned(self, user_id: str) -> list[EarnedRecord]:
        try:
            await self._replay_pending(user_id)
            records = await self.remote.list_earned(user_id)
        except RemoteStoreError:
            logger.warning("achievement_store.fallback", operation="list_earned", user_id=user_id)
            return await self.local.list_earned(user_id)

        records = _apply_pending(records, self.local.pending_writes(user_id))
        await self.local.replace_earned(user_id, records)
        return records

    async def upsert_earned(self, user_id: str, badge_id: str, earned_at: datetime) -> None:
        await self.local.upsert_earned(user_id, badge_id, earned_at)
        try:
            await self.remote.upsert_earned(user_id, badge_id, earned_at)
        except RemoteStoreError:
            logger.warning(
                "achievement_store.fallback",
                operation="upsert_earned",
                user_id=user_id,
                badge_id=badge_id,
            )
            self.local.add_pending(user_id, PendingWrite(badge_id, PendingOp.UPSERT, earned_at))
            return
        self.local.drop_pending(user_id, badge_id)

    async def delete_earned(self, user_id: str, badge_id: str) -> None:
        await self.local.delete_earned(user_id, badge_id)
        try:
            await self.remote.delete_earned(user_id, badge_id)
        except RemoteStoreError:
            logger.warning(
                "achievement_store.fallback",
                operation="delete_earned",
                user_id=user_id,
                badge_id=badge_id,
            )
            self.local.add_pending(user_id, PendingWrite(badge_id, PendingOp.DELETE))
            return
        self.local.drop_pending(user_id, badge_id)

    async def get_prestige(self, user_id: str) -> int | None:
        try:
            pending = self.local.pending_prestige(user_id)
            if pending is not None:
                await self.remote.set_prestige(user_id, pending)
                self.local.set_pending_prestige(user_id, None)
            level = await self.remote.get_prestige(user_id)
        except RemoteStoreError:
            logger.warning("achievement_store.fallback", operation="get_prestige", user_id=user_id)
            return await self.local.get_prestige(user_id)
        if level is not None:
            await self.local.set_prestige(user_id, level)
        return level

    async def set_prestige(self, user_id: str, level: int) -> None:
        await self.local.set_prestige(user_id, level)
        try:
            await self.remote.set_prestige(user_id, level)
        except RemoteStoreError:
            logger.warning("achievement_store.fallback", operation="set_prestige", user_id=user_id)
            self.local.set_pending_prestige(user_id, level)
            return
        self.local.set_pending_prestige(user_id, None)


def _apply_pending(
    records: list[EarnedRecord], pending: list[PendingWrite]
) -> list[EarnedRecord]:
    """Overlay journaled writes on a remote listing."""
    merged = {record.badge_id: record for record in records}
    for write in pending:
        if write.op is PendingOp.UPSERT:
            merged[write.badge_id] = EarnedRecord(write.badge_id, write.earned_at)
        else:
            merged.pop(write.badge_id, None)
    return list(merged.values())
