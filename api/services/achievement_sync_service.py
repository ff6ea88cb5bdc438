"""Serialized achievement pipeline.

Every change to a user's earned badges goes through one
``AchievementPipeline`` per user. A pass runs under an ``asyncio.Lock``:

    load logs + goal history -> derive stats -> refresh prestige
    -> reconcile with the store -> evaluate -> persist -> notify

Reconciliation makes the store the source of truth before every pass:
badges earned remotely (another device, another process) are adopted and
badges missing remotely are cleared, both silently. Only transitions found
by the evaluator notify, and the ``NotificationGate`` suppresses them during
the grace period after a session starts and de-duplicates them within a
cool-down window.

Mutations reach the pipeline as events (see core.events). Bursts are
debounced by a short settle delay; a request that arrives while a pass is
running queues one follow-up pass instead of running in parallel.
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from cachetools import TTLCache
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings, get_settings
from core.errors import RemoteStoreError
from core.events import Event, SessionStarted
from core.logger import get_logger
from services.achievement_store import AchievementStore
from services.achievements_service import evaluate
from services.badges_service import ALL_BADGES, Badge
from services.goals_service import get_goal_schedule
from services.logs_service import list_logs
from services.notifications_service import (
    NotificationKind,
    Notifier,
    build_notification,
)
from services.prestige_service import clamp_prestige, refresh_prestige
from services.stats_service import compute_derived_stats

logger = get_logger(__name__)

PROCESSED_MAX_SIZE = 1024


class NotificationGate:
    """Decides whether a badge transition should reach the notifier.

    ``processed`` holds ``(badge_id, kind)`` keys for ``cooldown_seconds``.
    Recording a transition drops the opposite kind's key, so
    award -> revoke -> award notifies every time while a repeated identical
    transition inside the window does not.
    """

    def __init__(
        self,
        grace_seconds: float,
        cooldown_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.grace_seconds = grace_seconds
        self._clock = clock
        self._session_started_at: float | None = None
        self._processed: TTLCache[tuple[str, NotificationKind], bool] = TTLCache(
            maxsize=PROCESSED_MAX_SIZE,
            ttl=max(cooldown_seconds, 0.001),
            timer=clock,
        )

    def start_session(self) -> None:
        self._session_started_at = self._clock()

    def in_grace_period(self) -> bool:
        if self._session_started_at is None:
            return False
        return self._clock() - self._session_started_at < self.grace_seconds

    def should_notify(self, badge_id: str, kind: NotificationKind) -> bool:
        opposite = (
            NotificationKind.REVOKE
            if kind is NotificationKind.AWARD
            else NotificationKind.AWARD
        )
        self._processed.pop((badge_id, opposite), None)

        key = (badge_id, kind)
        if key in self._processed:
            return False
        self._processed[key] = True
        return not self.in_grace_period()


@dataclass
class PassResult:
    awarded: list[str] = field(default_factory=list)
    revoked: list[str] = field(default_factory=list)
    adopted: list[str] = field(default_factory=list)
    cleared: list[str] = field(default_factory=list)
    prestige: int = 1
    skipped: bool = False


class AchievementPipeline:
    """Owns one user's earned-badge state."""

    def __init__(
        self,
        user_id: str,
        *,
        session_maker: async_sessionmaker[AsyncSession],
        store: AchievementStore,
        notifier: Notifier,
        settings: Settings | None = None,
        catalog: Sequence[Badge] = ALL_BADGES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.user_id = user_id
        self.settings = settings or get_settings()
        self.catalog = catalog
        self._session_maker = session_maker
        self._store = store
        self._notifier = notifier
        self.gate = NotificationGate(
            self.settings.notification_grace_seconds,
            self.settings.notification_cooldown_seconds,
            clock=clock,
        )

        self._lock = asyncio.Lock()
        self._earned: dict[str, datetime | None] = {}
        self._prestige = 1
        self._loaded = False
        self._debounce: asyncio.Task[None] | None = None
        self._running: asyncio.Task[None] | None = None
        self._rerun = False

    @property
    def earned(self) -> dict[str, datetime | None]:
        """Snapshot of the earned set with earn dates."""
        return dict(self._earned)

    @property
    def prestige(self) -> int:
        return self._prestige

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def busy(self) -> bool:
        """True while a pass is running or scheduled."""
        if self._lock.locked():
            return True
        return any(
            task is not None and not task.done()
            for task in (self._debounce, self._running)
        )

    def start_session(self) -> None:
        """Login or app start: begin the notification grace period."""
        self.gate.start_session()
        logger.info("achievement.session.started", user_id=self.user_id)

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def request_evaluation(self) -> None:
        """Schedule a pass after the settle delay, restarting the delay if one
        is already pending."""
        if self._debounce is not None and not self._debounce.done():
            self._debounce.cancel()
        self._debounce = asyncio.create_task(self._settle_then_run())

    async def _settle_then_run(self) -> None:
        await asyncio.sleep(self.settings.evaluation_settle_ms / 1000)
        self._schedule_pass()

    def _schedule_pass(self) -> None:
        if self._running is not None and not self._running.done():
            self._rerun = True
            return
        self._running = asyncio.create_task(self._run_until_settled())

    async def _run_until_settled(self) -> None:
        while True:
            self._rerun = False
            try:
                await self.run_pass()
            except Exception:
                logger.exception("achievement.pass.failed", user_id=self.user_id)
            if not self._rerun:
                return

    async def wait_idle(self) -> None:
        """Wait until no debounce or pass is pending."""
        while True:
            pending = [
                task
                for task in (self._debounce, self._running)
                if task is not None and not task.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        if self._debounce is not None and not self._debounce.done():
            self._debounce.cancel()
        await self.wait_idle()

    # -------------------------------------------------------------------------
    # Pass
    # -------------------------------------------------------------------------

    async def ensure_loaded(self) -> None:
        """Load earned state and prestige from the store on first use."""
        if self._loaded:
            return
        async with self._lock:
            if self._loaded:
                return
            await self._reconcile(PassResult())
            try:
                self._prestige = clamp_prestige(
                    await self._store.get_prestige(self.user_id),
                    self.settings.max_prestige,
                )
            except RemoteStoreError:
                logger.warning("achievement.prestige.load_failed", user_id=self.user_id)

    async def run_pass(self) -> PassResult:
        """Run one full pass under the lock and return what changed."""
        async with self._lock:
            return await self._run_pass_locked()

    async def _run_pass_locked(self) -> PassResult:
        result = PassResult(prestige=self._prestige)
        settings = self.settings

        try:
            async with self._session_maker() as db:
                logs = await list_logs(db, self.user_id)
                schedule = await get_goal_schedule(db, self.user_id, settings.default_goal)
        except SQLAlchemyError:
            # Evaluating against an empty log list would revoke everything
            logger.exception("achievement.pass.inputs_unavailable", user_id=self.user_id)
            result.skipped = True
            return result

        stats = compute_derived_stats(logs, schedule, settings.tzinfo)

        try:
            self._prestige = await refresh_prestige(
                self._store, self.user_id, stats.total_pushups, settings.max_prestige
            )
        except RemoteStoreError:
            logger.warning("achievement.prestige.refresh_failed", user_id=self.user_id)
        result.prestige = self._prestige

        await self._reconcile(result)

        evaluation = evaluate(
            logs,
            stats,
            schedule,
            self._prestige,
            self._earned.keys(),
            catalog=self.catalog,
            revocable=settings.badges_revocable,
            include_meta_rank=settings.always_include_meta_rank,
        )

        for badge in evaluation.to_award:
            earned_at = datetime.now(UTC)
            self._earned[badge.id] = earned_at
            result.awarded.append(badge.id)
            try:
                await self._store.upsert_earned(self.user_id, badge.id, earned_at)
            except RemoteStoreError:
                logger.warning(
                    "achievement.persist.failed", user_id=self.user_id, badge_id=badge.id
                )
            logger.info("achievement.awarded", user_id=self.user_id, badge_id=badge.id)
            self._notify(badge, NotificationKind.AWARD)

        for badge in evaluation.to_revoke:
            self._earned.pop(badge.id, None)
            result.revoked.append(badge.id)
            try:
                await self._store.delete_earned(self.user_id, badge.id)
            except RemoteStoreError:
                logger.warning(
                    "achievement.persist.failed", user_id=self.user_id, badge_id=badge.id
                )
            logger.info("achievement.revoked", user_id=self.user_id, badge_id=badge.id)
            self._notify(badge, NotificationKind.REVOKE)

        logger.debug(
            "achievement.pass.completed",
            user_id=self.user_id,
            awarded=len(result.awarded),
            revoked=len(result.revoked),
            prestige=result.prestige,
        )
        return result

    async def _reconcile(self, result: PassResult) -> None:
        """Replace the local earned set with the store's, silently.

        On failure the local set is kept as is.
        """
        try:
            records = await self._store.list_earned(self.user_id)
        except RemoteStoreError:
            logger.warning("achievement.reconcile.failed", user_id=self.user_id)
            return

        remote = {record.badge_id: record.earned_at for record in records}
        result.adopted = sorted(remote.keys() - self._earned.keys())
        result.cleared = sorted(self._earned.keys() - remote.keys())
        self._earned = remote
        self._loaded = True

        if result.adopted or result.cleared:
            logger.info(
                "achievement.reconciled",
                user_id=self.user_id,
                adopted=len(result.adopted),
                cleared=len(result.cleared),
            )

    def _notify(self, badge: Badge, kind: NotificationKind) -> None:
        if not self.gate.should_notify(badge.id, kind):
            logger.debug(
                "achievement.notification.suppressed",
                user_id=self.user_id,
                badge_id=badge.id,
                kind=kind.value,
            )
            return

        notification = build_notification(self.user_id, badge, kind)
        try:
            self._notifier.notify(notification)
            if kind is NotificationKind.AWARD:
                self._notifier.celebrate(notification)
        except Exception:
            logger.exception(
                "achievement.notification.failed", user_id=self.user_id, badge_id=badge.id
            )


class _PipelineCache(TTLCache):
    """TTLCache that reports every pipeline it evicts or expires."""

    def __init__(
        self,
        maxsize: int,
        ttl: float,
        timer: Callable[[], float],
        on_evict: Callable[[str, AchievementPipeline], None],
    ) -> None:
        super().__init__(maxsize=maxsize, ttl=ttl, timer=timer)
        self._on_evict = on_evict

    def popitem(self):
        user_id, pipeline = super().popitem()
        self._on_evict(user_id, pipeline)
        return user_id, pipeline

    def expire(self, now=None):
        expired = super().expire(now)
        for user_id, pipeline in expired:
            self._on_evict(user_id, pipeline)
        return expired


class AchievementPipelineRegistry:
    """Creates pipelines lazily per user and routes events to them.

    Pipelines idle for ``pipeline_idle_seconds`` expire, and at most
    ``max_cached_users`` are kept (least recently used goes first). An
    evicted pipeline that still has a pass pending is parked until it
    finishes and is handed back if its user shows up again, so a user
    never has two pipelines running at once. Earned state is reloaded from
    the store when a new pipeline starts.
    """

    def __init__(
        self,
        *,
        session_maker: async_sessionmaker[AsyncSession],
        store: AchievementStore,
        notifier: Notifier,
        settings: Settings | None = None,
        catalog: Sequence[Badge] = ALL_BADGES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_maker = session_maker
        self._store = store
        self._notifier = notifier
        self._settings = settings or get_settings()
        self._catalog = catalog
        self._clock = clock
        self._pipelines = _PipelineCache(
            maxsize=self._settings.max_cached_users,
            ttl=self._settings.pipeline_idle_seconds,
            timer=clock,
            on_evict=self._evicted,
        )
        self._draining: dict[str, AchievementPipeline] = {}

    def _evicted(self, user_id: str, pipeline: AchievementPipeline) -> None:
        if pipeline.busy:
            self._draining[user_id] = pipeline
        logger.debug("achievement.pipeline.evicted", user_id=user_id, busy=pipeline.busy)

    def get(self, user_id: str) -> AchievementPipeline:
        self._pipelines.expire()
        pipeline = self._pipelines.get(user_id)
        if pipeline is None:
            pipeline = self._draining.pop(user_id, None)
        self._draining = {uid: p for uid, p in self._draining.items() if p.busy}

        if pipeline is None:
            pipeline = AchievementPipeline(
                user_id,
                session_maker=self._session_maker,
                store=self._store,
                notifier=self._notifier,
                settings=self._settings,
                catalog=self._catalog,
                clock=self._clock,
            )
        # Re-insert so the idle timeout counts from the latest use
        self._pipelines[user_id] = pipeline
        return pipeline

    def _all(self) -> list[AchievementPipeline]:
        self._pipelines.expire()
        return list(self._pipelines.values()) + list(self._draining.values())

    async def handle_event(self, event: Event) -> None:
        pipeline = self.get(event.user_id)
        if isinstance(event, SessionStarted):
            pipeline.start_session()
        pipeline.request_evaluation()

    async def wait_idle(self) -> None:
        for pipeline in self._all():
            await pipeline.wait_idle()

    async def close(self) -> None:
        for pipeline in self._all():
            await pipeline.close()
        self._pipelines.clear()
        self._draining.clear()
