"""FastAPI application for the Pushup Pal API."""

import asyncio
import subprocess
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import fastapi
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings, get_settings
from core.database import (
    create_all_tables,
    create_engine,
    create_session_maker,
    dispose_engine,
    init_db,
)
from core.events import EventBus
from core.logger import configure_logging, get_logger
from core.middleware import RequestTimingMiddleware, SecurityHeadersMiddleware
from core.ratelimit import limiter, rate_limit_exceeded_handler
from routes import (
    achievements_router,
    goals_router,
    health_router,
    logs_router,
    prestige_router,
    stats_router,
)
from services.achievement_store import (
    DatabaseAchievementStore,
    FallbackAchievementStore,
    FileLocalCache,
    LocalAchievementStore,
    LocalCache,
)
from services.achievement_sync_service import AchievementPipelineRegistry
from services.notifications_service import (
    CompositeNotifier,
    InboxNotifier,
    LoggingNotifier,
)

configure_logging()
logger = get_logger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler for unhandled exceptions."""
    logger.exception(
        "unhandled.exception",
        exc_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again."},
    )


async def validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Handler for request validation errors."""
    if not isinstance(exc, RequestValidationError):
        return JSONResponse(status_code=500, content={"detail": "Unexpected error"})

    logger.warning(
        "request.validation_error",
        path=request.url.path,
        method=request.method,
        error_count=len(exc.errors()),
    )
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw ``ctx`` objects (not JSON-safe)."""
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


def build_achievement_services(
    app: fastapi.FastAPI,
    session_maker: async_sessionmaker[AsyncSession],
    settings: Settings,
    *,
    local_cache: LocalCache | None = None,
) -> AchievementPipelineRegistry:
    """Wire the event bus, badge store, notifiers and pipeline registry.

    The registry is the bus's only subscriber: every log, goal, prestige and
    session event becomes a serialized evaluation pass for that user.
    """
    bus = EventBus()
    inbox = InboxNotifier(
        ttl=settings.inbox_ttl_seconds, max_users=settings.max_cached_users
    )
    store = FallbackAchievementStore(
        DatabaseAchievementStore(
            session_maker, retry_attempts=settings.remote_retry_attempts
        ),
        LocalAchievementStore(local_cache or FileLocalCache(settings.local_cache_path)),
    )
    registry = AchievementPipelineRegistry(
        session_maker=session_maker,
        store=store,
        notifier=CompositeNotifier(inbox, LoggingNotifier()),
        settings=settings,
    )
    bus.subscribe(registry.handle_event)

    app.state.event_bus = bus
    app.state.inbox = inbox
    app.state.achievement_store = store
    app.state.achievement_registry = registry
    return registry


async def _run_alembic_migrations() -> None:
    """Run Alembic migrations in a subprocess.

    The sync migration driver must not run inside the event loop; a
    subprocess keeps it out entirely.
    """
    cmd = [
        sys.executable,
        "-c",
        (
            "from alembic import command; "
            "from alembic.config import Config; "
            "command.upgrade(Config('alembic.ini'), 'head')"
        ),
    ]
    cwd = Path(__file__).parent

    result = await asyncio.to_thread(
        lambda: subprocess.run(
            cmd, cwd=cwd, capture_output=True, text=True, timeout=120
        )
    )

    if result.returncode != 0:
        stderr = result.stderr.strip()
        logger.error("migrations.failed", stderr=stderr)
        raise RuntimeError(f"Alembic migration failed:\n{stderr}")

    logger.info("migrations.complete")


@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    """Create DB engine and achievement services at startup, dispose on shutdown."""
    settings = get_settings()
    app.state.engine = create_engine()
    app.state.session_maker = create_session_maker(app.state.engine)

    app.state.init_done = False
    app.state.init_error = None

    try:
        async with asyncio.timeout(60):
            await init_db(app.state.engine)

        if settings.is_sqlite:
            await create_all_tables(app.state.engine)
        else:
            async with asyncio.timeout(120):
                await _run_alembic_migrations()

        app.state.init_done = True
        logger.info("init.complete")
    except TimeoutError:
        logger.error(
            "init.timeout",
            hint="Startup hung - check DB connectivity and migration state",
        )
        raise RuntimeError("Application startup timed out")
    except Exception as e:
        app.state.init_error = str(e)
        logger.error("init.failed", error=str(e), exc_info=True)
        raise

    registry = build_achievement_services(app, app.state.session_maker, settings)

    try:
        yield
    finally:
        await registry.close()
        await dispose_engine(app.state.engine)


_settings = get_settings()

app = fastapi.FastAPI(
    title="Pushup Pal API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if _settings.enable_docs or _settings.debug else None,
    redoc_url="/redoc" if _settings.enable_docs or _settings.debug else None,
    openapi_url=("/openapi.json" if _settings.enable_docs or _settings.debug else None),
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-User-Id"],
)
# Outermost so the wide event covers every other middleware
app.add_middleware(RequestTimingMiddleware)

app.include_router(health_router)
app.include_router(logs_router)
app.include_router(goals_router)
app.include_router(stats_router)
app.include_router(achievements_router)
app.include_router(prestige_router)
