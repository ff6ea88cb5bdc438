#!/usr/bin/env python3
"""CLI for Pushup Pal API management tasks.

Usage:
    python -m cli <command>

Commands:
    migrate              Run database migrations
    evaluate <user_id>   Run one achievement evaluation pass for a user
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _get_alembic_config():
    from alembic.config import Config

    api_dir = Path(__file__).resolve().parent
    cfg = Config(str(api_dir / "alembic.ini"))
    # Make script_location absolute so it works from any working directory.
    cfg.set_main_option("script_location", str(api_dir / "alembic"))
    return cfg


def cmd_migrate(target: str = "head") -> int:
    """Run database migrations."""
    from alembic import command

    logger.info("Running database migrations...")
    command.upgrade(_get_alembic_config(), target)
    logger.info("Migrations complete")
    return 0


async def _evaluate(user_id: str) -> int:
    from core.config import get_settings
    from core.database import create_engine, create_session_maker, dispose_engine
    from services.achievement_store import (
        DatabaseAchievementStore,
        FallbackAchievementStore,
        FileLocalCache,
        LocalAchievementStore,
    )
    from services.achievement_sync_service import AchievementPipeline
    from services.notifications_service import LoggingNotifier

    settings = get_settings()
    engine = create_engine()
    try:
        session_maker = create_session_maker(engine)
        store = FallbackAchievementStore(
            DatabaseAchievementStore(
                session_maker, retry_attempts=settings.remote_retry_attempts
            ),
            LocalAchievementStore(FileLocalCache(settings.local_cache_path)),
        )
        pipeline = AchievementPipeline(
            user_id,
            session_maker=session_maker,
            store=store,
            notifier=LoggingNotifier(),
            settings=settings,
        )
        result = await pipeline.run_pass()
    finally:
        await dispose_engine(engine)

    if result.skipped:
        logger.error("Evaluation skipped: logs could not be loaded")
        return 1

    print(f"prestige: {result.prestige}")
    print(f"awarded: {', '.join(result.awarded) or '-'}")
    print(f"revoked: {', '.join(result.revoked) or '-'}")
    return 0


def cmd_evaluate(user_id: str) -> int:
    """Run one evaluation pass and print the transitions."""
    return asyncio.run(_evaluate(user_id))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Pushup Pal API CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser("migrate", help="Run database migrations")
    migrate.add_argument(
        "target", nargs="?", default="head", help="Target revision (default: head)"
    )

    evaluate = subparsers.add_parser(
        "evaluate", help="Run one achievement evaluation pass for a user"
    )
    evaluate.add_argument("user_id", help="User id as forwarded in X-User-Id")

    args = parser.parse_args()

    if args.command == "migrate":
        return cmd_migrate(args.target)
    elif args.command == "evaluate":
        return cmd_evaluate(args.user_id)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
