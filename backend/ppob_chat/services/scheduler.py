"""
Catalog Sync Timer

Runs CatalogSynchronizer.sync on a fixed interval with APScheduler. The
job definition lives in a SQLite job store next to the main database, so
after a restart a missed run is coalesced into one immediate sync.
"""
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings

logger = logging.getLogger(__name__)

CATALOG_SYNC_JOB_ID = "catalog_sync"


def scheduler_db_path(database_path: str) -> str:
    """./ppob_chat.db -> ./ppob_chat_scheduler.db (kept separate to avoid write-lock contention)."""
    path = Path(database_path)
    return str(path.with_name(f"{path.stem}_scheduler{path.suffix or '.db'}"))


async def run_scheduled_catalog_sync() -> None:
    """Job entry point. Module-level so the job store can reference it by name."""
    from ..dependencies import get_container

    result = await get_container().catalog_sync.sync()
    logger.info(
        f"Scheduled catalog sync: upstream={result.upstream_count}, "
        f"synced={result.synced_count}, total={result.total_count}"
    )


class CatalogSyncScheduler:
    """
    Args:
        interval_minutes: Minutes between syncs
        database_path: Main database file; the job store sits beside it
    """

    def __init__(self, interval_minutes: int, database_path: str):
        self.interval = timedelta(minutes=interval_minutes)
        self.scheduler = AsyncIOScheduler(
            jobstores={
                "default": SQLAlchemyJobStore(
                    url=f"sqlite:///{scheduler_db_path(database_path)}",
                    engine_options={"connect_args": {"timeout": 30, "check_same_thread": False}},
                )
            },
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                # one sync at a time; runs missed while down collapse into one
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": 300,
            },
            timezone="UTC",
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Start the scheduler and (re)register the sync job. Needs a running event loop."""
        self.scheduler.start()
        job = self.scheduler.add_job(
            run_scheduled_catalog_sync,
            trigger=IntervalTrigger(seconds=int(self.interval.total_seconds())),
            id=CATALOG_SYNC_JOB_ID,
            name="Reseller catalog sync",
            replace_existing=True,
        )
        logger.info(f"Catalog sync job scheduled every {self.interval}, next run {job.next_run_time}")

    def get_job(self):
        return self.scheduler.get_job(CATALOG_SYNC_JOB_ID)

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info(f"Catalog sync scheduler stopped (wait={wait})")


_scheduler: Optional[CatalogSyncScheduler] = None


def start_scheduler() -> bool:
    """
    Start the catalog sync timer during app startup.

    Returns:
        False when catalog_sync_interval_minutes is 0 (timer disabled)
    """
    global _scheduler
    interval = settings.catalog_sync_interval_minutes
    if interval <= 0:
        logger.info("Catalog sync timer disabled")
        return False
    if _scheduler is None:
        _scheduler = CatalogSyncScheduler(interval, settings.database_path)
    if not _scheduler.running:
        _scheduler.start()
    return True


def get_scheduler() -> Optional[CatalogSyncScheduler]:
    return _scheduler


def shutdown_scheduler(wait: bool = True) -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=wait)
        _scheduler = None
