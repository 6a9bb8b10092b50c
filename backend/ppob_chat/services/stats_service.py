"""
Admin Aggregation

Daily dashboard counters recomputed from the transactions table on every
read. The admin_stats row is a cache of the last computation, never a
source of truth.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..db.models import AdminStatsModel
from ..models.stats import AdminDailyStats
from ..models.transactions import TransactionStatus
from .transaction_service import TransactionRepository

logger = logging.getLogger(__name__)


class StatsService:

    def __init__(self, repository: TransactionRepository, session_factory: async_sessionmaker):
        self.repository = repository
        self._session_factory = session_factory

    async def compute_daily_stats(self, day: Optional[date] = None) -> AdminDailyStats:
        """
        Count transactions created on a UTC calendar day.

        Args:
            day: Day to aggregate (default: today, UTC)

        Returns:
            AdminDailyStats; revenue sums total_amount of success transactions only
        """
        day = day or datetime.utcnow().date()
        start = datetime.combine(day, time.min)
        transactions = await self.repository.list_created_between(start, start + timedelta(days=1))

        stats = AdminDailyStats(
            date=day.isoformat(),
            transaction_count=len(transactions),
            revenue=sum(t.total_amount for t in transactions if t.status == TransactionStatus.SUCCESS),
            pending_count=sum(1 for t in transactions if t.status == TransactionStatus.PENDING),
            failed_count=sum(1 for t in transactions if t.status == TransactionStatus.FAILED),
        )
        await self._store(stats)
        return stats

    async def _store(self, stats: AdminDailyStats) -> None:
        """Upsert the day's cache row; concurrent first reads of a day both succeed."""
        values = {
            "total_transactions": stats.transaction_count,
            "total_revenue": stats.revenue,
            "pending_transactions": stats.pending_count,
            "failed_transactions": stats.failed_count,
            "computed_at": datetime.utcnow(),
        }
        stmt = sqlite_insert(AdminStatsModel).values(date=stats.date, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[AdminStatsModel.date], set_=values)
        async with self._session_factory() as db:
            await db.execute(stmt)
            await db.commit()
        logger.debug(f"Stored admin stats for {stats.date}")
