"""
Admin API Endpoints

Daily stats, recent transactions, catalog sync and the manual recovery
operations for paid transactions that need operator attention.
"""
from fastapi import APIRouter, Depends, Query
from datetime import date
from typing import Dict, Any, Optional
import logging

from ..dependencies import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


@router.get("/stats")
async def daily_stats_endpoint(
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today (UTC)"),
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    stats = await container.stats.compute_daily_stats(day)
    return stats.model_dump(by_alias=True)


@router.get("/transactions")
async def recent_transactions_endpoint(
    limit: int = Query(50, ge=1, le=500),
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    transactions = await container.transactions.list_recent(limit)
    return {
        "success": True,
        "count": len(transactions),
        "transactions": [t.model_dump(by_alias=True, mode="json") for t in transactions],
    }


@router.post("/sync-products")
async def sync_products_endpoint(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """
    Pull the reseller price list and replace the catalog.

    An empty or failed upstream fetch keeps the current catalog; the
    response then reports syncedCount 0.
    """
    result = await container.catalog_sync.sync()
    logger.info(f"Manual catalog sync: synced={result.synced_count}, total={result.total_count}")
    return {
        "success": True,
        "replaced": result.replaced,
        "upstreamCount": result.upstream_count,
        "syncedCount": result.synced_count,
        "totalCount": result.total_count,
    }


@router.post("/transactions/{transaction_id}/retry-fulfillment")
async def retry_fulfillment_endpoint(
    transaction_id: str,
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    transaction = await container.transactions.retry_fulfillment(transaction_id)
    return {"success": True, "transaction": transaction.model_dump(by_alias=True, mode="json")}


@router.post("/transactions/{transaction_id}/reconcile")
async def reconcile_endpoint(
    transaction_id: str,
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    transaction = await container.transactions.reconcile(transaction_id)
    return {"success": True, "transaction": transaction.model_dump(by_alias=True, mode="json")}
