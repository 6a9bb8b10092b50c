"""
Products API Endpoints

Catalog reads for the chat widget and the list of payment channels the
gateway accepts.
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
import logging

from ..clients.paydisini_client import PaydisiniClient
from ..dependencies import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/products")
async def list_products_endpoint(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """
    List the full catalog in display order.

    Example:
        GET /api/products
    """
    products = await container.catalog.list_all()
    return {
        "success": True,
        "count": len(products),
        "products": [p.model_dump(by_alias=True) for p in products],
    }


@router.get("/products/{category}")
async def list_category_endpoint(
    category: str,
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    """
    List active products for one category (pulsa, data, pln, ...).

    An unknown category yields an empty list, not a 404.
    """
    logger.debug(f"Listing category: {category}")
    products = await container.catalog.list_by_category(category.lower())
    return {
        "success": True,
        "category": category.lower(),
        "count": len(products),
        "products": [p.model_dump(by_alias=True) for p in products],
    }


@router.get("/payment-methods")
async def payment_methods_endpoint() -> Dict[str, Any]:
    services = PaydisiniClient.available_services()
    return {
        "success": True,
        "paymentMethods": [{"id": key, "name": name} for key, name in services.items()],
    }
