"""
Catalog Synchronization

Rebuilds the catalog from the seed products plus the reseller's available
products and installs it with one replace_all call. When the reseller
returns nothing the current catalog stays in place.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..clients.digiflazz_client import DigiflazzClient, normalize_brand, normalize_category
from ..models.products import Product, RawUpstreamProduct
from .catalog_store import DEFAULT_PRODUCTS, CatalogStore
from .pricing import calculate_admin_fee

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    upstream_count: int
    synced_count: int
    total_count: int

    @property
    def replaced(self) -> bool:
        return self.synced_count > 0


def to_product(raw: RawUpstreamProduct) -> Product:
    """Normalize one reseller row into a catalog product."""
    return Product(
        id=raw.buyer_sku_code,
        category=normalize_category(raw.category),
        provider=normalize_brand(raw.brand),
        name=raw.product_name,
        price=raw.price,
        admin_fee=calculate_admin_fee(raw.price),
        is_active=True,
    )


class CatalogSynchronizer:
    """
    Args:
        store: Catalog store to replace
        reseller: Upstream client
        seed_products: Products always present ahead of the upstream ones
    """

    def __init__(
        self,
        store: CatalogStore,
        reseller: DigiflazzClient,
        seed_products: Optional[List[Product]] = None
    ):
        self.store = store
        self.reseller = reseller
        self.seed_products = list(DEFAULT_PRODUCTS if seed_products is None else seed_products)

    async def ensure_seeded(self) -> bool:
        """Install the seed catalog if the store is empty. Returns True if it did."""
        if await self.store.count() > 0 or not self.seed_products:
            return False
        await self.store.replace_all(self.seed_products)
        logger.info(f"Seeded catalog with {len(self.seed_products)} default products")
        return True

    async def sync(self) -> SyncResult:
        """
        Pull the reseller price list and install a new catalog generation.

        Returns:
            SyncResult; synced_count is 0 when nothing was installed
        """
        raw_products = await self.reseller.fetch_catalog()
        upstream = [to_product(raw) for raw in raw_products if raw.is_available]

        if not upstream:
            current = await self.store.count()
            logger.warning(
                f"Reseller returned no available products ({len(raw_products)} rows); "
                f"keeping current catalog of {current}"
            )
            return SyncResult(upstream_count=len(raw_products), synced_count=0, total_count=current)

        total = await self.store.replace_all(self.seed_products + upstream)
        logger.info(f"Synced {len(upstream)} of {len(raw_products)} reseller products; catalog size {total}")
        return SyncResult(upstream_count=len(raw_products), synced_count=len(upstream), total_count=total)
