"""
Catalog Store

Holds the purchasable product set. Two backends share one interface:
an in-memory store that swaps immutable snapshots, and a SQL store that
replaces the table inside a single database transaction. Either way a
reader sees the complete old catalog or the complete new one.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..db.models import ProductModel
from ..models.products import Product
from .pricing import calculate_admin_fee

logger = logging.getLogger(__name__)


def _dedupe(products: Iterable[Product]) -> List[Product]:
    """Later duplicates replace earlier ones but keep the earlier position."""
    by_id: Dict[str, Product] = {}
    for product in products:
        by_id[product.id] = product
    return list(by_id.values())


class CatalogStore(ABC):
    """Read-mostly product collection, written only by replace_all."""

    @abstractmethod
    async def list_all(self) -> List[Product]:
        """Active products in catalog order."""

    @abstractmethod
    async def list_by_category(self, category: str) -> List[Product]:
        """Active products of one category in catalog order."""

    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        """Product by id, active or not."""

    @abstractmethod
    async def replace_all(self, products: List[Product]) -> int:
        """Atomically install a new catalog generation. Returns its size."""

    @abstractmethod
    async def count(self) -> int:
        """Number of products in the current generation."""


# ============================================================================
# In-memory backend
# ============================================================================

@dataclass(frozen=True)
class _Snapshot:
    products: Tuple[Product, ...] = ()
    by_id: Dict[str, Product] = field(default_factory=dict)


class InMemoryCatalogStore(CatalogStore):
    """
    Catalog held in process memory.

    Every generation is an immutable snapshot; replace_all builds the next
    one aside and installs it with a single reference assignment.
    """

    def __init__(self, products: Optional[List[Product]] = None):
        self._snapshot = _Snapshot()
        if products:
            self._snapshot = self._build(products)

    @staticmethod
    def _build(products: Iterable[Product]) -> _Snapshot:
        ordered = tuple(_dedupe(products))
        return _Snapshot(products=ordered, by_id={p.id: p for p in ordered})

    async def list_all(self) -> List[Product]:
        snapshot = self._snapshot
        return [p for p in snapshot.products if p.is_active]

    async def list_by_category(self, category: str) -> List[Product]:
        snapshot = self._snapshot
        return [p for p in snapshot.products if p.is_active and p.category == category]

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        return self._snapshot.by_id.get(product_id)

    async def replace_all(self, products: List[Product]) -> int:
        snapshot = self._build(products)
        self._snapshot = snapshot
        logger.info(f"In-memory catalog replaced: {len(snapshot.products)} products")
        return len(snapshot.products)

    async def count(self) -> int:
        return len(self._snapshot.products)


# ============================================================================
# SQL backend
# ============================================================================

def _to_product(row: ProductModel) -> Product:
    return Product(
        id=row.id,
        category=row.category,
        provider=row.provider,
        name=row.name,
        price=row.price,
        admin_fee=row.admin_fee,
        is_active=row.is_active,
    )


class SqlCatalogStore(CatalogStore):
    """
    Catalog persisted in the products table.

    replace_all deletes and re-inserts within one transaction; until it
    commits, other sessions keep reading the previous generation.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def list_all(self) -> List[Product]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ProductModel)
                .where(ProductModel.is_active.is_(True))
                .order_by(ProductModel.position)
            )
            return [_to_product(row) for row in result.scalars().all()]

    async def list_by_category(self, category: str) -> List[Product]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ProductModel)
                .where(ProductModel.category == category, ProductModel.is_active.is_(True))
                .order_by(ProductModel.position)
            )
            return [_to_product(row) for row in result.scalars().all()]

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        async with self._session_factory() as db:
            row = await db.get(ProductModel, product_id)
            return _to_product(row) if row else None

    async def replace_all(self, products: List[Product]) -> int:
        ordered = _dedupe(products)
        async with self._session_factory() as db:
            async with db.begin():
                await db.execute(delete(ProductModel))
                db.add_all([
                    ProductModel(
                        id=p.id,
                        position=position,
                        category=p.category,
                        provider=p.provider,
                        name=p.name,
                        price=p.price,
                        admin_fee=p.admin_fee,
                        is_active=p.is_active,
                    )
                    for position, p in enumerate(ordered)
                ])
        logger.info(f"SQL catalog replaced: {len(ordered)} products")
        return len(ordered)

    async def count(self) -> int:
        async with self._session_factory() as db:
            result = await db.execute(select(func.count()).select_from(ProductModel))
            return result.scalar_one()


# ============================================================================
# Seed catalog
# ============================================================================

def _seed(product_id: str, category: str, provider: str, name: str, price: int) -> Product:
    return Product(
        id=product_id,
        category=category,
        provider=provider,
        name=name,
        price=price,
        admin_fee=calculate_admin_fee(price),
    )


DEFAULT_PRODUCTS: List[Product] = [
    # Pulsa Telkomsel
    _seed("tsel-5k", "pulsa", "telkomsel", "Pulsa Telkomsel 5.000", 5_000),
    _seed("tsel-10k", "pulsa", "telkomsel", "Pulsa Telkomsel 10.000", 10_000),
    _seed("tsel-25k", "pulsa", "telkomsel", "Pulsa Telkomsel 25.000", 25_000),
    _seed("tsel-50k", "pulsa", "telkomsel", "Pulsa Telkomsel 50.000", 50_000),
    _seed("tsel-100k", "pulsa", "telkomsel", "Pulsa Telkomsel 100.000", 100_000),

    # Pulsa Indosat
    _seed("isat-5k", "pulsa", "indosat", "Pulsa Indosat 5.000", 5_000),
    _seed("isat-10k", "pulsa", "indosat", "Pulsa Indosat 10.000", 10_000),
    _seed("isat-25k", "pulsa", "indosat", "Pulsa Indosat 25.000", 25_000),
    _seed("isat-50k", "pulsa", "indosat", "Pulsa Indosat 50.000", 50_000),

    # Token Listrik PLN
    _seed("pln-20k", "token_listrik", "pln", "Token PLN 20.000", 20_000),
    _seed("pln-50k", "token_listrik", "pln", "Token PLN 50.000", 50_000),
    _seed("pln-100k", "token_listrik", "pln", "Token PLN 100.000", 100_000),
    _seed("pln-200k", "token_listrik", "pln", "Token PLN 200.000", 200_000),

    # Game vouchers
    _seed("ml-86-dm", "game_voucher", "mobile_legends", "Mobile Legends 86 Diamond", 20_000),
    _seed("ml-172-dm", "game_voucher", "mobile_legends", "Mobile Legends 172 Diamond", 40_000),
    _seed("ff-70-dm", "game_voucher", "free_fire", "Free Fire 70 Diamond", 10_000),
    _seed("ff-140-dm", "game_voucher", "free_fire", "Free Fire 140 Diamond", 20_000),

    # E-Wallet
    _seed("gopay-50k", "ewallet", "gopay", "GoPay 50.000", 50_000),
    _seed("gopay-100k", "ewallet", "gopay", "GoPay 100.000", 100_000),
    _seed("ovo-50k", "ewallet", "ovo", "OVO 50.000", 50_000),
    _seed("dana-50k", "ewallet", "dana", "DANA 50.000", 50_000),
]

# Local ids with no reseller SKU of their own; resolved to a live SKU at checkout
SEED_PRODUCT_IDS = frozenset(product.id for product in DEFAULT_PRODUCTS)
