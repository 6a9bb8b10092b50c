"""
Order Resolution Engine

Resolves a parsed "buy" intent to a concrete, priced product. The local
catalog is consulted first; when it has nothing and the command named
both a provider and an amount, the live reseller catalog is searched and a
transient product is synthesized (never persisted).
"""
import logging
from typing import List, Optional

from ..clients.digiflazz_client import DigiflazzClient, normalize_brand
from ..config import settings
from ..models.intents import IntentAction, ParsedIntent
from ..models.orders import (
    PricedOrder,
    ResolutionFailure,
    ResolutionFailureReason,
    ResolutionResult,
)
from ..models.products import Product
from .catalog_store import CatalogStore
from .message_composer import MessageComposer
from .pricing import calculate_admin_fee

logger = logging.getLogger(__name__)


OUT_OF_DOMAIN_MESSAGE = (
    "Maaf, saya hanya dapat membantu layanan PPOB:\n\n"
    "🔍 **Cek Harga:** \"Cek harga pulsa Telkomsel\"\n"
    "💰 **Transaksi:** \"Beli pulsa Telkomsel 50rb untuk 081234567890\"\n"
    "📋 **List Produk:** \"List voucher Mobile Legends\"\n"
    "📊 **Status:** \"Status transaksi [ID]\""
)

AMBIGUOUS_MESSAGE = (
    "Perintah kurang jelas. Gunakan format yang lebih spesifik:\n\n"
    "📱 **Cek Harga:** Cek harga [kategori] [provider]\n"
    "🛒 **Beli:** Beli [produk] [nominal] untuk [nomor]\n"
    "📋 **List:** List produk [kategori]\n"
    "📊 **Status:** Status transaksi [ID]"
)

MISSING_TARGET_MESSAGE = (
    "Nomor tujuan diperlukan untuk transaksi. "
    "Contoh: \"Beli pulsa Telkomsel 50rb untuk 081234567890\""
)

MAX_ALTERNATIVES = 3


def filter_products(
    products: List[Product],
    provider: Optional[str] = None,
    amount: Optional[int] = None
) -> List[Product]:
    """Provider substring match (case-insensitive) and exact price match, order preserved."""
    if provider:
        needle = provider.lower()
        products = [p for p in products if needle in p.provider.lower()]
    if amount is not None:
        products = [p for p in products if p.price == amount]
    return products


class OrderResolver:
    """
    Args:
        catalog: Local catalog store
        reseller: Upstream client used for the live-catalog fallback
        composer: Writes the not-found message
        confidence_threshold: Intents below this are ambiguous
    """

    def __init__(
        self,
        catalog: CatalogStore,
        reseller: DigiflazzClient,
        composer: MessageComposer,
        confidence_threshold: Optional[float] = None
    ):
        self.catalog = catalog
        self.reseller = reseller
        self.composer = composer
        self.confidence_threshold = (
            confidence_threshold if confidence_threshold is not None
            else settings.intent_confidence_threshold
        )

    def gate(self, intent: ParsedIntent) -> Optional[ResolutionFailure]:
        """
        Apply the confidence policy.

        Returns:
            A failure for out-of-domain (confidence 0) or ambiguous intents,
            None when the intent may be acted upon
        """
        if intent.confidence <= 0:
            logger.info("Command rejected as outside PPOB domain")
            return ResolutionFailure(
                reason=ResolutionFailureReason.OUT_OF_DOMAIN,
                message=OUT_OF_DOMAIN_MESSAGE,
            )
        if intent.confidence < self.confidence_threshold:
            logger.info(f"Command ambiguous: confidence={intent.confidence}")
            return ResolutionFailure(
                reason=ResolutionFailureReason.AMBIGUOUS,
                message=AMBIGUOUS_MESSAGE,
            )
        return None

    async def resolve(self, intent: ParsedIntent, command: Optional[str] = None) -> ResolutionResult:
        """
        Resolve a buy intent to a PricedOrder.

        Args:
            intent: Parsed chat command
            command: Original text, kept on the order for audit

        Returns:
            PricedOrder on success, ResolutionFailure otherwise
        """
        rejection = self.gate(intent)
        if rejection:
            return rejection

        if intent.action == IntentAction.BUY and not intent.target_identifier:
            return ResolutionFailure(
                reason=ResolutionFailureReason.MISSING_TARGET,
                message=MISSING_TARGET_MESSAGE,
            )

        category_products = await self.catalog.list_by_category(intent.category or "")
        matches = filter_products(category_products, intent.provider, intent.amount)

        if matches:
            product = matches[0]
            logger.info(f"Resolved from catalog: {product.id} for {intent.target_identifier}")
            return PricedOrder.from_product(product, intent.target_identifier, "catalog", command)

        if intent.provider and intent.amount is not None and intent.category:
            product = await self._resolve_upstream(intent)
            if product:
                return PricedOrder.from_product(product, intent.target_identifier, "upstream", command)

        alternatives = self._nearest_alternatives(category_products, intent)
        subject = " ".join(part for part in ("produk", intent.category, intent.provider) if part)
        message = await self.composer.compose_error(
            f"{subject} tidak ditemukan",
            alternatives,
        )
        logger.info(
            f"No product for category={intent.category}, provider={intent.provider}, amount={intent.amount}"
        )
        return ResolutionFailure(
            reason=ResolutionFailureReason.NOT_FOUND,
            message=message,
            alternatives=alternatives,
        )

    async def _resolve_upstream(self, intent: ParsedIntent) -> Optional[Product]:
        raw = await self.reseller.find_sku(intent.category, intent.provider, intent.amount)
        if raw is None:
            return None
        logger.info(f"Resolved from reseller catalog: {raw.buyer_sku_code} ({raw.price})")
        return Product(
            id=raw.buyer_sku_code,
            category=intent.category,
            provider=normalize_brand(raw.brand) if raw.brand else intent.provider,
            name=raw.product_name,
            price=raw.price,
            admin_fee=calculate_admin_fee(raw.price),
        )

    @staticmethod
    def _nearest_alternatives(category_products: List[Product], intent: ParsedIntent) -> List[Product]:
        """Up to three same-category products closest in price, same provider preferred."""
        pool = filter_products(category_products, intent.provider) or category_products
        if intent.amount is None:
            return pool[:MAX_ALTERNATIVES]
        ranked = sorted(pool, key=lambda p: abs(p.price - intent.amount))
        return ranked[:MAX_ALTERNATIVES]
