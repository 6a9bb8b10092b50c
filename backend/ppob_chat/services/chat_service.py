"""
Chat Service

Entry point for chat commands: parse, apply the confidence gate, then
dispatch on the intent's action. Every outcome is a ChatResult carrying a
natural-language message; parse and resolution problems never escape as
exceptions.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..exceptions import ParseError
from ..models.intents import IntentAction, ParsedIntent
from ..models.orders import PricedOrder
from ..models.products import Product
from ..models.transactions import TransactionStatus
from .catalog_store import CatalogStore
from .intent_parser import IntentParser
from .message_composer import MessageComposer
from .order_resolution import OrderResolver, filter_products
from .pricing import format_rupiah
from .transaction_service import TransactionLifecycleManager

logger = logging.getLogger(__name__)


MAX_PRICE_LINES = 10
MAX_PROVIDERS = 5
MAX_PRODUCTS_PER_PROVIDER = 3

UNRECOGNIZED_MESSAGE = (
    "Intent tidak dikenali. Gunakan perintah: cek harga, list produk, beli, atau status transaksi."
)

STATUS_LABELS = {
    TransactionStatus.PENDING: ("⏳", "Menunggu pembayaran"),
    TransactionStatus.PAID: ("💳", "Dibayar, sedang diproses"),
    TransactionStatus.SUCCESS: ("✅", "Berhasil"),
    TransactionStatus.FAILED: ("❌", "Gagal"),
}


@dataclass
class ChatResult:
    success: bool
    message: str
    product_data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.product_data is not None:
            body["productData"] = self.product_data
        return body


def _label(value: Optional[str]) -> str:
    return (value or "").replace("_", " ").upper()


def _describe(*parts: Optional[str]) -> str:
    return " ".join(part for part in parts if part)


class ChatService:

    def __init__(
        self,
        parser: IntentParser,
        resolver: OrderResolver,
        catalog: CatalogStore,
        transactions: TransactionLifecycleManager,
        composer: MessageComposer,
    ):
        self.parser = parser
        self.resolver = resolver
        self.catalog = catalog
        self.transactions = transactions
        self.composer = composer

    async def process(self, command: str) -> ChatResult:
        """Handle one chat command end to end."""
        logger.info(f"Received command: {command!r}")
        try:
            intent = await self.parser.parse(command)
        except ParseError as e:
            logger.warning(f"Command could not be parsed: {e.message}")
            return ChatResult(False, await self.composer.compose_error("terjadi kesalahan sistem"))

        rejection = self.resolver.gate(intent)
        if rejection:
            return ChatResult(False, rejection.message)

        if intent.action == IntentAction.CHECK_PRICE:
            return await self._check_price(intent)
        if intent.action == IntentAction.LIST_PRODUCTS:
            return await self._list_products(intent)
        if intent.action == IntentAction.CHECK_STATUS:
            return await self._check_status(intent)
        if intent.action == IntentAction.BUY:
            return await self._buy(intent, command)
        return ChatResult(False, UNRECOGNIZED_MESSAGE)

    async def _products_for(self, intent: ParsedIntent) -> List[Product]:
        products = await self.catalog.list_by_category(intent.category or "")
        return filter_products(products, intent.provider)

    async def _check_price(self, intent: ParsedIntent) -> ChatResult:
        products = await self._products_for(intent)
        if not products:
            return ChatResult(
                False,
                f"Produk {_describe(intent.category, intent.provider)} tidak ditemukan."
            )

        # one product per price point, cheapest first
        by_price: Dict[int, Product] = {}
        for product in products:
            by_price.setdefault(product.price, product)

        lines = [f"📋 **Daftar Harga {_describe(_label(intent.category), _label(intent.provider))}:**", ""]
        for price in sorted(by_price)[:MAX_PRICE_LINES]:
            product = by_price[price]
            lines.append(
                f"💰 **{format_rupiah(price)}** (+ admin {format_rupiah(product.admin_fee)} = "
                f"**{format_rupiah(product.total_price)}**)"
            )
            lines.append(f"   {product.name}")
        lines.append("")
        lines.append(
            f"💡 Untuk membeli: \"Beli {intent.category} {intent.provider or '[provider]'} [nominal] untuk [nomor]\""
        )
        return ChatResult(True, "\n".join(lines))

    async def _list_products(self, intent: ParsedIntent) -> ChatResult:
        products = await self._products_for(intent)
        if not products:
            return ChatResult(
                False,
                f"Tidak ada produk {_describe(intent.category, intent.provider)} yang tersedia."
            )

        by_provider: Dict[str, List[Product]] = {}
        for product in products:
            by_provider.setdefault(product.provider, []).append(product)

        lines = [f"📋 **Produk {_label(intent.category)} Tersedia:**", ""]
        for provider in list(by_provider)[:MAX_PROVIDERS]:
            group = by_provider[provider]
            lines.append(f"🏷️ **{_label(provider)}** ({len(group)} produk)")
            for product in group[:MAX_PRODUCTS_PER_PROVIDER]:
                lines.append(
                    f"   • {format_rupiah(product.price)} (Total: {format_rupiah(product.total_price)})"
                )
            if len(group) > MAX_PRODUCTS_PER_PROVIDER:
                lines.append(f"   • ... dan {len(group) - MAX_PRODUCTS_PER_PROVIDER} produk lainnya")
            lines.append("")
        lines.append(f"💡 Untuk cek harga detail: \"Cek harga {intent.category} [provider]\"")
        return ChatResult(True, "\n".join(lines))

    async def _check_status(self, intent: ParsedIntent) -> ChatResult:
        if not intent.transaction_reference:
            return ChatResult(False, "ID transaksi diperlukan. Contoh: \"Status transaksi txn_1a2b3c4d5e6f7a8b\"")

        transaction = await self.transactions.find(intent.transaction_reference)
        if transaction is None:
            return ChatResult(False, f"Transaksi dengan ID {intent.transaction_reference} tidak ditemukan.")

        icon, text = STATUS_LABELS[transaction.status]
        lines = [
            f"📊 **Status Transaksi {transaction.id}**",
            "",
            f"{icon} **Status:** {text}",
            f"📱 **Produk:** {transaction.product_name}",
            f"🎯 **Tujuan:** {transaction.target_number}",
            f"💰 **Total:** {format_rupiah(transaction.total_amount)}",
            f"📅 **Waktu:** {transaction.created_at.strftime('%d/%m/%Y %H:%M')}",
        ]
        if transaction.serial_number:
            lines.append(f"🔑 **SN:** {transaction.serial_number}")
        return ChatResult(True, "\n".join(lines))

    async def _buy(self, intent: ParsedIntent, command: str) -> ChatResult:
        resolution = await self.resolver.resolve(intent, command=command)
        if not isinstance(resolution, PricedOrder):
            return ChatResult(False, resolution.message)

        message = await self.composer.compose_confirmation(resolution)
        product_data = resolution.to_product_data()
        product_data["aiCommand"] = command
        return ChatResult(True, message, product_data)
