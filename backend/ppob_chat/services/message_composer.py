"""
Message Composer

Produces the conversational text shown in the chat widget. The template
composer is deterministic; the Bedrock composer asks the model for a
friendlier wording and falls back to the templates on any failure.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ..models.orders import PricedOrder
from ..models.products import Product
from .bedrock_service import extract_text_from_content
from .pricing import format_rupiah

logger = logging.getLogger(__name__)


class MessageComposer(ABC):

    @abstractmethod
    async def compose_confirmation(self, order: PricedOrder) -> str:
        """Short purchase confirmation asking the user to proceed to payment."""

    @abstractmethod
    async def compose_error(self, problem: str, alternatives: Optional[List[Product]] = None) -> str:
        """Polite explanation of a problem, with suggestions when available."""


class TemplateMessageComposer(MessageComposer):
    """Deterministic Indonesian templates."""

    async def compose_confirmation(self, order: PricedOrder) -> str:
        return (
            f"Baik! Saya akan memproses pembelian {order.product.name} untuk {order.target_identifier}.\n"
            f"Harga: {format_rupiah(order.amount)}\n"
            f"Biaya admin: {format_rupiah(order.admin_fee)}\n"
            f"Total pembayaran {format_rupiah(order.total_amount)}. Lanjutkan ke pembayaran?"
        )

    async def compose_error(self, problem: str, alternatives: Optional[List[Product]] = None) -> str:
        message = f"Maaf, {problem}."
        if alternatives:
            lines = [
                f"• {p.name}: {format_rupiah(p.price)} (total {format_rupiah(p.total_price)})"
                for p in alternatives
            ]
            message += "\n\nMungkin Anda tertarik dengan produk berikut:\n" + "\n".join(lines)
        else:
            message += " Silakan coba lagi atau hubungi customer service."
        return message


CONFIRMATION_PROMPT = """Buatkan konfirmasi pembelian singkat dan profesional dalam bahasa Indonesia.

Produk: {product}
Nomor tujuan: {target}
Harga: {price}
Biaya admin: {fee}
Total: {total}

Aturan: maksimal 4 baris, tanpa emoji, sebutkan total, dan minta pengguna mengonfirmasi untuk lanjut ke pembayaran."""

ERROR_PROMPT = """Buatkan pesan singkat yang ramah dalam bahasa Indonesia untuk masalah berikut: {problem}.
{alternatives}
Gunakan bahasa yang sopan, maksimal 4 baris, tanpa emoji."""


class BedrockMessageComposer(MessageComposer):
    """
    Model-written messages with template fallback.

    Args:
        llm: Object exposing async invoke_claude (BedrockService)
        fallback: Composer used when the model call fails or returns nothing
    """

    def __init__(self, llm: Any, fallback: Optional[MessageComposer] = None):
        self.llm = llm
        self.fallback = fallback or TemplateMessageComposer()

    async def _generate(self, prompt: str) -> Optional[str]:
        try:
            response = await self.llm.invoke_claude(
                messages=[{"role": "user", "content": prompt}],
                max_tokens=300,
                temperature=0.3,
            )
        except RuntimeError as e:
            logger.warning(f"Message composition failed, using template: {e}")
            return None
        text = extract_text_from_content(response.get("content", [])).strip()
        return text or None

    async def compose_confirmation(self, order: PricedOrder) -> str:
        prompt = CONFIRMATION_PROMPT.format(
            product=order.product.name,
            target=order.target_identifier,
            price=format_rupiah(order.amount),
            fee=format_rupiah(order.admin_fee),
            total=format_rupiah(order.total_amount),
        )
        text = await self._generate(prompt)
        return text or await self.fallback.compose_confirmation(order)

    async def compose_error(self, problem: str, alternatives: Optional[List[Product]] = None) -> str:
        if alternatives:
            listing = "Sarankan alternatif berikut:\n" + "\n".join(
                f"- {p.name} ({format_rupiah(p.total_price)} termasuk admin)" for p in alternatives
            )
        else:
            listing = "Berikan saran umum bila memungkinkan."
        text = await self._generate(ERROR_PROMPT.format(problem=problem, alternatives=listing))
        return text or await self.fallback.compose_error(problem, alternatives)
