"""
Intent Parser

Turns a free-text (Indonesian, possibly voice-transcribed) chat command
into a ParsedIntent by asking the language model for a JSON object.
Confidence policy is not applied here; OrderResolver owns it.
"""
import json
import logging
import re
from typing import Any, Dict

from pydantic import ValidationError

from ..exceptions import ParseError
from ..models.intents import ParsedIntent
from .bedrock_service import extract_text_from_content

logger = logging.getLogger(__name__)


INTENT_SYSTEM_PROMPT = """Kamu adalah asisten untuk toko PPOB (pulsa, token listrik, voucher game, e-wallet, TV streaming) di Indonesia.
Tugasmu hanya mengubah perintah pengguna menjadi satu objek JSON.

## Aksi yang didukung
- "buy": membeli produk. Contoh: "Beli pulsa Telkomsel 50rb untuk 081234567890", "Token listrik PLN 100rb meter 12345678901"
- "check_price": menanyakan harga. Contoh: "Cek harga pulsa Telkomsel", "Harga token PLN"
- "list_products": meminta daftar produk. Contoh: "List voucher Mobile Legends", "Produk e-wallet apa saja?"
- "check_status": menanyakan status transaksi. Contoh: "Status transaksi txn_1a2b3c4d5e6f7a8b"

## Field JSON
- intent: salah satu dari buy, check_price, list_products, check_status
- productType: pulsa, token_listrik, game_voucher, ewallet, atau tv_streaming
- provider: slug huruf kecil, misalnya telkomsel, indosat, xl, tri, smartfren, axis, byu, pln, mobile_legends, free_fire, pubg, gopay, ovo, dana, shopeepay
- amount: nominal rupiah sebagai bilangan bulat ("50rb" = 50000, "lima puluh ribu" = 50000, "1jt" = 1000000)
- targetNumber: nomor HP, nomor meter, atau ID akun (hanya untuk buy)
- transactionId: ID transaksi (hanya untuk check_status)
- confidence: 0.8 sampai 1.0 untuk perintah PPOB yang jelas, lebih rendah bila ragu

Jika perintah BUKAN tentang PPOB, kembalikan {"intent": "unrecognized", "confidence": 0}.
Hilangkan field yang tidak disebutkan. Balas hanya dengan JSON, tanpa penjelasan."""


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Pull the first JSON object out of a model reply.

    Tolerates markdown code fences and prose around the object.

    Raises:
        ValueError: If no JSON object can be decoded
    """
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)

    decoder = json.JSONDecoder()
    for start, char in enumerate(text):
        if char != "{":
            continue
        try:
            obj, _ = decoder.raw_decode(text[start:])
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj
    raise ValueError("No JSON object in model reply")


class IntentParser:
    """
    Language-model backed command parser.

    Args:
        llm: Object exposing async invoke_claude(messages, system_prompt, ...)
            returning a dict with a 'content' block list (BedrockService)
    """

    def __init__(self, llm: Any):
        self.llm = llm

    async def parse(self, command: str) -> ParsedIntent:
        """
        Parse one chat command.

        Raises:
            ParseError: If the model call fails or its reply is not a valid intent
        """
        try:
            response = await self.llm.invoke_claude(
                messages=[{"role": "user", "content": command}],
                system_prompt=INTENT_SYSTEM_PROMPT,
                max_tokens=300,
                temperature=0.0,
            )
        except RuntimeError as e:
            logger.error(f"Intent model call failed: {e}")
            raise ParseError("Language model unavailable", details={"error": str(e)}) from e

        raw_text = extract_text_from_content(response.get("content", []))
        try:
            payload = extract_json_object(raw_text)
            intent = ParsedIntent.model_validate(payload)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Unparseable intent reply: {raw_text!r}")
            raise ParseError("Could not understand the model reply", details={"error": str(e)}) from e

        logger.info(
            f"Parsed intent: action={intent.action.value}, category={intent.category}, "
            f"provider={intent.provider}, amount={intent.amount}, confidence={intent.confidence}"
        )
        return intent

