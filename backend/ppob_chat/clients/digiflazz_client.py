"""
Upstream Reseller Client (Digiflazz)

Price list retrieval, SKU lookup, order submission and order status.
Requests are JSON POSTs signed with md5(username + api_key + ref).

Catalog fetches never raise: an unreachable reseller yields an empty list
so sync keeps serving the current catalog. Order submission does raise,
because the caller must flag the paid transaction for manual review.
"""
import logging
import re
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..config import settings
from ..exceptions import FulfillmentError, UpstreamUnavailableError
from ..models.gateway import FulfillmentResult
from ..models.products import RawUpstreamProduct
from ..services.signature_service import sign_reseller_request

logger = logging.getLogger(__name__)


CATEGORY_MAP: Dict[str, str] = {
    "pulsa": "pulsa",
    "data": "pulsa",
    "paket data": "pulsa",
    "paket sms & telpon": "pulsa",
    "esim": "pulsa",
    "pln": "token_listrik",
    "token listrik": "token_listrik",
    "games": "game_voucher",
    "voucher game": "game_voucher",
    "voucher": "game_voucher",
    "aktivasi voucher": "game_voucher",
    "e-money": "ewallet",
    "e-wallet": "ewallet",
    "tv": "tv_streaming",
}

BRAND_MAP: Dict[str, str] = {
    "TELKOMSEL": "telkomsel",
    "INDOSAT": "indosat",
    "XL": "xl",
    "XL AXIATA": "xl",
    "TRI": "tri",
    "SMARTFREN": "smartfren",
    "AXIS": "axis",
    "BY.U": "byu",
    "PLN": "pln",
    "MOBILE LEGENDS": "mobile_legends",
    "FREE FIRE": "free_fire",
    "PUBG MOBILE": "pubg",
    "CALL OF DUTY MOBILE": "cod_mobile",
    "GOOGLE PLAY INDONESIA": "google_play",
    "GO PAY": "gopay",
    "GOPAY": "gopay",
    "OVO": "ovo",
    "DANA": "dana",
    "SHOPEE PAY": "shopeepay",
    "SHOPEEPAY": "shopeepay",
    "GRAB": "grab",
    "TAPCASH BNI": "tapcash",
    "MANDIRI E-TOLL": "mandiri_etoll",
    "BRI BRIZZI": "brizzi",
    "INDOMARET": "indomaret",
}


def _slug(value: str) -> str:
    return re.sub(r"\s+", "_", value.strip().lower())


def normalize_category(raw_category: str) -> str:
    """Map an upstream category to an internal slug, passing unknown ones through."""
    return CATEGORY_MAP.get(raw_category.strip().lower(), _slug(raw_category))


def normalize_brand(raw_brand: str) -> str:
    """Map an upstream brand to a provider slug, passing unknown ones through."""
    return BRAND_MAP.get(raw_brand.strip().upper(), _slug(raw_brand))


def _amount_in_name(name: str, amount: int) -> bool:
    compact = name.replace(".", "").replace(",", "")
    return re.search(rf"(?<!\d){amount}(?!\d)", compact) is not None


class DigiflazzClient:
    """
    Async client for the Digiflazz reseller API.

    Args:
        username: Reseller account username
        api_key: Shared secret used in request signatures
        base_url: API root, e.g. https://api.digiflazz.com/v1
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        username: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.username = username if username is not None else settings.digiflazz_username
        self.api_key = api_key if api_key is not None else settings.digiflazz_api_key
        self.base_url = (base_url or settings.digiflazz_base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.upstream_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    def _sign(self, ref: str) -> str:
        return sign_reseller_request(self.username, self.api_key, ref)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.client.post(f"{self.base_url}{path}", json=payload)
        response.raise_for_status()
        return response.json()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def fetch_catalog(self) -> List[RawUpstreamProduct]:
        """
        Fetch the full prepaid price list.

        Returns:
            Parsed upstream products, or [] when the reseller is unreachable
            or answers with an error body. Malformed rows are skipped.
        """
        payload = {
            "cmd": "prepaid",
            "username": self.username,
            "sign": self._sign("pricelist"),
        }
        try:
            body = await self._post("/price-list", payload)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching reseller price list: {e}")
            return []

        rows = body.get("data") if isinstance(body, dict) else None
        if not isinstance(rows, list):
            logger.warning(f"Reseller price list returned no products: {body}")
            return []

        products = []
        for row in rows:
            try:
                products.append(RawUpstreamProduct.model_validate(row))
            except ValidationError as e:
                logger.debug(f"Skipping malformed price-list row: {e}")
        logger.info(f"Fetched {len(products)} products from reseller")
        return products

    async def find_sku(self, category: str, provider: str, amount: int) -> Optional[RawUpstreamProduct]:
        """
        Best-effort match of (category, provider, amount) against the live catalog.

        Order of preference: exact price, then amount appearing in the
        product name, then the closest price. Ties go to catalog order.

        Returns:
            Matching upstream product or None
        """
        catalog = await self.fetch_catalog()
        provider_key = provider.lower()
        candidates = [
            p for p in catalog
            if p.is_available
            and normalize_category(p.category) == category
            and provider_key in normalize_brand(p.brand)
        ]
        if not candidates:
            return None

        for product in candidates:
            if product.price == amount:
                return product
        for product in candidates:
            if _amount_in_name(product.product_name, amount):
                return product
        # min() keeps the first of equally close candidates
        return min(candidates, key=lambda p: abs(p.price - amount))

    # ------------------------------------------------------------------
    # Fulfillment
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_result(body: Any, ref_id: str) -> FulfillmentResult:
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or "status" not in data:
            raise ValueError(f"Unexpected reseller response: {body}")
        return FulfillmentResult(
            ref_id=data.get("ref_id") or ref_id,
            status=data["status"],
            message=data.get("message"),
            serial_number=data.get("sn") or None,
            rc=data.get("rc"),
            buyer_sku_code=data.get("buyer_sku_code"),
            customer_no=data.get("customer_no"),
        )

    async def submit_fulfillment(self, sku: str, customer_no: str, ref_id: str) -> FulfillmentResult:
        """
        Place an order with the reseller.

        The reseller deduplicates by ref_id, so retries for the same
        transaction must pass the same ref_id.

        Returns:
            FulfillmentResult with status Sukses or Pending

        Raises:
            FulfillmentError: On network/protocol errors or a Gagal status
        """
        payload = {
            "username": self.username,
            "buyer_sku_code": sku,
            "customer_no": customer_no,
            "ref_id": ref_id,
            "sign": self._sign(ref_id),
        }
        try:
            body = await self._post("/transaction", payload)
            result = self._parse_result(body, ref_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Reseller order {ref_id} failed: {e}")
            raise FulfillmentError(
                f"Reseller order failed: {e}",
                details={"ref_id": ref_id, "sku": sku}
            ) from e

        if result.failed:
            raise FulfillmentError(
                f"Reseller rejected order: {result.message}",
                details={"ref_id": ref_id, "sku": sku, "rc": result.rc}
            )

        logger.info(f"Reseller order {ref_id} accepted: status={result.status}, sku={sku}")
        return result

    async def check_fulfillment_status(self, ref_id: str) -> FulfillmentResult:
        """
        Poll the reseller for the state of an order.

        Raises:
            UpstreamUnavailableError: If the status cannot be retrieved
        """
        payload = {
            "commands": "status-pasca",
            "username": self.username,
            "ref_id": ref_id,
            "sign": self._sign(ref_id),
        }
        try:
            body = await self._post("/transaction", payload)
            return self._parse_result(body, ref_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Reseller status check for {ref_id} failed: {e}")
            raise UpstreamUnavailableError(
                f"Could not check reseller order status: {e}",
                details={"ref_id": ref_id}
            ) from e
