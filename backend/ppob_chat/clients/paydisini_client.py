"""
Payment Gateway Client (Paydisini)

Creates hosted-checkout payments and checks their status. Requests are
form-encoded POSTs carrying an MD5 signature over provider-defined fields.
Every failure is raised: a transaction must never look payable without a
checkout URL.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..exceptions import PaymentGatewayError
from ..models.gateway import PaymentCreated, PaymentStatus
from ..services.signature_service import (
    sign_payment_request,
    sign_payment_status_request,
    verify_payment_callback,
)

logger = logging.getLogger(__name__)


PAYMENT_SERVICES: Dict[str, str] = {
    "11": "QRIS",
    "15": "BCA Virtual Account",
    "16": "BNI Virtual Account",
    "17": "BRI Virtual Account",
    "18": "Mandiri Virtual Account",
    "19": "BSI Virtual Account",
    "20": "Maybank Virtual Account",
    "21": "BJB Virtual Account",
    "22": "CIMB Virtual Account",
}


class PaydisiniClient:
    """
    Async client for the Paydisini payment API.

    Args:
        api_key: Merchant key, also the signature secret
        base_url: API endpoint
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.paydisini_api_key
        self.base_url = base_url or settings.paydisini_base_url
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.upstream_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _post_form(self, form: Dict[str, Any], action: str) -> Dict[str, Any]:
        try:
            response = await self.client.post(
                self.base_url,
                data={key: str(value) for key, value in form.items()},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Payment gateway {action} failed: {e}")
            raise PaymentGatewayError(
                f"Payment gateway {action} failed: {e}",
                details={"unique_code": form.get("unique_code")}
            ) from e

        if not isinstance(body, dict) or not body.get("success") or not isinstance(body.get("data"), dict):
            message = body.get("msg") if isinstance(body, dict) else None
            logger.error(f"Payment gateway {action} rejected: {message or body}")
            raise PaymentGatewayError(
                message or f"Payment gateway {action} rejected",
                details={"unique_code": form.get("unique_code")}
            )
        return body["data"]

    async def create_payment(
        self,
        unique_code: str,
        amount: int,
        note: str,
        service: Optional[str] = None,
        valid_time: Optional[int] = None,
    ) -> PaymentCreated:
        """
        Create a hosted-checkout payment.

        Args:
            unique_code: Idempotency key; the storefront passes its transaction id
            amount: Total to collect in rupiah
            note: Description shown on the checkout page
            service: Payment-method code (see PAYMENT_SERVICES), QRIS by default
            valid_time: Seconds before the payment expires

        Returns:
            PaymentCreated with redirect URL and gateway reference

        Raises:
            PaymentGatewayError: On any non-success outcome
        """
        service = service or settings.paydisini_default_service
        valid_time = valid_time or settings.payment_valid_seconds

        form = {
            "key": self.api_key,
            "request": "new",
            "unique_code": unique_code,
            "service": service,
            "amount": amount,
            "note": note,
            "valid_time": valid_time,
            "type_fee": 1,  # customer bears the gateway fee
            "signature": sign_payment_request(self.api_key, unique_code, service, amount, valid_time),
        }
        data = await self._post_form(form, "create")

        redirect_url = data.get("checkout_url_v3") or data.get("checkout_url")
        if not redirect_url:
            raise PaymentGatewayError(
                "Payment gateway returned no checkout URL",
                details={"unique_code": unique_code}
            )

        logger.info(f"Payment created: unique_code={unique_code}, amount={amount}, service={service}")
        return PaymentCreated(
            redirect_url=redirect_url,
            gateway_reference=data.get("unique_code") or unique_code,
            expires_at=data.get("expired"),
        )

    async def check_payment_status(self, unique_code: str) -> PaymentStatus:
        """
        Look up the current status of a payment.

        Raises:
            PaymentGatewayError: On any non-success outcome
        """
        form = {
            "key": self.api_key,
            "request": "status",
            "unique_code": unique_code,
            "signature": sign_payment_status_request(self.api_key, unique_code),
        }
        data = await self._post_form(form, "status")
        return PaymentStatus(
            gateway_reference=data.get("unique_code") or unique_code,
            status=data.get("status", ""),
            amount=data.get("amount"),
        )

    def verify_callback_signature(self, unique_code: str, signature: str) -> bool:
        return verify_payment_callback(self.api_key, unique_code, signature)

    @staticmethod
    def available_services() -> Dict[str, str]:
        return dict(PAYMENT_SERVICES)
