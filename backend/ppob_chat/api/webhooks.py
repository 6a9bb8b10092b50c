"""
Payment Webhook Endpoints

Receives gateway callbacks. Delivery is at-least-once, so the handler
relies on the guarded status transitions in TransactionLifecycleManager
for idempotency.

Response codes:
- 200: applied, or a repeat/unknown status that changes nothing
- 404: reference matches no transaction (permanent; gateway should stop)
- 401: signature check failed (when enabled)
- 5xx: anything else, so the gateway retries
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from typing import Dict, Any
import json
import logging

from ..config import settings
from ..dependencies import ServiceContainer, get_container
from ..models.transactions import PaymentNotification

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_notification(request: Request) -> PaymentNotification:
    content_type = request.headers.get("content-type", "")
    try:
        if "application/json" in content_type:
            payload = await request.json()
        else:
            payload = dict(await request.form())
        return PaymentNotification.model_validate(payload)
    except (ValidationError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid payment notification: {e}") from e


@router.post("/webhook/payment")
@router.post("/webhook/paydisini")
async def payment_webhook_endpoint(
    request: Request,
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    notification = await _read_notification(request)
    logger.info(f"Payment notification: reference={notification.reference}, status={notification.status}")

    if settings.paydisini_verify_callback:
        if not notification.signature or not container.gateway.verify_callback_signature(
            notification.reference, notification.signature
        ):
            logger.warning(f"Rejected payment notification with bad signature: {notification.reference}")
            raise HTTPException(status_code=401, detail="Invalid signature")

    transaction = await container.transactions.handle_payment_notification(
        notification.reference, notification.status
    )
    return {"success": True, "transactionId": transaction.id, "status": transaction.status.value}
