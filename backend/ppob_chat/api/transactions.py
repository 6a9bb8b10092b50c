"""
Transactions API Endpoints

Checkout and lookups. Prices in the request body are informational only;
the server re-derives them before contacting the payment gateway.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing import Dict, Any
import logging

from ..dependencies import ServiceContainer, get_container
from ..exceptions import PaymentGatewayError
from ..models.transactions import TransactionCreateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/transactions")
async def create_transaction_endpoint(
    request: TransactionCreateRequest,
    container: ServiceContainer = Depends(get_container)
):
    """
    Create a pending transaction and its payment request.

    Returns:
        {"success": true, "transaction": {...}, "paymentUrl": str}

    On gateway failure responds 502 with success=false; the transaction
    is kept as failed for audit.
    """
    try:
        transaction = await container.transactions.create(request)
    except PaymentGatewayError as e:
        logger.error(f"Checkout failed for {request.target_number}: {e.message}")
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "message": e.message, "error_code": e.error_code},
        )

    return {
        "success": True,
        "transaction": transaction.model_dump(by_alias=True, mode="json"),
        "paymentUrl": transaction.payment_url,
    }


# Declared before /transactions/{transaction_id} so "check" is not taken as an id
@router.get("/transactions/check/{target_number}")
async def check_target_endpoint(
    target_number: str,
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    """List transactions for a phone/meter/customer number, newest first."""
    transactions = await container.transactions.list_by_target(target_number)
    return {
        "success": True,
        "count": len(transactions),
        "transactions": [t.model_dump(by_alias=True, mode="json") for t in transactions],
    }


@router.get("/transactions/{transaction_id}")
async def get_transaction_endpoint(
    transaction_id: str,
    container: ServiceContainer = Depends(get_container)
) -> Dict[str, Any]:
    """
    Get transaction details.

    Raises TransactionNotFoundError (404) for unknown ids.
    """
    transaction = await container.transactions.get(transaction_id)
    return {"success": True, "transaction": transaction.model_dump(by_alias=True, mode="json")}
