"""
Pydantic models for the PPOB storefront.
"""
from .products import Product, RawUpstreamProduct
from .intents import IntentAction, ParsedIntent, parse_rupiah_amount
from .orders import PricedOrder, ResolutionFailure, ResolutionFailureReason, ResolutionResult
from .transactions import (
    Transaction,
    TransactionStatus,
    TransactionCreateRequest,
    PaymentNotification,
    TERMINAL_STATUSES,
)
from .gateway import FulfillmentResult, FulfillmentStatus, PaymentCreated, PaymentStatus
from .stats import AdminDailyStats

__all__ = [
    "Product",
    "RawUpstreamProduct",
    "IntentAction",
    "ParsedIntent",
    "parse_rupiah_amount",
    "PricedOrder",
    "ResolutionFailure",
    "ResolutionFailureReason",
    "ResolutionResult",
    "Transaction",
    "TransactionStatus",
    "TransactionCreateRequest",
    "PaymentNotification",
    "TERMINAL_STATUSES",
    "FulfillmentResult",
    "FulfillmentStatus",
    "PaymentCreated",
    "PaymentStatus",
    "AdminDailyStats",
]
