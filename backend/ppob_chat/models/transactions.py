"""
Pydantic Transaction Models

Transaction is the stored purchase record. Its amount fields are a price
snapshot taken at creation and never rewritten afterwards.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from .base import CamelModel


class TransactionStatus(str, Enum):
    """
    Lifecycle states.

    pending -> paid -> success, pending -> failed. A paid transaction whose
    fulfillment failed stays paid with needs_review set.
    """
    PENDING = "pending"
    PAID = "paid"
    SUCCESS = "success"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED})


class Transaction(CamelModel):
    """Purchase record as exposed to the storefront and admin dashboard."""
    id: str = Field(pattern="^txn_")
    product_id: Optional[str] = None
    product_type: str
    product_name: str
    target_number: str
    amount: int = Field(ge=0)
    admin_fee: int = Field(ge=0)
    total_amount: int = Field(ge=0)
    status: TransactionStatus
    payment_url: Optional[str] = None
    payment_ref: Optional[str] = None
    fulfillment_ref: Optional[str] = None
    fulfillment_status: Optional[str] = None
    serial_number: Optional[str] = None
    needs_review: bool = False
    failure_reason: Optional[str] = None
    ai_command: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def validate_total(self):
        expected = self.amount + self.admin_fee
        if self.total_amount != expected:
            raise ValueError(f"Total {self.total_amount} != amount({self.amount}) + fee({self.admin_fee})")
        return self


class TransactionCreateRequest(CamelModel):
    """
    Checkout request sent by the chat widget after the user confirms.

    adminFee and totalAmount are accepted for compatibility but never
    trusted: the lifecycle manager re-derives both.
    """
    product_id: Optional[str] = None
    product_type: str = Field(min_length=1)
    product_name: str = Field(min_length=1)
    target_number: str = Field(min_length=1)
    amount: int = Field(ge=0)
    admin_fee: Optional[int] = None
    total_amount: Optional[int] = None
    ai_command: Optional[str] = None
    payment_service: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class PaymentNotification(BaseModel):
    """Gateway callback body. Paydisini posts unique_code; the generic form is reference."""
    reference: str = Field(
        min_length=1, validation_alias=AliasChoices("reference", "unique_code", "uniqueCode")
    )
    status: str
    signature: Optional[str] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)
