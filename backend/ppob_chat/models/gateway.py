"""
Wire-level result models for the reseller and payment-gateway clients.
"""
from typing import Optional
from pydantic import BaseModel


class FulfillmentStatus:
    """Reseller order states as spelled by the upstream API."""
    SUCCESS = "Sukses"
    PENDING = "Pending"
    FAILED = "Gagal"


class FulfillmentResult(BaseModel):
    ref_id: str
    status: str
    message: Optional[str] = None
    serial_number: Optional[str] = None
    rc: Optional[str] = None
    buyer_sku_code: Optional[str] = None
    customer_no: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == FulfillmentStatus.SUCCESS

    @property
    def pending(self) -> bool:
        return self.status == FulfillmentStatus.PENDING

    @property
    def failed(self) -> bool:
        return self.status == FulfillmentStatus.FAILED


class PaymentCreated(BaseModel):
    redirect_url: str
    gateway_reference: str
    expires_at: Optional[str] = None


class PaymentStatus(BaseModel):
    gateway_reference: str
    status: str
    amount: Optional[int] = None
