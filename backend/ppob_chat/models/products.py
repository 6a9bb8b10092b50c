"""
Pydantic Product Models

Product is the catalog entry served to the storefront. RawUpstreamProduct
mirrors one row of the reseller price list before normalization.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from .base import CamelModel


class Product(CamelModel):
    """
    Purchasable catalog entry.

    Prices are integer rupiah. admin_fee is derived from price by
    calculate_admin_fee() at creation time; the model only enforces
    non-negativity.
    """
    id: str = Field(min_length=1)
    category: str
    provider: str
    name: str
    price: int = Field(ge=0)
    admin_fee: int = Field(ge=0)
    is_active: bool = True

    @property
    def total_price(self) -> int:
        return self.price + self.admin_fee


class RawUpstreamProduct(BaseModel):
    """
    One entry of the reseller price list, as sent on the wire.

    Availability is reported either as a single `status` string
    ("available") or as buyer/seller boolean flags depending on the
    account type.
    """
    buyer_sku_code: str
    product_name: str
    category: str = ""
    brand: str = ""
    type: Optional[str] = None
    price: int = Field(ge=0)
    status: Optional[str] = None
    buyer_product_status: Optional[bool] = None
    seller_product_status: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_available(self) -> bool:
        if self.status is not None:
            return self.status.lower() == "available"
        return self.buyer_product_status is not False and self.seller_product_status is not False
