"""
Order resolution results.

A chat "buy" command resolves either to a PricedOrder or to a
ResolutionFailure carrying a user-facing message.
"""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, model_validator

from .products import Product


class PricedOrder(BaseModel):
    """Concrete product, target and price snapshot ready for checkout."""
    product: Product
    target_identifier: Optional[str] = None
    amount: int = Field(ge=0)
    admin_fee: int = Field(ge=0)
    total_amount: int = Field(ge=0)
    source: Literal["catalog", "upstream"] = "catalog"
    command: Optional[str] = None

    @model_validator(mode="after")
    def validate_total(self):
        """Ensure total equals base price plus admin fee."""
        expected = self.amount + self.admin_fee
        if self.total_amount != expected:
            raise ValueError(f"Total {self.total_amount} != amount({self.amount}) + fee({self.admin_fee})")
        return self

    @classmethod
    def from_product(
        cls,
        product: Product,
        target_identifier: Optional[str],
        source: str = "catalog",
        command: Optional[str] = None
    ) -> "PricedOrder":
        return cls(
            product=product,
            target_identifier=target_identifier,
            amount=product.price,
            admin_fee=product.admin_fee,
            total_amount=product.price + product.admin_fee,
            source=source,
            command=command,
        )

    def to_product_data(self) -> Dict[str, Any]:
        """Payload echoed back by the chat widget when the user confirms."""
        return {
            "productId": self.product.id,
            "productName": self.product.name,
            "productType": self.product.category,
            "provider": self.product.provider,
            "targetNumber": self.target_identifier,
            "amount": self.amount,
            "adminFee": self.admin_fee,
            "totalAmount": self.total_amount,
        }


class ResolutionFailureReason(str, Enum):
    OUT_OF_DOMAIN = "out_of_domain"
    AMBIGUOUS = "ambiguous"
    MISSING_TARGET = "missing_target"
    NOT_FOUND = "not_found"


class ResolutionFailure(BaseModel):
    reason: ResolutionFailureReason
    message: str
    alternatives: List[Product] = []


ResolutionResult = Union[PricedOrder, ResolutionFailure]
