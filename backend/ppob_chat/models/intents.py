"""
Pydantic ParsedIntent Model

Structured form of a natural-language chat command as returned by the
language model. Field names on the wire follow the model's JSON schema
(intent, productType, targetNumber, transactionId); Python attributes use
the storefront vocabulary.
"""
import re
from enum import Enum
from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class IntentAction(str, Enum):
    BUY = "buy"
    CHECK_PRICE = "check_price"
    LIST_PRODUCTS = "list_products"
    CHECK_STATUS = "check_status"
    UNRECOGNIZED = "unrecognized"


_MULTIPLIERS = {
    "rb": 1_000,
    "ribu": 1_000,
    "k": 1_000,
    "jt": 1_000_000,
    "juta": 1_000_000,
}

_SHORTHAND_RE = re.compile(r"^(\d+(?:[.,]\d+)?)(rb|ribu|k|jt|juta)$")
_GROUPED_RE = re.compile(r"^\d{1,3}([.,]\d{3})+$")


def parse_rupiah_amount(value: Any) -> Optional[int]:
    """
    Convert an amount as the model may emit it into integer rupiah.

    Accepts plain numbers, "50000", "50.000", "Rp 50.000", "50rb", "50k",
    "1,5jt". Returns None for empty values.

    Raises:
        ValueError: If the value cannot be interpreted as an amount
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"amount must be whole rupiah, got {value}")
        return int(value)

    text = str(value).strip().lower().replace(" ", "")
    if text.startswith("rp"):
        text = text[2:]
    if not text:
        return None

    match = _SHORTHAND_RE.match(text)
    if match:
        number = float(match.group(1).replace(",", "."))
        return int(round(number * _MULTIPLIERS[match.group(2)]))

    if _GROUPED_RE.match(text):
        return int(re.sub(r"[.,]", "", text))

    if text.isdigit():
        return int(text)

    raise ValueError(f"Unrecognized amount: {value!r}")


class ParsedIntent(BaseModel):
    """
    Intent extracted from one chat command.

    confidence == 0 means the command is outside the PPOB domain; values
    under the configured threshold mean the command is ambiguous. Neither
    check happens here, the resolver owns that policy.
    """
    action: IntentAction = Field(validation_alias=AliasChoices("intent", "action"))
    category: Optional[str] = Field(
        None, validation_alias=AliasChoices("productType", "product_type", "category")
    )
    provider: Optional[str] = None
    amount: Optional[int] = Field(None, ge=0)
    target_identifier: Optional[str] = Field(
        None, validation_alias=AliasChoices("targetNumber", "target_number", "target_identifier")
    )
    transaction_reference: Optional[str] = Field(
        None, validation_alias=AliasChoices("transactionId", "transaction_id", "transaction_reference")
    )
    confidence: float = 0.0

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("action", mode="before")
    @classmethod
    def coerce_action(cls, v):
        """Anything outside the four supported actions becomes unrecognized."""
        if isinstance(v, IntentAction):
            return v
        text = str(v or "").strip().lower()
        try:
            return IntentAction(text)
        except ValueError:
            return IntentAction.UNRECOGNIZED

    @field_validator("category", "provider", mode="before")
    @classmethod
    def normalize_slug(cls, v):
        if v is None:
            return None
        slug = re.sub(r"\s+", "_", str(v).strip().lower())
        return slug or None

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v):
        return parse_rupiah_amount(v)

    @field_validator("target_identifier", "transaction_reference", mode="before")
    @classmethod
    def strip_identifier(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None:
            return 0.0
        return min(1.0, max(0.0, float(v)))
