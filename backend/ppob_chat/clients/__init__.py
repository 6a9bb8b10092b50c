"""
Wire clients for the external services the storefront depends on.
"""
from .digiflazz_client import DigiflazzClient, normalize_brand, normalize_category
from .paydisini_client import PaydisiniClient, PAYMENT_SERVICES

__all__ = [
    "DigiflazzClient",
    "normalize_brand",
    "normalize_category",
    "PaydisiniClient",
    "PAYMENT_SERVICES",
]
