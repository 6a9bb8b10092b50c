"""
Admin fee schedule.

Fees are a step function of the base price in whole rupiah.
"""

# (inclusive upper bound, fee)
ADMIN_FEE_TIERS = (
    (10_000, 750),
    (25_000, 1_000),
    (50_000, 1_500),
    (100_000, 2_000),
)
TOP_TIER_FEE = 2_500


def calculate_admin_fee(price: int) -> int:
    """
    Admin fee charged on top of a product's base price.

    Raises:
        ValueError: If price is negative
    """
    if price < 0:
        raise ValueError(f"Price cannot be negative: {price}")
    for upper_bound, fee in ADMIN_FEE_TIERS:
        if price <= upper_bound:
            return fee
    return TOP_TIER_FEE


def format_rupiah(value: int) -> str:
    """Format an integer amount the Indonesian way: 51500 -> 'Rp 51.500'."""
    return "Rp " + f"{value:,}".replace(",", ".")
