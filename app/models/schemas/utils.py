"""Common utility functions for schemas."""
from decimal import ROUND_HALF_UP, Decimal


def format_brl(value: Decimal | None) -> str | None:
    """Render an amount in reais with exactly two decimals ("1234.50")."""
    if value is None:
        return None
    return format(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP), "f")


def mask_secret(value: str | None) -> str | None:
    """Keep only the last four characters of a credential."""
    if not value:
        return None
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"
