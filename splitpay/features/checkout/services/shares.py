from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from splitpay.platform.errors import ValidationError


def parse_minor_amount(value: object, field: str) -> int:
    """Accept an int, an integral float, or a string of digits; reject everything else."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a positive integer")

    if isinstance(value, int):
        amount = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError(f"{field} must be a positive integer")
        amount = int(value)
    elif isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValidationError(f"{field} must be a positive integer") from exc
        if not parsed.is_finite() or parsed != parsed.to_integral_value():
            raise ValidationError(f"{field} must be a positive integer")
        amount = int(parsed)
    else:
        raise ValidationError(f"{field} must be a positive integer")

    if amount <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return amount


def split_by_percent(amount: int, merchant_pct: float, platform_pct: float) -> tuple[int, int]:
    """Return (merchant_share, platform_share); the platform absorbs the rounding remainder."""
    try:
        merchant = Decimal(str(merchant_pct))
        platform = Decimal(str(platform_pct))
    except InvalidOperation as exc:
        raise ValidationError("invalid split: merchantPct + platformPct must be 100") from exc

    if not merchant.is_finite() or not platform.is_finite() or merchant < 0 or platform < 0:
        raise ValidationError("invalid split: merchantPct + platformPct must be 100")
    if (merchant + platform).to_integral_value(rounding=ROUND_HALF_UP) != 100:
        raise ValidationError("invalid split: merchantPct + platformPct must be 100")

    # round(amount * pct / 100) half-up, in exact integer arithmetic
    numerator, denominator = merchant.as_integer_ratio()
    scale = denominator * 100
    merchant_share = (2 * amount * numerator + scale) // (2 * scale)
    merchant_share = min(merchant_share, amount)
    return merchant_share, amount - merchant_share


def split_even(total: int, parts: int) -> list[int]:
    # The first `total % parts` shares carry the extra unit, in list order.
    if parts <= 0:
        raise ValidationError("at least one payer is required")
    base, remainder = divmod(total, parts)
    return [base + 1 if i < remainder else base for i in range(parts)]
