"""
Money and quantity arithmetic.

Money is always an int number of cents. Quantities are Decimals with at most
QUANTITY_PLACES fractional digits (weighed goods are sold by the gram).
Rounding is nearest-cent, half-up, everywhere.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

QUANTITY_PLACES = 3
QUANTITY_STEP = Decimal(1).scaleb(-QUANTITY_PLACES)
# Largest value a Numeric(14, 3) column holds
MAX_QUANTITY = Decimal("99999999999.999")

# Upper bound for any single stored money amount (SQLite INTEGER is 64-bit)
MAX_AMOUNT_CENTS = 999_999_999_999

# Tax rates are basis points: 1200 == 12%
BPS_DENOMINATOR = 10_000


def to_decimal(value) -> Decimal:
    """
    Convert user input to Decimal without going through binary float math.

    Floats are converted via repr so that 1.1 becomes Decimal("1.1").
    Raises ValueError for anything non-numeric (including NaN/Infinity).
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    else:
        raise ValueError(f"not a number: {value!r}")

    if not result.is_finite():
        raise ValueError("number must be finite")
    return result


def has_valid_quantity_scale(quantity: Decimal) -> bool:
    try:
        return quantity == quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the decimal context can quantize
        return False


def round_half_up(value: Decimal) -> int:
    """Round a Decimal amount of cents to a whole cent (half-up)."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def line_gross_cents(unit_price_cents: int, quantity: Decimal) -> int:
    return round_half_up(Decimal(unit_price_cents) * quantity)


def tax_cents(amount_cents: int, tax_rate_bps: int) -> int:
    return round_half_up(Decimal(amount_cents) * Decimal(tax_rate_bps) / BPS_DENOMINATOR)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def allocate_proportionally(total_cents: int, weights: list[int]) -> list[int]:
    """
    Split total_cents across weights in proportion, in whole cents.

    Largest-remainder method: every share is floored, then the leftover cents
    are handed out one each to the largest fractional remainders (earlier
    index wins ties). The shares always sum to total_cents exactly and each is
    within one cent of its exact proportional value.

    All weights zero (or no weights) -> every share is zero.
    """
    weight_sum = sum(weights)
    if weight_sum <= 0 or total_cents <= 0:
        return [0 for _ in weights]

    shares = []
    remainders = []
    for index, weight in enumerate(weights):
        share, remainder = divmod(total_cents * weight, weight_sum)
        shares.append(share)
        remainders.append((remainder, index))

    leftover = total_cents - sum(shares)
    remainders.sort(key=lambda item: (-item[0], item[1]))
    for _, index in remainders[:leftover]:
        shares[index] += 1
    return shares


def format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"
