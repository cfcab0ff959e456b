from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
QUANTITY_QUANT = Decimal("0.001")
ZERO_MONEY = Decimal("0.00")
ZERO_QUANTITY = Decimal("0.000")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_quantity(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100 rounded to cents; 0 when whole is not positive."""
    if whole <= 0:
        return ZERO_MONEY
    return to_money(Decimal(part) / Decimal(whole) * HUNDRED)
