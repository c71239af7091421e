from decimal import ROUND_DOWN, Decimal

WHOLE = Decimal("1")
CENT = Decimal("0.01")


def safe_dec(x) -> Decimal:
    if x is None or x == "":
        return Decimal("0")
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def floor_units(x: Decimal) -> Decimal:
    """Round down to a whole unit; fractional options never exist."""
    return safe_dec(x).quantize(WHOLE, rounding=ROUND_DOWN)


def decimal_str(x) -> str:
    """Exact, exponent-free string form: Decimal('10000.00') -> '10000'."""
    value = safe_dec(x)
    if value == value.to_integral_value():
        return str(value.quantize(WHOLE))
    return format(value.normalize(), "f")
