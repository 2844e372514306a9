from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Union

Amount = Union[Decimal, int, str, float]

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Optional[Amount]) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() first so the binary representation never leaks into sums
        return Decimal(str(value))
    return Decimal(value)


def total(values: Iterable[Optional[Amount]]) -> Decimal:
    result = ZERO
    for value in values:
        result += to_decimal(value)
    return result


def quantize_amount(value: Optional[Amount]) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: str) -> Decimal:
    """
    Parse a user-entered amount such as "1.234,50", "$ 12.00" or "-40".
    Negative amounts are allowed; allocations may take any sign.
    """
    clean = value.strip().replace("€", "").replace("$", "").replace(" ", "")
    clean = clean.replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    return quantize_amount(amount)
