from decimal import Decimal, Inexact, InvalidOperation, localcontext
from typing import Union

from vencura.errors import ValidationError

ETHER_DECIMALS = 18
WEI_PER_ETHER = Decimal(10 ** ETHER_DECIMALS)

# Stored amounts are Numeric(36, 18)
AMOUNT_SCALE = 18
AMOUNT_INTEGER_DIGITS = 18
AMOUNT_QUANTUM = Decimal("1e-18")
MAX_AMOUNT = Decimal("9" * AMOUNT_INTEGER_DIGITS + "." + "9" * AMOUNT_SCALE)
# uint256 values run to 78 digits; keep arithmetic exact well past that
_PRECISION = 100


def parse_amount(value, message: str = "Amount must be a positive number") -> Decimal:
    """Parse a caller-supplied amount into a finite, positive Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(message)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(message)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(message)
    return amount


def to_wei(amount: Union[Decimal, str, int]) -> int:
    """Exact decimal -> wei conversion; rejects values finer than 1 wei."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("Amount must be a valid decimal value")
    if not value.is_finite() or value < 0:
        raise ValidationError("Amount must be a valid decimal value")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        wei = value * WEI_PER_ETHER
        if wei != wei.to_integral_value():
            raise ValidationError("Amount must be a valid decimal value")
        return int(wei)


def from_wei(wei: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(int(wei)) / WEI_PER_ETHER


def quantize_amount(value) -> Decimal:
    """Fix `value` to the stored scale. Raises Inexact or InvalidOperation if it would lose digits."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.traps[Inexact] = True
        return Decimal(value).quantize(AMOUNT_QUANTUM)


def check_storable(amount: Decimal, message: str) -> Decimal:
    """Reject amounts a Numeric(36, 18) column would round or overflow."""
    try:
        quantize_amount(amount)
    except (Inexact, InvalidOperation):
        raise ValidationError(message)
    if amount > MAX_AMOUNT:
        raise ValidationError(message)
    return amount
