from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

from vencura.services.units import AMOUNT_INTEGER_DIGITS, AMOUNT_SCALE, quantize_amount


class Amount(TypeDecorator):
    """
    Exact decimal amount with 18 fractional digits.

    NUMERIC(36, 18) where the database has a decimal type. SQLite has none and
    would store floats, so there the value is kept as fixed-point text; every
    stored value carries exactly AMOUNT_SCALE digits, so equality comparisons on
    the text are exact.
    """
    impl = Numeric(precision=AMOUNT_INTEGER_DIGITS + AMOUNT_SCALE, scale=AMOUNT_SCALE)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(AMOUNT_INTEGER_DIGITS + AMOUNT_SCALE + 2))
        return dialect.type_descriptor(self.impl)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = quantize_amount(value)
        if dialect.name == "sqlite":
            return format(value, "f")
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return quantize_amount(Decimal(value) if isinstance(value, str) else value)
