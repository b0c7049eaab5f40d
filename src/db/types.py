from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Numeric, Text
from sqlalchemy.types import TypeDecorator


class ExactDecimal(TypeDecorator):
    """
    Unbounded decimal column.

    PostgreSQL gets a plain ``NUMERIC`` with no precision or scale. SQLite
    stores ``NUMERIC`` affinity values as 64-bit floats, so there the value
    is kept as its plain decimal text and parsed back into ``Decimal``.
    """

    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(Text())
        return dialect.type_descriptor(Numeric(asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        return format(Decimal(value), "f")

    def process_result_value(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        return Decimal(value)
