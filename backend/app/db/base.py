"""SQLAlchemy base metadata, declarative registry and shared column types."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import String
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from cost_basis.decimal_math import format_decimal, to_decimal


class Base(AsyncAttrs, DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass


class DecimalString(TypeDecorator):
    """Store a ``Decimal`` as exact text.

    Numeric columns round-trip through float on some backends (sqlite), which
    would break the engine's exact arithmetic.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format_decimal(to_decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


__all__ = ["Base", "DecimalString"]
