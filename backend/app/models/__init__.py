"""Database model exports."""

from .transaction import ClientTransaction

__all__ = ["ClientTransaction"]
