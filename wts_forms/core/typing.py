"""
Type helpers for SQLAlchemy/SQLModel compatibility with type checkers.

SQLModel fields are declared with Python types (e.g. ``key: str``) but at the
class level they are InstrumentedAttribute descriptors with column methods
like ``.in_()`` or ``!=`` comparisons producing SQL expressions.
"""

from typing import TYPE_CHECKING, TypeVar
from datetime import datetime, timezone

if TYPE_CHECKING:
    from sqlalchemy.orm.attributes import InstrumentedAttribute

T = TypeVar("T")


def col(attr: T) -> "InstrumentedAttribute[T]":
    """
    Type helper for SQLAlchemy column operations in queries.

    At runtime this is a no-op - it just returns the input unchanged.

    Usage:
        select(StorageItem).where(col(StorageItem.key) != key)
    """
    return attr  # type: ignore[return-value]


def utc_now() -> datetime:
    """
    Current UTC time (timezone-aware).

    Use as default_factory in SQLModel fields.
    """
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    """Current time as integer epoch milliseconds (queue entry timestamps)."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def ms_to_iso(value: int) -> str:
    """Epoch milliseconds to an ISO-8601 UTC string with millisecond precision."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat(timespec="milliseconds")


__all__ = [
    "col",
    "utc_now",
    "epoch_ms",
    "ms_to_iso",
]
