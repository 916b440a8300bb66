"""
Durable key/value storage for queued submissions.

A synchronous ``get_item`` / ``set_item`` / ``remove_item`` interface with
one distinguishable failure: ``QuotaExceededError`` when a write would push
the store past its byte budget. The submission queue reacts to that error by
evicting its oldest entry; every other failure surfaces as ``StorageError``.

Backends:
    MemoryStorage   - process-local dict (tests, QUEUE_STORAGE_BACKEND=memory)
    DatabaseStorage - ``storage_item`` table, survives restarts
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol, runtime_checkable

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from wts_forms.core.typing import col, utc_now
from wts_forms.models.storage_item import StorageItem

log = logging.getLogger(__name__)


class StorageError(Exception):
    """A storage read or write failed."""


class QuotaExceededError(StorageError):
    """The write would exceed the storage quota."""


def _item_size(key: str, value: str) -> int:
    return len(key) + len(value)


@runtime_checkable
class LocalStorage(Protocol):
    """Contract every queue storage backend implements."""

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``. Raises QuotaExceededError / StorageError."""
        ...

    def remove_item(self, key: str) -> None:
        """Delete ``key`` (no-op if absent)."""
        ...


class MemoryStorage:
    """Process-local storage with an optional quota across all keys."""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self._items: Dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            used = sum(_item_size(k, v) for k, v in self._items.items() if k != key)
            if used + _item_size(key, value) > self._quota_bytes:
                raise QuotaExceededError(f"Storage quota of {self._quota_bytes} bytes exceeded writing {key}")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class DatabaseStorage:
    """Stores each key as one row of the ``storage_item`` table."""

    def __init__(self, engine: Engine, quota_bytes: Optional[int] = None) -> None:
        self._engine = engine
        self._quota_bytes = quota_bytes

    def get_item(self, key: str) -> Optional[str]:
        try:
            with Session(self._engine) as session:
                item = session.get(StorageItem, key)
                return item.value if item else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    def _used_bytes(self, session: Session, exclude_key: str) -> int:
        stmt = select(
            func.coalesce(func.sum(func.length(col(StorageItem.key)) + func.length(col(StorageItem.value))), 0)
        ).where(col(StorageItem.key) != exclude_key)
        return int(session.exec(stmt).one())

    def set_item(self, key: str, value: str) -> None:
        try:
            with Session(self._engine) as session:
                if self._quota_bytes is not None:
                    used = self._used_bytes(session, exclude_key=key)
                    if used + _item_size(key, value) > self._quota_bytes:
                        raise QuotaExceededError(
                            f"Storage quota of {self._quota_bytes} bytes exceeded writing {key}"
                        )

                item = session.get(StorageItem, key)
                if item:
                    item.value = value
                    item.updated_at = utc_now()
                else:
                    item = StorageItem(key=key, value=value)
                session.add(item)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        log.debug(f"Saved {key} ({len(value)} chars)")

    def remove_item(self, key: str) -> None:
        try:
            with Session(self._engine) as session:
                item = session.get(StorageItem, key)
                if item:
                    session.delete(item)
                    session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e
