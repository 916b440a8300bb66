"""
Key/value rows backing ``DatabaseStorage``.

One row per storage key (e.g. ``pendingSubmissions``); the value is the
JSON-encoded collection, rewritten whole on every queue operation.
"""

from datetime import datetime

from sqlmodel import Field, SQLModel

from wts_forms.core.typing import utc_now


class StorageItem(SQLModel, table=True):
    __tablename__ = "storage_item"

    key: str = Field(primary_key=True, max_length=255)
    value: str
    updated_at: datetime = Field(default_factory=utc_now)
