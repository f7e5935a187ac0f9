"""Base model utilities for the bookkeeping service.

Provides an integer primary-key mixin and a created/updated timestamp
mixin shared by every mutable table.
"""
from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column


class IntegerPrimaryKeyMixin:
    """Mixin that adds an auto-incrementing primary key column named ``id``."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class TimestampMixin:
    """Mixin that adds ``created_at`` / ``updated_at`` set by the database."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
