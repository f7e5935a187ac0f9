"""Organization model: the tenant boundary every other entity references."""
from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookkeeping.database import Base
from bookkeeping.models.base import IntegerPrimaryKeyMixin, TimestampMixin

if TYPE_CHECKING:
    from bookkeeping.models.gl import Account, AccountCategory, JournalEntry


class Organization(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    """A company whose books are kept by this service."""
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default=text("'USD'")
    )

    # ------ relationships ------
    categories: Mapped[list[AccountCategory]] = relationship(
        "AccountCategory",
        back_populates="organization",
    )
    accounts: Mapped[list[Account]] = relationship(
        "Account",
        back_populates="organization",
    )
    journal_entries: Mapped[list[JournalEntry]] = relationship(
        "JournalEntry",
        back_populates="organization",
    )

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.name!r}>"
