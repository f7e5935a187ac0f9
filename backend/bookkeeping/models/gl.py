"""General Ledger models: chart of accounts, balances, journal entries and lines."""
from __future__ import annotations

import datetime
import decimal
import enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookkeeping.database import Base
from bookkeeping.models.base import IntegerPrimaryKeyMixin, TimestampMixin

if TYPE_CHECKING:
    from bookkeeping.models.org import Organization


class NormalBalance(str, enum.Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class EntryStatus(str, enum.Enum):
    """Journal entry lifecycle. Only ``POSTED`` is produced today."""
    DRAFT = "draft"
    POSTED = "posted"
    VOID = "void"


class AccountType(Base):
    """Global reference data: Asset, Liability, Equity, Revenue, Expense."""
    __tablename__ = "account_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<AccountType {self.name!r} normal={self.normal_balance!r}>"


class AccountCategory(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    """Per-organization grouping of accounts under an account type."""
    __tablename__ = "account_categories"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    account_type_id: Mapped[int] = mapped_column(
        ForeignKey("account_types.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    # ------ relationships ------
    organization: Mapped[Organization] = relationship(
        "Organization",
        back_populates="categories",
    )
    account_type: Mapped[AccountType] = relationship(
        "AccountType",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<AccountCategory {self.name!r} org={self.organization_id}>"


class Account(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    """Chart of Accounts entry."""
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_accounts_organization_code"),
    )

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    account_type_id: Mapped[int] = mapped_column(
        ForeignKey("account_types.id"), nullable=False
    )
    account_category_id: Mapped[int | None] = mapped_column(
        ForeignKey("account_categories.id")
    )
    parent_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true")
    )
    is_bank_account: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    bank_account_details: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    # ------ relationships ------
    organization: Mapped[Organization] = relationship(
        "Organization",
        back_populates="accounts",
    )
    account_type: Mapped[AccountType] = relationship(
        "AccountType",
        lazy="selectin",
    )
    category: Mapped[AccountCategory | None] = relationship(
        "AccountCategory",
        lazy="selectin",
    )
    parent: Mapped[Account | None] = relationship(
        "Account",
        remote_side="Account.id",
        back_populates="children",
    )
    children: Mapped[list[Account]] = relationship(
        "Account",
        back_populates="parent",
    )
    balance_row: Mapped[AccountBalance | None] = relationship(
        "AccountBalance",
        back_populates="account",
        uselist=False,
        lazy="selectin",
    )
    journal_lines: Mapped[list[JournalEntryLine]] = relationship(
        "JournalEntryLine",
        back_populates="account",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code!r} {self.name!r}>"


class AccountBalance(Base):
    """Current signed balance of one account. Written only by the journal engine."""
    __tablename__ = "account_balances"

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), primary_key=True
    )
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), primary_key=True
    )
    balance: Mapped[decimal.Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )

    # ------ relationships ------
    account: Mapped[Account] = relationship(
        "Account",
        back_populates="balance_row",
    )

    def __repr__(self) -> str:
        return f"<AccountBalance account={self.account_id} balance={self.balance}>"


class JournalEntry(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    """A journal entry header; immutable once posted."""
    __tablename__ = "journal_entries"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    reference: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=text("'posted'"),
    )

    # ------ relationships ------
    organization: Mapped[Organization] = relationship(
        "Organization",
        back_populates="journal_entries",
    )
    lines: Mapped[list[JournalEntryLine]] = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        order_by="JournalEntryLine.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry #{self.id} {self.reference!r} status={self.status!r}>"


class JournalEntryLine(IntegerPrimaryKeyMixin, Base):
    """Individual debit/credit line within a journal entry."""
    __tablename__ = "journal_entry_lines"

    journal_entry_id: Mapped[int] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=False, index=True
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(Text)
    debit_amount: Mapped[decimal.Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    credit_amount: Mapped[decimal.Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    tax_rate: Mapped[decimal.Decimal | None] = mapped_column(Numeric(5, 2))
    tax_amount: Mapped[decimal.Decimal | None] = mapped_column(Numeric(18, 2))

    # ------ relationships ------
    journal_entry: Mapped[JournalEntry] = relationship(
        "JournalEntry",
        back_populates="lines",
    )
    account: Mapped[Account] = relationship(
        "Account",
        back_populates="journal_lines",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<JournalEntryLine #{self.id} "
            f"debit={self.debit_amount} credit={self.credit_amount}>"
        )
