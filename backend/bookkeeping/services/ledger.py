"""Ledger view: per-account transaction history with running balance."""
from __future__ import annotations

import dataclasses
import datetime
from decimal import Decimal

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.errors import AccountNotFound
from bookkeeping.models.gl import (
    Account,
    AccountType,
    EntryStatus,
    JournalEntry,
    JournalEntryLine,
)
from bookkeeping.services.journal import balance_delta


@dataclasses.dataclass
class LedgerRow:
    journal_entry_id: int
    line_id: int
    date: datetime.date
    reference: str
    journal_description: str | None
    line_description: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal = Decimal("0")


@dataclasses.dataclass
class Ledger:
    account: dict
    transactions: list[LedgerRow]
    total: int
    page: int
    limit: int
    opening_balance: Decimal


class LedgerView:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_ledger(
        self,
        organization_id: int,
        account_id: int,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> Ledger:
        """Return one page of posted lines in chronological order.

        Pages are cut newest-first (page 1 holds the most recent lines).  The
        running balance of each returned row is the account's true cumulative
        balance after that line, seeded from every older posted line.
        """
        account_row = (
            await self.db.execute(
                select(
                    Account.id,
                    Account.code,
                    Account.name,
                    AccountType.name.label("account_type_name"),
                    AccountType.normal_balance,
                )
                .join(AccountType, Account.account_type_id == AccountType.id)
                .where(
                    Account.id == account_id,
                    Account.organization_id == organization_id,
                )
            )
        ).one_or_none()
        if account_row is None:
            raise AccountNotFound()

        posted = [
            JournalEntryLine.account_id == account_id,
            JournalEntry.organization_id == organization_id,
            JournalEntry.status == EntryStatus.POSTED.value,
        ]
        window = list(posted)
        if start_date:
            window.append(JournalEntry.date >= start_date)
        if end_date:
            window.append(JournalEntry.date <= end_date)

        total = (
            await self.db.execute(
                select(func.count(JournalEntryLine.id))
                .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
                .where(*window)
            )
        ).scalar_one()

        result = await self.db.execute(
            select(
                JournalEntry.id.label("journal_entry_id"),
                JournalEntryLine.id.label("line_id"),
                JournalEntry.date,
                JournalEntry.reference,
                JournalEntry.description.label("journal_description"),
                JournalEntryLine.description.label("line_description"),
                JournalEntryLine.debit_amount,
                JournalEntryLine.credit_amount,
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(*window)
            .order_by(
                JournalEntry.date.desc(),
                JournalEntry.id.desc(),
                JournalEntryLine.id.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = [LedgerRow(**row._mapping) for row in result.all()]
        rows.reverse()

        normal_balance = account_row.normal_balance
        opening = Decimal("0")
        if rows:
            opening = await self._balance_before(posted, normal_balance, rows[0])

        running = opening
        for row in rows:
            running += balance_delta(normal_balance, row.debit_amount, row.credit_amount)
            row.balance = running

        return Ledger(
            account={
                "id": account_row.id,
                "code": account_row.code,
                "name": account_row.name,
                "account_type_name": account_row.account_type_name,
                "normal_balance": normal_balance,
            },
            transactions=rows,
            total=total,
            page=page,
            limit=limit,
            opening_balance=opening,
        )

    async def _balance_before(self, posted, normal_balance: str, first: LedgerRow) -> Decimal:
        """Cumulative balance of every posted line older than *first*."""
        older = or_(
            JournalEntry.date < first.date,
            and_(JournalEntry.date == first.date, JournalEntry.id < first.journal_entry_id),
            and_(
                JournalEntry.date == first.date,
                JournalEntry.id == first.journal_entry_id,
                JournalEntryLine.id < first.line_id,
            ),
        )
        sums = (
            await self.db.execute(
                select(
                    func.coalesce(func.sum(JournalEntryLine.debit_amount), 0).label("debits"),
                    func.coalesce(func.sum(JournalEntryLine.credit_amount), 0).label("credits"),
                )
                .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
                .where(*posted, older)
            )
        ).one()
        return balance_delta(normal_balance, sums.debits, sums.credits)
