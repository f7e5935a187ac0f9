"""Journal engine: validates and posts balanced journal entries.

Posting is the only write path for account balances.  A posting inserts the
entry header, all of its lines and one balance increment per affected account
inside a single transaction; any failure rolls the whole unit back.
"""
from __future__ import annotations

import dataclasses
import datetime
import logging
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.errors import (
    AccountNotFound,
    BalanceIntegrityError,
    JournalEntryNotFound,
    OrganizationNotFound,
    UnbalancedEntry,
    ValidationFailed,
)
from bookkeeping.models.gl import (
    Account,
    AccountBalance,
    AccountType,
    EntryStatus,
    JournalEntry,
    JournalEntryLine,
    NormalBalance,
)
from bookkeeping.models.org import Organization

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = Decimal("0.001")
MIN_LINES = 2


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def balance_delta(normal_balance: str, debit, credit) -> Decimal:
    """Signed effect of a debit/credit pair on an account's balance.

    Debit-normal accounts grow with debits; credit-normal accounts with credits.
    """
    debit = to_decimal(debit)
    credit = to_decimal(credit)
    if normal_balance == NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


@dataclasses.dataclass
class PostingLine:
    account_id: int
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    description: str | None = None
    tax_rate: Decimal | None = None
    tax_amount: Decimal | None = None


@dataclasses.dataclass
class EntryTotals:
    total_debit: Decimal
    total_credit: Decimal
    total_tax: Decimal = Decimal("0")

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit


def entry_totals(lines) -> EntryTotals:
    return EntryTotals(
        total_debit=sum((to_decimal(l.debit_amount) for l in lines), Decimal("0")),
        total_credit=sum((to_decimal(l.credit_amount) for l in lines), Decimal("0")),
        total_tax=sum((to_decimal(l.tax_amount) for l in lines), Decimal("0")),
    )


class JournalEngine:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def validate_lines(self, lines: list[PostingLine]) -> EntryTotals:
        """Check line count, amounts and balance; no store access."""
        if len(lines) < MIN_LINES:
            raise ValidationFailed(
                f"Journal entry must have at least {MIN_LINES} lines",
                details={"lineCount": len(lines)},
            )
        for index, line in enumerate(lines):
            if to_decimal(line.debit_amount) < 0 or to_decimal(line.credit_amount) < 0:
                raise ValidationFailed(
                    "Debit and credit amounts must not be negative",
                    details={"line": index},
                )

        totals = entry_totals(lines)
        if abs(totals.difference) > BALANCE_TOLERANCE:
            raise UnbalancedEntry(details={
                "totalDebit": float(totals.total_debit),
                "totalCredit": float(totals.total_credit),
                "difference": float(totals.difference),
            })
        return totals

    async def post_entry(
        self,
        organization_id: int,
        entry_date: datetime.date,
        reference: str,
        description: str | None,
        lines: list[PostingLine],
    ) -> JournalEntry:
        """Post a balanced entry and update account balances atomically."""
        totals = self.validate_lines(lines)

        if await self.db.get(Organization, organization_id) is None:
            raise OrganizationNotFound()

        deltas = await self._balance_deltas(organization_id, lines)

        try:
            entry = JournalEntry(
                organization_id=organization_id,
                date=entry_date,
                reference=reference,
                description=description,
                status=EntryStatus.POSTED.value,
            )
            self.db.add(entry)
            await self.db.flush()

            for line in lines:
                self.db.add(JournalEntryLine(
                    journal_entry_id=entry.id,
                    account_id=line.account_id,
                    description=line.description,
                    debit_amount=to_decimal(line.debit_amount),
                    credit_amount=to_decimal(line.credit_amount),
                    tax_rate=line.tax_rate,
                    tax_amount=line.tax_amount,
                ))
            await self.db.flush()

            for account_id in sorted(deltas):
                await self._increment_balance(organization_id, account_id, deltas[account_id])

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.warning(
                f"Rolled back journal entry {reference!r} for org {organization_id}"
            )
            raise

        logger.info(
            f"Posted journal entry {entry.id} ref={reference!r} org={organization_id} "
            f"debit={totals.total_debit} credit={totals.total_credit}"
        )
        return await self.get_entry(organization_id, entry.id)

    async def _balance_deltas(
        self, organization_id: int, lines: list[PostingLine]
    ) -> dict[int, Decimal]:
        account_ids = {line.account_id for line in lines}
        result = await self.db.execute(
            select(Account.id, AccountType.normal_balance)
            .join(AccountType, Account.account_type_id == AccountType.id)
            .where(
                Account.id.in_(account_ids),
                Account.organization_id == organization_id,
            )
        )
        normal_by_account = {row.id: row.normal_balance for row in result.all()}

        missing = sorted(account_ids - normal_by_account.keys())
        if missing:
            raise AccountNotFound(
                f"Account with ID {missing[0]} not found",
                details={"accountIds": missing},
            )

        deltas: dict[int, Decimal] = defaultdict(Decimal)
        for line in lines:
            deltas[line.account_id] += balance_delta(
                normal_by_account[line.account_id],
                line.debit_amount,
                line.credit_amount,
            )
        return deltas

    async def _increment_balance(
        self, organization_id: int, account_id: int, delta: Decimal
    ) -> None:
        result = await self.db.execute(
            update(AccountBalance)
            .where(
                AccountBalance.account_id == account_id,
                AccountBalance.organization_id == organization_id,
            )
            .values(balance=AccountBalance.balance + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise BalanceIntegrityError(
                f"No balance record for account {account_id}",
                details={"accountId": account_id},
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_entry(self, organization_id: int, entry_id: int) -> JournalEntry:
        stmt = (
            select(JournalEntry)
            .where(
                JournalEntry.id == entry_id,
                JournalEntry.organization_id == organization_id,
            )
            .execution_options(populate_existing=True)
        )
        entry = (await self.db.execute(stmt)).scalar_one_or_none()
        if entry is None:
            raise JournalEntryNotFound()
        return entry

    async def list_entries(
        self,
        organization_id: int,
        page: int = 1,
        limit: int = 20,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
    ) -> tuple[list[tuple[JournalEntry, EntryTotals]], int]:
        """Return one page of entries (newest first) with their totals, and the total count."""
        filters = [JournalEntry.organization_id == organization_id]
        if start_date:
            filters.append(JournalEntry.date >= start_date)
        if end_date:
            filters.append(JournalEntry.date <= end_date)

        total = (
            await self.db.execute(select(func.count(JournalEntry.id)).where(*filters))
        ).scalar_one()

        stmt = (
            select(JournalEntry)
            .where(*filters)
            .order_by(JournalEntry.date.desc(), JournalEntry.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        entries = (await self.db.execute(stmt)).scalars().all()

        return [(entry, entry_totals(entry.lines)) for entry in entries], total
