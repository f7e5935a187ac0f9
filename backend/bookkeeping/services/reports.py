"""Report engine: trial balance and income statement."""
from __future__ import annotations

import datetime
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.errors import MissingDateParameters, ValidationFailed
from bookkeeping.models.gl import (
    Account,
    AccountBalance,
    AccountCategory,
    AccountType,
    EntryStatus,
    JournalEntry,
    JournalEntryLine,
    NormalBalance,
)
from bookkeeping.services.journal import balance_delta, to_decimal

UNCATEGORIZED = "Uncategorized"
REVENUE_TYPE = "Revenue"
EXPENSE_TYPE = "Expense"


def split_balance(normal_balance: str, balance: Decimal) -> tuple[Decimal, Decimal]:
    """Place a signed balance into (debit, credit) trial-balance columns.

    A balance on the account's normal side goes to that column; a negative
    (contra) balance goes to the opposite column as an absolute value.
    """
    zero = Decimal("0")
    if normal_balance == NormalBalance.DEBIT:
        return (balance, zero) if balance >= 0 else (zero, abs(balance))
    return (zero, balance) if balance >= 0 else (abs(balance), zero)


class ReportEngine:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Trial balance
    # ------------------------------------------------------------------

    async def trial_balance(
        self, organization_id: int, as_of_date: datetime.date | None = None
    ) -> dict:
        """Group every account by type and category with debit/credit columns.

        Without *as_of_date* the maintained balances are reported; with it,
        each balance is rebuilt from posted lines dated on or before that day.
        """
        stmt = (
            select(
                Account.id,
                Account.code,
                Account.name,
                AccountType.id.label("account_type_id"),
                AccountType.name.label("account_type_name"),
                AccountType.normal_balance,
                AccountCategory.id.label("account_category_id"),
                AccountCategory.name.label("account_category_name"),
                AccountBalance.balance,
            )
            .join(AccountType, Account.account_type_id == AccountType.id)
            .outerjoin(AccountCategory, Account.account_category_id == AccountCategory.id)
            .outerjoin(
                AccountBalance,
                (AccountBalance.account_id == Account.id)
                & (AccountBalance.organization_id == Account.organization_id),
            )
            .where(Account.organization_id == organization_id)
            .order_by(AccountType.id, AccountCategory.name, Account.code)
        )
        rows = (await self.db.execute(stmt)).all()

        historical = None
        if as_of_date is not None:
            historical = await self._balances_as_of(organization_id, as_of_date)

        groups: dict[str, dict] = {}
        total_debits = Decimal("0")
        total_credits = Decimal("0")

        for row in rows:
            if historical is not None:
                balance = historical.get(row.id, Decimal("0"))
            else:
                balance = to_decimal(row.balance)
            debit, credit = split_balance(row.normal_balance, balance)
            total_debits += debit
            total_credits += credit

            type_group = groups.setdefault(row.account_type_name, {
                "id": row.account_type_id,
                "name": row.account_type_name,
                "normal_balance": row.normal_balance,
                "categories": {},
                "total_debit": Decimal("0"),
                "total_credit": Decimal("0"),
            })
            category_name = row.account_category_name or UNCATEGORIZED
            category_group = type_group["categories"].setdefault(category_name, {
                "id": row.account_category_id,
                "name": category_name,
                "accounts": [],
                "total_debit": Decimal("0"),
                "total_credit": Decimal("0"),
            })

            category_group["accounts"].append({
                "id": row.id,
                "code": row.code,
                "name": row.name,
                "balance": balance,
                "debit_balance": debit,
                "credit_balance": credit,
            })
            category_group["total_debit"] += debit
            category_group["total_credit"] += credit
            type_group["total_debit"] += debit
            type_group["total_credit"] += credit

        trial_balance = []
        for type_group in groups.values():
            type_group["categories"] = list(type_group["categories"].values())
            trial_balance.append(type_group)

        return {
            "trial_balance": trial_balance,
            "totals": {
                "total_debits": total_debits,
                "total_credits": total_credits,
                "difference": abs(total_debits - total_credits),
            },
            "as_of_date": as_of_date or datetime.date.today(),
        }

    async def _balances_as_of(
        self, organization_id: int, as_of_date: datetime.date
    ) -> dict[int, Decimal]:
        delta = case(
            (
                AccountType.normal_balance == NormalBalance.DEBIT.value,
                JournalEntryLine.debit_amount - JournalEntryLine.credit_amount,
            ),
            else_=JournalEntryLine.credit_amount - JournalEntryLine.debit_amount,
        )
        stmt = (
            select(JournalEntryLine.account_id, func.sum(delta).label("balance"))
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .join(Account, JournalEntryLine.account_id == Account.id)
            .join(AccountType, Account.account_type_id == AccountType.id)
            .where(
                JournalEntry.organization_id == organization_id,
                JournalEntry.status == EntryStatus.POSTED.value,
                JournalEntry.date <= as_of_date,
            )
            .group_by(JournalEntryLine.account_id)
        )
        result = await self.db.execute(stmt)
        return {row.account_id: to_decimal(row.balance) for row in result.all()}

    # ------------------------------------------------------------------
    # Income statement
    # ------------------------------------------------------------------

    async def income_statement(
        self,
        organization_id: int,
        start_date: datetime.date | None,
        end_date: datetime.date | None,
    ) -> dict:
        if not start_date or not end_date:
            raise MissingDateParameters()
        if start_date > end_date:
            raise ValidationFailed("startDate must be on or before endDate")

        accounts = (
            await self.db.execute(
                select(
                    Account.id,
                    Account.code,
                    Account.name,
                    AccountType.name.label("account_type_name"),
                    AccountType.normal_balance,
                    AccountCategory.name.label("category_name"),
                )
                .join(AccountType, Account.account_type_id == AccountType.id)
                .outerjoin(AccountCategory, Account.account_category_id == AccountCategory.id)
                .where(
                    Account.organization_id == organization_id,
                    AccountType.name.in_([REVENUE_TYPE, EXPENSE_TYPE]),
                )
                .order_by(AccountCategory.name, Account.code)
            )
        ).all()

        activity = await self._period_activity(
            organization_id, [a.id for a in accounts], start_date, end_date
        )

        sections = {
            REVENUE_TYPE: {"categories": {}, "total": Decimal("0")},
            EXPENSE_TYPE: {"categories": {}, "total": Decimal("0")},
        }
        for account in accounts:
            debits, credits = activity.get(account.id, (Decimal("0"), Decimal("0")))
            amount = balance_delta(account.normal_balance, debits, credits)

            section = sections[account.account_type_name]
            category_name = account.category_name or UNCATEGORIZED
            category = section["categories"].setdefault(category_name, {
                "name": category_name,
                "accounts": [],
                "total": Decimal("0"),
            })
            category["accounts"].append({
                "id": account.id,
                "code": account.code,
                "name": account.name,
                "category_name": category_name,
                "balance": amount,
            })
            category["total"] += amount
            section["total"] += amount

        total_revenue = sections[REVENUE_TYPE]["total"]
        total_expenses = sections[EXPENSE_TYPE]["total"]
        return {
            "revenue": {
                "categories": list(sections[REVENUE_TYPE]["categories"].values()),
                "total": total_revenue,
            },
            "expenses": {
                "categories": list(sections[EXPENSE_TYPE]["categories"].values()),
                "total": total_expenses,
            },
            "net_income": total_revenue - total_expenses,
            "period": {"start_date": start_date, "end_date": end_date},
        }

    async def _period_activity(
        self,
        organization_id: int,
        account_ids: list[int],
        start_date: datetime.date,
        end_date: datetime.date,
    ) -> dict[int, tuple[Decimal, Decimal]]:
        if not account_ids:
            return {}
        stmt = (
            select(
                JournalEntryLine.account_id,
                func.coalesce(func.sum(JournalEntryLine.debit_amount), 0).label("debits"),
                func.coalesce(func.sum(JournalEntryLine.credit_amount), 0).label("credits"),
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntryLine.account_id.in_(account_ids),
                JournalEntry.organization_id == organization_id,
                JournalEntry.status == EntryStatus.POSTED.value,
                JournalEntry.date.between(start_date, end_date),
            )
            .group_by(JournalEntryLine.account_id)
        )
        result = await self.db.execute(stmt)
        return {
            row.account_id: (to_decimal(row.debits), to_decimal(row.credits))
            for row in result.all()
        }
