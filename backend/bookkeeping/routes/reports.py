"""Financial reports: Trial Balance and Income Statement."""
from __future__ import annotations

import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.database import get_db
from bookkeeping.middleware.auth import get_current_user
from bookkeeping.schemas import CamelModel, Envelope
from bookkeeping.services.reports import ReportEngine

router = APIRouter(prefix="/reports", tags=["reports"])


# ---------------------------------------------------------------------------
# Pydantic Schemas
# ---------------------------------------------------------------------------

class TrialBalanceAccount(CamelModel):
    id: int
    code: str
    name: str
    balance: float
    debit_balance: float
    credit_balance: float


class TrialBalanceCategory(CamelModel):
    id: int | None = None
    name: str
    accounts: list[TrialBalanceAccount]
    total_debit: float
    total_credit: float


class TrialBalanceType(CamelModel):
    id: int
    name: str
    normal_balance: str
    categories: list[TrialBalanceCategory]
    total_debit: float
    total_credit: float


class TrialBalanceTotals(CamelModel):
    total_debits: float
    total_credits: float
    difference: float


class TrialBalanceOut(CamelModel):
    trial_balance: list[TrialBalanceType]
    totals: TrialBalanceTotals
    as_of_date: datetime.date


class StatementAccount(CamelModel):
    id: int
    code: str
    name: str
    category_name: str
    balance: float


class StatementCategory(CamelModel):
    name: str
    accounts: list[StatementAccount]
    total: float


class StatementSection(CamelModel):
    categories: list[StatementCategory]
    total: float


class StatementPeriod(CamelModel):
    start_date: datetime.date
    end_date: datetime.date


class IncomeStatementOut(CamelModel):
    revenue: StatementSection
    expenses: StatementSection
    net_income: float
    period: StatementPeriod


# ---------------------------------------------------------------------------
# Trial Balance
# ---------------------------------------------------------------------------

@router.get(
    "/trial-balance/organization/{organization_id}",
    response_model=Envelope[TrialBalanceOut],
)
async def trial_balance(
    organization_id: int,
    as_of_date: datetime.date | None = Query(None, alias="asOfDate"),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    """Point-in-time balances of every account, grouped by type and category."""
    report = await ReportEngine(db).trial_balance(organization_id, as_of_date)
    return Envelope(data=TrialBalanceOut.model_validate(report))


# ---------------------------------------------------------------------------
# Income Statement
# ---------------------------------------------------------------------------

@router.get(
    "/income-statement/organization/{organization_id}",
    response_model=Envelope[IncomeStatementOut],
)
async def income_statement(
    organization_id: int,
    start_date: datetime.date | None = Query(None, alias="startDate"),
    end_date: datetime.date | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    """Revenue and expense activity between two dates, inclusive."""
    report = await ReportEngine(db).income_statement(organization_id, start_date, end_date)
    return Envelope(data=IncomeStatementOut.model_validate(report))
