"""General ledger routes: per-account history with running balance."""
from __future__ import annotations

import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.database import get_db
from bookkeeping.middleware.auth import get_current_user
from bookkeeping.schemas import CamelModel, Envelope, PaginationOut, paginate
from bookkeeping.services.ledger import LedgerView

router = APIRouter(prefix="/general-ledger", tags=["general-ledger"])


class LedgerAccountOut(CamelModel):
    id: int
    code: str
    name: str
    account_type_name: str
    normal_balance: str


class LedgerTransactionOut(CamelModel):
    journal_entry_id: int
    line_id: int
    date: datetime.date
    reference: str
    journal_description: str | None = None
    line_description: str | None = None
    debit_amount: float
    credit_amount: float
    balance: float


class LedgerOut(CamelModel):
    account: LedgerAccountOut
    opening_balance: float
    transactions: list[LedgerTransactionOut]
    pagination: PaginationOut


@router.get(
    "/accounts/{account_id}/organization/{organization_id}",
    response_model=Envelope[LedgerOut],
)
async def get_account_ledger(
    account_id: int,
    organization_id: int,
    start_date: datetime.date | None = Query(None, alias="startDate"),
    end_date: datetime.date | None = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    ledger = await LedgerView(db).get_ledger(
        organization_id,
        account_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return Envelope(data=LedgerOut(
        account=LedgerAccountOut(**ledger.account),
        opening_balance=float(ledger.opening_balance),
        transactions=[
            LedgerTransactionOut(
                journal_entry_id=t.journal_entry_id,
                line_id=t.line_id,
                date=t.date,
                reference=t.reference,
                journal_description=t.journal_description,
                line_description=t.line_description,
                debit_amount=float(t.debit_amount or 0),
                credit_amount=float(t.credit_amount or 0),
                balance=float(t.balance),
            )
            for t in ledger.transactions
        ],
        pagination=paginate(ledger.total, ledger.page, ledger.limit),
    ))
