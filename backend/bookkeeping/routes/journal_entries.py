"""Journal entry routes: list, fetch and post balanced entries."""
from __future__ import annotations

import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.database import get_db
from bookkeeping.middleware.auth import get_current_user
from bookkeeping.models.gl import JournalEntry
from bookkeeping.schemas import CamelModel, Envelope, paginate
from bookkeeping.services.journal import EntryTotals, JournalEngine, PostingLine, entry_totals

router = APIRouter(prefix="/journal-entries", tags=["journal-entries"])


# ---------------------------------------------------------------------------
# Pydantic Schemas
# ---------------------------------------------------------------------------

class JournalLineIn(CamelModel):
    account_id: int
    description: str | None = None
    debit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    tax_amount: Decimal | None = Field(default=None, ge=0)


class JournalEntryCreate(CamelModel):
    organization_id: int
    entry_date: datetime.date = Field(alias="date")
    reference: str = Field(min_length=1, max_length=100)
    description: str | None = None
    lines: list[JournalLineIn] = Field(min_length=2)


class JournalLineOut(CamelModel):
    id: int
    account_id: int
    account_code: str | None = None
    account_name: str | None = None
    description: str | None = None
    debit_amount: float
    credit_amount: float
    tax_rate: float | None = None
    tax_amount: float | None = None


class TotalsOut(CamelModel):
    total_debit: float
    total_credit: float
    total_tax: float = 0.0


class JournalEntrySummary(CamelModel):
    id: int
    date: datetime.date
    reference: str
    description: str | None = None
    status: str
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None
    total_debit: float = 0.0
    total_credit: float = 0.0


class JournalEntryOut(CamelModel):
    id: int
    date: datetime.date
    reference: str
    description: str | None = None
    status: str
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None
    lines: list[JournalLineOut] = []
    totals: TotalsOut


def _optional_float(value) -> float | None:
    return float(value) if value is not None else None


def entry_out(entry: JournalEntry, totals: EntryTotals | None = None) -> JournalEntryOut:
    totals = totals or entry_totals(entry.lines)
    return JournalEntryOut(
        id=entry.id,
        date=entry.date,
        reference=entry.reference,
        description=entry.description,
        status=entry.status,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
        lines=[
            JournalLineOut(
                id=l.id,
                account_id=l.account_id,
                account_code=l.account.code if l.account else None,
                account_name=l.account.name if l.account else None,
                description=l.description,
                debit_amount=float(l.debit_amount or 0),
                credit_amount=float(l.credit_amount or 0),
                tax_rate=_optional_float(l.tax_rate),
                tax_amount=_optional_float(l.tax_amount),
            )
            for l in entry.lines
        ],
        totals=TotalsOut(
            total_debit=float(totals.total_debit),
            total_credit=float(totals.total_credit),
            total_tax=float(totals.total_tax),
        ),
    )


# ---------------------------------------------------------------------------
# JOURNAL ENTRIES
# ---------------------------------------------------------------------------

@router.get(
    "/organization/{organization_id}",
    response_model=Envelope[list[JournalEntrySummary]],
)
async def list_journal_entries(
    organization_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    start_date: datetime.date | None = Query(None, alias="startDate"),
    end_date: datetime.date | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    items, total = await JournalEngine(db).list_entries(
        organization_id,
        page=page,
        limit=limit,
        start_date=start_date,
        end_date=end_date,
    )
    data = [
        JournalEntrySummary(
            id=je.id,
            date=je.date,
            reference=je.reference,
            description=je.description,
            status=je.status,
            created_at=je.created_at,
            updated_at=je.updated_at,
            total_debit=float(totals.total_debit),
            total_credit=float(totals.total_credit),
        )
        for je, totals in items
    ]
    return Envelope(data=data, pagination=paginate(total, page, limit))


@router.get(
    "/{entry_id}/organization/{organization_id}",
    response_model=Envelope[JournalEntryOut],
)
async def get_journal_entry(
    entry_id: int,
    organization_id: int,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    entry = await JournalEngine(db).get_entry(organization_id, entry_id)
    return Envelope(data=entry_out(entry))


@router.post("", status_code=201, response_model=Envelope[JournalEntryOut])
async def create_journal_entry(
    body: JournalEntryCreate,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    lines = [
        PostingLine(
            account_id=line.account_id,
            debit_amount=line.debit_amount,
            credit_amount=line.credit_amount,
            description=line.description,
            tax_rate=line.tax_rate,
            tax_amount=line.tax_amount,
        )
        for line in body.lines
    ]
    entry = await JournalEngine(db).post_entry(
        organization_id=body.organization_id,
        entry_date=body.entry_date,
        reference=body.reference,
        description=body.description,
        lines=lines,
    )
    return Envelope(message="Journal entry created successfully", data=entry_out(entry))
