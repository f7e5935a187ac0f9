"""Chart of Accounts routes: account types, categories and accounts."""
from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.database import get_db
from bookkeeping.middleware.auth import get_current_user
from bookkeeping.models.gl import Account, AccountCategory
from bookkeeping.schemas import CamelModel, Envelope
from bookkeeping.services.accounts import AccountRegistry

router = APIRouter(prefix="/accounts", tags=["accounts"])


# ---------------------------------------------------------------------------
# Pydantic Schemas
# ---------------------------------------------------------------------------

class AccountTypeOut(CamelModel):
    id: int
    name: str
    normal_balance: str
    description: str | None = None


class CategoryCreate(CamelModel):
    organization_id: int
    name: str = Field(min_length=1, max_length=100)
    account_type_id: int
    description: str | None = None


class CategoryOut(CamelModel):
    id: int
    name: str
    description: str | None = None
    account_type_id: int
    account_type_name: str | None = None


class AccountCreate(CamelModel):
    organization_id: int
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    account_type_id: int
    account_category_id: int
    parent_account_id: int | None = None
    is_active: bool = True
    is_bank_account: bool = False
    bank_account_details: dict[str, Any] | None = None


class AccountUpdate(CamelModel):
    code: str | None = Field(default=None, min_length=1, max_length=20)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    account_type_id: int | None = None
    account_category_id: int | None = None
    parent_account_id: int | None = None
    is_active: bool | None = None
    is_bank_account: bool | None = None
    bank_account_details: dict[str, Any] | None = None

    @field_validator("code", "name", "account_type_id", "is_active", "is_bank_account")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class AccountOut(CamelModel):
    id: int
    code: str
    name: str
    description: str | None = None
    parent_account_id: int | None = None
    is_active: bool
    is_bank_account: bool
    bank_account_details: dict[str, Any] | None = None
    account_type_id: int
    account_type_name: str
    normal_balance: str
    account_category_id: int | None = None
    account_category_name: str | None = None
    balance: float = 0.0
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None


def category_out(category: AccountCategory) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        description=category.description,
        account_type_id=category.account_type_id,
        account_type_name=category.account_type.name if category.account_type else None,
    )


def account_out(account: Account) -> AccountOut:
    balance = account.balance_row.balance if account.balance_row else Decimal("0")
    return AccountOut(
        id=account.id,
        code=account.code,
        name=account.name,
        description=account.description,
        parent_account_id=account.parent_account_id,
        is_active=account.is_active,
        is_bank_account=account.is_bank_account,
        bank_account_details=account.bank_account_details,
        account_type_id=account.account_type_id,
        account_type_name=account.account_type.name,
        normal_balance=account.account_type.normal_balance,
        account_category_id=account.account_category_id,
        account_category_name=account.category.name if account.category else None,
        balance=float(balance),
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


# ---------------------------------------------------------------------------
# ACCOUNT TYPES & CATEGORIES
# ---------------------------------------------------------------------------

@router.get("/types", response_model=Envelope[list[AccountTypeOut]])
async def list_account_types(
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    types = await AccountRegistry(db).list_account_types()
    return Envelope(data=[AccountTypeOut.model_validate(t) for t in types])


@router.get(
    "/categories/organization/{organization_id}",
    response_model=Envelope[list[CategoryOut]],
)
async def list_categories(
    organization_id: int,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    categories = await AccountRegistry(db).list_categories(organization_id)
    return Envelope(data=[category_out(c) for c in categories])


@router.post("/categories", status_code=201, response_model=Envelope[CategoryOut])
async def create_category(
    body: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    category = await AccountRegistry(db).create_category(
        organization_id=body.organization_id,
        name=body.name,
        account_type_id=body.account_type_id,
        description=body.description,
    )
    return Envelope(message="Account category created successfully", data=category_out(category))


# ---------------------------------------------------------------------------
# ACCOUNTS
# ---------------------------------------------------------------------------

@router.get("/organization/{organization_id}", response_model=Envelope[list[AccountOut]])
async def list_accounts(
    organization_id: int,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    accounts = await AccountRegistry(db).list_accounts(organization_id)
    return Envelope(data=[account_out(a) for a in accounts])


@router.get(
    "/{account_id}/organization/{organization_id}",
    response_model=Envelope[AccountOut],
)
async def get_account(
    account_id: int,
    organization_id: int,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    account = await AccountRegistry(db).get_account(organization_id, account_id)
    return Envelope(data=account_out(account))


@router.post("", status_code=201, response_model=Envelope[AccountOut])
async def create_account(
    body: AccountCreate,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    account = await AccountRegistry(db).create_account(**body.model_dump())
    return Envelope(message="Account created successfully", data=account_out(account))


@router.put(
    "/{account_id}/organization/{organization_id}",
    response_model=Envelope[AccountOut],
)
async def update_account(
    account_id: int,
    organization_id: int,
    body: AccountUpdate,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    account = await AccountRegistry(db).update_account(
        organization_id,
        account_id,
        body.model_dump(exclude_unset=True),
    )
    return Envelope(message="Account updated successfully", data=account_out(account))
