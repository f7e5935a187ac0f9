"""Organization routes -- the tenants whose books are kept here."""
from __future__ import annotations

import datetime

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.database import get_db
from bookkeeping.middleware.auth import get_current_user
from bookkeeping.schemas import CamelModel, Envelope
from bookkeeping.services.accounts import OrganizationService

router = APIRouter(prefix="/organizations", tags=["organizations"])


class OrganizationCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class OrganizationOut(CamelModel):
    id: int
    name: str
    currency: str
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None


@router.get("", response_model=Envelope[list[OrganizationOut]])
async def list_organizations(
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    organizations = await OrganizationService(db).list_organizations()
    return Envelope(data=[OrganizationOut.model_validate(o) for o in organizations])


@router.get("/{organization_id}", response_model=Envelope[OrganizationOut])
async def get_organization(
    organization_id: int,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    return Envelope(data=OrganizationOut.model_validate(organization))


@router.post("", status_code=201, response_model=Envelope[OrganizationOut])
async def create_organization(
    body: OrganizationCreate,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(get_current_user),
):
    organization = await OrganizationService(db).create_organization(
        name=body.name,
        currency=body.currency.upper(),
    )
    return Envelope(
        message="Organization created successfully",
        data=OrganizationOut.model_validate(organization),
    )
