"""Account registry: organizations, account types, categories and the chart of accounts."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.errors import (
    AccountNotFound,
    DuplicateAccountCode,
    InvalidAccountCategory,
    InvalidAccountType,
    InvalidParentAccount,
    OrganizationNotFound,
    ValidationFailed,
)
from bookkeeping.models.gl import Account, AccountBalance, AccountCategory, AccountType
from bookkeeping.models.org import Organization

logger = logging.getLogger(__name__)

# Fields ``update_account`` may change.
UPDATABLE_FIELDS = (
    "code",
    "name",
    "description",
    "account_type_id",
    "account_category_id",
    "parent_account_id",
    "is_active",
    "is_bank_account",
    "bank_account_details",
)

# Updatable fields that map to NOT NULL columns.
NON_NULLABLE_FIELDS = ("code", "name", "account_type_id", "is_active", "is_bank_account")


class OrganizationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_organization(self, name: str, currency: str = "USD") -> Organization:
        organization = Organization(name=name, currency=currency)
        self.db.add(organization)
        await self.db.commit()
        await self.db.refresh(organization)
        logger.info(f"Created organization {organization.id} {organization.name!r}")
        return organization

    async def list_organizations(self) -> list[Organization]:
        result = await self.db.execute(select(Organization).order_by(Organization.id))
        return list(result.scalars().all())

    async def get_organization(self, organization_id: int) -> Organization:
        organization = await self.db.get(Organization, organization_id)
        if organization is None:
            raise OrganizationNotFound()
        return organization


class AccountRegistry:
    """Chart-of-accounts reads and writes for one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    async def list_account_types(self) -> list[AccountType]:
        result = await self.db.execute(select(AccountType).order_by(AccountType.id))
        return list(result.scalars().all())

    async def list_categories(self, organization_id: int) -> list[AccountCategory]:
        stmt = (
            select(AccountCategory)
            .where(AccountCategory.organization_id == organization_id)
            .order_by(AccountCategory.account_type_id, AccountCategory.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_category(
        self,
        organization_id: int,
        name: str,
        account_type_id: int,
        description: str | None = None,
    ) -> AccountCategory:
        await self._require_organization(organization_id)
        if await self.db.get(AccountType, account_type_id) is None:
            raise InvalidAccountType()

        category = AccountCategory(
            organization_id=organization_id,
            account_type_id=account_type_id,
            name=name,
            description=description,
        )
        self.db.add(category)
        await self.db.commit()

        result = await self.db.execute(
            select(AccountCategory)
            .where(AccountCategory.id == category.id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _projection(self):
        return (
            select(Account)
            .join(AccountType, Account.account_type_id == AccountType.id)
            .outerjoin(AccountCategory, Account.account_category_id == AccountCategory.id)
            .execution_options(populate_existing=True)
        )

    async def list_accounts(self, organization_id: int) -> list[Account]:
        stmt = (
            self._projection()
            .where(Account.organization_id == organization_id)
            .order_by(AccountType.id, AccountCategory.name, Account.code)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_account(self, organization_id: int, account_id: int) -> Account:
        stmt = self._projection().where(
            Account.id == account_id,
            Account.organization_id == organization_id,
        )
        account = (await self.db.execute(stmt)).scalar_one_or_none()
        if account is None:
            raise AccountNotFound()
        return account

    async def create_account(
        self,
        organization_id: int,
        code: str,
        name: str,
        account_type_id: int,
        account_category_id: int,
        parent_account_id: int | None = None,
        description: str | None = None,
        is_active: bool = True,
        is_bank_account: bool = False,
        bank_account_details: dict[str, Any] | None = None,
    ) -> Account:
        """Create an account and its zero balance row in one transaction."""
        await self._require_organization(organization_id)
        await self._check_code_free(organization_id, code)
        await self._check_account_type(account_type_id)
        await self._check_category(organization_id, account_category_id)
        if parent_account_id is not None:
            await self._check_parent(organization_id, parent_account_id)

        account = Account(
            organization_id=organization_id,
            code=code,
            name=name,
            description=description,
            account_type_id=account_type_id,
            account_category_id=account_category_id,
            parent_account_id=parent_account_id,
            is_active=is_active,
            is_bank_account=is_bank_account,
            bank_account_details=bank_account_details,
        )
        try:
            self.db.add(account)
            await self.db.flush()
            self.db.add(AccountBalance(
                account_id=account.id,
                organization_id=organization_id,
                balance=0,
            ))
            await self.db.commit()
        except IntegrityError:
            await self._raise_if_code_taken(organization_id, code)
            raise
        logger.info(f"Created account {account.id} code={code!r} org={organization_id}")

        return await self.get_account(organization_id, account.id)

    async def update_account(
        self,
        organization_id: int,
        account_id: int,
        changes: dict[str, Any],
    ) -> Account:
        """Apply a partial update; only keys present in *changes* are touched."""
        result = await self.db.execute(
            select(Account).where(
                Account.id == account_id,
                Account.organization_id == organization_id,
            )
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise AccountNotFound()

        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        nulled = sorted(f for f in NON_NULLABLE_FIELDS if f in changes and changes[f] is None)
        if nulled:
            raise ValidationFailed("These fields cannot be null", details={"fields": nulled})

        code = changes.get("code")
        if code is not None and code != account.code:
            await self._check_code_free(organization_id, code, exclude_id=account_id)
        if "account_type_id" in changes:
            await self._check_account_type(changes["account_type_id"])
        if "account_category_id" in changes:
            await self._check_category(organization_id, changes["account_category_id"])
        if "parent_account_id" in changes:
            parent_id = changes["parent_account_id"]
            if parent_id == account_id:
                raise InvalidParentAccount("An account cannot be its own parent")
            if parent_id is not None:
                await self._check_parent(organization_id, parent_id)
                await self._check_not_descendant(account_id, parent_id)

        for field, value in changes.items():
            setattr(account, field, value)
        account.updated_at = func.now()

        try:
            await self.db.commit()
        except IntegrityError:
            await self._raise_if_code_taken(organization_id, code, exclude_id=account_id)
            raise
        logger.info(f"Updated account {account_id} fields={sorted(changes)}")

        return await self.get_account(organization_id, account_id)

    # ------------------------------------------------------------------
    # Referential checks
    # ------------------------------------------------------------------

    async def _require_organization(self, organization_id: int) -> None:
        if await self.db.get(Organization, organization_id) is None:
            raise OrganizationNotFound()

    async def _code_taken(
        self, organization_id: int, code: str, exclude_id: int | None = None
    ) -> bool:
        stmt = select(Account.id).where(
            Account.organization_id == organization_id,
            Account.code == code,
        )
        if exclude_id is not None:
            stmt = stmt.where(Account.id != exclude_id)
        return (await self.db.execute(stmt)).first() is not None

    async def _check_code_free(
        self, organization_id: int, code: str, exclude_id: int | None = None
    ) -> None:
        if await self._code_taken(organization_id, code, exclude_id):
            raise DuplicateAccountCode()

    async def _raise_if_code_taken(
        self, organization_id: int, code: str | None, exclude_id: int | None = None
    ) -> None:
        """Roll back a failed write and report a code claimed concurrently as a duplicate."""
        await self.db.rollback()
        if code is not None and await self._code_taken(organization_id, code, exclude_id):
            logger.warning(f"Account code {code!r} claimed concurrently in org {organization_id}")
            raise DuplicateAccountCode()

    async def _check_account_type(self, account_type_id: int) -> None:
        if await self.db.get(AccountType, account_type_id) is None:
            raise InvalidAccountType()

    async def _check_category(self, organization_id: int, category_id: int | None) -> None:
        if category_id is None:
            raise InvalidAccountCategory()
        stmt = select(AccountCategory.id).where(
            AccountCategory.id == category_id,
            AccountCategory.organization_id == organization_id,
        )
        if (await self.db.execute(stmt)).first() is None:
            raise InvalidAccountCategory()

    async def _check_parent(self, organization_id: int, parent_id: int) -> None:
        stmt = select(Account.id).where(
            Account.id == parent_id,
            Account.organization_id == organization_id,
        )
        if (await self.db.execute(stmt)).first() is None:
            raise InvalidParentAccount()

    async def _check_not_descendant(self, account_id: int, parent_id: int) -> None:
        """Walk up from *parent_id*; reaching *account_id* would close a cycle."""
        seen: set[int] = set()
        current: int | None = parent_id
        while current is not None and current not in seen:
            if current == account_id:
                raise InvalidParentAccount("An account cannot be a descendant of itself")
            seen.add(current)
            current = (
                await self.db.execute(
                    select(Account.parent_account_id).where(Account.id == current)
                )
            ).scalar_one_or_none()
