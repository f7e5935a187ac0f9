"""
Test fixtures for the bookkeeping API.

Every test gets a fresh SQLite database (aiosqlite) with the schema and the
seeded account types.  The FastAPI app is driven in-process through
``httpx.ASGITransport`` with its session factory pointed at that database, so
tests exercise the real routing, validation, error envelope and store.
"""
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from bookkeeping.config import Settings
from bookkeeping.database import build_engine, build_session_factory, init_db
from bookkeeping.main import app
from bookkeeping.middleware.auth import create_access_token

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
BASE_URL = "http://test"
API = f"{BASE_URL}/api/v1"

ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE = 1, 2, 3, 4, 5


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def auth_headers(token: str) -> dict:
    """Return auth header dict for a given token."""
    return {"Authorization": f"Bearer {token}"}


async def create_account(client, headers, org_id, code, name, type_id, category_id, **extra):
    """Create an account through the API and return its ``data`` payload."""
    r = await client.post(
        f"{API}/accounts",
        headers=headers,
        json={
            "organizationId": org_id,
            "code": code,
            "name": name,
            "accountTypeId": type_id,
            "accountCategoryId": category_id,
            **extra,
        },
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]


async def post_entry(client, headers, org_id, date, reference, lines, description=None):
    """POST a journal entry; returns the raw response."""
    return await client.post(
        f"{API}/journal-entries",
        headers=headers,
        json={
            "organizationId": org_id,
            "date": date,
            "reference": reference,
            "description": description,
            "lines": lines,
        },
    )


def debit(account, amount, **extra) -> dict:
    return {"accountId": account["id"], "debitAmount": amount, "creditAmount": 0, **extra}


def credit(account, amount, **extra) -> dict:
    return {"accountId": account["id"], "debitAmount": 0, "creditAmount": amount, **extra}


async def count_rows(session_factory, model) -> int:
    from sqlalchemy import func, select

    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def balance_of(session_factory, account_id) -> Decimal:
    from bookkeeping.models.gl import AccountBalance
    from sqlalchemy import select

    async with session_factory() as session:
        result = await session.execute(
            select(AccountBalance.balance).where(AccountBalance.account_id == account_id)
        )
        return Decimal(str(result.scalar_one()))


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh on-disk SQLite database with schema and account types."""
    settings = Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    engine = build_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    """A session for service-level tests that bypass HTTP."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(session_factory):
    """Async HTTP client bound to the app and the per-test database."""
    app.state.session_factory = session_factory
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL, timeout=30.0) as c:
        yield c


@pytest.fixture
def token():
    return create_access_token({"sub": "accountant@example.com", "name": "Test Accountant"})


@pytest.fixture
def headers(token):
    """Auth headers for an authenticated caller."""
    return auth_headers(token)


# ---------------------------------------------------------------------------
# Seed data: one organization with a small chart of accounts
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def org(client, headers):
    r = await client.post(f"{API}/organizations", headers=headers, json={"name": "Acme Ltd"})
    assert r.status_code == 201, r.text
    return r.json()["data"]


@pytest_asyncio.fixture
async def other_org(client, headers):
    r = await client.post(f"{API}/organizations", headers=headers, json={"name": "Globex"})
    assert r.status_code == 201, r.text
    return r.json()["data"]


@pytest_asyncio.fixture
async def categories(client, headers, org):
    """Categories keyed by account type id."""
    specs = [
        (ASSET, "Current Assets"),
        (LIABILITY, "Current Liabilities"),
        (EQUITY, "Owner's Equity"),
        (REVENUE, "Sales"),
        (EXPENSE, "Operating Expenses"),
    ]
    out = {}
    for type_id, name in specs:
        r = await client.post(
            f"{API}/accounts/categories",
            headers=headers,
            json={"organizationId": org["id"], "name": name, "accountTypeId": type_id},
        )
        assert r.status_code == 201, r.text
        out[type_id] = r.json()["data"]
    return out


@pytest_asyncio.fixture
async def accounts(client, headers, org, categories):
    """Chart of accounts keyed by code."""
    specs = [
        ("1000", "Cash", ASSET),
        ("1100", "Accounts Receivable", ASSET),
        ("2000", "Accounts Payable", LIABILITY),
        ("3000", "Owner's Capital", EQUITY),
        ("4000", "Sales Revenue", REVENUE),
        ("5000", "Rent Expense", EXPENSE),
    ]
    out = {}
    for code, name, type_id in specs:
        out[code] = await create_account(
            client, headers, org["id"], code, name, type_id, categories[type_id]["id"]
        )
    return out
