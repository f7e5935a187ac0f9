"""
Tests: Financial Reports

Trial balance (current and historical) and income statement over the same
small set of postings used across the suite.
"""
import datetime

import pytest_asyncio
from sqlalchemy import update

from conftest import API, credit, debit, post_entry

from bookkeeping.models.gl import AccountBalance


def tb_url(org):
    return f"{API}/reports/trial-balance/organization/{org['id']}"


def is_url(org):
    return f"{API}/reports/income-statement/organization/{org['id']}"


def find_account(report, code):
    for type_group in report["trialBalance"]:
        for category in type_group["categories"]:
            for account in category["accounts"]:
                if account["code"] == code:
                    return account
    raise AssertionError(f"account {code} not in trial balance")


@pytest_asyncio.fixture
async def postings(client, headers, org, accounts):
    """Jan: sale 100, rent 30.  Feb: sale 50."""
    cash, revenue, rent = accounts["1000"], accounts["4000"], accounts["5000"]
    for day, ref, lines in [
        ("2024-01-10", "S-1", [debit(cash, 100), credit(revenue, 100)]),
        ("2024-01-20", "R-1", [debit(rent, 30), credit(cash, 30)]),
        ("2024-02-05", "S-2", [debit(cash, 50), credit(revenue, 50)]),
    ]:
        r = await post_entry(client, headers, org["id"], day, ref, lines)
        assert r.status_code == 201, r.text
    return accounts


class TestTrialBalance:

    async def test_balanced_books_have_equal_totals(self, client, headers, org, postings):
        r = await client.get(tb_url(org), headers=headers)
        assert r.status_code == 200, r.text
        report = r.json()["data"]

        assert report["totals"] == {"totalDebits": 150.0, "totalCredits": 150.0, "difference": 0.0}
        assert report["asOfDate"] == datetime.date.today().isoformat()
        assert [t["name"] for t in report["trialBalance"]] == [
            "Asset", "Liability", "Equity", "Revenue", "Expense",
        ]

        cash = find_account(report, "1000")
        assert cash["balance"] == 120.0
        assert cash["debitBalance"] == 120.0
        assert cash["creditBalance"] == 0.0

        revenue = find_account(report, "4000")
        assert revenue["creditBalance"] == 150.0
        assert revenue["debitBalance"] == 0.0

        assets = report["trialBalance"][0]
        assert assets["normalBalance"] == "debit"
        assert assets["totalDebit"] == 120.0
        assert assets["categories"][0]["name"] == "Current Assets"
        assert [a["code"] for a in assets["categories"][0]["accounts"]] == ["1000", "1100"]

    async def test_empty_books(self, client, headers, org, accounts):
        r = await client.get(tb_url(org), headers=headers)
        report = r.json()["data"]
        assert report["totals"]["totalDebits"] == 0.0
        assert report["totals"]["difference"] == 0.0
        assert find_account(report, "2000")["balance"] == 0.0

    async def test_contra_balances_switch_columns(self, client, headers, org, accounts):
        """A negative balance is reported in the column opposite its normal side."""
        r = await post_entry(
            client, headers, org["id"], "2024-03-01", "DRAW",
            [debit(accounts["3000"], 40), credit(accounts["1000"], 40)],
        )
        assert r.status_code == 201
        report = (await client.get(tb_url(org), headers=headers)).json()["data"]

        cash = find_account(report, "1000")
        assert cash["balance"] == -40.0
        assert cash["creditBalance"] == 40.0
        assert cash["debitBalance"] == 0.0

        capital = find_account(report, "3000")
        assert capital["debitBalance"] == 40.0
        assert report["totals"]["difference"] == 0.0

    async def test_corrupted_balance_shows_difference(
        self, client, headers, org, postings, session_factory
    ):
        """The report reads maintained balances, so drift is visible as a difference."""
        async with session_factory() as session:
            await session.execute(
                update(AccountBalance)
                .where(AccountBalance.account_id == postings["1000"]["id"])
                .values(balance=999)
            )
            await session.commit()

        report = (await client.get(tb_url(org), headers=headers)).json()["data"]
        assert report["totals"]["totalDebits"] == 1029.0
        assert report["totals"]["totalCredits"] == 150.0
        assert report["totals"]["difference"] == 879.0

    async def test_as_of_date_rebuilds_historical_balances(self, client, headers, org, postings):
        r = await client.get(tb_url(org), headers=headers, params={"asOfDate": "2024-01-15"})
        report = r.json()["data"]
        assert report["asOfDate"] == "2024-01-15"
        assert find_account(report, "1000")["balance"] == 100.0
        assert find_account(report, "4000")["balance"] == 100.0
        assert find_account(report, "5000")["balance"] == 0.0
        assert report["totals"] == {"totalDebits": 100.0, "totalCredits": 100.0, "difference": 0.0}

    async def test_as_of_date_includes_that_day(self, client, headers, org, postings):
        r = await client.get(tb_url(org), headers=headers, params={"asOfDate": "2024-01-20"})
        report = r.json()["data"]
        assert find_account(report, "1000")["balance"] == 70.0
        assert find_account(report, "5000")["balance"] == 30.0

    async def test_organizations_are_isolated(self, client, headers, other_org, postings):
        report = (await client.get(tb_url(other_org), headers=headers)).json()["data"]
        assert report["trialBalance"] == []
        assert report["totals"]["totalDebits"] == 0.0


class TestIncomeStatement:

    async def test_period_activity_and_net_income(self, client, headers, org, postings):
        r = await client.get(
            is_url(org), headers=headers, params={"startDate": "2024-01-01", "endDate": "2024-01-31"}
        )
        assert r.status_code == 200, r.text
        report = r.json()["data"]
        assert report["revenue"]["total"] == 100.0
        assert report["expenses"]["total"] == 30.0
        assert report["netIncome"] == 70.0
        assert report["period"] == {"startDate": "2024-01-01", "endDate": "2024-01-31"}

        sales = report["revenue"]["categories"][0]
        assert sales["name"] == "Sales"
        assert sales["total"] == 100.0
        assert sales["accounts"][0]["code"] == "4000"
        assert sales["accounts"][0]["categoryName"] == "Sales"

    async def test_bounds_are_inclusive(self, client, headers, org, postings):
        r = await client.get(
            is_url(org), headers=headers, params={"startDate": "2024-01-20", "endDate": "2024-02-05"}
        )
        report = r.json()["data"]
        assert report["revenue"]["total"] == 50.0
        assert report["expenses"]["total"] == 30.0
        assert report["netIncome"] == 20.0

    async def test_quiet_period_lists_accounts_at_zero(self, client, headers, org, postings):
        r = await client.get(
            is_url(org), headers=headers, params={"startDate": "2023-01-01", "endDate": "2023-12-31"}
        )
        report = r.json()["data"]
        assert report["netIncome"] == 0.0
        assert report["expenses"]["categories"][0]["accounts"][0]["balance"] == 0.0

    async def test_missing_dates_rejected(self, client, headers, org, postings):
        r = await client.get(is_url(org), headers=headers, params={"startDate": "2024-01-01"})
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "MISSING_DATE_PARAMETERS"

        r = await client.get(is_url(org), headers=headers)
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "MISSING_DATE_PARAMETERS"

    async def test_inverted_range_rejected(self, client, headers, org, postings):
        r = await client.get(
            is_url(org), headers=headers, params={"startDate": "2024-02-01", "endDate": "2024-01-01"}
        )
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "VALIDATION_ERROR"
