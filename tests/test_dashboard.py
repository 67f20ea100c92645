"""
Tests for the finance dashboard aggregates.
"""
from datetime import datetime

import pytest

from estimator.dashboard import (
    aggregate_company_expenses,
    aggregate_financials,
    compute_project_profit,
    monthly_series,
)

AS_OF = datetime(2024, 6, 1)


@pytest.fixture
def portfolio(make_project):
    """One fully paid project (639.6) and one with a balance and an overdue payment."""
    paid = make_project(
        {
            "wasteFactor": 0.1,
            "taxRate": 0.08,
            "markup": 0.15,
            "payments": [
                {"amount": 100, "type": "Deposit", "isPaid": True, "date": "2024-03-01"},
                {"amount": 539.6, "method": "Check", "isPaid": True, "date": "2024-04-15"},
            ],
        },
        customer={"projectName": "Kitchen", "startDate": "2024-03-01"},
    )
    open_balance = make_project(
        {
            "deposit": 100,
            "payments": [{"amount": 200, "isPaid": False, "date": "2024-04-20"}],
        },
        customer={"projectName": "Bath", "startDate": "2024-04-10"},
    )
    return [paid, open_balance]


@pytest.fixture
def expenses():
    return [
        {"date": "2024-04-05", "amount": 50, "category": "fuel"},
        {"amount": "20"},
    ]


class TestProjectProfit:
    def test_profit_figures(self, portfolio):
        profit = compute_project_profit(portfolio[0], as_of=AS_OF)
        assert profit.revenue == pytest.approx(639.6)
        assert profit.cogs == pytest.approx(261.6)
        assert profit.gross_profit == pytest.approx(378.0)
        assert profit.net_profit == pytest.approx(0.0, abs=1e-9)
        assert profit.gross_margin_pct == pytest.approx(378.0 / 639.6 * 100)

    def test_no_revenue_no_margin(self, make_project):
        profit = compute_project_profit(make_project())
        assert profit.revenue == 0
        assert profit.gross_margin_pct == 0
        assert profit.net_profit == pytest.approx(-500.0)


class TestAggregateFinancials:
    def test_totals(self, portfolio):
        res = aggregate_financials(portfolio, as_of=AS_OF)
        assert res.total_projects == 2
        assert res.total_grand_value == pytest.approx(1139.6)
        assert res.total_collections == pytest.approx(739.6)
        assert res.total_deposits == pytest.approx(200.0)
        assert res.total_material_cost == pytest.approx(400.0)
        assert res.total_labor_cost == pytest.approx(600.0)
        assert res.total_cogs == pytest.approx(461.6)
        assert res.total_markup == pytest.approx(78.0)

    def test_status_and_balances(self, portfolio):
        res = aggregate_financials(portfolio, as_of=AS_OF)
        assert res.fully_paid_projects == 1
        assert res.projects_with_balance == 1
        assert res.total_outstanding == pytest.approx(400.0)
        assert res.total_overdue == pytest.approx(200.0)

    def test_additional_revenue_is_gated(self, portfolio):
        res = aggregate_financials(portfolio, as_of=AS_OF)
        assert res.additional_revenue.total == pytest.approx(78.0)
        assert res.additional_revenue.project_count == 1

    def test_payment_methods_count_deposit_once(self, portfolio):
        res = aggregate_financials(portfolio, as_of=AS_OF)
        assert res.payment_methods == pytest.approx({"Deposit": 200.0, "Check": 539.6})

    def test_breakdown_maps(self, portfolio):
        res = aggregate_financials(portfolio, as_of=AS_OF)
        assert res.material_breakdown == pytest.approx({"Walls / Paint walls": 400.0})
        assert res.labor_breakdown == pytest.approx({"Walls / Paint walls": 600.0})

    def test_filter(self, portfolio):
        res = aggregate_financials(portfolio, {"type": "year", "year": 2023}, as_of=AS_OF)
        assert res.total_projects == 0
        assert res.additional_revenue.total == 0

    def test_generator_input(self, portfolio):
        res = aggregate_financials((p for p in portfolio), as_of=AS_OF)
        assert res.total_projects == 2
        assert res.additional_revenue.project_count == 1

    def test_unusable_input_is_reported(self):
        res = aggregate_financials(7, as_of=AS_OF)
        assert res.total_projects == 0
        assert [e.code for e in res.errors] == ["INVALID_PROJECTS"]

    def test_rounded(self, portfolio):
        res = aggregate_financials(portfolio, as_of=AS_OF).rounded()
        assert res.total_grand_value == 1139.6
        assert res.additional_revenue.total == 78.0


class TestCompanyExpenses:
    def test_category_totals(self, expenses):
        res = aggregate_company_expenses(expenses)
        assert res.category_totals == {"fuel": 50.0, "other": 20.0}
        assert res.total == pytest.approx(70.0)

    def test_undated_expenses_always_count(self, expenses):
        res = aggregate_company_expenses(expenses, {"type": "year", "year": 2023})
        assert res.category_totals == {"other": 20.0}


class TestMonthlySeries:
    def test_month_buckets(self, portfolio, expenses):
        months = monthly_series(portfolio, expenses, as_of=AS_OF)
        assert list(months) == ["2024-03", "2024-04"]

        march = months["2024-03"]
        assert march.collections == pytest.approx(100.0)
        assert march.project_expenses == pytest.approx(261.6)
        assert march.project_count == 1
        assert march.profit == pytest.approx(-161.6)

        april = months["2024-04"]
        # check payment plus the legacy deposit booked on the start month
        assert april.collections == pytest.approx(639.6)
        assert april.company_expenses == pytest.approx(50.0)
        assert april.material_cost == pytest.approx(200.0)
        assert april.profit == pytest.approx(389.6)

    def test_empty(self):
        assert monthly_series([], []) == {}
