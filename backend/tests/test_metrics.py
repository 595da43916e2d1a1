# Overview: Pytest coverage for monthly metrics accrual and rollup reads.

from datetime import datetime

import pytest

from fulfillment.errors import InvalidRequest
from fulfillment.models import MonthlyMetrics, OrderTotals
from fulfillment.services import metrics_service, order_service


def _totals(revenue, cogs, expenses):
    return OrderTotals.compute(revenue_cents=revenue, cogs_cents=cogs, expenses_cents=expenses)


def _row(db_session, tenant_id, key):
    db_session.expire_all()
    return db_session.query(MonthlyMetrics).filter_by(tenant_id=tenant_id, month_key=key).one()


class TestAccrual:
    """Merge-with-increment writes."""

    def test_accrue_creates_row_lazily(self, db_session, tenant):
        key = metrics_service.accrue(db_session, tenant.id, datetime(2026, 3, 9, 12), _totals(2000, 800, 100))
        db_session.commit()

        assert key == "2026-03"
        row = _row(db_session, tenant.id, "2026-03")
        assert (row.revenue_cents, row.cogs_cents, row.expenses_cents, row.profit_cents, row.order_count) == (
            2000, 800, 100, 1100, 1,
        )

    def test_accruals_add_up(self, db_session, tenant):
        when = datetime(2026, 3, 1)
        metrics_service.accrue(db_session, tenant.id, when, _totals(1000, 400, 0))
        metrics_service.accrue(db_session, tenant.id, when, _totals(500, 100, 50))
        db_session.commit()

        row = _row(db_session, tenant.id, "2026-03")
        assert row.revenue_cents == 1500
        assert row.profit_cents == 950
        assert row.order_count == 2
        assert db_session.query(MonthlyMetrics).count() == 1

    def test_reverse_with_added_losses(self, db_session, tenant):
        when = datetime(2026, 4, 30, 23, 59)
        totals = _totals(2000, 800, 200)
        metrics_service.accrue(db_session, tenant.id, when, totals)
        metrics_service.reverse(db_session, tenant.id, when, totals, added_losses_cents=150)
        db_session.commit()

        row = _row(db_session, tenant.id, "2026-04")
        assert row.revenue_cents == 0
        assert row.cogs_cents == 0
        # expenses reversal widened by the loss, profit reversal narrowed by it
        assert row.expenses_cents == -150
        assert row.profit_cents == 150
        assert row.order_count == 0

    def test_months_are_independent(self, db_session, tenant, other_tenant):
        metrics_service.accrue(db_session, tenant.id, datetime(2026, 1, 31, 23), _totals(100, 0, 0))
        metrics_service.accrue(db_session, tenant.id, datetime(2026, 2, 1, 0), _totals(200, 0, 0))
        metrics_service.accrue(db_session, other_tenant.id, datetime(2026, 1, 5), _totals(999, 0, 0))
        db_session.commit()

        assert _row(db_session, tenant.id, "2026-01").revenue_cents == 100
        assert _row(db_session, tenant.id, "2026-02").revenue_cents == 200
        assert _row(db_session, other_tenant.id, "2026-01").revenue_cents == 999


class TestYearlyMetrics:

    def test_empty_year_is_zeroed(self, db_session, tenant):
        result = metrics_service.get_yearly_metrics(db_session, tenant.id, 2025)
        assert result == {
            "year": 2025,
            "totals": {
                "revenue_cents": 0,
                "cogs_cents": 0,
                "expenses_cents": 0,
                "profit_cents": 0,
                "order_count": 0,
            },
            "months": [],
        }

    def test_sums_months_in_year_only(self, db_session, tenant):
        metrics_service.accrue(db_session, tenant.id, datetime(2026, 1, 10), _totals(1000, 400, 0))
        metrics_service.accrue(db_session, tenant.id, datetime(2026, 12, 31, 23), _totals(3000, 1000, 500))
        metrics_service.accrue(db_session, tenant.id, datetime(2027, 1, 1), _totals(7777, 0, 0))
        metrics_service.accrue(db_session, tenant.id, datetime(2025, 12, 31), _totals(5555, 0, 0))
        db_session.commit()

        result = metrics_service.get_yearly_metrics(db_session, tenant.id, 2026)
        assert [m["month"] for m in result["months"]] == ["2026-01", "2026-12"]
        assert result["totals"]["revenue_cents"] == 4000
        assert result["totals"]["profit_cents"] == 2100
        assert result["totals"]["order_count"] == 2


class TestWeeklyMetrics:

    def test_buckets_orders_by_iso_week(self, db_session, tenant, make_product):
        product = make_product(quantity=100)
        for created_at in ("2026-03-02T10:00:00Z", "2026-03-03T10:00:00Z", "2026-03-10T10:00:00Z"):
            order_service.create_order(db_session, tenant.id, {
                "lines": [{"product_id": product.id, "qty": 1}],
                "created_at": created_at,
            })
        # Outside the month
        order_service.create_order(db_session, tenant.id, {
            "lines": [{"product_id": product.id, "qty": 1}],
            "created_at": "2026-04-01T00:00:00Z",
        })

        result = metrics_service.get_weekly_metrics(db_session, tenant.id, 2026, 3)
        assert result["month"] == "2026-03"
        assert set(result["weeks"]) == {"2026-W10", "2026-W11"}
        assert result["weeks"]["2026-W10"]["order_count"] == 2
        assert result["weeks"]["2026-W10"]["revenue_cents"] == 2000
        assert result["weeks"]["2026-W11"]["order_count"] == 1

    def test_week_key_uses_requested_year(self, db_session, tenant, make_product):
        product = make_product(quantity=10)
        order_service.create_order(db_session, tenant.id, {
            "lines": [{"product_id": product.id, "qty": 1}],
            "created_at": "2027-01-01T08:00:00Z",
        })

        result = metrics_service.get_weekly_metrics(db_session, tenant.id, 2027, 1)
        assert list(result["weeks"]) == ["2027-W53"]

    def test_late_december_week_keeps_requested_year(self, db_session, tenant, make_product):
        product = make_product(quantity=10)
        order_service.create_order(db_session, tenant.id, {
            "lines": [{"product_id": product.id, "qty": 1}],
            "created_at": "2025-12-29T08:00:00Z",
        })

        result = metrics_service.get_weekly_metrics(db_session, tenant.id, 2025, 12)
        assert list(result["weeks"]) == ["2025-W01"]

    def test_empty_month(self, db_session, tenant):
        assert metrics_service.get_weekly_metrics(db_session, tenant.id, 2026, 2) == {"month": "2026-02", "weeks": {}}

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month_rejected(self, db_session, tenant, month):
        with pytest.raises(InvalidRequest):
            metrics_service.get_weekly_metrics(db_session, tenant.id, 2026, month)
