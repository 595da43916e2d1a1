# Overview: Pytest coverage for order creation, status transitions and order queries.

"""
Order Engine Tests

Covers:
- Creation: pricing snapshot, totals identity, stock consumption, metrics accrual
- Validation before any transaction is opened
- Atomicity: a failing line leaves stock and metrics untouched
- Status transitions and their stock/metrics effects, including the round trip
- Listing with month/warehouse filters
"""

import pytest

from fulfillment.errors import Conflict, InvalidRequest, NotFound
from fulfillment.models import MonthlyMetrics, Order, Product, TenantSettings
from fulfillment.models.inventory import QUANTITY_INFINITE
from fulfillment.services import order_service
from fulfillment.time_utils import utcnow


def _metrics(db_session, tenant_id, key):
    db_session.expire_all()
    return db_session.query(MonthlyMetrics).filter_by(tenant_id=tenant_id, month_key=key).first()


def _stock(db_session, product_id):
    db_session.expire_all()
    return db_session.get(Product, product_id).quantity


def _order(db_session, tenant, product, qty=2, **extra):
    payload = {"lines": [{"product_id": product.id, "qty": qty}], "created_at": "2026-05-14T09:30:00Z"}
    payload.update(extra)
    return order_service.create_order(db_session, tenant.id, payload)


class TestCreateOrder:

    def test_basic_order_totals_and_stock(self, db_session, tenant, make_product, default_warehouse):
        """P1 sell 10.00 / stock 4.00, 5 units; qty 2 -> 20/8/0/12, 60%, 3 left."""
        product = make_product(quantity=5)

        order = _order(db_session, tenant, product, qty=2)

        assert order.to_dict()["totals"] == {
            "revenue_cents": 2000,
            "cogs_cents": 800,
            "expenses_cents": 0,
            "profit_cents": 1200,
            "profit_pct": 0.6,
        }
        assert order.status == "OK"
        assert order.warehouse_id == default_warehouse.id
        assert _stock(db_session, product.id) == 3

        row = _metrics(db_session, tenant.id, "2026-05")
        assert (row.revenue_cents, row.cogs_cents, row.profit_cents, row.order_count) == (2000, 800, 1200, 1)

    def test_initial_history_entry(self, db_session, tenant, make_product):
        order = _order(db_session, tenant, make_product())
        history = order.to_dict()["status_history"]
        assert len(history) == 1
        assert history[0]["old_status"] is None
        assert history[0]["new_status"] == "OK"
        assert history[0]["notes"] == "Order created."
        assert history[0]["user_id"] is None
        assert order.to_dict()["extra_losses_history"] == []

    def test_expenses_include_shipping_losses_and_packaging(self, db_session, tenant, make_product):
        product = make_product(quantity=10)
        order = _order(
            db_session, tenant, product, qty=3,
            shipping_cents=250,
            extra_losses_cents=100,
            packaging_items=[{"name": "Box", "price_cents": 200}, {"name": "Tape", "price_cents": 50}],
        )

        totals = order.totals
        assert totals.expenses_cents == 250 + 100 + 200 + 50
        assert totals.profit_cents == totals.revenue_cents - totals.cogs_cents - totals.expenses_cents
        assert order.packaging_cents == 250
        assert [item["name"] for item in order.to_dict()["packaging_items"]] == ["Box", "Tape"]

    def test_price_overrides_including_zero(self, db_session, tenant, make_product):
        product = make_product()
        order = order_service.create_order(db_session, tenant.id, {
            "lines": [{"product_id": product.id, "qty": 1, "unit_sell_price_cents": 0, "unit_stock_price_cents": 150}],
        })
        assert order.revenue_cents == 0
        assert order.cogs_cents == 150
        assert order.profit_pct == 0.0

    def test_line_snapshot_survives_product_edits(self, db_session, tenant, make_product):
        product = make_product(name="Blue Mug", sell_price_cents=1000)
        order = _order(db_session, tenant, product, qty=1)

        product = db_session.get(Product, product.id)
        product.name = "Red Mug"
        product.sell_price_cents = 5000
        db_session.commit()

        line = order_service.get_order(db_session, tenant.id, order.id).lines[0]
        assert line.name == "Blue Mug"
        assert line.unit_sell_price_cents == 1000

    def test_back_dated_order_accrues_to_its_month(self, db_session, tenant, make_product):
        order = _order(db_session, tenant, make_product(), created_at="2024-01-31T23:30:00-02:00")
        # -02:00 offset puts the instant in February UTC
        assert order.to_dict()["created_at"] == "2024-02-01T01:30:00Z"
        assert _metrics(db_session, tenant.id, "2024-02").order_count == 1
        assert _metrics(db_session, tenant.id, "2024-01") is None

    def test_server_time_when_no_date(self, db_session, tenant, make_product):
        before = utcnow().replace(microsecond=0)
        order = order_service.create_order(db_session, tenant.id, {"lines": [{"product_id": make_product().id, "qty": 1}]})
        assert order.created_at >= before

    def test_per_warehouse_stock_consumed(self, db_session, tenant, make_product, second_warehouse):
        product = make_product(quantity=50, per_warehouse={second_warehouse.id: {"quantity": 4}})
        _order(db_session, tenant, product, qty=3, warehouse_id=second_warehouse.id)

        db_session.expire_all()
        product = db_session.get(Product, product.id)
        assert product.warehouse_entry(second_warehouse.id).quantity == 1
        assert product.quantity == 50

    def test_infinite_product_not_tracked(self, db_session, tenant, make_product):
        product = make_product(quantity_type=QUANTITY_INFINITE)
        order = _order(db_session, tenant, product, qty=500)
        assert order.revenue_cents == 500 * 1000
        assert _stock(db_session, product.id) is None

    def test_repeated_product_lines_are_cumulative(self, db_session, tenant, make_product):
        product = make_product(quantity=5)
        with pytest.raises(Conflict):
            order_service.create_order(db_session, tenant.id, {
                "lines": [{"product_id": product.id, "qty": 3}, {"product_id": product.id, "qty": 3}],
            })
        assert _stock(db_session, product.id) == 5


class TestCreateOrderFailures:

    def test_empty_lines_rejected(self, db_session, tenant):
        with pytest.raises(InvalidRequest, match="at least one"):
            order_service.create_order(db_session, tenant.id, {"lines": []})

    @pytest.mark.parametrize("line", [
        {"product_id": 1, "qty": 0},
        {"product_id": 1, "qty": -2},
        {"product_id": 1, "qty": 1.5},
        {"qty": 1},
        {"product_id": 1, "qty": 1, "unit_sell_price_cents": -1},
        {"product_id": 1, "qty": 1, "unit_stock_price_cents": "abc"},
    ])
    def test_malformed_lines_rejected(self, db_session, tenant, line):
        with pytest.raises(InvalidRequest):
            order_service.create_order(db_session, tenant.id, {"lines": [line]})

    def test_bad_date_rejected(self, db_session, tenant, make_product):
        with pytest.raises(InvalidRequest, match="created_at"):
            _order(db_session, tenant, make_product(), created_at="yesterday-ish")

    def test_unknown_product_not_found(self, db_session, tenant):
        with pytest.raises(NotFound):
            order_service.create_order(db_session, tenant.id, {"lines": [{"product_id": 424242, "qty": 1}]})

    def test_foreign_product_not_found(self, db_session, tenant, other_tenant, make_product):
        foreign = make_product(tenant_id=other_tenant.id)
        with pytest.raises(NotFound):
            _order(db_session, tenant, foreign, qty=1)

    def test_foreign_warehouse_not_found(self, db_session, tenant, other_tenant, make_product):
        other_warehouse_id = db_session.query(TenantSettings).filter_by(
            tenant_id=other_tenant.id
        ).one().default_warehouse_id
        with pytest.raises(NotFound):
            _order(db_session, tenant, make_product(), qty=1, warehouse_id=other_warehouse_id)

    def test_no_default_warehouse(self, db_session, tenant, make_product):
        product = make_product()
        settings = db_session.query(TenantSettings).filter_by(tenant_id=tenant.id).one()
        settings.default_warehouse_id = None
        db_session.commit()

        with pytest.raises(InvalidRequest, match="No default warehouse"):
            _order(db_session, tenant, product, qty=1)

    def test_uninitialized_stock(self, db_session, tenant, make_product):
        product = make_product(quantity=None)
        with pytest.raises(InvalidRequest, match="not initialized"):
            _order(db_session, tenant, product, qty=1)

    def test_insufficient_stock_writes_nothing(self, db_session, tenant, make_product):
        plenty = make_product(quantity=100)
        scarce = make_product(quantity=1)

        with pytest.raises(Conflict):
            order_service.create_order(db_session, tenant.id, {
                "lines": [{"product_id": plenty.id, "qty": 10}, {"product_id": scarce.id, "qty": 2}],
                "created_at": "2026-05-01T00:00:00Z",
            })

        assert _stock(db_session, plenty.id) == 100
        assert _stock(db_session, scarce.id) == 1
        assert db_session.query(Order).count() == 0
        assert _metrics(db_session, tenant.id, "2026-05") is None


class TestStatusTransitions:

    def test_return_with_reverse_and_restock(self, db_session, tenant, owner, make_product):
        product = make_product(quantity=5)
        order = _order(db_session, tenant, product, qty=2)

        order = order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "Returned", "reverse_metrics": True, "restock_items": True, "notes": "Damaged box",
        }, actor_user_id=owner.id)

        assert order.status == "Returned"
        assert _stock(db_session, product.id) == 5
        row = _metrics(db_session, tenant.id, "2026-05")
        assert (row.revenue_cents, row.cogs_cents, row.profit_cents, row.order_count) == (0, 0, 0, 0)

        event = order.to_dict()["status_history"][-1]
        assert event["old_status"] == "OK"
        assert event["new_status"] == "Returned"
        assert event["user_id"] == owner.id
        assert event["reversed_metrics"] is True
        assert event["restocked"] is True

    def test_cancel_without_flags_only_changes_status(self, db_session, tenant, make_product):
        product = make_product(quantity=5)
        order = _order(db_session, tenant, product, qty=2)

        order_service.update_order_status(db_session, tenant.id, order.id, {"new_status": "Canceled"})

        assert _stock(db_session, product.id) == 3
        assert _metrics(db_session, tenant.id, "2026-05").order_count == 1

    def test_added_losses_recorded_and_reversed(self, db_session, tenant, owner, make_product):
        order = _order(db_session, tenant, make_product(quantity=5), qty=2)

        order = order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "Returned", "reverse_metrics": True, "added_losses_cents": 300, "notes": "Courier fee",
        }, actor_user_id=owner.id)

        losses = order.to_dict()["extra_losses_history"]
        assert len(losses) == 1
        assert losses[0]["amount_cents"] == 300
        assert losses[0]["reason"] == "Courier fee"

        row = _metrics(db_session, tenant.id, "2026-05")
        assert row.expenses_cents == -300
        assert row.profit_cents == 300

    def test_added_losses_without_reverse_do_not_touch_metrics(self, db_session, tenant, make_product):
        order = _order(db_session, tenant, make_product(quantity=5), qty=2)

        order = order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "Canceled", "added_losses_cents": 300,
        })

        assert len(order.loss_history) == 1
        row = _metrics(db_session, tenant.id, "2026-05")
        assert (row.expenses_cents, row.profit_cents) == (0, 1200)

    def test_unchanged_status_rejected(self, db_session, tenant, make_product):
        order = _order(db_session, tenant, make_product())
        with pytest.raises(InvalidRequest, match="unchanged"):
            order_service.update_order_status(db_session, tenant.id, order.id, {"new_status": "OK"})

    def test_unknown_status_rejected(self, db_session, tenant, make_product):
        order = _order(db_session, tenant, make_product())
        with pytest.raises(InvalidRequest):
            order_service.update_order_status(db_session, tenant.id, order.id, {"new_status": "Lost"})

    def test_foreign_order_not_found(self, db_session, tenant, other_tenant, make_product):
        order = _order(db_session, tenant, make_product())
        with pytest.raises(NotFound):
            order_service.update_order_status(db_session, other_tenant.id, order.id, {"new_status": "Canceled"})

    def test_round_trip_restores_metrics_and_destocks(self, db_session, tenant, make_product):
        """OK -> Returned (reverse+restock) -> OK (reverse): metrics restored, stock lower by the order qty."""
        product = make_product(quantity=5)
        order = _order(db_session, tenant, product, qty=2)
        before = _metrics(db_session, tenant.id, "2026-05")
        before = (before.revenue_cents, before.cogs_cents, before.expenses_cents, before.profit_cents, before.order_count)

        order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "Returned", "reverse_metrics": True, "restock_items": True,
        })
        order = order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "OK", "reverse_metrics": True,
        })

        row = _metrics(db_session, tenant.id, "2026-05")
        assert (row.revenue_cents, row.cogs_cents, row.expenses_cents, row.profit_cents, row.order_count) == before
        assert _stock(db_session, product.id) == 3
        assert [e["new_status"] for e in order.to_dict()["status_history"]] == ["OK", "Returned", "OK"]

    def test_reactivation_without_prior_reversal_does_not_double_count(self, db_session, tenant, make_product):
        order = _order(db_session, tenant, make_product(quantity=5), qty=2)
        order_service.update_order_status(db_session, tenant.id, order.id, {"new_status": "Canceled"})
        order_service.update_order_status(db_session, tenant.id, order.id, {"new_status": "OK", "reverse_metrics": True})

        assert _metrics(db_session, tenant.id, "2026-05").order_count == 1

    def test_destock_clamps_when_stock_was_sold(self, db_session, tenant, make_product):
        product = make_product(quantity=2)
        order = _order(db_session, tenant, product, qty=2)
        order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "Returned", "restock_items": True,
        })
        # Restocked units sold again before the return is undone
        _order(db_session, tenant, product, qty=1)

        order_service.update_order_status(db_session, tenant.id, order.id, {"new_status": "OK"})
        assert _stock(db_session, product.id) == 0

    def test_returned_to_canceled_is_inert(self, db_session, tenant, make_product):
        product = make_product(quantity=5)
        order = _order(db_session, tenant, product, qty=2)
        order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "Returned", "reverse_metrics": True, "restock_items": True,
        })

        order = order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "Canceled", "reverse_metrics": True, "restock_items": True,
        })

        assert order.status == "Canceled"
        assert _stock(db_session, product.id) == 5
        assert _metrics(db_session, tenant.id, "2026-05").order_count == 0
        last = order.to_dict()["status_history"][-1]
        assert (last["reversed_metrics"], last["restocked"]) == (False, False)

    def test_restock_skips_infinite_products(self, db_session, tenant, make_product):
        finite = make_product(quantity=5)
        infinite = make_product(quantity_type=QUANTITY_INFINITE)
        order = order_service.create_order(db_session, tenant.id, {
            "lines": [{"product_id": finite.id, "qty": 1}, {"product_id": infinite.id, "qty": 3}],
        })

        order_service.update_order_status(db_session, tenant.id, order.id, {
            "new_status": "Returned", "restock_items": True,
        })
        assert _stock(db_session, finite.id) == 5
        assert _stock(db_session, infinite.id) is None


class TestOrderQueries:

    def test_list_newest_first_with_month_filter(self, db_session, tenant, make_product):
        product = make_product(quantity=100)
        for stamp in ("2026-02-28T23:59:59Z", "2026-03-01T00:00:00Z", "2026-03-15T12:00:00Z",
                      "2026-03-31T23:59:59Z", "2026-04-01T00:00:00Z"):
            _order(db_session, tenant, product, qty=1, created_at=stamp)

        orders = order_service.list_orders(db_session, tenant.id, month="2026-03")
        assert [o.to_dict()["created_at"] for o in orders] == [
            "2026-03-31T23:59:59Z",
            "2026-03-15T12:00:00Z",
            "2026-03-01T00:00:00Z",
        ]

    def test_list_filters_by_warehouse(self, db_session, tenant, make_product, default_warehouse, second_warehouse):
        product = make_product(quantity=100)
        _order(db_session, tenant, product, qty=1)
        _order(db_session, tenant, product, qty=1, warehouse_id=second_warehouse.id)

        orders = order_service.list_orders(db_session, tenant.id, warehouse_id=second_warehouse.id)
        assert [o.warehouse_id for o in orders] == [second_warehouse.id]

    def test_list_is_capped(self, app, db_session, tenant, make_product):
        product = make_product(quantity=100)
        for _ in range(4):
            _order(db_session, tenant, product, qty=1)

        assert len(order_service.list_orders(db_session, tenant.id, limit=3)) == 3
        assert app.config["ORDER_LIST_LIMIT"] == 100

    def test_list_is_tenant_scoped(self, db_session, tenant, other_tenant, make_product):
        _order(db_session, tenant, make_product(), qty=1)
        assert order_service.list_orders(db_session, other_tenant.id) == []

    def test_bad_month_rejected(self, db_session, tenant):
        with pytest.raises(InvalidRequest):
            order_service.list_orders(db_session, tenant.id, month="2026-13")

    def test_get_unknown_order(self, db_session, tenant):
        with pytest.raises(NotFound):
            order_service.get_order(db_session, tenant.id, 999)
