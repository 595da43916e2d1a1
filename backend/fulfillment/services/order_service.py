# Overview: Order lifecycle engine; order creation, status transitions and order reads.

"""
Order engine

Every mutating operation is one transaction (run_transaction): the read
phase (config, warehouse, order, products) strictly precedes the write
phase (order rows, stock counters, monthly metrics), and everything commits
together or not at all.

STATUS MACHINE:
- OK -> Returned/Canceled: optional metrics reversal and/or restock
- Returned/Canceled -> OK: re-accrual (if metrics are currently reversed and
  asked for) and compensating de-stock (if items are currently restocked)
- Returned <-> Canceled: status + history only
- same status: rejected

Outstanding effects are derived from the append-only status history; the
order row itself only carries the current status.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from flask import current_app
from sqlalchemy.orm import Session

from ..errors import InvalidRequest, NotFound
from ..models import (
    Order,
    OrderLine,
    OrderLossEvent,
    OrderPackagingItem,
    OrderStatusEvent,
    OrderTotals,
    Product,
    Warehouse,
)
from ..models.orders import ORDER_STATUS_OK, ORDER_STATUSES
from ..time_utils import month_range, parse_month_key, utcnow
from ..validation import (
    amount_cents,
    coerce_int,
    optional_amount_cents,
    optional_bool,
    optional_int,
    optional_text,
    parse_instant,
    require_mapping,
    require_positive_int,
    require_text,
)
from . import metrics_service, stock_ledger
from .concurrency import begin_write, lock_for_update, run_transaction
from .config_service import get_config


ORDER_CREATED_NOTE = "Order created."


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    qty: int
    unit_sell_price_cents: int | None = None
    unit_stock_price_cents: int | None = None


@dataclass(frozen=True)
class OrderRequest:
    lines: tuple[LineRequest, ...]
    shipping_cents: int = 0
    extra_losses_cents: int = 0
    packaging_items: tuple[tuple[str, int], ...] = ()
    warehouse_id: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class StatusChangeRequest:
    new_status: str
    notes: str | None = None
    reverse_metrics: bool = False
    restock_items: bool = False
    added_losses_cents: int = 0


def _optional_price(raw: dict, key: str) -> int | None:
    value = raw.get(key)
    if value is None:
        return None
    return amount_cents(value, key)


def parse_order_request(payload: Any) -> OrderRequest:
    """Validate an order-create payload; raises InvalidRequest before any transaction is opened."""
    payload = require_mapping(payload)

    raw_lines = payload.get("lines")
    if not isinstance(raw_lines, list) or not raw_lines:
        raise InvalidRequest("Order must contain at least one product line.")

    lines = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise InvalidRequest(f"lines[{index}] must be an object")
        lines.append(LineRequest(
            product_id=require_positive_int(raw.get("product_id"), f"lines[{index}].product_id"),
            qty=require_positive_int(raw.get("qty"), f"lines[{index}].qty"),
            unit_sell_price_cents=_optional_price(raw, "unit_sell_price_cents"),
            unit_stock_price_cents=_optional_price(raw, "unit_stock_price_cents"),
        ))

    raw_packaging = payload.get("packaging_items") or []
    if not isinstance(raw_packaging, list):
        raise InvalidRequest("packaging_items must be a list")
    packaging = []
    for index, raw in enumerate(raw_packaging):
        if not isinstance(raw, dict):
            raise InvalidRequest(f"packaging_items[{index}] must be an object")
        packaging.append((
            require_text(raw.get("name"), f"packaging_items[{index}].name", max_length=120),
            optional_amount_cents(raw, "price_cents"),
        ))

    warehouse_id = optional_int(payload, "warehouse_id")
    if warehouse_id is not None and warehouse_id <= 0:
        raise InvalidRequest("warehouse_id must be greater than zero")

    return OrderRequest(
        lines=tuple(lines),
        shipping_cents=optional_amount_cents(payload, "shipping_cents"),
        extra_losses_cents=optional_amount_cents(payload, "extra_losses_cents"),
        packaging_items=tuple(packaging),
        warehouse_id=warehouse_id,
        created_at=parse_instant(payload.get("created_at"), "created_at"),
    )


def parse_status_change(payload: Any) -> StatusChangeRequest:
    payload = require_mapping(payload)
    new_status = payload.get("new_status")
    if new_status not in ORDER_STATUSES:
        raise InvalidRequest(f"new_status must be one of: {', '.join(ORDER_STATUSES)}")
    return StatusChangeRequest(
        new_status=new_status,
        notes=optional_text(payload, "notes", max_length=1000),
        reverse_metrics=optional_bool(payload, "reverse_metrics"),
        restock_items=optional_bool(payload, "restock_items"),
        added_losses_cents=optional_amount_cents(payload, "added_losses_cents"),
    )


def _load_products(session: Session, tenant_id: int, product_ids) -> dict[int, Product]:
    """One batched, locked read of every referenced product, keyed by id."""
    if not product_ids:
        return {}
    query = session.query(Product).filter(
        Product.tenant_id == tenant_id,
        Product.id.in_(sorted(product_ids)),
    ).order_by(Product.id)
    return {product.id: product for product in lock_for_update(query).all()}


def _get_order(session: Session, tenant_id: int, order_id: int, *, lock: bool = False) -> Order:
    query = session.query(Order).filter(Order.id == order_id, Order.tenant_id == tenant_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFound("Order not found.")
    return order


# ----------------------------------------------------------------------------
# Create
# ----------------------------------------------------------------------------

def create_order(session: Session, tenant_id: int, payload: Any) -> Order:
    """
    Create an order: price snapshot, stock consumption, totals and metrics
    accrual in a single transaction.

    Raises:
        InvalidRequest: malformed payload, no warehouse, uninitialized stock
        NotFound: unknown warehouse or product
        Conflict: insufficient stock (nothing is written)
    """
    request = parse_order_request(payload)

    def _op():
        begin_write(session)

        config = get_config(session, tenant_id)
        warehouse_id = request.warehouse_id or config.default_warehouse_id
        if not warehouse_id:
            raise InvalidRequest("No default warehouse set and no warehouse provided.")

        warehouse = session.query(Warehouse).filter_by(id=warehouse_id, tenant_id=tenant_id).first()
        if warehouse is None:
            raise NotFound("Warehouse not found.")

        products = _load_products(session, tenant_id, {line.product_id for line in request.lines})

        revenue_cents = 0
        cogs_cents = 0
        order_lines = []
        for position, line in enumerate(request.lines):
            product = products.get(line.product_id)
            if product is None:
                raise NotFound(f"Product with ID {line.product_id} not found.")

            unit_sell = line.unit_sell_price_cents
            if unit_sell is None:
                unit_sell = product.sell_price_cents
            unit_stock = line.unit_stock_price_cents
            if unit_stock is None:
                unit_stock = product.stock_price_cents
            for label, price in (("sell", unit_sell), ("stock", unit_stock)):
                if not isinstance(price, int) or isinstance(price, bool):
                    raise InvalidRequest(f"Invalid {label} price for product {product.name}.")

            revenue_cents += unit_sell * line.qty
            cogs_cents += unit_stock * line.qty

            order_lines.append(OrderLine(
                position=position,
                product_id=product.id,
                id_code=product.id_code,
                name=product.name,
                image_url=product.image_url,
                qty=line.qty,
                unit_sell_price_cents=unit_sell,
                unit_stock_price_cents=unit_stock,
            ))

            # Lines on the same product see each other's decrements
            stock_ledger.decrement(product, warehouse_id, line.qty)

        packaging_items = [
            OrderPackagingItem(position=position, name=name, price_cents=price)
            for position, (name, price) in enumerate(request.packaging_items)
        ]
        packaging_cents = sum(price for _, price in request.packaging_items)
        totals = OrderTotals.compute(
            revenue_cents=revenue_cents,
            cogs_cents=cogs_cents,
            expenses_cents=request.shipping_cents + request.extra_losses_cents + packaging_cents,
        )

        now = utcnow()
        created_at = request.created_at or now

        order = Order(
            tenant_id=tenant_id,
            warehouse_id=warehouse_id,
            created_at=created_at,
            recorded_at=now,
            shipping_cents=request.shipping_cents,
            extra_losses_cents=request.extra_losses_cents,
            revenue_cents=totals.revenue_cents,
            cogs_cents=totals.cogs_cents,
            expenses_cents=totals.expenses_cents,
            profit_cents=totals.profit_cents,
            profit_pct=totals.profit_pct,
            status=ORDER_STATUS_OK,
            lines=order_lines,
            packaging_items=packaging_items,
        )
        order.status_history.append(OrderStatusEvent(
            occurred_at=now,
            old_status=None,
            new_status=ORDER_STATUS_OK,
            notes=ORDER_CREATED_NOTE,
            user_id=None,
        ))
        session.add(order)
        session.flush()

        metrics_service.accrue(session, tenant_id, created_at, totals)

        session.commit()
        return order

    order = run_transaction(_op, session=session, description="Order creation")
    current_app.logger.info(
        "Order %s created for tenant %s (warehouse %s, revenue %s, profit %s)",
        order.id, tenant_id, order.warehouse_id, order.revenue_cents, order.profit_cents,
    )
    return order


# ----------------------------------------------------------------------------
# Status transitions
# ----------------------------------------------------------------------------

def _latest_flagged_event(order: Order, flag: str) -> OrderStatusEvent | None:
    for event in reversed(order.status_history):
        if getattr(event, flag):
            return event
    return None


def metrics_currently_reversed(order: Order) -> bool:
    event = _latest_flagged_event(order, "reversed_metrics")
    return event is not None and event.old_status == ORDER_STATUS_OK


def items_currently_restocked(order: Order) -> bool:
    event = _latest_flagged_event(order, "restocked")
    return event is not None and event.old_status == ORDER_STATUS_OK


def update_order_status(
    session: Session,
    tenant_id: int,
    order_id: int,
    payload: Any,
    actor_user_id: int | None = None,
) -> Order:
    """
    Move an order to a new status, reversing or re-applying its stock and
    metrics effects when the transition is anchored at OK.

    Raises:
        InvalidRequest: bad payload or unchanged status
        NotFound: unknown order
    """
    request = parse_status_change(payload)

    def _op():
        begin_write(session)

        # --- Read phase ---
        order = _get_order(session, tenant_id, order_id, lock=True)
        old_status = order.status
        if request.new_status == old_status:
            raise InvalidRequest("Order status is unchanged.", details={"status": old_status})

        leaving_ok = old_status == ORDER_STATUS_OK
        returning_to_ok = request.new_status == ORDER_STATUS_OK

        already_reversed = metrics_currently_reversed(order)
        reverse_now = leaving_ok and request.reverse_metrics and not already_reversed
        reaccrue_now = returning_to_ok and request.reverse_metrics and already_reversed
        restock_now = leaving_ok and request.restock_items
        destock_now = returning_to_ok and items_currently_restocked(order)

        products: dict[int, Product] = {}
        if restock_now or destock_now:
            products = _load_products(session, tenant_id, {line.product_id for line in order.lines})

        # --- Write phase ---
        now = utcnow()
        if restock_now or destock_now:
            for line in order.lines:
                product = products.get(line.product_id)
                if product is None:
                    current_app.logger.warning(
                        "Order %s line references missing product %s; stock left untouched",
                        order.id, line.product_id,
                    )
                    continue
                if restock_now:
                    stock_ledger.increment(product, order.warehouse_id, line.qty)
                else:
                    stock_ledger.release(product, order.warehouse_id, line.qty)

        if reverse_now:
            metrics_service.reverse(session, tenant_id, order.created_at, order.totals, request.added_losses_cents)
        elif reaccrue_now:
            metrics_service.accrue(session, tenant_id, order.created_at, order.totals)

        order.status = request.new_status
        order.status_history.append(OrderStatusEvent(
            occurred_at=now,
            old_status=old_status,
            new_status=request.new_status,
            notes=request.notes,
            user_id=actor_user_id,
            reversed_metrics=reverse_now or reaccrue_now,
            restocked=restock_now or destock_now,
            added_loss_cents=request.added_losses_cents,
        ))
        if request.added_losses_cents > 0:
            order.loss_history.append(OrderLossEvent(
                occurred_at=now,
                amount_cents=request.added_losses_cents,
                reason=request.notes,
                user_id=actor_user_id,
            ))

        session.commit()
        return order

    order = run_transaction(_op, session=session, description="Order status update")
    current_app.logger.info(
        "Order %s for tenant %s moved to %s by user %s",
        order.id, tenant_id, order.status, actor_user_id,
    )
    return order


# ----------------------------------------------------------------------------
# Reads
# ----------------------------------------------------------------------------

def get_order(session: Session, tenant_id: int, order_id: int) -> Order:
    return _get_order(session, tenant_id, order_id)


def list_orders(
    session: Session,
    tenant_id: int,
    *,
    month: str | None = None,
    warehouse_id: int | None = None,
    limit: int | None = None,
) -> list[Order]:
    """Newest-first orders, optionally for one warehouse and one calendar month ("YYYY-MM")."""
    if limit is None:
        limit = current_app.config.get("ORDER_LIST_LIMIT", 100)

    query = session.query(Order).filter(Order.tenant_id == tenant_id)

    if warehouse_id is not None:
        query = query.filter(Order.warehouse_id == coerce_int(warehouse_id, "warehouse_id"))

    if month:
        try:
            year, month_number = parse_month_key(month)
        except ValueError:
            raise InvalidRequest("month must be formatted as YYYY-MM")
        start, end = month_range(year, month_number)
        query = query.filter(Order.created_at >= start, Order.created_at < end)

    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
