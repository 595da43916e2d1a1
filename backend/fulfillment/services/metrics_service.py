# Overview: Monthly metrics accrual (commutative increments) and rollup reads.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import insert, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..errors import InvalidRequest
from ..models import MonthlyMetrics, Order, OrderTotals
from ..models.metrics import METRIC_FIELDS
from ..time_utils import month_key, month_range, utcnow, week_key


# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def _empty_totals() -> dict:
    return {field: 0 for field in METRIC_FIELDS}


def apply(
    session: Session,
    tenant_id: int,
    when: datetime,
    *,
    revenue_cents: int,
    cogs_cents: int,
    expenses_cents: int,
    profit_cents: int,
    order_count: int,
) -> str:
    """
    Add signed deltas to the tenant's metrics row for the month of `when`.

    The write is a single merge-with-increment statement: the row is created
    on first use and every column becomes `column + delta`, so concurrent
    writers never lose each other's updates. Returns the month key.
    """
    key = month_key(when)
    deltas = {
        "revenue_cents": revenue_cents,
        "cogs_cents": cogs_cents,
        "expenses_cents": expenses_cents,
        "profit_cents": profit_cents,
        "order_count": order_count,
    }
    table = MonthlyMetrics.__table__
    now = utcnow()

    dialect_insert = _UPSERT_INSERTS.get(session.get_bind().dialect.name)
    if dialect_insert is not None:
        stmt = dialect_insert(table).values(tenant_id=tenant_id, month_key=key, updated_at=now, **deltas)
        increments = {field: table.c[field] + stmt.excluded[field] for field in METRIC_FIELDS}
        increments["updated_at"] = now
        stmt = stmt.on_conflict_do_update(index_elements=["tenant_id", "month_key"], set_=increments)
        session.execute(stmt)
        return key

    # Generic path: relative UPDATE, then create the row if the month is new
    result = session.execute(
        update(table)
        .where(table.c.tenant_id == tenant_id, table.c.month_key == key)
        .values({**{field: table.c[field] + value for field, value in deltas.items()}, "updated_at": now})
    )
    if result.rowcount == 0:
        session.execute(insert(table).values(tenant_id=tenant_id, month_key=key, updated_at=now, **deltas))
    return key


def accrue(session: Session, tenant_id: int, when: datetime, totals: OrderTotals) -> str:
    """Order creation or re-activation: add the order's totals, one more order."""
    return apply(
        session,
        tenant_id,
        when,
        revenue_cents=totals.revenue_cents,
        cogs_cents=totals.cogs_cents,
        expenses_cents=totals.expenses_cents,
        profit_cents=totals.profit_cents,
        order_count=1,
    )


def reverse(session: Session, tenant_id: int, when: datetime, totals: OrderTotals, added_losses_cents: int = 0) -> str:
    """
    Undo an order's totals for its month, one fewer order.

    A loss booked at reversal time widens the expense reversal and narrows the
    profit reversal by the same amount.
    """
    return apply(
        session,
        tenant_id,
        when,
        revenue_cents=-totals.revenue_cents,
        cogs_cents=-totals.cogs_cents,
        expenses_cents=-(totals.expenses_cents + added_losses_cents),
        profit_cents=-(totals.profit_cents - added_losses_cents),
        order_count=-1,
    )


def _validate_year(year: int) -> None:
    if not isinstance(year, int) or not 1 <= year <= 9998:
        raise InvalidRequest("Year must be between 1 and 9998.")


def get_yearly_metrics(session: Session, tenant_id: int, year: int) -> dict:
    """Month rows for `year` (sparse, ascending) plus the year total."""
    _validate_year(year)

    rows = (
        session.query(MonthlyMetrics)
        .filter(
            MonthlyMetrics.tenant_id == tenant_id,
            MonthlyMetrics.month_key >= f"{year:04d}-01",
            MonthlyMetrics.month_key < f"{year + 1:04d}-01",
        )
        .order_by(MonthlyMetrics.month_key.asc())
        .all()
    )

    totals = _empty_totals()
    for row in rows:
        for field in METRIC_FIELDS:
            totals[field] += getattr(row, field) or 0

    return {"year": year, "totals": totals, "months": [row.to_dict() for row in rows]}


def get_weekly_metrics(session: Session, tenant_id: int, year: int, month: int) -> dict:
    """
    Read-time weekly breakdown of one month, bucketed by ISO-8601 week number
    and labelled with the requested year.

    Every order created in the month counts, whatever its current status.
    """
    _validate_year(year)
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise InvalidRequest("Month must be between 1 and 12.")

    start, end = month_range(year, month)
    orders = (
        session.query(Order)
        .filter(Order.tenant_id == tenant_id, Order.created_at >= start, Order.created_at < end)
        .order_by(Order.created_at.asc())
        .all()
    )

    weeks: dict[str, dict] = {}
    for order in orders:
        bucket = weeks.setdefault(week_key(year, order.created_at), _empty_totals())
        bucket["revenue_cents"] += order.revenue_cents
        bucket["cogs_cents"] += order.cogs_cents
        bucket["expenses_cents"] += order.expenses_cents
        bucket["profit_cents"] += order.profit_cents
        bucket["order_count"] += 1

    return {"month": f"{year:04d}-{month:02d}", "weeks": weeks}
