from __future__ import annotations

from dataclasses import asdict, dataclass

from ..extensions import db
from ..time_utils import to_utc_z


ORDER_STATUS_OK = "OK"
ORDER_STATUS_RETURNED = "Returned"
ORDER_STATUS_CANCELED = "Canceled"
ORDER_STATUSES = (ORDER_STATUS_OK, ORDER_STATUS_RETURNED, ORDER_STATUS_CANCELED)


@dataclass(frozen=True)
class OrderTotals:
    """
    Financial snapshot of an order, in cents.

    profit == revenue - (cogs + expenses); profit_pct == profit / revenue (0 when revenue is 0).
    """
    revenue_cents: int
    cogs_cents: int
    expenses_cents: int
    profit_cents: int
    profit_pct: float

    @classmethod
    def compute(cls, *, revenue_cents: int, cogs_cents: int, expenses_cents: int) -> "OrderTotals":
        profit_cents = revenue_cents - (cogs_cents + expenses_cents)
        profit_pct = profit_cents / revenue_cents if revenue_cents > 0 else 0.0
        return cls(
            revenue_cents=revenue_cents,
            cogs_cents=cogs_cents,
            expenses_cents=expenses_cents,
            profit_cents=profit_cents,
            profit_pct=profit_pct,
        )

    def to_dict(self) -> dict:
        return asdict(self)


class Order(db.Model):
    """
    Order document: an immutable snapshot of lines, prices and totals taken at
    creation, plus a mutable status with append-only history logs.

    After creation only `status` changes on this row; history and loss entries
    are appended as separate rows.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_tenant_created", "tenant_id", "created_at"),
        db.Index("ix_orders_tenant_warehouse_created", "tenant_id", "warehouse_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)

    # Business time: supplied (back-dated/migrated orders) or server time
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    extra_losses_cents = db.Column(db.Integer, nullable=False, default=0)

    revenue_cents = db.Column(db.Integer, nullable=False)
    cogs_cents = db.Column(db.Integer, nullable=False)
    expenses_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False)
    profit_pct = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_OK, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position",
        lazy="selectin",
    )
    packaging_items = db.relationship(
        "OrderPackagingItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderPackagingItem.position",
        lazy="selectin",
    )
    status_history = db.relationship(
        "OrderStatusEvent",
        back_populates="order",
        cascade="all",
        order_by="OrderStatusEvent.id",
        lazy="selectin",
    )
    loss_history = db.relationship(
        "OrderLossEvent",
        back_populates="order",
        cascade="all",
        order_by="OrderLossEvent.id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} tenant_id={self.tenant_id} status={self.status!r}>"

    @property
    def totals(self) -> OrderTotals:
        return OrderTotals(
            revenue_cents=self.revenue_cents,
            cogs_cents=self.cogs_cents,
            expenses_cents=self.expenses_cents,
            profit_cents=self.profit_cents,
            profit_pct=self.profit_pct,
        )

    @property
    def packaging_cents(self) -> int:
        return sum(item.price_cents for item in self.packaging_items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "warehouse_id": self.warehouse_id,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
            "shipping_cents": self.shipping_cents,
            "extra_losses_cents": self.extra_losses_cents,
            "packaging_items": [item.to_dict() for item in self.packaging_items],
            "totals": self.totals.to_dict(),
            "status": self.status,
            "status_history": [event.to_dict() for event in self.status_history],
            "extra_losses_history": [event.to_dict() for event in self.loss_history],
        }


class OrderLine(db.Model):
    """Line snapshot: product identity and unit prices as they were when the order was placed."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_order_lines_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    id_code = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    image_url = db.Column(db.String(512), nullable=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_sell_price_cents = db.Column(db.Integer, nullable=False)
    unit_stock_price_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "id_code": self.id_code,
            "name": self.name,
            "image_url": self.image_url,
            "qty": self.qty,
            "unit_sell_price_cents": self.unit_sell_price_cents,
            "unit_stock_price_cents": self.unit_stock_price_cents,
        }


class OrderPackagingItem(db.Model):
    __tablename__ = "order_packaging_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    order = db.relationship("Order", back_populates="packaging_items")

    def to_dict(self) -> dict:
        return {"name": self.name, "price_cents": self.price_cents}


class OrderStatusEvent(db.Model):
    """
    Append-only status history entry.

    reversed_metrics / restocked record whether this transition touched the
    monthly metrics / the stock ledger (in either direction).
    """
    __tablename__ = "order_status_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    old_status = db.Column(db.String(16), nullable=True)
    new_status = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    reversed_metrics = db.Column(db.Boolean, nullable=False, default=False)
    restocked = db.Column(db.Boolean, nullable=False, default=False)
    added_loss_cents = db.Column(db.Integer, nullable=False, default=0)

    order = db.relationship("Order", back_populates="status_history")

    def to_dict(self) -> dict:
        return {
            "timestamp": to_utc_z(self.occurred_at),
            "old_status": self.old_status,
            "new_status": self.new_status,
            "notes": self.notes,
            "user_id": self.user_id,
            "reversed_metrics": self.reversed_metrics,
            "restocked": self.restocked,
            "added_loss_cents": self.added_loss_cents,
        }


class OrderLossEvent(db.Model):
    """Append-only record of a loss booked against an order after creation."""
    __tablename__ = "order_loss_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    order = db.relationship("Order", back_populates="loss_history")

    def to_dict(self) -> dict:
        return {
            "timestamp": to_utc_z(self.occurred_at),
            "amount_cents": self.amount_cents,
            "reason": self.reason,
            "user_id": self.user_id,
        }
