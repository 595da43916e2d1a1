from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


METRIC_FIELDS = ("revenue_cents", "cogs_cents", "expenses_cents", "profit_cents", "order_count")


class MonthlyMetrics(db.Model):
    """
    Per-tenant, per-calendar-month financial rollup.

    Every column is a running sum of signed increments applied by the order
    engine; rows are created lazily on the first increment of a month and are
    never read-modify-written.
    """
    __tablename__ = "monthly_metrics"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "month_key", name="uq_monthly_metrics_tenant_month"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    month_key = db.Column(db.String(7), nullable=False)  # "YYYY-MM"

    revenue_cents = db.Column(db.Integer, nullable=False, default=0)
    cogs_cents = db.Column(db.Integer, nullable=False, default=0)
    expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    profit_cents = db.Column(db.Integer, nullable=False, default=0)
    order_count = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "month": self.month_key,
            "revenue_cents": self.revenue_cents,
            "cogs_cents": self.cogs_cents,
            "expenses_cents": self.expenses_cents,
            "profit_cents": self.profit_cents,
            "order_count": self.order_count,
            "updated_at": to_utc_z(self.updated_at),
        }
