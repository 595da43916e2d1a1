from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


QUANTITY_FINITE = "finite"
QUANTITY_INFINITE = "infinite"
QUANTITY_TYPES = (QUANTITY_FINITE, QUANTITY_INFINITE)

GROUPING_AUTO = "auto"
GROUPING_MANUAL = "manual"


class Product(db.Model):
    """
    Product master data with a global stock counter and optional per-warehouse counters.

    MULTI-TENANT: products are scoped to tenants via tenant_id; id_code is
    unique within a tenant (uppercase alphanumeric).

    STOCK INVARIANTS:
    - quantity_type == "infinite" -> quantity is NULL and stock is never tracked
    - quantity_type == "finite"   -> quantity >= 0 and every per-warehouse quantity >= 0
    - warehouse_ids is derived from the per-warehouse rows, never stored
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "id_code", name="uq_products_tenant_id_code"),
        db.Index("ix_products_tenant_name", "tenant_id", "name"),
        db.Index("ix_products_tenant_created", "tenant_id", "created_at"),
        db.CheckConstraint("quantity IS NULL OR quantity >= 0", name="ck_products_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    id_code = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    image_url = db.Column(db.String(512), nullable=True)

    # Authoritative storage in cents
    stock_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sell_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity_type = db.Column(db.String(16), nullable=False, default=QUANTITY_FINITE)
    quantity = db.Column(db.Integer, nullable=True)

    grouping_mode = db.Column(db.String(16), nullable=False, default=GROUPING_AUTO)
    group_key = db.Column(db.String(100), nullable=False)

    active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    warehouse_stocks = db.relationship(
        "ProductWarehouseStock",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductWarehouseStock.warehouse_id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} id_code={self.id_code!r} name={self.name!r} tenant_id={self.tenant_id}>"

    @property
    def is_finite(self) -> bool:
        return self.quantity_type == QUANTITY_FINITE

    @property
    def warehouse_ids(self) -> list[int]:
        return [entry.warehouse_id for entry in self.warehouse_stocks]

    def warehouse_entry(self, warehouse_id: int | None) -> "ProductWarehouseStock | None":
        if warehouse_id is None:
            return None
        for entry in self.warehouse_stocks:
            if entry.warehouse_id == warehouse_id:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "id_code": self.id_code,
            "name": self.name,
            "image_url": self.image_url,
            "stock_price_cents": self.stock_price_cents,
            "sell_price_cents": self.sell_price_cents,
            "quantity_type": self.quantity_type,
            "quantity": self.quantity,
            "per_warehouse": {
                str(entry.warehouse_id): entry.to_dict() for entry in self.warehouse_stocks
            },
            "warehouse_ids": self.warehouse_ids,
            "grouping": {"mode": self.grouping_mode, "group_key": self.group_key},
            "active": self.active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductWarehouseStock(db.Model):
    """
    Per-warehouse stock counter for a product (one row per warehouse key).

    A product with a row for warehouse W consumes W's counter for orders
    shipped from W; otherwise orders consume the product's global counter.
    """
    __tablename__ = "product_warehouse_stocks"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_product_warehouse_stocks_pair"),
        db.CheckConstraint("quantity IS NULL OR quantity >= 0", name="ck_product_warehouse_stocks_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity_type = db.Column(db.String(16), nullable=False, default=QUANTITY_FINITE)
    quantity = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", back_populates="warehouse_stocks")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "quantity_type": self.quantity_type,
            "quantity": self.quantity,
        }
