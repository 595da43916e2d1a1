from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Tenant(db.Model):
    """
    Multi-tenant root: every business account ("admin") is a Tenant.

    MULTI-TENANT: warehouses, products, orders, packaging presets and monthly
    metrics all carry tenant_id. No row references another tenant's data.
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} business_name={self.business_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class TenantSettings(db.Model):
    """
    Per-tenant policy: plan caps, currency, default warehouse and id-code policy.

    Exactly one row per tenant, written at signup; read by the order engine.
    """
    __tablename__ = "tenant_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, unique=True, index=True)

    max_products = db.Column(db.Integer, nullable=False)
    max_orders = db.Column(db.Integer, nullable=False)
    max_warehouses = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False)

    # Weak reference: set after the default warehouse row exists
    default_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True)

    # {"default_product_id_len": 4, "product_id_min_len": 4, "order_id_min_len": 4}
    id_policy = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    tenant = db.relationship("Tenant", backref=db.backref("settings", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "max_products": self.max_products,
            "max_orders": self.max_orders,
            "max_warehouses": self.max_warehouses,
            "currency": self.currency,
            "default_warehouse_id": self.default_warehouse_id,
            "id_policy": dict(self.id_policy or {}),
        }


class Warehouse(db.Model):
    """Stock location owned by a tenant. One is designated default via TenantSettings."""
    __tablename__ = "warehouses"
    __table_args__ = (
        db.Index("ix_warehouses_tenant_created", "tenant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
        }


class PackagingPreset(db.Model):
    """Reusable packaging line (name + price) offered when building an order."""
    __tablename__ = "packaging_presets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "active": self.active,
        }
