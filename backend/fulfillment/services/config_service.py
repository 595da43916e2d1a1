# Overview: Config provider; resolves per-tenant policy (read only).

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from ..config import DEFAULT_ID_POLICY
from ..errors import NotFound
from ..models import TenantSettings


@dataclass(frozen=True)
class IdPolicy:
    default_product_id_len: int = DEFAULT_ID_POLICY["default_product_id_len"]
    product_id_min_len: int = DEFAULT_ID_POLICY["product_id_min_len"]
    order_id_min_len: int = DEFAULT_ID_POLICY["order_id_min_len"]

    @classmethod
    def from_mapping(cls, raw: dict | None) -> "IdPolicy":
        raw = raw or {}
        # Missing or zero entries fall back to the platform defaults
        return cls(
            default_product_id_len=int(raw.get("default_product_id_len") or cls.default_product_id_len),
            product_id_min_len=int(raw.get("product_id_min_len") or cls.product_id_min_len),
            order_id_min_len=int(raw.get("order_id_min_len") or cls.order_id_min_len),
        )


@dataclass(frozen=True)
class TenantConfig:
    tenant_id: int
    max_products: int
    max_orders: int
    max_warehouses: int
    currency: str
    default_warehouse_id: int | None
    id_policy: IdPolicy

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "max_products": self.max_products,
            "max_orders": self.max_orders,
            "max_warehouses": self.max_warehouses,
            "currency": self.currency,
            "default_warehouse_id": self.default_warehouse_id,
            "id_policy": {
                "default_product_id_len": self.id_policy.default_product_id_len,
                "product_id_min_len": self.id_policy.product_id_min_len,
                "order_id_min_len": self.id_policy.order_id_min_len,
            },
        }


def get_config(session: Session, tenant_id: int) -> TenantConfig:
    """
    Resolve the tenant's policy. Pure read: safe inside or outside an engine transaction.

    Raises NotFound when the tenant has no settings row.
    """
    settings = session.query(TenantSettings).filter_by(tenant_id=tenant_id).first()
    if settings is None:
        raise NotFound("Tenant configuration not found.")

    return TenantConfig(
        tenant_id=tenant_id,
        max_products=settings.max_products,
        max_orders=settings.max_orders,
        max_warehouses=settings.max_warehouses,
        currency=settings.currency,
        default_warehouse_id=settings.default_warehouse_id,
        id_policy=IdPolicy.from_mapping(settings.id_policy),
    )
