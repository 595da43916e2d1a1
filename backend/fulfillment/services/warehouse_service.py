# Overview: Tenant warehouses; listing, capped creation and updates.

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from ..errors import LimitExceeded, NotFound
from ..models import Warehouse
from ..validation import optional_bool, require_mapping, require_text
from .concurrency import begin_write, run_transaction
from .config_service import get_config


def list_warehouses(session: Session, tenant_id: int) -> list[Warehouse]:
    return (
        session.query(Warehouse)
        .filter(Warehouse.tenant_id == tenant_id)
        .order_by(Warehouse.created_at.desc(), Warehouse.id.desc())
        .all()
    )


def get_warehouse(session: Session, tenant_id: int, warehouse_id: int) -> Warehouse:
    warehouse = session.query(Warehouse).filter_by(id=warehouse_id, tenant_id=tenant_id).first()
    if warehouse is None:
        raise NotFound("Warehouse not found.")
    return warehouse


def create_warehouse(session: Session, tenant_id: int, name) -> Warehouse:
    """
    Create a warehouse, enforcing the tenant's max_warehouses cap.

    The count and the insert share one transaction so concurrent creations
    cannot overshoot the cap.
    """
    name = require_text(name, "name", max_length=120)

    def _op():
        begin_write(session)
        config = get_config(session, tenant_id)
        count = session.query(Warehouse).filter(Warehouse.tenant_id == tenant_id).count()
        if count >= config.max_warehouses:
            raise LimitExceeded(
                f"Warehouse limit reached ({config.max_warehouses}). Please upgrade your plan.",
                details={"max_warehouses": config.max_warehouses},
            )

        warehouse = Warehouse(tenant_id=tenant_id, name=name, active=True)
        session.add(warehouse)
        session.commit()
        return warehouse

    return run_transaction(_op, session=session, description="Warehouse creation")


def update_warehouse(session: Session, tenant_id: int, warehouse_id: int, payload: Any) -> Warehouse:
    """Rename and/or (de)activate a warehouse."""
    payload = require_mapping(payload)
    warehouse = get_warehouse(session, tenant_id, warehouse_id)

    if "name" in payload:
        warehouse.name = require_text(payload.get("name"), "name", max_length=120)
    if "active" in payload:
        warehouse.active = optional_bool(payload, "active", default=warehouse.active)

    session.commit()
    return warehouse
