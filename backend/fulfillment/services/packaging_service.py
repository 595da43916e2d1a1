# Overview: Packaging presets offered when building an order.

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import PackagingPreset
from ..validation import amount_cents, optional_bool, require_mapping, require_text


def list_presets(session: Session, tenant_id: int) -> list[PackagingPreset]:
    """All presets, active or not."""
    return (
        session.query(PackagingPreset)
        .filter(PackagingPreset.tenant_id == tenant_id)
        .order_by(PackagingPreset.id.asc())
        .all()
    )


def create_preset(session: Session, tenant_id: int, name, price_cents) -> PackagingPreset:
    preset = PackagingPreset(
        tenant_id=tenant_id,
        name=require_text(name, "name", max_length=120),
        price_cents=amount_cents(price_cents, "price_cents"),
        active=True,
    )
    session.add(preset)
    session.commit()
    return preset


def update_preset(session: Session, tenant_id: int, preset_id: int, payload: Any) -> PackagingPreset:
    payload = require_mapping(payload)
    preset = session.query(PackagingPreset).filter_by(id=preset_id, tenant_id=tenant_id).first()
    if preset is None:
        raise NotFound("Packaging preset not found.")

    if "name" in payload:
        preset.name = require_text(payload.get("name"), "name", max_length=120)
    if "price_cents" in payload:
        preset.price_cents = amount_cents(payload.get("price_cents"), "price_cents")
    if "active" in payload:
        preset.active = optional_bool(payload, "active", default=preset.active)

    session.commit()
    return preset
