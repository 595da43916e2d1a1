# Overview: Stock ledger; reads and writes per-product counters inside an open transaction.

from __future__ import annotations

"""
Stock Ledger Invariants (authoritative)

Location:
- A product's counter for warehouse W is its per-warehouse row for W when one
  exists, otherwise the product's global `quantity`. The location is resolved
  once per product per operation.

Policy:
- Infinite products (or an infinite per-warehouse row) are never tracked:
  every operation is a successful no-op and returns None.
- decrement: an uninitialized (NULL) counter is an error; going below zero is
  a Conflict and nothing is written.
- increment: NULL counts as 0; never fails on bounds.
- release (compensating de-stock): clamps at 0 with a warning instead of failing.

None of these functions commit. They mutate ORM rows already loaded in the
caller's session; the caller's transaction decides whether the writes land.
"""

from dataclasses import dataclass

from flask import current_app

from ..errors import Conflict, InvalidRequest
from ..models import Product, ProductWarehouseStock
from ..models.inventory import QUANTITY_FINITE, QUANTITY_INFINITE


@dataclass(frozen=True)
class StockLocation:
    """Global counter (warehouse_id is None) or PerWarehouse(warehouse_id)."""
    warehouse_id: int | None = None

    @property
    def is_global(self) -> bool:
        return self.warehouse_id is None

    def describe(self) -> str:
        return "global stock" if self.is_global else f"warehouse {self.warehouse_id}"


GLOBAL = StockLocation()


def resolve_location(product: Product, warehouse_id: int | None) -> StockLocation:
    if product.warehouse_entry(warehouse_id) is not None:
        return StockLocation(warehouse_id)
    return GLOBAL


def _holder(product: Product, location: StockLocation) -> Product | ProductWarehouseStock:
    if location.is_global:
        return product
    return product.warehouse_entry(location.warehouse_id)


def is_tracked(product: Product, location: StockLocation) -> bool:
    if product.quantity_type != QUANTITY_FINITE:
        return False
    return _holder(product, location).quantity_type == QUANTITY_FINITE


def read(product: Product, location: StockLocation) -> int | None:
    return _holder(product, location).quantity


def _write(product: Product, location: StockLocation, quantity: int) -> None:
    _holder(product, location).quantity = quantity


def _require_qty(qty: int) -> None:
    if not isinstance(qty, int) or isinstance(qty, bool) or qty <= 0:
        raise InvalidRequest("Quantity must be a positive integer.")


def decrement(product: Product, warehouse_id: int | None, qty: int) -> int | None:
    """Consume `qty` units; returns the new counter value (None when untracked)."""
    _require_qty(qty)
    location = resolve_location(product, warehouse_id)
    if not is_tracked(product, location):
        return None

    current = read(product, location)
    if current is None:
        raise InvalidRequest(f"Stock not initialized for product {product.name}.")

    new_qty = current - qty
    if new_qty < 0:
        raise Conflict(
            f"Not enough stock for {product.name}. Available: {current}",
            details={
                "product_id": product.id,
                "location": location.describe(),
                "requested_quantity": qty,
                "available": current,
            },
        )

    _write(product, location, new_qty)
    return new_qty


def increment(product: Product, warehouse_id: int | None, qty: int) -> int | None:
    """Return `qty` units to stock; returns the new counter value (None when untracked)."""
    _require_qty(qty)
    location = resolve_location(product, warehouse_id)
    if not is_tracked(product, location):
        return None

    new_qty = (read(product, location) or 0) + qty
    if new_qty < 0:
        current_app.logger.warning(
            "Stock for product %s (%s) computed negative on increment; clamping to 0",
            product.id, location.describe(),
        )
        new_qty = 0

    _write(product, location, new_qty)
    return new_qty


def release(product: Product, warehouse_id: int | None, qty: int) -> int | None:
    """
    Compensating de-stock (undoing an earlier restock). Clamps at 0 rather
    than failing, logging a warning when the clamp applies.
    """
    _require_qty(qty)
    location = resolve_location(product, warehouse_id)
    if not is_tracked(product, location):
        return None

    current = read(product, location) or 0
    new_qty = current - qty
    if new_qty < 0:
        current_app.logger.warning(
            "De-stock of %s units for product %s (%s) exceeds available %s; clamping to 0",
            qty, product.id, location.describe(), current,
        )
        new_qty = 0

    _write(product, location, new_qty)
    return new_qty


def adjust(product: Product, warehouse_id: int | None, change_qty: int) -> int | None:
    """
    Manual stock adjustment by a signed amount.

    With a warehouse id the per-warehouse counter is adjusted (the row is
    created on demand); otherwise the global counter. A result below zero is
    a Conflict.
    """
    if product.quantity_type == QUANTITY_INFINITE:
        return None

    if warehouse_id is not None:
        entry = product.warehouse_entry(warehouse_id)
        if entry is None:
            entry = ProductWarehouseStock(warehouse_id=warehouse_id, quantity_type=QUANTITY_FINITE, quantity=0)
            product.warehouse_stocks.append(entry)
        location = StockLocation(warehouse_id)
    else:
        location = GLOBAL

    if not is_tracked(product, location):
        return None

    current = read(product, location) or 0
    new_qty = current + change_qty
    if new_qty < 0:
        raise Conflict(
            f"Not enough stock in {location.describe()}. Available: {current}",
            details={"product_id": product.id, "available": current, "change_qty": change_qty},
        )

    _write(product, location, new_qty)
    return new_qty
