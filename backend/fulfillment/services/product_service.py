# Overview: Product catalogue; creation, edits, search, paginated listing and stock adjustment.

"""
Products Service

MULTI-TENANT: every query is filtered by tenant_id; per-warehouse entries may
only point at warehouses of the same tenant.

STOCK: create/update set stock values directly (master data); adjust_stock is
the only relative change and runs through the stock ledger inside the same
retrying transaction envelope as orders.
"""

from __future__ import annotations

import re
import secrets
from typing import Any

from flask import current_app
from sqlalchemy.orm import Session

from ..errors import Conflict, Internal, InvalidRequest, LimitExceeded, NotFound
from ..models import Product, ProductWarehouseStock, Warehouse
from ..models.inventory import GROUPING_AUTO, GROUPING_MANUAL, QUANTITY_FINITE, QUANTITY_INFINITE, QUANTITY_TYPES
from ..validation import (
    amount_cents,
    coerce_int,
    optional_bool,
    require_mapping,
    require_text,
)
from . import stock_ledger
from .concurrency import begin_write, lock_for_update, run_transaction
from .config_service import get_config


ID_CODE_ALPHABET = "ABCDEFGHIJKLMNPQRSTUVWXYZ123456789"  # no O or 0
ID_CODE_ATTEMPTS = 10
ID_CODE_RE = re.compile(r"^[A-Z0-9]+$")
SEARCH_LIMIT = 25
LIST_DEFAULT_LIMIT = 50
LIST_MAX_LIMIT = 100


def _id_code_taken(session: Session, tenant_id: int, id_code: str) -> bool:
    return session.query(Product.id).filter_by(tenant_id=tenant_id, id_code=id_code).first() is not None


def generate_id_code(session: Session, tenant_id: int, length: int) -> str:
    for _ in range(ID_CODE_ATTEMPTS):
        candidate = "".join(secrets.choice(ID_CODE_ALPHABET) for _ in range(length))
        if not _id_code_taken(session, tenant_id, candidate):
            return candidate
    raise Internal("Failed to generate a unique product ID code. Please try again.")


def _quantity(value, field: str) -> int:
    number = coerce_int(value, field)
    if number < 0:
        raise InvalidRequest(f"{field} must not be negative")
    return number


def _quantity_type(value, field: str = "quantity_type") -> str:
    if value is None:
        return QUANTITY_FINITE
    if value not in QUANTITY_TYPES:
        raise InvalidRequest(f"{field} must be one of: {', '.join(QUANTITY_TYPES)}")
    return value


def _image_url(value) -> str | None:
    if value is None or value == "":
        return None
    return require_text(value, "image_url", max_length=512)


def _grouping(raw, name: str) -> tuple[str, str]:
    if raw is None:
        return GROUPING_AUTO, name.strip().lower()
    if not isinstance(raw, dict):
        raise InvalidRequest("grouping must be an object")
    mode = raw.get("mode", GROUPING_AUTO)
    if mode == GROUPING_AUTO:
        return GROUPING_AUTO, name.strip().lower()
    if mode != GROUPING_MANUAL:
        raise InvalidRequest("grouping.mode must be 'auto' or 'manual'")
    return GROUPING_MANUAL, require_text(raw.get("group_key"), "grouping.group_key", max_length=100)


def _parse_per_warehouse(session: Session, tenant_id: int, raw) -> list[ProductWarehouseStock]:
    """Build per-warehouse rows from a {warehouse_id: {quantity_type, quantity}} mapping."""
    if raw is None:
        return []
    if not isinstance(raw, dict):
        raise InvalidRequest("per_warehouse must be an object keyed by warehouse id")

    entries = []
    for key, value in raw.items():
        warehouse_id = coerce_int(key, "per_warehouse key")
        if not isinstance(value, dict):
            raise InvalidRequest(f"per_warehouse[{key}] must be an object")
        if session.query(Warehouse.id).filter_by(id=warehouse_id, tenant_id=tenant_id).first() is None:
            raise NotFound(f"Warehouse {warehouse_id} not found.")

        quantity_type = _quantity_type(value.get("quantity_type"), f"per_warehouse[{key}].quantity_type")
        quantity = None
        if quantity_type == QUANTITY_FINITE:
            quantity = _quantity(value.get("quantity") or 0, f"per_warehouse[{key}].quantity")
        entries.append(ProductWarehouseStock(
            warehouse_id=warehouse_id,
            quantity_type=quantity_type,
            quantity=quantity,
        ))
    return entries


def get_product(session: Session, tenant_id: int, product_id: int) -> Product:
    product = session.query(Product).filter_by(id=product_id, tenant_id=tenant_id).first()
    if product is None:
        raise NotFound("Product not found.")
    return product


def create_product(session: Session, tenant_id: int, payload: Any) -> Product:
    """
    Create a product, enforcing the tenant's max_products cap and idCode policy.

    Raises:
        InvalidRequest: bad fields or id_code shape
        LimitExceeded: product cap reached
        Conflict: id_code already used by this tenant
    """
    payload = require_mapping(payload)
    name = require_text(payload.get("name"), "name", max_length=100)
    stock_price_cents = amount_cents(payload.get("stock_price_cents", 0), "stock_price_cents")
    sell_price_cents = amount_cents(payload.get("sell_price_cents", 0), "sell_price_cents")
    quantity_type = _quantity_type(payload.get("quantity_type"))
    quantity = None
    if quantity_type == QUANTITY_FINITE:
        quantity = _quantity(payload.get("quantity") or 0, "quantity")
    grouping_mode, group_key = _grouping(payload.get("grouping"), name)
    image_url = _image_url(payload.get("image_url"))
    active = optional_bool(payload, "active", default=True)
    provided_code = payload.get("id_code")

    def _op():
        begin_write(session)
        config = get_config(session, tenant_id)

        count = session.query(Product).filter(Product.tenant_id == tenant_id).count()
        if count >= config.max_products:
            raise LimitExceeded(
                f"Product limit reached ({config.max_products}).",
                details={"max_products": config.max_products},
            )

        if provided_code:
            if not isinstance(provided_code, str):
                raise InvalidRequest("id_code must be a string")
            id_code = provided_code.strip().upper()
            min_len = config.id_policy.product_id_min_len
            if len(id_code) < min_len:
                raise InvalidRequest(f"Product ID code must be at least {min_len} characters.")
            if not ID_CODE_RE.match(id_code):
                raise InvalidRequest("Product ID code must only contain uppercase letters and numbers.")
            if _id_code_taken(session, tenant_id, id_code):
                raise Conflict(f"Product ID code '{id_code}' is already in use.")
        else:
            id_code = generate_id_code(session, tenant_id, config.id_policy.default_product_id_len)

        product = Product(
            tenant_id=tenant_id,
            id_code=id_code,
            name=name,
            image_url=image_url,
            stock_price_cents=stock_price_cents,
            sell_price_cents=sell_price_cents,
            quantity_type=quantity_type,
            quantity=quantity,
            grouping_mode=grouping_mode,
            group_key=group_key,
            active=active,
            warehouse_stocks=_parse_per_warehouse(session, tenant_id, payload.get("per_warehouse")),
        )
        session.add(product)
        session.commit()
        return product

    product = run_transaction(_op, session=session, description="Product creation")
    current_app.logger.info("Product %s (%s) created for tenant %s", product.id, product.id_code, tenant_id)
    return product


def update_product(session: Session, tenant_id: int, product_id: int, payload: Any) -> Product:
    """
    Apply a partial update. id_code, timestamps and warehouse_ids are not
    client-writable; per_warehouse replaces the whole map when given.
    """
    payload = require_mapping(payload)

    def _op():
        product = get_product(session, tenant_id, product_id)

        if "name" in payload:
            product.name = require_text(payload.get("name"), "name", max_length=100)
            if product.grouping_mode == GROUPING_AUTO:
                product.group_key = product.name.strip().lower()
        if "grouping" in payload:
            product.grouping_mode, product.group_key = _grouping(payload.get("grouping"), product.name)
        if "stock_price_cents" in payload:
            product.stock_price_cents = amount_cents(payload.get("stock_price_cents"), "stock_price_cents")
        if "sell_price_cents" in payload:
            product.sell_price_cents = amount_cents(payload.get("sell_price_cents"), "sell_price_cents")
        if "image_url" in payload:
            product.image_url = _image_url(payload.get("image_url"))
        if "active" in payload:
            product.active = optional_bool(payload, "active", default=product.active)

        if "quantity_type" in payload:
            product.quantity_type = _quantity_type(payload.get("quantity_type"))
        if product.quantity_type == QUANTITY_INFINITE:
            product.quantity = None
        elif "quantity" in payload:
            product.quantity = _quantity(payload.get("quantity"), "quantity")

        if "per_warehouse" in payload:
            entries = _parse_per_warehouse(session, tenant_id, payload.get("per_warehouse") or {})
            product.warehouse_stocks.clear()
            session.flush()
            product.warehouse_stocks.extend(entries)

        session.commit()
        return product

    return run_transaction(_op, session=session, description="Product update")


def search_products(session: Session, tenant_id: int, query: str, mode: str = "prefix") -> list[Product]:
    """
    idCode exact match first (exact mode, or a short code-looking query),
    then name prefix (or exact name) limited to SEARCH_LIMIT.
    """
    if not isinstance(query, str) or not query.strip():
        raise InvalidRequest("q is required")
    if mode not in ("prefix", "exact"):
        raise InvalidRequest("mode must be 'prefix' or 'exact'")
    query = query.strip()

    base = session.query(Product).filter(Product.tenant_id == tenant_id)

    if mode == "exact" or (len(query) <= 6 and ID_CODE_RE.match(query.upper())):
        by_code = base.filter(Product.id_code == query.upper()).all()
        if by_code:
            return by_code

    if mode == "prefix":
        by_name = base.filter(Product.name.startswith(query, autoescape=True))
    else:
        by_name = base.filter(Product.name == query)
    return by_name.order_by(Product.name.asc(), Product.id.asc()).limit(SEARCH_LIMIT).all()


def list_products(
    session: Session,
    tenant_id: int,
    *,
    warehouse_id: int | None = None,
    limit: Any = LIST_DEFAULT_LIMIT,
    start_after: Any = None,
) -> dict:
    """Newest-first page of products; next_cursor is the last product id when the page is full."""
    try:
        limit = coerce_int(limit, "limit")
    except InvalidRequest:
        raise InvalidRequest("Invalid limit parameter. Must be between 1 and 100.")
    if not 1 <= limit <= LIST_MAX_LIMIT:
        raise InvalidRequest("Invalid limit parameter. Must be between 1 and 100.")

    query = session.query(Product).filter(Product.tenant_id == tenant_id)

    if warehouse_id is not None:
        warehouse_id = coerce_int(warehouse_id, "warehouse_id")
        query = query.filter(Product.warehouse_stocks.any(ProductWarehouseStock.warehouse_id == warehouse_id))

    if start_after not in (None, ""):
        cursor_id = coerce_int(start_after, "start_after")
        cursor = session.query(Product.id).filter_by(id=cursor_id, tenant_id=tenant_id).first()
        if cursor is None:
            raise InvalidRequest("Invalid pagination cursor: Product not found.")
        # Ids only grow (sqlite_autoincrement), so id order is creation order
        query = query.filter(Product.id < cursor_id)

    products = query.order_by(Product.id.desc()).limit(limit).all()
    next_cursor = products[-1].id if len(products) == limit else None
    return {"products": products, "next_cursor": next_cursor}


def adjust_stock(session: Session, tenant_id: int, product_id: int, payload: Any) -> Product:
    """
    Relative stock change (positive or negative) on the global counter, or on
    a warehouse's counter when warehouse_id is given.

    Raises:
        InvalidRequest: change_qty missing, zero or not an integer
        NotFound: unknown product or warehouse
        Conflict: the result would be negative
    """
    payload = require_mapping(payload)
    change_qty = payload.get("change_qty")
    if change_qty is None:
        raise InvalidRequest("Invalid quantity change.")
    change_qty = coerce_int(change_qty, "change_qty")
    if change_qty == 0:
        raise InvalidRequest("Invalid quantity change.")
    warehouse_id = payload.get("warehouse_id")
    if warehouse_id not in (None, ""):
        warehouse_id = coerce_int(warehouse_id, "warehouse_id")
    else:
        warehouse_id = None

    def _op():
        begin_write(session)
        product = lock_for_update(
            session.query(Product).filter_by(id=product_id, tenant_id=tenant_id)
        ).first()
        if product is None:
            raise NotFound("Product not found.")
        if warehouse_id is not None:
            if session.query(Warehouse.id).filter_by(id=warehouse_id, tenant_id=tenant_id).first() is None:
                raise NotFound("Warehouse not found.")

        stock_ledger.adjust(product, warehouse_id, change_qty)
        session.commit()
        return product

    product = run_transaction(_op, session=session, description="Stock adjustment")
    current_app.logger.info(
        "Stock of product %s adjusted by %s (warehouse %s) for tenant %s",
        product.id, change_qty, warehouse_id, tenant_id,
    )
    return product
