# Overview: Tenant signup and credential checks; bcrypt password hashing.

"""
Authentication Service

Signup creates a whole tenant in one transaction: the tenant row, its owner
user, a default warehouse, the settings row pointing at that warehouse, and
the starter packaging presets.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12), never stored in plaintext
- Minimum 8 characters required
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import bcrypt
from sqlalchemy.orm import Session

from ..config import (
    DEFAULT_CURRENCY,
    DEFAULT_ID_POLICY,
    DEFAULT_MAX_ORDERS,
    DEFAULT_MAX_PRODUCTS,
    DEFAULT_MAX_WAREHOUSES,
    DEFAULT_PACKAGING_PRESETS,
    DEFAULT_WAREHOUSE_NAME,
)
from ..errors import Conflict, InvalidRequest
from ..models import PackagingPreset, Tenant, TenantSettings, User, Warehouse
from ..validation import require_text
from .concurrency import run_transaction


MIN_PASSWORD_LENGTH = 8


def normalize_email(email) -> str:
    email = require_text(email, "email", max_length=255).lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise InvalidRequest("email must be a valid email address")
    return email


def validate_password_strength(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (validated for strength first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def signup(session: Session, email, password, business_name) -> tuple[Tenant, User]:
    """
    Register a new tenant with its owner account and starter data.

    Raises:
        InvalidRequest: malformed email, short password, missing business name
        Conflict: email already registered
    """
    email = normalize_email(email)
    business_name = require_text(business_name, "business_name", max_length=255)
    password_hash = hash_password(password)

    def _op():
        if session.query(User).filter_by(email=email).first() is not None:
            raise Conflict("Email already registered.")

        tenant = Tenant(business_name=business_name, email=email)
        session.add(tenant)
        session.flush()

        user = User(tenant_id=tenant.id, email=email, password_hash=password_hash, role="owner")
        warehouse = Warehouse(tenant_id=tenant.id, name=DEFAULT_WAREHOUSE_NAME, active=True)
        session.add_all([user, warehouse])
        session.flush()

        session.add(TenantSettings(
            tenant_id=tenant.id,
            max_products=DEFAULT_MAX_PRODUCTS,
            max_orders=DEFAULT_MAX_ORDERS,
            max_warehouses=DEFAULT_MAX_WAREHOUSES,
            currency=DEFAULT_CURRENCY,
            default_warehouse_id=warehouse.id,
            id_policy=dict(DEFAULT_ID_POLICY),
        ))
        for name, price_cents in DEFAULT_PACKAGING_PRESETS:
            session.add(PackagingPreset(tenant_id=tenant.id, name=name, price_cents=price_cents, active=True))

        session.commit()
        return tenant, user

    return run_transaction(_op, session=session, description="Signup")


def authenticate(session: Session, email, password) -> User | None:
    """
    Check credentials. Returns the active User, or None when the email is
    unknown, the password is wrong, or the user/tenant is deactivated.
    """
    if not isinstance(email, str) or not isinstance(password, str):
        return None

    user = session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()
    if user is None:
        return None

    tenant = session.get(Tenant, user.tenant_id)
    if tenant is None or not tenant.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None
    return user
