# Overview: Session token issuance, validation, revocation and purge.

"""
Session Token Management Service

Tokens are 32 random bytes sent to the client as hex; only the SHA-256 hash
is stored. Sessions carry the tenant id captured at login, expire after
SESSION_LIFETIME and are purged SESSION_PURGE_GRACE after expiry.

Bookkeeping writes (last_seen_at, login statistics) are best-effort: a
failure is logged and never fails the request that triggered it.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import Unauthorized
from ..models import SessionToken, Tenant, User
from ..time_utils import utcnow
from .auth_service import authenticate


@dataclass
class SessionContext:
    """Identity and tenant context resolved from a valid session token."""
    user: User
    session: SessionToken
    tenant_id: int


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _lifetime() -> timedelta:
    return current_app.config.get("SESSION_LIFETIME", timedelta(days=150))


def _purge_grace() -> timedelta:
    return current_app.config.get("SESSION_PURGE_GRACE", timedelta(days=7))


def _best_effort_commit(session: Session, description: str) -> bool:
    try:
        session.commit()
        return True
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception("Failed to record %s", description)
        return False


def record_login(session: Session, user: User, ip_address: str | None = None, country: str | None = None) -> None:
    """Update login statistics; failures are logged, never raised."""
    user.login_count = (user.login_count or 0) + 1
    user.last_login_at = utcnow()
    user.last_login_ip = ip_address
    user.last_login_country = country
    _best_effort_commit(session, f"login statistics for user {user.id}")


def create_session(
    session: Session,
    user: User,
    ip_address: str | None = None,
    country: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Issue a new session for an authenticated user.

    Returns (session_record, plaintext_token); the plaintext is never stored.
    """
    plaintext_token = generate_token()
    now = utcnow()
    expires_at = now + _lifetime()

    record = SessionToken(
        user_id=user.id,
        tenant_id=user.tenant_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_seen_at=now,
        expires_at=expires_at,
        purge_after=expires_at + _purge_grace(),
        ip_address=ip_address,
        country=country,
        is_revoked=False,
    )
    session.add(record)
    session.commit()

    record_login(session, user, ip_address=ip_address, country=country)
    return record, plaintext_token


def login(session: Session, email, password, ip_address: str | None = None, country: str | None = None):
    """Authenticate and issue a session. Raises Unauthorized on bad credentials."""
    user = authenticate(session, email, password)
    if user is None:
        raise Unauthorized("Invalid email or password.")
    record, token = create_session(session, user, ip_address=ip_address, country=country)
    return user, record, token


def validate_session(session: Session, token: str | None) -> SessionContext | None:
    """
    Resolve a bearer token to its SessionContext.

    Returns None for unknown, revoked or expired tokens, and when the user or
    tenant has been deactivated.
    """
    if not token:
        return None

    record = session.query(SessionToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if record is None:
        return None

    now = utcnow()
    if record.expires_at < now:
        current_app.logger.warning("Expired session %s presented for user %s", record.id, record.user_id)
        return None

    user = record.user
    if user is None or not user.is_active:
        return None
    tenant = session.get(Tenant, record.tenant_id)
    if tenant is None or not tenant.is_active:
        return None

    record.last_seen_at = now
    _best_effort_commit(session, f"last-seen time for session {record.id}")

    return SessionContext(user=user, session=record, tenant_id=record.tenant_id)


def revoke_session(session: Session, token: str | None) -> bool:
    """Revoke a session (logout). Returns False when the token is unknown or already revoked."""
    if not token:
        return False
    record = session.query(SessionToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if record is None:
        return False

    record.is_revoked = True
    record.revoked_at = utcnow()
    session.commit()
    return True


def cleanup_expired_sessions(session: Session) -> int:
    """Delete sessions past their purge time. Returns count of sessions deleted."""
    deleted = session.query(SessionToken).filter(
        SessionToken.purge_after < utcnow(),
    ).delete(synchronize_session=False)
    session.commit()
    return deleted
