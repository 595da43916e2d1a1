# Overview: Flask API routes for signup, login and logout.

# backend/fulfillment/routes/auth.py
"""
Authentication API routes

- signup creates a tenant with its owner account and starter data
- login returns a bearer token for the Authorization header
- logout revokes the presented token
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bearer_token, require_auth
from ..errors import FulfillmentError
from ..extensions import db
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/signup")
def signup_route():
    try:
        data = request.get_json(silent=True) or {}
        tenant, user = auth_service.signup(
            db.session,
            data.get("email"),
            data.get("password"),
            data.get("business_name"),
        )
        current_app.logger.info("Tenant %s signed up (%s)", tenant.id, user.email)
        return jsonify({"tenant_id": tenant.id, "message": "Signup successful."}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to sign up")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    The client country may be forwarded by the edge proxy in X-Country.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user, record, token = session_service.login(
            db.session,
            email,
            password,
            ip_address=request.remote_addr,
            country=request.headers.get("X-Country"),
        )
        return jsonify({
            "token": token,
            "expires_at": record.to_dict()["expires_at"],
            "user": user.to_dict(),
        }), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(db.session, bearer_token())
        current_app.logger.info("User %s logged out", g.current_user.id)
        return jsonify({"message": "Logged out."}), 200
    except Exception:
        current_app.logger.exception("Failed to log out")
        return jsonify({"error": "Internal server error"}), 500
