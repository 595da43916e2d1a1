# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/fulfillment/routes/orders.py
"""Order API routes. The tenant always comes from the session, never from the body."""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import FulfillmentError
from ..extensions import db
from ..services import order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order.

    Body: {"lines": [{"product_id", "qty", "unit_sell_price_cents"?, "unit_stock_price_cents"?}],
           "shipping_cents"?, "extra_losses_cents"?, "packaging_items"?: [{"name", "price_cents"}],
           "warehouse_id"?, "created_at"?}
    """
    try:
        order = order_service.create_order(db.session, g.tenant_id, request.get_json(silent=True))
        return jsonify({"order": order.to_dict()}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    """Newest first, at most 100: ?month=YYYY-MM&warehouse_id="""
    try:
        orders = order_service.list_orders(
            db.session,
            g.tenant_id,
            month=request.args.get("month") or None,
            warehouse_id=request.args.get("warehouse_id") or None,
        )
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(db.session, g.tenant_id, order_id)
        return jsonify({"order": order.to_dict()}), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    """
    Change an order's status.

    Body: {"new_status": "OK"|"Returned"|"Canceled", "notes"?, "reverse_metrics"?,
           "restock_items"?, "added_losses_cents"?}
    """
    try:
        order = order_service.update_order_status(
            db.session,
            g.tenant_id,
            order_id,
            request.get_json(silent=True),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"order": order.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500
