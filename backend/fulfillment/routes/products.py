# Overview: Flask API routes for products; search, listing, edits and stock adjustment.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import FulfillmentError
from ..extensions import db
from ..services import product_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def search_products_route():
    """Search by idCode or name: ?q=<text>&mode=prefix|exact"""
    try:
        products = product_service.search_products(
            db.session,
            g.tenant_id,
            request.args.get("q", ""),
            request.args.get("mode", "prefix"),
        )
        return jsonify({"products": [p.to_dict() for p in products]}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to search products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/list")
@require_auth
def list_products_route():
    """Paginated listing: ?warehouse_id=&limit=&start_after=<product id>"""
    try:
        page = product_service.list_products(
            db.session,
            g.tenant_id,
            warehouse_id=request.args.get("warehouse_id") or None,
            limit=request.args.get("limit", product_service.LIST_DEFAULT_LIMIT),
            start_after=request.args.get("start_after"),
        )
        return jsonify({
            "products": [p.to_dict() for p in page["products"]],
            "next_cursor": page["next_cursor"],
        }), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
def create_product_route():
    try:
        product = product_service.create_product(db.session, g.tenant_id, request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = product_service.get_product(db.session, g.tenant_id, product_id)
        return jsonify({"product": product.to_dict()}), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    try:
        product = product_service.update_product(
            db.session, g.tenant_id, product_id, request.get_json(silent=True)
        )
        return jsonify({"product": product.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/stock-adjust")
@require_auth
def adjust_stock_route(product_id: int):
    """Body: {"change_qty": <non-zero int>, "warehouse_id": <optional>}"""
    try:
        product = product_service.adjust_stock(
            db.session, g.tenant_id, product_id, request.get_json(silent=True)
        )
        return jsonify({"message": "Stock adjusted successfully.", "product": product.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
