# Overview: Flask API routes for warehouses; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import FulfillmentError
from ..extensions import db
from ..services import warehouse_service


warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.get("")
@require_auth
def list_warehouses_route():
    warehouses = warehouse_service.list_warehouses(db.session, g.tenant_id)
    return jsonify({"warehouses": [w.to_dict() for w in warehouses]}), 200


@warehouses_bp.post("")
@require_auth
def create_warehouse_route():
    try:
        data = request.get_json(silent=True) or {}
        warehouse = warehouse_service.create_warehouse(db.session, g.tenant_id, data.get("name"))
        return jsonify({"warehouse": warehouse.to_dict()}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create warehouse")
        return jsonify({"error": "Internal server error"}), 500


@warehouses_bp.patch("/<int:warehouse_id>")
@require_auth
def update_warehouse_route(warehouse_id: int):
    try:
        warehouse = warehouse_service.update_warehouse(
            db.session, g.tenant_id, warehouse_id, request.get_json(silent=True)
        )
        return jsonify({"warehouse": warehouse.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update warehouse")
        return jsonify({"error": "Internal server error"}), 500
