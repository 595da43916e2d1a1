# Overview: Flask API routes for packaging presets.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import FulfillmentError
from ..extensions import db
from ..services import packaging_service


packaging_bp = Blueprint("packaging", __name__, url_prefix="/api/packaging")


@packaging_bp.get("")
@require_auth
def list_presets_route():
    presets = packaging_service.list_presets(db.session, g.tenant_id)
    return jsonify({"presets": [p.to_dict() for p in presets]}), 200


@packaging_bp.post("")
@require_auth
def create_preset_route():
    try:
        data = request.get_json(silent=True) or {}
        preset = packaging_service.create_preset(
            db.session, g.tenant_id, data.get("name"), data.get("price_cents", 0)
        )
        return jsonify({"preset": preset.to_dict()}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create packaging preset")
        return jsonify({"error": "Internal server error"}), 500


@packaging_bp.patch("/<int:preset_id>")
@require_auth
def update_preset_route(preset_id: int):
    try:
        preset = packaging_service.update_preset(
            db.session, g.tenant_id, preset_id, request.get_json(silent=True)
        )
        return jsonify({"preset": preset.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update packaging preset")
        return jsonify({"error": "Internal server error"}), 500
