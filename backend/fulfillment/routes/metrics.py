# Overview: Flask API routes for monthly and weekly financial rollups.

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_auth
from ..errors import FulfillmentError
from ..extensions import db
from ..services import metrics_service


metrics_bp = Blueprint("metrics", __name__, url_prefix="/api/metrics")


@metrics_bp.get("/year/<int:year>")
@require_auth
def yearly_metrics_route(year: int):
    try:
        return jsonify(metrics_service.get_yearly_metrics(db.session, g.tenant_id, year)), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load yearly metrics")
        return jsonify({"error": "Internal server error"}), 500


@metrics_bp.get("/month/<int:year>/<int:month>/weekly")
@require_auth
def weekly_metrics_route(year: int, month: int):
    try:
        return jsonify(metrics_service.get_weekly_metrics(db.session, g.tenant_id, year, month)), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load weekly metrics")
        return jsonify({"error": "Internal server error"}), 500
