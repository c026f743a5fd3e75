# Overview: Flask API routes for enhanced purchases; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, NotFound
from ..extensions import db
from ..services import purchase_service
from ..validation import parse_purchase_request


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("/enhanced")
def create_enhanced_purchase_route():
    """
    Record a multi-line purchase.

    Each line is routed by productType: inventory lines create or replenish an
    inventory item, asset lines register an asset, supply lines post an
    expense. All lines commit together or not at all.

    Returns:
        201: {success, purchase, id}
        400: Invalid request (details name the failing line)
        404: Referenced inventory item not found
    """
    try:
        purchase_request = parse_purchase_request(request.get_json(silent=True))
        purchase = purchase_service.create_enhanced_purchase(purchase_request)
        return jsonify({
            "success": True,
            "purchase": purchase.to_dict(),
            "id": purchase.id,
        }), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
def list_purchases_route():
    """
    Query parameters:
    - limit: Maximum results (default: 100)
    - offset: Pagination offset (default: 0)
    """
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500
    if offset < 0:
        offset = 0

    purchases, total = purchase_service.list_purchases(limit=limit, offset=offset)
    return jsonify({
        "items": [p.to_dict(include_items=False) for p in purchases],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@purchases_bp.get("/stats")
def purchase_stats_route():
    return jsonify(purchase_service.get_purchase_stats())


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    purchase = purchase_service.get_purchase(purchase_id)
    if purchase is None:
        e = NotFound(f"Purchase {purchase_id} not found", {"purchase_id": purchase_id})
        return jsonify(e.to_dict()), e.http_status
    return jsonify(purchase.to_dict())


@purchases_bp.delete("/<int:purchase_id>")
def delete_purchase_route(purchase_id: int):
    """
    Delete a purchase and its lines.

    Inventory, asset and expense records the purchase created are kept.
    """
    try:
        deleted = purchase_service.delete_purchase(purchase_id)
        if not deleted:
            raise NotFound(f"Purchase {purchase_id} not found", {"purchase_id": purchase_id})
        return jsonify({"success": True, "id": purchase_id})
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete purchase %s", purchase_id)
        return jsonify({"error": "Internal server error"}), 500
