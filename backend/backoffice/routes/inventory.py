# Overview: Flask API routes for stock levels and the stock movement ledger.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..extensions import db
from ..services import stock_ledger_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/inventory/<int:inventory_id>/movements")
def item_movements_route(inventory_id: int):
    """Item with its full movement history, oldest first."""
    try:
        item, movements = stock_ledger_service.get_item_with_movements(inventory_id)
        return jsonify({
            "item": item.to_dict(),
            "movements": [m.to_dict() for m in movements],
        })
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@inventory_bp.get("/stock-movements")
def list_movements_route():
    """
    Query parameters:
    - inventoryId: Restrict to one item
    - limit: Maximum results (default: 100, max 1000)
    """
    inventory_id = request.args.get("inventoryId", type=int)
    limit = request.args.get("limit", 100, type=int)
    movements = stock_ledger_service.list_stock_movements(inventory_id=inventory_id, limit=limit)
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)})


@inventory_bp.put("/inventory/<int:inventory_id>/adjust-stock")
def adjust_stock_route(inventory_id: int):
    """
    Manual stock correction.

    Request body:
    {
        "adjustment": "-2.5",          // signed delta, required
        "reason": "damaged on arrival"  // optional
    }

    Returns:
        200: Updated item
        400: Invalid adjustment
        404: Item not found
        409: Adjustment would take stock below zero
    """
    data = request.get_json(silent=True) or {}
    try:
        item = stock_ledger_service.adjust_stock(
            inventory_id,
            data.get("adjustment"),
            reason=data.get("reason") or None,
            reference=data.get("reference") or None,
        )
        return jsonify(item.to_dict())
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust stock for item %s", inventory_id)
        return jsonify({"error": "Internal server error"}), 500
