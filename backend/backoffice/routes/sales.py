# Overview: Flask API routes for sales; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, NotFound
from ..extensions import db
from ..services import sales_service
from ..validation import parse_sale_request


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Create a sale and decrement stock for every line.

    Request body:
    {
        "customerName": "Jane",
        "saleDate": "2026-03-01T10:00:00Z",
        "paymentMethod": "cash",
        "items": [{"inventoryId": 1, "productName": "Cement", "quantity": "4",
                   "unitPrice": "12.50", "subtotal": "50.00"}],
        "taxRate": "16",
        "discountAmount": "0"
    }

    Returns:
        201: Created sale with its generated saleNumber
        400: Invalid request
        404: Inventory item not found
        409: Insufficient stock (nothing was decremented)
    """
    try:
        sale_request = parse_sale_request(request.get_json(silent=True))
        sale = sales_service.create_sale(sale_request)
        return jsonify(sale.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    sales, total = sales_service.list_sales(limit=limit, offset=offset)
    return jsonify({
        "items": [s.to_dict(include_items=False) for s in sales],
        "count": total,
    })


@sales_bp.get("/generate-number")
def generate_sale_number_route():
    """Next sale number, without reserving it."""
    try:
        return jsonify({"saleNumber": sales_service.preview_sale_number()})
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    if sale is None:
        e = NotFound(f"Sale {sale_id} not found", {"sale_id": sale_id})
        return jsonify(e.to_dict()), e.http_status
    return jsonify(sale.to_dict())


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    """
    Delete a sale and restore stock for every line.

    Returns:
        200: {success, sale} with the deleted sale as it was
        404: Sale not found
    """
    try:
        snapshot = sales_service.delete_sale(sale_id)
        return jsonify({"success": True, "sale": snapshot})
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500
