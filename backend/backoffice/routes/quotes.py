# Overview: Flask API routes for quotes, status transitions, conversion and expiration.

"""
Quote Routes

Lifecycle: draft -> sent -> accepted -> converted, with rejected and expired as
the other terminal states. "converted" is reachable only through
POST /<id>/convert-to-sale.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import InvalidInput, LedgerError, NotFound
from ..extensions import db
from ..services import quote_service
from ..services.quote_dates import get_expiry_status
from ..validation import parse_quote_request


quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


def _quote_payload(quote, validation=None) -> dict:
    payload = quote.to_dict()
    payload["expiry"] = get_expiry_status(quote.valid_until)
    if validation is not None:
        payload["warnings"] = list(validation.warnings)
    return payload


@quotes_bp.get("")
def list_quotes_route():
    try:
        quotes = quote_service.list_quotes(status=request.args.get("status") or None)
        return jsonify({"items": [q.to_dict(include_items=False) for q in quotes], "count": len(quotes)})
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@quotes_bp.get("/stats")
def quote_stats_route():
    return jsonify(quote_service.get_quote_stats())


@quotes_bp.post("")
def create_quote_route():
    """
    Create a draft quote.

    Returns:
        201: Quote with expiry status and date warnings
        400: Invalid request or dates (details.errors lists every date problem)
        404: Inventory item not found
    """
    try:
        quote_request = parse_quote_request(request.get_json(silent=True))
        quote, validation = quote_service.create_quote(quote_request)
        return jsonify(_quote_payload(quote, validation)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.get("/<int:quote_id>")
def get_quote_route(quote_id: int):
    quote = quote_service.get_quote(quote_id)
    if quote is None:
        e = NotFound(f"Quote {quote_id} not found", {"quote_id": quote_id})
        return jsonify(e.to_dict()), e.http_status
    return jsonify(_quote_payload(quote))


@quotes_bp.put("/<int:quote_id>")
def update_quote_route(quote_id: int):
    try:
        quote_request = parse_quote_request(request.get_json(silent=True))
        quote, validation = quote_service.update_quote(quote_id, quote_request)
        return jsonify(_quote_payload(quote, validation))
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update quote %s", quote_id)
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.delete("/<int:quote_id>")
def delete_quote_route(quote_id: int):
    try:
        quote_service.delete_quote(quote_id)
        return jsonify({"success": True, "id": quote_id})
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete quote %s", quote_id)
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.patch("/<int:quote_id>/status")
def update_quote_status_route(quote_id: int):
    """
    Request body: {"status": "sent"}

    Returns:
        200: Updated quote
        400: Unknown status
        409: Transition not allowed from the current status
    """
    data = request.get_json(silent=True) or {}
    try:
        status = data.get("status")
        if not isinstance(status, str) or not status:
            raise InvalidInput("status is required", {"field": "status"})
        quote = quote_service.update_quote_status(quote_id, status)
        return jsonify(_quote_payload(quote))
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update status of quote %s", quote_id)
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.post("/<int:quote_id>/convert-to-sale")
def convert_quote_route(quote_id: int):
    """
    Convert an accepted, unexpired quote into a sale.

    Request body (optional): {"paymentMethod": "card"}

    Returns:
        201: {success, sale, quote}
        409: Quote not accepted, expired, or stock insufficient
    """
    data = request.get_json(silent=True) or {}
    try:
        payment_method = data.get("paymentMethod") or quote_service.DEFAULT_CONVERSION_PAYMENT_METHOD
        sale = quote_service.convert_quote_to_sale(quote_id, payment_method=payment_method)
        quote = quote_service.get_quote(quote_id)
        return jsonify({
            "success": True,
            "sale": sale.to_dict(),
            "quote": quote.to_dict(include_items=False),
        }), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to convert quote %s", quote_id)
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.post("/update-expired")
def update_expired_route():
    """Run the expiration sweep now."""
    try:
        sweeper = current_app.extensions.get("expiration_sweeper")
        if sweeper is not None:
            result = sweeper.execute_once()
        else:
            result = quote_service.expire_quotes()
        return jsonify(result.to_dict())
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Quote expiration sweep failed")
        return jsonify({"error": "Internal server error"}), 500
