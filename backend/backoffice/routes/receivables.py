# Overview: Flask API routes for invoices, payments and accounts-receivable reports.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..extensions import db
from ..services import receivables_service
from ..validation import parse_invoice_request, parse_payment_request


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")
receivables_bp = Blueprint("receivables", __name__, url_prefix="/api/accounts-receivable")


@invoices_bp.post("")
def create_invoice_route():
    """
    Issue an invoice. balanceDue starts at the invoice total.

    Returns:
        201: Invoice with items
        400: Invalid request
    """
    try:
        invoice_request = parse_invoice_request(request.get_json(silent=True))
        invoice = receivables_service.create_invoice(invoice_request)
        return jsonify(invoice.to_dict(include_items=True)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@receivables_bp.get("/stats")
def receivables_stats_route():
    return jsonify(receivables_service.get_receivables_stats())


@receivables_bp.get("/pending")
def pending_invoices_route():
    invoices = receivables_service.list_pending_invoices()
    return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)})


@receivables_bp.get("/overdue")
def overdue_invoices_route():
    invoices = receivables_service.list_overdue_invoices()
    return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)})


@receivables_bp.get("/aging")
def aging_report_route():
    return jsonify(receivables_service.get_aging_report().to_dict())


@receivables_bp.get("/invoice/<int:invoice_id>")
def invoice_detail_route(invoice_id: int):
    """Invoice with items and its payment history, oldest payment first."""
    try:
        invoice, payments = receivables_service.get_invoice_with_payments(invoice_id)
        payload = invoice.to_dict(include_items=True)
        payload["payments"] = [p.to_dict() for p in payments]
        return jsonify(payload)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@receivables_bp.post("/payment")
def apply_payment_route():
    """
    Apply a payment to an invoice.

    Request body:
    {
        "invoiceId": 1,
        "paymentAmount": "400.00",
        "paymentDate": "2026-03-01",
        "paymentMethod": "transfer",   // cash | card | transfer | check
        "referenceNumber": "TX-123",   // optional
        "notes": "..."                 // optional
    }

    Returns:
        201: {success, payment, invoice} with the updated balance and status
        400: Invalid request, non-positive amount or overpayment
        404: Invoice not found
    """
    try:
        payment_request = parse_payment_request(request.get_json(silent=True))
        payment = receivables_service.apply_payment(payment_request)
        invoice = payment.invoice
        return jsonify({
            "success": True,
            "payment": payment.to_dict(),
            "invoice": invoice.to_dict(),
        }), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to apply payment")
        return jsonify({"error": "Internal server error"}), 500


@receivables_bp.delete("/payment/<int:payment_id>")
def delete_payment_route(payment_id: int):
    """Delete a payment; the invoice is recomputed from the payments that remain."""
    try:
        invoice = receivables_service.delete_invoice_payment(payment_id)
        return jsonify({"success": True, "invoice": invoice.to_dict()})
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete payment %s", payment_id)
        return jsonify({"error": "Internal server error"}), 500


@receivables_bp.post("/mark-overdue")
def mark_overdue_route():
    """Run the overdue sweep now."""
    try:
        sweeper = current_app.extensions.get("overdue_sweeper")
        if sweeper is not None:
            marked = sweeper.execute_once()
        else:
            marked = receivables_service.mark_overdue_invoices()
        return jsonify({"success": True, "markedOverdue": marked})
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Overdue sweep failed")
        return jsonify({"error": "Internal server error"}), 500
