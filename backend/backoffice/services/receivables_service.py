# Overview: Accounts receivable: invoices, payment application and overdue tracking.

"""
Receivables Engine

INVARIANTS:
- balance_due = total - sum(payment_amount over the invoice's payments), >= 0
- payment_status = derive_payment_status(balance_due, total_paid, due_date, now)
- Payments are never edited. Deleting one recomputes the balance from the
  remaining payments instead of adding the deleted amount back.
- A payment must be > 0 and <= the current balance_due (no overpayment).

The invoice row is locked (and version-checked) for every balance change, so
two concurrent payments cannot both pass the overpayment check.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, update

from ..errors import InvalidAmount, InvalidInput, NotFound
from ..extensions import db
from ..models import Invoice, InvoiceItem, InvoicePayment
from ..models.receivables import (
    PAYMENT_STATUS_OVERDUE,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
)
from ..money import ZERO, line_total, money_str, percent_of, quantize
from ..time_utils import utcnow
from ..validation import InvoiceRequest, PaymentRequest
from .concurrency import atomic, lock_for_update
from .document_service import next_invoice_number


OPEN_STATUSES = (PAYMENT_STATUS_PENDING, PAYMENT_STATUS_PARTIAL)


def derive_payment_status(
    balance_due: Decimal,
    total_paid: Decimal,
    due_date: datetime,
    now: datetime | None = None,
) -> str:
    """
    paid if nothing is owed; partial if something was paid; otherwise overdue
    once due_date has passed, else pending.
    """
    if balance_due <= 0:
        return PAYMENT_STATUS_PAID
    if total_paid > 0:
        return PAYMENT_STATUS_PARTIAL
    if due_date < (now or utcnow()):
        return PAYMENT_STATUS_OVERDUE
    return PAYMENT_STATUS_PENDING


def _total_paid(invoice_id: int) -> Decimal:
    paid = (
        db.session.query(func.coalesce(func.sum(InvoicePayment.payment_amount), 0))
        .filter(InvoicePayment.invoice_id == invoice_id)
        .scalar()
    )
    return quantize(Decimal(paid))


def _get_invoice_for_update(invoice_id: int) -> Invoice:
    query = db.session.query(Invoice).filter_by(id=invoice_id).populate_existing()
    invoice = lock_for_update(query).first()
    if invoice is None:
        raise NotFound(f"Invoice {invoice_id} not found", {"invoice_id": invoice_id})
    return invoice


def create_invoice(request: InvoiceRequest, now: datetime | None = None) -> Invoice:
    """Issue an invoice; its balance starts at the full total."""
    if request.due_date < request.issue_date:
        raise InvalidInput("dueDate cannot be before issueDate", {"field": "dueDate"})

    def _op():
        subtotal = sum((line_total(line.quantity, line.unit_price) for line in request.items), ZERO)
        tax_amount = percent_of(subtotal, request.tax_rate)
        total = subtotal + tax_amount - quantize(request.discount_amount)
        if total < 0:
            raise InvalidInput("Discount exceeds the invoice amount", {"field": "discountAmount"})

        invoice = Invoice(
            invoice_number=next_invoice_number(now),
            client_name=request.client_name,
            client_email=request.client_email,
            client_phone=request.client_phone,
            client_address=request.client_address,
            issue_date=request.issue_date,
            due_date=request.due_date,
            subtotal=subtotal,
            tax_rate=quantize(request.tax_rate),
            tax_amount=tax_amount,
            discount_amount=quantize(request.discount_amount),
            total=total,
            balance_due=total,
            payment_status=derive_payment_status(total, ZERO, request.due_date, now),
            notes=request.notes,
        )
        invoice.items = [
            InvoiceItem(
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total=line_total(line.quantity, line.unit_price),
            )
            for line in request.items
        ]
        db.session.add(invoice)
        db.session.flush()
        return invoice

    return atomic(_op)


def apply_payment(request: PaymentRequest, now: datetime | None = None) -> InvoicePayment:
    """
    Apply a payment and update the invoice balance and status atomically.

    Raises:
        NotFound: invoice missing
        InvalidAmount: amount <= 0 or greater than balance_due
    """
    amount = quantize(request.payment_amount)
    if amount <= 0:
        raise InvalidAmount(
            "Payment amount must be greater than zero",
            {"invoice_id": request.invoice_id, "payment_amount": money_str(amount)},
        )

    def _op():
        at = now or utcnow()
        invoice = _get_invoice_for_update(request.invoice_id)
        balance = quantize(Decimal(invoice.balance_due))
        if amount > balance:
            raise InvalidAmount(
                f"Payment of {amount} exceeds the balance due of {balance}",
                {
                    "invoice_id": invoice.id,
                    "payment_amount": money_str(amount),
                    "balance_due": money_str(balance),
                },
            )

        payment = InvoicePayment(
            invoice_id=invoice.id,
            payment_amount=amount,
            payment_date=request.payment_date or at,
            payment_method=request.payment_method,
            reference_number=request.reference_number,
            notes=request.notes,
        )
        db.session.add(payment)

        new_balance = balance - amount
        total_paid = quantize(Decimal(invoice.total)) - new_balance
        invoice.balance_due = new_balance
        invoice.payment_status = derive_payment_status(new_balance, total_paid, invoice.due_date, at)
        db.session.flush()
        return payment

    return atomic(_op)


def recompute_invoice(invoice: Invoice, now: datetime | None = None) -> Invoice:
    """Re-derive balance and status from the full payment set."""
    total_paid = _total_paid(invoice.id)
    balance = quantize(Decimal(invoice.total)) - total_paid
    invoice.balance_due = balance
    invoice.payment_status = derive_payment_status(balance, total_paid, invoice.due_date, now)
    return invoice


def delete_invoice_payment(payment_id: int, now: datetime | None = None) -> Invoice:
    """Remove a payment and recompute the invoice from the payments that remain."""
    def _op():
        payment = db.session.get(InvoicePayment, payment_id)
        if payment is None:
            raise NotFound(f"Payment {payment_id} not found", {"payment_id": payment_id})

        invoice = _get_invoice_for_update(payment.invoice_id)
        db.session.delete(payment)
        db.session.flush()

        recompute_invoice(invoice, now)
        db.session.flush()
        return invoice

    return atomic(_op)


def mark_overdue_invoices(now: datetime | None = None) -> int:
    """
    Flag open invoices past their due date as overdue.

    One set-based UPDATE; re-running it changes nothing. Returns the number of
    invoices flagged by this run.
    """
    def _op():
        at = now or utcnow()
        stmt = (
            update(Invoice)
            .where(
                Invoice.payment_status.in_(OPEN_STATUSES),
                Invoice.balance_due > 0,
                Invoice.due_date < at,
            )
            .values(payment_status=PAYMENT_STATUS_OVERDUE, version_id=Invoice.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).rowcount

    return atomic(_op)


# =============================================================================
# READ SIDE
# =============================================================================

def get_invoice_with_payments(invoice_id: int) -> tuple[Invoice, list[InvoicePayment]]:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFound(f"Invoice {invoice_id} not found", {"invoice_id": invoice_id})
    payments = (
        db.session.query(InvoicePayment)
        .filter_by(invoice_id=invoice_id)
        .order_by(InvoicePayment.payment_date.asc(), InvoicePayment.id.asc())
        .all()
    )
    return invoice, payments


def list_pending_invoices() -> list[Invoice]:
    """Open invoices that still have a balance (pending, partial or overdue)."""
    return (
        db.session.query(Invoice)
        .filter(Invoice.balance_due > 0)
        .filter(Invoice.payment_status != PAYMENT_STATUS_PAID)
        .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        .all()
    )


def list_overdue_invoices(now: datetime | None = None) -> list[Invoice]:
    """Invoices with a balance whose due date has passed, flagged or not."""
    at = now or utcnow()
    return (
        db.session.query(Invoice)
        .filter(Invoice.balance_due > 0)
        .filter(Invoice.due_date < at)
        .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        .all()
    )


def get_receivables_stats(now: datetime | None = None) -> dict:
    at = now or utcnow()
    open_invoices = db.session.query(Invoice).filter(Invoice.balance_due > 0).all()

    total_pending = ZERO
    total_overdue = ZERO
    pending_count = 0
    overdue_count = 0
    for invoice in open_invoices:
        balance = quantize(Decimal(invoice.balance_due))
        if invoice.payment_status == PAYMENT_STATUS_OVERDUE or invoice.due_date < at:
            total_overdue += balance
            overdue_count += 1
        else:
            total_pending += balance
            pending_count += 1

    total_paid = (
        db.session.query(func.coalesce(func.sum(InvoicePayment.payment_amount), 0)).scalar()
    )
    return {
        "totalPending": money_str(total_pending),
        "totalOverdue": money_str(total_overdue),
        "totalPaid": money_str(Decimal(total_paid)),
        "pendingInvoicesCount": pending_count,
        "overdueInvoicesCount": overdue_count,
    }


@dataclass
class AgingReport:
    current: Decimal = ZERO
    days30to60: Decimal = ZERO
    days61to90: Decimal = ZERO
    over90days: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "current": money_str(self.current),
            "days30to60": money_str(self.days30to60),
            "days61to90": money_str(self.days61to90),
            "over90days": money_str(self.over90days),
        }


def get_aging_report(now: datetime | None = None) -> AgingReport:
    """
    Outstanding balances bucketed by days past due.

    current: not yet due or 0-30 days late; then 31-60, 61-90 and over 90.
    """
    at = now or utcnow()
    report = AgingReport()
    open_invoices = db.session.query(Invoice).filter(Invoice.balance_due > 0).all()
    for invoice in open_invoices:
        balance = quantize(Decimal(invoice.balance_due))
        days_past_due = (at - invoice.due_date).days
        if days_past_due <= 30:
            report.current += balance
        elif days_past_due <= 60:
            report.days30to60 += balance
        elif days_past_due <= 90:
            report.days61to90 += balance
        else:
            report.over90days += balance
    return report
