from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_OVERDUE = "overdue"

PAYMENT_STATUSES = (
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_OVERDUE,
)

PAYMENT_METHODS = ("cash", "card", "transfer", "check")


class Invoice(db.Model):
    """
    Customer invoice tracked as an account receivable.

    INVARIANT: balance_due = total - sum(payments.payment_amount) and
    balance_due >= 0. payment_status is derived from balance_due, the amount
    paid and due_date; it is never set directly by callers.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        db.CheckConstraint("balance_due >= 0", name="ck_invoices_balance_non_negative"),
        db.CheckConstraint(
            "payment_status IN ('pending', 'partial', 'paid', 'overdue')",
            name="ck_invoices_payment_status",
        ),
        db.Index("ix_invoices_status_due", "payment_status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # "YYYY-MM-NNN"
    invoice_number = db.Column(db.String(64), nullable=False)

    client_name = db.Column(db.String(255), nullable=False)
    client_email = db.Column(db.String(255), nullable=True)
    client_phone = db.Column(db.String(64), nullable=True)
    client_address = db.Column(db.Text, nullable=True)

    issue_date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    balance_due = db.Column(db.Numeric(12, 2), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)

    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )
    payments = db.relationship(
        "InvoicePayment",
        backref="invoice",
        lazy=True,
        order_by="InvoicePayment.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Invoice id={self.id} invoice_number={self.invoice_number!r} "
            f"balance_due={self.balance_due} status={self.payment_status}>"
        )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "clientName": self.client_name,
            "clientEmail": self.client_email,
            "clientPhone": self.client_phone,
            "clientAddress": self.client_address,
            "issueDate": to_utc_z(self.issue_date),
            "dueDate": to_utc_z(self.due_date),
            "subtotal": money_str(self.subtotal),
            "taxRate": money_str(self.tax_rate),
            "taxAmount": money_str(self.tax_amount),
            "discountAmount": money_str(self.discount_amount),
            "total": money_str(self.total),
            "balanceDue": money_str(self.balance_due),
            "paymentStatus": self.payment_status,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoiceId": self.invoice_id,
            "description": self.description,
            "quantity": money_str(self.quantity),
            "unitPrice": money_str(self.unit_price),
            "total": money_str(self.total),
        }


class InvoicePayment(db.Model):
    """
    Payment applied against an invoice.

    Rows are only ever inserted or deleted. Deleting one recomputes the
    invoice balance from the remaining payments.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = (
        db.CheckConstraint("payment_amount > 0", name="ck_invoice_payments_amount_positive"),
        db.Index("ix_invoice_payments_invoice_date", "invoice_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    payment_amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    payment_method = db.Column(db.String(50), nullable=False)  # cash, card, transfer, check

    # Check number, transfer id, card authorization
    reference_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoiceId": self.invoice_id,
            "paymentAmount": money_str(self.payment_amount),
            "paymentDate": to_utc_z(self.payment_date),
            "paymentMethod": self.payment_method,
            "referenceNumber": self.reference_number,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
        }
