from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


QUOTE_STATUS_DRAFT = "draft"
QUOTE_STATUS_SENT = "sent"
QUOTE_STATUS_ACCEPTED = "accepted"
QUOTE_STATUS_REJECTED = "rejected"
QUOTE_STATUS_EXPIRED = "expired"
QUOTE_STATUS_CONVERTED = "converted"

QUOTE_STATUSES = (
    QUOTE_STATUS_DRAFT,
    QUOTE_STATUS_SENT,
    QUOTE_STATUS_ACCEPTED,
    QUOTE_STATUS_REJECTED,
    QUOTE_STATUS_EXPIRED,
    QUOTE_STATUS_CONVERTED,
)


class Sale(db.Model):
    """
    Completed sale.

    A sale exists only together with the stock decrements of its lines: both
    are written in one transaction, and deleting the sale restores the stock.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        db.Index("ix_sales_sale_date", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "V2026100007")
    sale_number = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)
    payment_method = db.Column(db.String(50), nullable=False)

    # Totals: total = subtotal + tax_amount - discount_amount
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    notes = db.Column(db.Text, nullable=True)

    # Originating quote, set on conversion. Plain column: quotes.sale_id is the FK side
    quote_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} sale_number={self.sale_number!r} total={self.total}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "saleNumber": self.sale_number,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "saleDate": to_utc_z(self.sale_date),
            "paymentMethod": self.payment_method,
            "subtotal": money_str(self.subtotal),
            "taxRate": money_str(self.tax_rate),
            "taxAmount": money_str(self.tax_amount),
            "discountAmount": money_str(self.discount_amount),
            "total": money_str(self.total),
            "notes": self.notes,
            "quoteId": self.quote_id,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "inventoryId": self.inventory_id,
            "productName": self.product_name,
            "quantity": money_str(self.quantity),
            "unitPrice": money_str(self.unit_price),
            "subtotal": money_str(self.subtotal),
        }


class Quote(db.Model):
    """
    Customer quote.

    LIFECYCLE:
    draft -> sent -> accepted | rejected | expired
    accepted -> converted (via conversion) | expired (via sweep)
    rejected, expired and converted are terminal.

    version_id guards status changes: the expiration sweep and a concurrent
    conversion cannot both win on the same row.
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.UniqueConstraint("quote_number", name="uq_quotes_quote_number"),
        db.CheckConstraint(
            "status IN ('draft', 'sent', 'accepted', 'rejected', 'expired', 'converted')",
            name="ck_quotes_status",
        ),
        db.Index("ix_quotes_status_valid_until", "status", "valid_until"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_number = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_address = db.Column(db.Text, nullable=True)

    quote_date = db.Column(db.DateTime(timezone=True), nullable=False)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=QUOTE_STATUS_DRAFT, index=True)
    notes = db.Column(db.Text, nullable=True)
    terms = db.Column(db.Text, nullable=True)

    # Back-reference set on conversion
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "QuoteItem",
        backref="quote",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="QuoteItem.id",
    )
    sale = db.relationship("Sale", foreign_keys=[sale_id])

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Quote id={self.id} quote_number={self.quote_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "quoteNumber": self.quote_number,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "customerAddress": self.customer_address,
            "quoteDate": to_utc_z(self.quote_date),
            "validUntil": to_utc_z(self.valid_until),
            "subtotal": money_str(self.subtotal),
            "taxRate": money_str(self.tax_rate),
            "taxAmount": money_str(self.tax_amount),
            "discountAmount": money_str(self.discount_amount),
            "total": money_str(self.total),
            "status": self.status,
            "notes": self.notes,
            "terms": self.terms,
            "saleId": self.sale_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class QuoteItem(db.Model):
    __tablename__ = "quote_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_quote_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quoteId": self.quote_id,
            "inventoryId": self.inventory_id,
            "productName": self.product_name,
            "description": self.description,
            "quantity": money_str(self.quantity),
            "unitPrice": money_str(self.unit_price),
            "subtotal": money_str(self.subtotal),
        }
