from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


PRODUCT_TYPE_INVENTORY = "inventory"
PRODUCT_TYPE_SUPPLY = "supply"
PRODUCT_TYPE_ASSET = "asset"
PRODUCT_TYPES = (PRODUCT_TYPE_INVENTORY, PRODUCT_TYPE_SUPPLY, PRODUCT_TYPE_ASSET)

ASSET_STATUSES = ("active", "maintenance", "depreciated", "disposed")


class Purchase(db.Model):
    """
    Multi-line purchase document.

    Header and lines are written in one transaction together with whatever
    inventory items, assets and expenses the lines produced. Deleting a purchase
    removes only the header and its lines.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_date", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    # Name as typed on the purchase, kept even if the supplier is renamed later
    supplier_name = db.Column(db.String(255), nullable=False)

    payment_method = db.Column(db.String(50), nullable=False)
    invoice_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    items = db.relationship(
        "PurchaseItem",
        backref="purchase",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )

    @property
    def reference(self) -> str:
        return f"purchase:{self.id}"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "purchaseDate": to_utc_z(self.purchase_date),
            "supplierId": self.supplier_id,
            "supplier": self.supplier_name,
            "paymentMethod": self.payment_method,
            "invoiceNumber": self.invoice_number,
            "notes": self.notes,
            "totalAmount": money_str(self.total_amount),
            "createdAt": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """
    One purchase line. product_type records which branch produced its side
    effect; exactly one of inventory_id / asset_id / expense_id is set.
    """
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint(
            "product_type IN ('inventory', 'supply', 'asset')",
            name="ck_purchase_items_product_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(50), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    category = db.Column(db.String(100), nullable=False)

    product_type = db.Column(db.String(16), nullable=False, index=True)

    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)
    asset_id = db.Column(db.Integer, db.ForeignKey("assets.id"), nullable=True, index=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchaseId": self.purchase_id,
            "product": self.product_name,
            "unit": self.unit,
            "quantity": money_str(self.quantity),
            "unitPrice": money_str(self.unit_price),
            "totalAmount": money_str(self.total_amount),
            "category": self.category,
            "productType": self.product_type,
            "inventoryId": self.inventory_id,
            "assetId": self.asset_id,
            "expenseId": self.expense_id,
        }


class Asset(db.Model):
    """Depreciable fixed asset registered by an asset purchase line."""
    __tablename__ = "assets"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('active', 'maintenance', 'depreciated', 'disposed')",
            name="ck_assets_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    asset_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100), nullable=False)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)
    purchase_price = db.Column(db.Numeric(12, 2), nullable=False)
    # Recomputed from depreciation_rate outside the purchase transaction
    current_value = db.Column(db.Numeric(12, 2), nullable=False)
    depreciation_rate = db.Column(db.Numeric(5, 2), nullable=False, default=20)  # annual %
    useful_life = db.Column(db.Integer, nullable=True)  # years

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    serial_number = db.Column(db.String(128), nullable=True)
    location = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("assets", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "assetName": self.asset_name,
            "category": self.category,
            "purchaseDate": to_utc_z(self.purchase_date),
            "purchasePrice": money_str(self.purchase_price),
            "currentValue": money_str(self.current_value),
            "depreciationRate": money_str(self.depreciation_rate),
            "usefulLife": self.useful_life,
            "supplierId": self.supplier_id,
            "serialNumber": self.serial_number,
            "location": self.location,
            "status": self.status,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """Operational expense; supply purchase lines post here instead of to stock."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_category_date", "category", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(50), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    # Originating document, e.g. "purchase:12"
    reference = db.Column(db.String(128), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "category": self.category,
            "description": self.description,
            "amount": money_str(self.amount),
            "paymentMethod": self.payment_method,
            "supplierId": self.supplier_id,
            "reference": self.reference,
            "createdAt": to_utc_z(self.created_at),
        }
