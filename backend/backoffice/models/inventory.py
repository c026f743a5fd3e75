from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Stocked product.

    current_stock is a cached balance of the item's stock movements and is only
    ever written by the stock ledger service, inside the same transaction that
    appends the movement explaining the change.

    version_id is an optimistic-lock column: a concurrent writer that read a
    stale balance fails its UPDATE with StaleDataError and is retried against
    fresh state.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_inventory_items_stock_non_negative"),
        db.Index("ix_inventory_items_product_name", "product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(50), nullable=False, default="unidades")
    category = db.Column(db.String(100), nullable=True)

    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    initial_stock = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    current_stock = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    reorder_point = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    preferred_supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    preferred_supplier = db.relationship("Supplier", backref=db.backref("preferred_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} product_name={self.product_name!r} current_stock={self.current_stock}>"

    @property
    def needs_reorder(self) -> bool:
        return self.current_stock <= self.reorder_point

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productName": self.product_name,
            "unit": self.unit,
            "category": self.category,
            "purchasePrice": money_str(self.purchase_price),
            "salePrice": money_str(self.sale_price),
            "initialStock": money_str(self.initial_stock),
            "currentStock": money_str(self.current_stock),
            "reorderPoint": money_str(self.reorder_point),
            "preferredSupplierId": self.preferred_supplier_id,
            "needsReorder": self.needs_reorder,
            "versionId": self.version_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only inventory ledger entry.

    INVARIANT: new_stock = previous_stock + quantity for "in",
    previous_stock - quantity for "out", previous_stock for "adjustment".
    Replaying an item's movements in id order from zero reproduces its
    current_stock. Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stock_movements_quantity_magnitude"),
        db.Index("ix_stock_movements_inventory_created", "inventory_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)  # in, out, adjustment

    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    previous_stock = db.Column(db.Numeric(12, 2), nullable=False)
    new_stock = db.Column(db.Numeric(12, 2), nullable=False)

    reason = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(128), nullable=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    inventory_item = db.relationship("InventoryItem", backref=db.backref("movements", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} inventory_id={self.inventory_id} "
            f"{self.movement_type} {self.previous_stock}->{self.new_stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventoryId": self.inventory_id,
            "movementType": self.movement_type,
            "quantity": money_str(self.quantity),
            "previousStock": money_str(self.previous_stock),
            "newStock": money_str(self.new_stock),
            "reason": self.reason,
            "reference": self.reference,
            "createdAt": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    """
    Canonical supplier, keyed by name.

    Purchases reference suppliers by free-text name; the supplier resolver maps
    that name onto one of these rows, creating it on first sight.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_suppliers_name"),
        db.Index("ix_suppliers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Contact information
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contactName": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "isActive": self.is_active,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
        }
