# Overview: Enhanced multi-line purchase transaction (inventory, asset and supply lines).

"""
Purchase Engine

One purchase fans out into per-line side effects, chosen by product_type:

- inventory + is_new_product: new InventoryItem holding the purchased quantity,
  explained by an opening "in" movement
- inventory + inventory_id: stock replenished through the stock ledger
- asset: new depreciable Asset valued at the line total
- supply: Expense posted against the purchase

Everything (supplier creation, header, side effects, lines) is written in one
transaction. A failure on any line rolls back all of it and is reported with
the offending line index and product name.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, DataError

from ..errors import InvalidInput, LedgerError, StorageError, line_context
from ..extensions import db
from ..models import Asset, Expense, InventoryItem, Purchase, PurchaseItem, Supplier
from ..models.purchases import (
    PRODUCT_TYPE_ASSET,
    PRODUCT_TYPE_INVENTORY,
    PRODUCT_TYPE_SUPPLY,
)
from ..money import ZERO, line_total, money_str, quantize
from ..validation import PurchaseLineRequest, PurchaseRequest
from .concurrency import atomic
from .stock_ledger_service import REASON_PURCHASE, apply_stock_delta, record_opening_balance
from .supplier_service import resolve_supplier


DEFAULT_DEPRECIATION_RATE = Decimal("20")


@dataclass
class _LineEffect:
    inventory_id: int | None = None
    asset_id: int | None = None
    expense_id: int | None = None


def _purchase_total(request: PurchaseRequest) -> Decimal:
    total = sum((line_total(line.quantity, line.unit_price) for line in request.items), ZERO)
    if request.total_amount is not None and quantize(request.total_amount) != total:
        raise InvalidInput(
            "totalAmount does not match the sum of the lines",
            {"field": "totalAmount", "expected": money_str(total), "received": money_str(request.total_amount)},
        )
    return total


def _new_inventory_item(purchase: Purchase, supplier: Supplier, line: PurchaseLineRequest) -> _LineEffect:
    item = InventoryItem(
        product_name=line.product,
        unit=line.unit,
        category=line.category,
        purchase_price=line.unit_price,
        sale_price=line.sale_price if line.sale_price is not None else ZERO,
        initial_stock=line.quantity,
        current_stock=line.quantity,
        reorder_point=line.reorder_point if line.reorder_point is not None else ZERO,
        preferred_supplier_id=supplier.id,
    )
    db.session.add(item)
    db.session.flush()
    record_opening_balance(item, line.quantity, REASON_PURCHASE, purchase.reference)
    return _LineEffect(inventory_id=item.id)


def _replenish_inventory(purchase: Purchase, supplier: Supplier, line: PurchaseLineRequest) -> _LineEffect:
    item = apply_stock_delta(line.inventory_id, line.quantity, REASON_PURCHASE, purchase.reference)
    item.preferred_supplier_id = supplier.id
    item.purchase_price = line.unit_price
    if line.sale_price is not None:
        item.sale_price = line.sale_price
    return _LineEffect(inventory_id=item.id)


def _register_asset(purchase: Purchase, supplier: Supplier, line: PurchaseLineRequest) -> _LineEffect:
    value = line_total(line.quantity, line.unit_price)
    asset = Asset(
        asset_name=line.product,
        category=line.category,
        purchase_date=purchase.purchase_date,
        purchase_price=value,
        current_value=value,
        depreciation_rate=line.depreciation_rate if line.depreciation_rate is not None else DEFAULT_DEPRECIATION_RATE,
        useful_life=line.useful_life,
        supplier_id=supplier.id,
        serial_number=line.serial_number,
        location=line.location,
        status="active",
        notes=f"Registered from {purchase.reference}",
    )
    db.session.add(asset)
    db.session.flush()
    return _LineEffect(asset_id=asset.id)


def _post_supply_expense(purchase: Purchase, supplier: Supplier, line: PurchaseLineRequest) -> _LineEffect:
    expense = Expense(
        date=purchase.purchase_date,
        category=line.category,
        description=f"{line.product} ({money_str(line.quantity)} {line.unit})",
        amount=line_total(line.quantity, line.unit_price),
        payment_method=purchase.payment_method,
        supplier_id=supplier.id,
        reference=purchase.reference,
    )
    db.session.add(expense)
    db.session.flush()
    return _LineEffect(expense_id=expense.id)


def _apply_line(purchase: Purchase, supplier: Supplier, line: PurchaseLineRequest) -> _LineEffect:
    if line.product_type == PRODUCT_TYPE_INVENTORY:
        if line.is_new_product:
            return _new_inventory_item(purchase, supplier, line)
        if line.inventory_id is None:
            raise InvalidInput("inventoryId is required for an existing inventory product", {"field": "inventoryId"})
        return _replenish_inventory(purchase, supplier, line)
    if line.product_type == PRODUCT_TYPE_ASSET:
        return _register_asset(purchase, supplier, line)
    if line.product_type == PRODUCT_TYPE_SUPPLY:
        return _post_supply_expense(purchase, supplier, line)
    raise InvalidInput(f"Unknown productType {line.product_type!r}", {"field": "productType"})


def create_enhanced_purchase(request: PurchaseRequest) -> Purchase:
    """
    Record a purchase and all of its per-line effects atomically.

    Raises:
        InvalidInput: malformed line data or mismatching totalAmount
        NotFound: an existing-product line names a missing inventory item
        StorageError: database failure while writing a line
    """
    if not request.items:
        raise InvalidInput("A purchase needs at least one item", {"field": "items"})

    def _op():
        total = _purchase_total(request)
        supplier = resolve_supplier(request.supplier)
        db.session.flush()

        purchase = Purchase(
            purchase_date=request.purchase_date,
            supplier_id=supplier.id,
            supplier_name=request.supplier,
            payment_method=request.payment_method,
            invoice_number=request.invoice_number,
            notes=request.notes,
            total_amount=total,
        )
        db.session.add(purchase)
        db.session.flush()

        for index, line in enumerate(request.items):
            try:
                effect = _apply_line(purchase, supplier, line)
                db.session.add(PurchaseItem(
                    purchase_id=purchase.id,
                    product_name=line.product,
                    unit=line.unit,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_amount=line_total(line.quantity, line.unit_price),
                    category=line.category,
                    product_type=line.product_type,
                    inventory_id=effect.inventory_id,
                    asset_id=effect.asset_id,
                    expense_id=effect.expense_id,
                ))
                db.session.flush()
            except LedgerError as exc:
                exc.details.update(line_context(index, line.product))
                raise
            except (IntegrityError, DataError) as exc:
                raise StorageError(
                    f"Could not record purchase line {index} ({line.product})",
                    {**line_context(index, line.product), "cause": exc.__class__.__name__},
                ) from exc

        return purchase

    return atomic(_op)


def get_purchase(purchase_id: int) -> Purchase | None:
    return db.session.get(Purchase, purchase_id)


def list_purchases(limit: int = 100, offset: int = 0) -> tuple[list[Purchase], int]:
    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    query = db.session.query(Purchase)
    total = query.count()
    rows = (
        query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def get_purchase_stats() -> dict:
    """Purchase count and spend, overall and per product type."""
    count, total = db.session.query(
        func.count(Purchase.id),
        func.coalesce(func.sum(Purchase.total_amount), 0),
    ).one()

    by_type = {
        product_type: {"lines": 0, "amount": money_str(ZERO)}
        for product_type in (PRODUCT_TYPE_INVENTORY, PRODUCT_TYPE_SUPPLY, PRODUCT_TYPE_ASSET)
    }
    rows = (
        db.session.query(
            PurchaseItem.product_type,
            func.count(PurchaseItem.id),
            func.coalesce(func.sum(PurchaseItem.total_amount), 0),
        )
        .group_by(PurchaseItem.product_type)
        .all()
    )
    for product_type, lines, amount in rows:
        by_type[product_type] = {"lines": lines, "amount": money_str(Decimal(amount))}

    return {
        "totalPurchases": count,
        "totalAmount": money_str(Decimal(total)),
        "byProductType": by_type,
    }


def delete_purchase(purchase_id: int) -> bool:
    """
    Delete a purchase header and its lines.

    Inventory, assets and expenses the purchase produced are left in place
    and stock is not reversed. Returns False when the purchase does not exist.
    """
    def _op():
        purchase = db.session.get(Purchase, purchase_id)
        if purchase is None:
            return False
        db.session.delete(purchase)
        return True

    return atomic(_op)
