# Overview: Sale transaction and its inverse (sale deletion restores stock).

"""
Sale Engine

DESIGN PRINCIPLES:
- A sale and the stock decrements of its lines commit together or not at all.
- Stock for every line is checked (repeated items aggregated) before any
  decrement, so an insufficient line never leaves earlier lines decremented.
- Items are locked in inventory_id order to keep lock acquisition consistent
  across concurrent sales.
- Deleting a sale is the exact inverse: every line's quantity goes back
  through the stock ledger before the sale rows are removed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from ..errors import InsufficientStock, InvalidInput, LedgerError, NotFound, line_context
from ..extensions import db
from ..models import InventoryItem, Quote, Sale, SaleItem
from ..money import ZERO, line_total, money_str, percent_of, quantize
from ..validation import SaleRequest
from .concurrency import atomic
from .document_service import next_sale_number, preview_sale_number as _preview_sale_number
from .stock_ledger_service import (
    REASON_SALE,
    REASON_SALE_CANCELLATION,
    apply_stock_delta,
    get_item_for_update,
)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def compute_totals(lines: Iterable, tax_rate: Decimal, discount_amount: Decimal) -> Totals:
    """
    Header totals from line quantities and prices.

    Each line's subtotal, when supplied, must equal quantity x unit_price.
    total = subtotal + subtotal x tax_rate% - discount_amount, never negative.
    """
    subtotal = ZERO
    for index, line in enumerate(lines):
        expected = line_total(line.quantity, line.unit_price)
        supplied = getattr(line, "subtotal", None)
        if supplied is not None and quantize(supplied) != expected:
            raise InvalidInput(
                f"Line subtotal for {line.product_name} does not match quantity x unit price",
                {
                    **line_context(index, line.product_name),
                    "field": "subtotal",
                    "expected": money_str(expected),
                    "received": money_str(supplied),
                },
            )
        subtotal += expected

    tax_rate = quantize(tax_rate)
    discount_amount = quantize(discount_amount)
    if tax_rate < 0:
        raise InvalidInput("taxRate cannot be negative", {"field": "taxRate"})
    if discount_amount < 0:
        raise InvalidInput("discountAmount cannot be negative", {"field": "discountAmount"})

    tax_amount = percent_of(subtotal, tax_rate)
    total = subtotal + tax_amount - discount_amount
    if total < 0:
        raise InvalidInput(
            "Discount exceeds the sale amount",
            {"field": "discountAmount", "subtotal": money_str(subtotal), "taxAmount": money_str(tax_amount)},
        )
    return Totals(subtotal=subtotal, tax_amount=tax_amount, total=total)


def check_stock(lines: list) -> dict[int, InventoryItem]:
    """
    Lock every referenced item and verify it covers the requested quantity.

    Repeated items are checked against their summed quantity. Raises NotFound
    or InsufficientStock before anything is decremented.
    """
    needed: dict[int, Decimal] = {}
    first_line: dict[int, int] = {}
    for index, line in enumerate(lines):
        needed[line.inventory_id] = needed.get(line.inventory_id, ZERO) + quantize(line.quantity)
        first_line.setdefault(line.inventory_id, index)

    items: dict[int, InventoryItem] = {}
    for inventory_id in sorted(needed):
        index = first_line[inventory_id]
        try:
            item = get_item_for_update(inventory_id)
        except NotFound as exc:
            exc.details.update(line_context(index, lines[index].product_name))
            raise

        available = quantize(Decimal(item.current_stock))
        requested = needed[inventory_id]
        if available < requested:
            raise InsufficientStock(
                f"Insufficient stock for {item.product_name}: requested {requested}, "
                f"available {available}, short {requested - available}",
                {
                    **line_context(index, item.product_name),
                    "inventory_id": inventory_id,
                    "requested": money_str(requested),
                    "available": money_str(available),
                    "shortfall": money_str(requested - available),
                },
            )
        items[inventory_id] = item
    return items


def record_sale(
    *,
    sale_number: str,
    customer_name: str,
    sale_date: datetime,
    payment_method: str,
    lines: list,
    tax_rate: Decimal,
    discount_amount: Decimal,
    reason: str,
    customer_email: str | None = None,
    customer_phone: str | None = None,
    notes: str | None = None,
    quote_id: int | None = None,
) -> Sale:
    """
    Write a sale header, its items and their stock decrements.

    Joins the caller's transaction. lines need inventory_id, product_name,
    quantity and unit_price (and optionally subtotal).
    """
    if not lines:
        raise InvalidInput("A sale needs at least one item", {"field": "items"})

    totals = compute_totals(lines, tax_rate, discount_amount)
    check_stock(lines)

    sale = Sale(
        sale_number=sale_number,
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        sale_date=sale_date,
        payment_method=payment_method,
        subtotal=totals.subtotal,
        tax_rate=quantize(tax_rate),
        tax_amount=totals.tax_amount,
        discount_amount=quantize(discount_amount),
        total=totals.total,
        notes=notes,
        quote_id=quote_id,
    )
    db.session.add(sale)
    db.session.flush()

    for index, line in enumerate(lines):
        quantity = quantize(line.quantity)
        db.session.add(SaleItem(
            sale_id=sale.id,
            inventory_id=line.inventory_id,
            product_name=line.product_name,
            quantity=quantity,
            unit_price=quantize(line.unit_price),
            subtotal=line_total(quantity, line.unit_price),
        ))
        try:
            apply_stock_delta(line.inventory_id, -quantity, reason, sale_number)
        except LedgerError as exc:
            exc.details.update(line_context(index, line.product_name))
            raise

    db.session.flush()
    return sale


def create_sale(request: SaleRequest) -> Sale:
    """
    Create a sale and decrement stock for every line in one transaction.

    Raises:
        InvalidInput: bad totals or line subtotals
        NotFound: a line references a missing inventory item
        InsufficientStock: any line exceeds available stock (nothing decremented)
    """
    def _op():
        sale_number = next_sale_number()
        return record_sale(
            sale_number=sale_number,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
            sale_date=request.sale_date,
            payment_method=request.payment_method,
            lines=list(request.items),
            tax_rate=request.tax_rate,
            discount_amount=request.discount_amount,
            notes=request.notes,
            reason=REASON_SALE,
        )

    return atomic(_op)


def delete_sale(sale_id: int) -> dict:
    """
    Delete a sale and restore the stock of every line.

    A quote converted into this sale stays "converted" but loses its sale_id.
    Returns the deleted sale as serialized just before deletion.
    """
    def _op():
        sale = db.session.get(Sale, sale_id)
        if sale is None:
            raise NotFound(f"Sale {sale_id} not found", {"sale_id": sale_id})

        items = sorted(sale.items, key=lambda i: (i.inventory_id, i.id))
        for item in items:
            apply_stock_delta(
                item.inventory_id,
                quantize(Decimal(item.quantity)),
                REASON_SALE_CANCELLATION,
                sale.sale_number,
            )

        db.session.query(Quote).filter(Quote.sale_id == sale.id).update(
            {Quote.sale_id: None, Quote.version_id: Quote.version_id + 1},
            synchronize_session=False,
        )

        snapshot = sale.to_dict()
        db.session.delete(sale)
        db.session.flush()
        return snapshot

    return atomic(_op)


def get_sale(sale_id: int) -> Sale | None:
    return db.session.get(Sale, sale_id)


def list_sales(limit: int = 100, offset: int = 0) -> tuple[list[Sale], int]:
    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    query = db.session.query(Sale)
    total = query.count()
    rows = query.order_by(Sale.sale_date.desc(), Sale.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def preview_sale_number() -> str:
    return _preview_sale_number()
