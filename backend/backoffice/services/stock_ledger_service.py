# Overview: Stock movement ledger; the single lock-and-log path for every stock change.

"""
Stock ledger invariants (authoritative)

- InventoryItem.current_stock is a cached balance. The only code that writes it
  is apply_stock_delta / record_opening_balance below, and each write appends
  exactly one StockMovement in the same transaction.
- Movement type follows the sign of the delta: positive -> "in",
  negative -> "out", zero -> "adjustment". quantity stores the magnitude.
- new_stock = previous_stock + quantity ("in"), previous_stock - quantity
  ("out"), previous_stock ("adjustment").
- Replaying an item's movements in id order from 0 reproduces current_stock.
- current_stock never goes below zero; a decrement that would do so raises
  InsufficientStock and writes nothing.
- Movements are append-only: this module exposes no update or delete.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..errors import InsufficientStock, InvalidInput, NotFound
from ..extensions import db
from ..models import InventoryItem, StockMovement
from ..money import ZERO, money_str, quantize, to_decimal
from .concurrency import atomic, lock_for_update


MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_ADJUSTMENT = "adjustment"

REASON_PURCHASE = "purchase"
REASON_SALE = "sale"
REASON_SALE_CANCELLATION = "sale cancellation"
REASON_SALE_FROM_QUOTE = "sale from quote"
REASON_MANUAL_ADJUSTMENT = "manual adjustment"


def _movement_type(signed_quantity: Decimal) -> str:
    if signed_quantity > 0:
        return MOVEMENT_IN
    if signed_quantity < 0:
        return MOVEMENT_OUT
    return MOVEMENT_ADJUSTMENT


def get_item_for_update(inventory_id: int) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(id=inventory_id).populate_existing()
    item = lock_for_update(query).first()
    if item is None:
        raise NotFound(f"Inventory item {inventory_id} not found", {"inventory_id": inventory_id})
    return item


def apply_stock_delta(
    inventory_id: int,
    signed_quantity: Decimal,
    reason: str,
    reference: str | None = None,
) -> InventoryItem:
    """
    Apply a signed stock change and log it.

    Joins the caller's transaction; nothing is committed here. The item row is
    read with FOR UPDATE so concurrent writers serialize on it.

    Raises:
        NotFound: item does not exist
        InsufficientStock: the change would take current_stock below zero
    """
    signed_quantity = quantize(signed_quantity)
    item = get_item_for_update(inventory_id)

    previous = quantize(Decimal(item.current_stock))
    new = previous + signed_quantity
    if new < 0:
        requested = -signed_quantity
        raise InsufficientStock(
            f"Insufficient stock for {item.product_name}: requested {requested}, "
            f"available {previous}",
            {
                "inventory_id": item.id,
                "product_name": item.product_name,
                "requested": money_str(requested),
                "available": money_str(previous),
                "shortfall": money_str(requested - previous),
            },
        )

    movement = StockMovement(
        inventory_id=item.id,
        movement_type=_movement_type(signed_quantity),
        quantity=abs(signed_quantity),
        previous_stock=previous,
        new_stock=new,
        reason=reason,
        reference=reference,
    )
    db.session.add(movement)
    item.current_stock = new
    db.session.flush()
    return item


def record_opening_balance(
    item: InventoryItem,
    quantity: Decimal,
    reason: str,
    reference: str | None = None,
) -> StockMovement:
    """
    Log the first movement of a freshly created item (previous_stock = 0).

    The item must already carry current_stock = quantity; the movement explains
    that balance so a replay from zero reproduces it.
    """
    quantity = quantize(quantity)
    if quantity < 0:
        raise InvalidInput("Opening stock cannot be negative", {"quantity": money_str(quantity)})

    if item.id is None:
        db.session.flush()

    movement = StockMovement(
        inventory_id=item.id,
        movement_type=_movement_type(quantity),
        quantity=quantity,
        previous_stock=ZERO,
        new_stock=quantity,
        reason=reason,
        reference=reference,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(
    inventory_id: int,
    adjustment,
    reason: str | None = None,
    reference: str | None = None,
) -> InventoryItem:
    """Standalone manual stock adjustment in its own transaction."""
    try:
        delta = to_decimal(adjustment, "adjustment")
    except ValueError as exc:
        raise InvalidInput(str(exc), {"field": "adjustment"})

    def _op():
        return apply_stock_delta(
            inventory_id,
            delta,
            reason or REASON_MANUAL_ADJUSTMENT,
            reference,
        )

    return atomic(_op)


def list_stock_movements(inventory_id: int | None = None, limit: int = 100) -> list[StockMovement]:
    """Most recent movements first, optionally for one item."""
    if limit < 1:
        limit = 1
    if limit > 1000:
        limit = 1000

    query = db.session.query(StockMovement)
    if inventory_id is not None:
        query = query.filter(StockMovement.inventory_id == inventory_id)
    return query.order_by(StockMovement.id.desc()).limit(limit).all()


def get_item_with_movements(inventory_id: int) -> tuple[InventoryItem, list[StockMovement]]:
    item = db.session.get(InventoryItem, inventory_id)
    if item is None:
        raise NotFound(f"Inventory item {inventory_id} not found", {"inventory_id": inventory_id})
    movements = (
        db.session.query(StockMovement)
        .filter_by(inventory_id=inventory_id)
        .order_by(StockMovement.id.asc())
        .all()
    )
    return item, movements


# =============================================================================
# LEDGER VERIFICATION
# =============================================================================

@dataclass
class LedgerDiscrepancy:
    inventory_id: int
    product_name: str
    current_stock: Decimal
    replayed_stock: Decimal
    problems: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "inventoryId": self.inventory_id,
            "productName": self.product_name,
            "currentStock": money_str(self.current_stock),
            "replayedStock": money_str(self.replayed_stock),
            "problems": list(self.problems),
        }


def _replay(item: InventoryItem, movements: list[StockMovement]) -> LedgerDiscrepancy | None:
    balance = ZERO
    problems: list[str] = []

    for movement in movements:
        previous = quantize(Decimal(movement.previous_stock))
        quantity = quantize(Decimal(movement.quantity))
        new = quantize(Decimal(movement.new_stock))

        if previous != balance:
            problems.append(
                f"movement {movement.id}: previous_stock {previous} does not continue balance {balance}"
            )

        if movement.movement_type == MOVEMENT_IN:
            expected = previous + quantity
        elif movement.movement_type == MOVEMENT_OUT:
            expected = previous - quantity
        elif movement.movement_type == MOVEMENT_ADJUSTMENT:
            expected = previous
        else:
            problems.append(f"movement {movement.id}: unknown movement_type {movement.movement_type!r}")
            expected = new

        if expected != new:
            problems.append(
                f"movement {movement.id}: new_stock {new} != expected {expected}"
            )
        balance = new

    current = quantize(Decimal(item.current_stock))
    if balance != current:
        problems.append(f"replayed balance {balance} != current_stock {current}")

    if not problems:
        return None
    return LedgerDiscrepancy(
        inventory_id=item.id,
        product_name=item.product_name,
        current_stock=current,
        replayed_stock=balance,
        problems=problems,
    )


def verify_stock_ledger(inventory_id: int | None = None) -> list[LedgerDiscrepancy]:
    """
    Replay every item's movements from zero and report items that disagree
    with their cached current_stock or whose movements break the chain.

    Empty list means the ledger is consistent.
    """
    query = db.session.query(InventoryItem)
    if inventory_id is not None:
        query = query.filter(InventoryItem.id == inventory_id)

    discrepancies: list[LedgerDiscrepancy] = []
    for item in query.order_by(InventoryItem.id.asc()).all():
        movements = (
            db.session.query(StockMovement)
            .filter_by(inventory_id=item.id)
            .order_by(StockMovement.id.asc())
            .all()
        )
        found = _replay(item, movements)
        if found is not None:
            discrepancies.append(found)
    return discrepancies
