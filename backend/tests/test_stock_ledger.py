# Overview: Pytest coverage for the stock movement ledger.

"""
Stock Ledger Tests

Every change to InventoryItem.current_stock is explained by exactly one
StockMovement, and replaying an item's movements from zero reproduces its
current stock.
"""

from decimal import Decimal

import pytest

from backoffice.errors import InsufficientStock, InvalidInput, NotFound
from backoffice.models import InventoryItem, StockMovement
from backoffice.services import stock_ledger_service
from backoffice.services.stock_ledger_service import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    REASON_MANUAL_ADJUSTMENT,
)


def _movements(db_session, item_id):
    return (
        db_session.query(StockMovement)
        .filter_by(inventory_id=item_id)
        .order_by(StockMovement.id.asc())
        .all()
    )


class TestApplyStockDelta:
    def test_opening_balance_is_logged(self, db_session, make_item):
        item = make_item(stock="10")
        movements = _movements(db_session, item.id)

        assert len(movements) == 1
        assert movements[0].movement_type == MOVEMENT_IN
        assert movements[0].previous_stock == Decimal("0")
        assert movements[0].new_stock == Decimal("10")

    def test_decrement_logs_out_movement(self, db_session, make_item):
        item = make_item(stock="10")

        stock_ledger_service.adjust_stock(item.id, "-4", reason="breakage")

        db_session.expire_all()
        assert db_session.get(InventoryItem, item.id).current_stock == Decimal("6")
        last = _movements(db_session, item.id)[-1]
        assert last.movement_type == MOVEMENT_OUT
        assert last.quantity == Decimal("4")
        assert last.previous_stock == Decimal("10")
        assert last.new_stock == Decimal("6")
        assert last.reason == "breakage"

    def test_zero_adjustment_is_logged_as_adjustment(self, db_session, make_item):
        item = make_item(stock="3")

        stock_ledger_service.adjust_stock(item.id, "0")

        last = _movements(db_session, item.id)[-1]
        assert last.movement_type == MOVEMENT_ADJUSTMENT
        assert last.previous_stock == last.new_stock == Decimal("3")
        assert last.reason == REASON_MANUAL_ADJUSTMENT

    def test_decrement_below_zero_is_rejected_and_writes_nothing(self, db_session, make_item):
        item = make_item(product_name="Rebar 3/8", stock="2")

        with pytest.raises(InsufficientStock) as exc_info:
            stock_ledger_service.adjust_stock(item.id, "-5")

        details = exc_info.value.details
        assert details["product_name"] == "Rebar 3/8"
        assert details["available"] == "2.00"
        assert details["shortfall"] == "3.00"

        db_session.expire_all()
        assert db_session.get(InventoryItem, item.id).current_stock == Decimal("2")
        assert len(_movements(db_session, item.id)) == 1

    def test_missing_item(self, db_session):
        with pytest.raises(NotFound):
            stock_ledger_service.adjust_stock(9999, "1")

    def test_non_numeric_adjustment(self, db_session, make_item):
        item = make_item()
        with pytest.raises(InvalidInput):
            stock_ledger_service.adjust_stock(item.id, "lots")

    def test_fractional_quantities_stay_exact(self, db_session, make_item):
        item = make_item(stock="1.10")

        stock_ledger_service.adjust_stock(item.id, "0.20")
        stock_ledger_service.adjust_stock(item.id, "-0.30")

        db_session.expire_all()
        assert db_session.get(InventoryItem, item.id).current_stock == Decimal("1.00")


class TestLedgerVerification:
    def test_replay_reproduces_current_stock(self, db_session, make_item):
        item = make_item(stock="10")
        for delta in ("5", "-3", "-7", "2.5"):
            stock_ledger_service.adjust_stock(item.id, delta)

        assert stock_ledger_service.verify_stock_ledger() == []

        db_session.expire_all()
        balance = Decimal("0")
        for movement in _movements(db_session, item.id):
            assert movement.previous_stock == balance
            balance = Decimal(movement.new_stock)
        assert balance == db_session.get(InventoryItem, item.id).current_stock

    def test_detects_stock_written_outside_the_ledger(self, db_session, make_item):
        item = make_item(stock="10")
        db_session.query(InventoryItem).filter_by(id=item.id).update({"current_stock": Decimal("12")})
        db_session.commit()

        found = stock_ledger_service.verify_stock_ledger(item.id)

        assert len(found) == 1
        assert found[0].inventory_id == item.id
        assert found[0].replayed_stock == Decimal("10.00")
        assert found[0].current_stock == Decimal("12.00")


class TestMovementQueries:
    def test_list_is_newest_first_and_filterable(self, db_session, make_item):
        first = make_item(product_name="Sand", stock="5")
        second = make_item(product_name="Gravel", stock="5")
        stock_ledger_service.adjust_stock(first.id, "1")

        all_movements = stock_ledger_service.list_stock_movements()
        assert [m.inventory_id for m in all_movements] == [first.id, second.id, first.id]

        only_second = stock_ledger_service.list_stock_movements(inventory_id=second.id)
        assert len(only_second) == 1

    def test_item_with_movements(self, db_session, make_item):
        item = make_item(stock="4")
        stock_ledger_service.adjust_stock(item.id, "-1")

        loaded, movements = stock_ledger_service.get_item_with_movements(item.id)

        assert loaded.id == item.id
        assert [m.new_stock for m in movements] == [Decimal("4"), Decimal("3")]


class TestWriteTransactions:
    def test_write_after_reads_in_the_same_session(self, db_session, make_item):
        item = make_item(stock="10")
        db_session.query(InventoryItem).count()
        assert db_session().in_transaction()

        stock_ledger_service.adjust_stock(item.id, "-4", reason="breakage")

        db_session.expire_all()
        assert db_session.get(InventoryItem, item.id).current_stock == Decimal("6")
        assert stock_ledger_service.verify_stock_ledger(item.id) == []

    def test_write_on_an_idle_session(self, db_session, make_item):
        item = make_item(stock="3")
        db_session.commit()
        assert not db_session().in_transaction()

        stock_ledger_service.adjust_stock(item.id, "2")

        db_session.expire_all()
        assert db_session.get(InventoryItem, item.id).current_stock == Decimal("5")
