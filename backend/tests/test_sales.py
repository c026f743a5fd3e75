# Overview: Pytest coverage for sales, sale deletion and sale numbering.

"""
Sale Engine Tests

Properties:
- Sale/stock atomicity: a sale with any line over available stock leaves
  every line's stock unchanged.
- Sale reversibility: deleting a sale restores every touched item.
- Sale numbers are V{YYYY}{MM}{seq:04d} and increase per sale.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from backoffice.errors import InsufficientStock, InvalidInput, NotFound
from backoffice.models import InventoryItem, Sale, SaleItem, StockMovement
from backoffice.services import document_service, sales_service, stock_ledger_service
from backoffice.services.stock_ledger_service import REASON_SALE, REASON_SALE_CANCELLATION
from backoffice.services.concurrency import atomic
from backoffice.time_utils import utcnow
from backoffice.validation import SaleLineRequest
from factories import sale_line, sale_request


def _stock(db_session, item_id):
    db_session.expire_all()
    return db_session.get(InventoryItem, item_id).current_stock


class TestCreateSale:
    def test_sale_decrements_stock_and_logs_out_movement(self, db_session, make_item):
        item = make_item(stock="10", sale_price="12.50")

        sale = sales_service.create_sale(sale_request(sale_line(item, "4")))

        assert _stock(db_session, item.id) == Decimal("6")
        movement = (
            db_session.query(StockMovement)
            .filter_by(inventory_id=item.id)
            .order_by(StockMovement.id.desc())
            .first()
        )
        assert movement.movement_type == "out"
        assert movement.previous_stock == Decimal("10")
        assert movement.new_stock == Decimal("6")
        assert movement.reason == REASON_SALE
        assert movement.reference == sale.sale_number

    def test_totals(self, db_session, make_item):
        item = make_item(stock="10", sale_price="12.50")

        sale = sales_service.create_sale(
            sale_request(sale_line(item, "4"), tax_rate="16", discount_amount="5")
        )

        assert sale.subtotal == Decimal("50.00")
        assert sale.tax_amount == Decimal("8.00")
        assert sale.total == Decimal("53.00")
        assert db_session.query(SaleItem).filter_by(sale_id=sale.id).one().subtotal == Decimal("50.00")

    def test_insufficient_stock_on_any_line_changes_nothing(self, db_session, make_item):
        cement = make_item(product_name="Cement", stock="10")
        rebar = make_item(product_name="Rebar", stock="3")

        with pytest.raises(InsufficientStock) as exc_info:
            sales_service.create_sale(sale_request(sale_line(cement, "4"), sale_line(rebar, "5")))

        details = exc_info.value.details
        assert details["product_name"] == "Rebar"
        assert details["line_index"] == 1
        assert details["shortfall"] == "2.00"

        assert _stock(db_session, cement.id) == Decimal("10")
        assert _stock(db_session, rebar.id) == Decimal("3")
        assert db_session.query(Sale).count() == 0
        assert db_session.query(StockMovement).count() == 2

    def test_repeated_item_is_checked_against_summed_quantity(self, db_session, make_item):
        item = make_item(stock="5")

        with pytest.raises(InsufficientStock):
            sales_service.create_sale(sale_request(sale_line(item, "3"), sale_line(item, "3")))

        assert _stock(db_session, item.id) == Decimal("5")

    def test_missing_item(self, db_session):
        line = SaleLineRequest(
            inventory_id=777, product_name="Ghost", quantity=Decimal("1"), unit_price=Decimal("1.00")
        )
        with pytest.raises(NotFound):
            sales_service.create_sale(sale_request(line))

    def test_line_subtotal_must_match(self, db_session, make_item):
        item = make_item(stock="10", sale_price="12.50")
        bad = replace(sale_line(item, "2"), subtotal=Decimal("30.00"))

        with pytest.raises(InvalidInput):
            sales_service.create_sale(sale_request(bad))

        assert _stock(db_session, item.id) == Decimal("10")

    def test_discount_larger_than_total_is_rejected(self, db_session, make_item):
        item = make_item(stock="10", sale_price="1.00")
        with pytest.raises(InvalidInput):
            sales_service.create_sale(sale_request(sale_line(item, "1"), discount_amount="2"))


class TestDeleteSale:
    def test_example_scenario(self, db_session, make_item):
        """stock 10 -> sell 4 -> sell 7 fails -> delete first sale -> stock 10."""
        item = make_item(stock="10")

        first = sales_service.create_sale(sale_request(sale_line(item, "4")))
        first_id, first_number = first.id, first.sale_number
        assert _stock(db_session, item.id) == Decimal("6")

        with pytest.raises(InsufficientStock):
            sales_service.create_sale(sale_request(sale_line(item, "7")))
        assert _stock(db_session, item.id) == Decimal("6")

        snapshot = sales_service.delete_sale(first_id)
        assert snapshot["saleNumber"] == first_number

        assert _stock(db_session, item.id) == Decimal("10")
        restore = (
            db_session.query(StockMovement)
            .filter_by(inventory_id=item.id)
            .order_by(StockMovement.id.desc())
            .first()
        )
        assert restore.movement_type == "in"
        assert restore.previous_stock == Decimal("6")
        assert restore.new_stock == Decimal("10")
        assert restore.reason == REASON_SALE_CANCELLATION
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert stock_ledger_service.verify_stock_ledger() == []

    def test_multi_line_sale_is_fully_reversed(self, db_session, make_item):
        items = [make_item(product_name=f"Item {n}", stock="8") for n in range(3)]

        sale = sales_service.create_sale(
            sale_request(*(sale_line(item, str(n + 1)) for n, item in enumerate(items)))
        )
        sales_service.delete_sale(sale.id)

        for item in items:
            assert _stock(db_session, item.id) == Decimal("8")

    def test_delete_missing_sale(self, db_session):
        with pytest.raises(NotFound):
            sales_service.delete_sale(12345)


class TestSaleNumbers:
    def test_numbers_follow_the_monthly_sequence(self, db_session, make_item):
        item = make_item(stock="10")
        period = utcnow().strftime("%Y%m")

        preview = sales_service.preview_sale_number()
        first = sales_service.create_sale(sale_request(sale_line(item, "1")))
        second = sales_service.create_sale(sale_request(sale_line(item, "1")))

        assert preview == f"V{period}0001"
        assert first.sale_number == f"V{period}0001"
        assert second.sale_number == f"V{period}0002"
        assert sales_service.preview_sale_number() == f"V{period}0003"

    def test_failed_sale_does_not_consume_a_number(self, db_session, make_item):
        item = make_item(stock="1")
        period = utcnow().strftime("%Y%m")

        with pytest.raises(InsufficientStock):
            sales_service.create_sale(sale_request(sale_line(item, "2")))
        sale = sales_service.create_sale(sale_request(sale_line(item, "1")))

        assert sale.sale_number == f"V{period}0001"

    def test_fallback_number_when_sequence_is_unavailable(self, db_session, make_item, monkeypatch):
        item = make_item(stock="5")

        def broken(document_type, period):
            raise document_service.DocumentSequenceError("sequence table locked")

        monkeypatch.setattr(document_service, "allocate_number", broken)
        sale = sales_service.create_sale(sale_request(sale_line(item, "1")))

        period = utcnow().strftime("%Y%m")
        assert sale.sale_number.startswith(f"V{period}-")
        assert len(sale.sale_number) == len(f"V{period}-") + 6
        assert _stock(db_session, item.id) == Decimal("4")

    def test_document_numbers_per_type(self, db_session):
        now = utcnow()
        atomic(lambda: document_service.next_quote_number(now))
        invoice_number = atomic(lambda: document_service.next_invoice_number(now))

        assert invoice_number == f"{now.year:04d}-{now.month:02d}-001"
        assert atomic(lambda: document_service.next_quote_number(now)) == f"COT{now.year:04d}{now.month:02d}0002"
