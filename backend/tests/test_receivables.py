# Overview: Pytest coverage for invoices, payments, overdue marking and aging.

"""
Receivables Engine Tests

- balance_due always equals total minus the payments on record.
- Overpayments and non-positive payments are rejected without side effects.
- Deleting a payment recomputes the balance from the remaining payments.
- The overdue sweep is idempotent.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from backoffice.errors import InvalidAmount, InvalidInput, NotFound
from backoffice.models import Invoice, InvoicePayment
from backoffice.services import receivables_service
from backoffice.services.receivables_service import derive_payment_status
from backoffice.services.scheduler_service import OverdueSweeper
from backoffice.time_utils import utcnow
from backoffice.validation import InvoiceLineRequest, InvoiceRequest, PaymentRequest


BASE = datetime(2026, 1, 5, 10, 0)


def _pay(invoice_id, amount, method="transfer"):
    return receivables_service.apply_payment(
        PaymentRequest(
            invoice_id=invoice_id,
            payment_amount=Decimal(amount),
            payment_date=None,
            payment_method=method,
        )
    )


def _invoice(db_session, invoice_id):
    db_session.expire_all()
    return db_session.get(Invoice, invoice_id)


class TestDerivePaymentStatus:
    @pytest.mark.parametrize("balance, paid, due_offset, expected", [
        ("0", "100", -5, "paid"),
        ("40", "60", -5, "partial"),
        ("40", "60", 5, "partial"),
        ("100", "0", -5, "overdue"),
        ("100", "0", 5, "pending"),
    ])
    def test_status_rules(self, balance, paid, due_offset, expected):
        due = BASE + timedelta(days=due_offset)
        assert derive_payment_status(Decimal(balance), Decimal(paid), due, now=BASE) == expected


class TestCreateInvoice:
    def test_balance_starts_at_total(self, db_session, make_invoice):
        invoice = make_invoice(total="1000.00")

        assert invoice.total == Decimal("1000.00")
        assert invoice.balance_due == Decimal("1000.00")
        assert invoice.payment_status == "pending"
        assert len(invoice.items) == 1

    def test_invoice_numbers_follow_the_monthly_sequence(self, db_session, make_invoice):
        first = make_invoice(issue_date=BASE)
        second = make_invoice(issue_date=BASE)

        assert first.invoice_number == "2026-01-001"
        assert second.invoice_number == "2026-01-002"

    def test_tax_and_discount(self, db_session):
        invoice = receivables_service.create_invoice(
            InvoiceRequest(
                client_name="Acme Builders",
                issue_date=BASE,
                due_date=BASE + timedelta(days=30),
                items=(
                    InvoiceLineRequest(description="Labour", quantity=Decimal("3"), unit_price=Decimal("100.00")),
                    InvoiceLineRequest(description="Materials", quantity=Decimal("1"), unit_price=Decimal("200.00")),
                ),
                tax_rate=Decimal("16"),
                discount_amount=Decimal("30"),
            ),
            now=BASE,
        )

        assert invoice.subtotal == Decimal("500.00")
        assert invoice.tax_amount == Decimal("80.00")
        assert invoice.total == Decimal("550.00")
        assert invoice.balance_due == Decimal("550.00")

    def test_due_date_before_issue_date(self, db_session):
        with pytest.raises(InvalidInput):
            receivables_service.create_invoice(
                InvoiceRequest(
                    client_name="Acme Builders",
                    issue_date=BASE,
                    due_date=BASE - timedelta(days=1),
                    items=(InvoiceLineRequest(description="x", quantity=Decimal("1"), unit_price=Decimal("1")),),
                ),
                now=BASE,
            )
        assert db_session.query(Invoice).count() == 0


class TestPayments:
    def test_example_scenario(self, db_session, make_invoice):
        """1000 invoice -> pay 400 -> pay 600 -> delete the 600 payment."""
        invoice = make_invoice(total="1000.00")
        invoice_id = invoice.id

        _pay(invoice_id, "400")
        invoice = _invoice(db_session, invoice_id)
        assert invoice.balance_due == Decimal("600.00")
        assert invoice.payment_status == "partial"

        second = _pay(invoice_id, "600")
        second_id = second.id
        invoice = _invoice(db_session, invoice_id)
        assert invoice.balance_due == Decimal("0.00")
        assert invoice.payment_status == "paid"

        receivables_service.delete_invoice_payment(second_id)
        invoice = _invoice(db_session, invoice_id)
        assert invoice.balance_due == Decimal("600.00")
        assert invoice.payment_status == "partial"
        assert db_session.query(InvoicePayment).count() == 1

    def test_deleting_every_payment_restores_pending(self, db_session, make_invoice):
        invoice = make_invoice(total="250.00")
        invoice_id = invoice.id
        payment_id = _pay(invoice_id, "100").id

        receivables_service.delete_invoice_payment(payment_id)

        invoice = _invoice(db_session, invoice_id)
        assert invoice.balance_due == Decimal("250.00")
        assert invoice.payment_status == "pending"

    def test_overpayment_is_rejected(self, db_session, make_invoice):
        invoice = make_invoice(total="1000.00")
        invoice_id = invoice.id
        _pay(invoice_id, "400")

        with pytest.raises(InvalidAmount) as exc_info:
            _pay(invoice_id, "600.01")

        assert exc_info.value.details["balance_due"] == "600.00"
        invoice = _invoice(db_session, invoice_id)
        assert invoice.balance_due == Decimal("600.00")
        assert db_session.query(InvoicePayment).count() == 1

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_payment_is_rejected(self, db_session, make_invoice, amount):
        invoice = make_invoice(total="100.00")
        invoice_id = invoice.id

        with pytest.raises(InvalidAmount):
            _pay(invoice_id, amount)

        assert _invoice(db_session, invoice_id).balance_due == Decimal("100.00")
        assert db_session.query(InvoicePayment).count() == 0

    def test_fully_paid_invoice_accepts_nothing_more(self, db_session, make_invoice):
        invoice = make_invoice(total="50.00")
        invoice_id = invoice.id
        _pay(invoice_id, "50")

        with pytest.raises(InvalidAmount):
            _pay(invoice_id, "0.01")

    def test_missing_invoice_and_payment(self, db_session):
        with pytest.raises(NotFound):
            _pay(999, "10")
        with pytest.raises(NotFound):
            receivables_service.delete_invoice_payment(999)

    def test_balance_matches_payment_history(self, db_session, make_invoice):
        invoice = make_invoice(total="300.00")
        invoice_id = invoice.id
        for amount in ("10.10", "20.20", "30.30"):
            _pay(invoice_id, amount)

        invoice, payments = receivables_service.get_invoice_with_payments(invoice_id)

        paid = sum(Decimal(p.payment_amount) for p in payments)
        assert Decimal(invoice.total) - paid == invoice.balance_due == Decimal("239.40")


class TestOverdue:
    def test_mark_overdue_is_idempotent(self, db_session, make_invoice):
        late = make_invoice(total="100.00", issue_date=BASE, due_in_days=10)
        on_time = make_invoice(total="100.00", issue_date=BASE, due_in_days=60)
        paid = make_invoice(total="100.00", issue_date=BASE, due_in_days=10)
        late_id, on_time_id, paid_id = late.id, on_time.id, paid.id
        _pay(paid_id, "100")

        now = BASE + timedelta(days=30)
        assert receivables_service.mark_overdue_invoices(now) == 1
        assert receivables_service.mark_overdue_invoices(now) == 0

        assert _invoice(db_session, late_id).payment_status == "overdue"
        assert _invoice(db_session, on_time_id).payment_status == "pending"
        assert _invoice(db_session, paid_id).payment_status == "paid"

    def test_payment_on_overdue_invoice(self, db_session, make_invoice):
        invoice = make_invoice(total="100.00", issue_date=BASE, due_in_days=10)
        invoice_id = invoice.id
        receivables_service.mark_overdue_invoices(BASE + timedelta(days=30))

        _pay(invoice_id, "40")

        assert _invoice(db_session, invoice_id).payment_status == "partial"

    def test_overdue_listing_includes_unflagged_invoices(self, db_session, make_invoice):
        make_invoice(total="100.00", issue_date=BASE, due_in_days=10)
        make_invoice(total="100.00", issue_date=BASE, due_in_days=90)

        overdue = receivables_service.list_overdue_invoices(BASE + timedelta(days=30))

        assert len(overdue) == 1
        assert len(receivables_service.list_pending_invoices()) == 2

    def test_overdue_sweeper_execute_once(self, app, db_session, make_invoice):
        invoice = make_invoice(total="100.00", issue_date=BASE, due_in_days=1)
        invoice_id = invoice.id
        sweeper = OverdueSweeper(app, interval_hours=1)

        assert sweeper.execute_once(now=BASE + timedelta(days=2)) == 1
        assert sweeper.last_result == 1
        assert _invoice(db_session, invoice_id).payment_status == "overdue"


class TestReports:
    def test_aging_buckets(self, db_session, make_invoice):
        make_invoice(total="100.00", issue_date=BASE, due_in_days=100)
        make_invoice(total="200.00", issue_date=BASE, due_in_days=70)
        make_invoice(total="300.00", issue_date=BASE, due_in_days=40)
        make_invoice(total="400.00", issue_date=BASE, due_in_days=0)
        make_invoice(total="500.00", issue_date=BASE, due_in_days=200)

        report = receivables_service.get_aging_report(BASE + timedelta(days=120))

        assert report.to_dict() == {
            "current": "600.00",
            "days30to60": "200.00",
            "days61to90": "300.00",
            "over90days": "400.00",
        }

    def test_paid_invoices_are_not_aged(self, db_session, make_invoice):
        invoice = make_invoice(total="100.00", issue_date=BASE, due_in_days=0)
        _pay(invoice.id, "100")

        report = receivables_service.get_aging_report(BASE + timedelta(days=120))

        assert report.over90days == Decimal("0")

    def test_stats(self, db_session, make_invoice):
        make_invoice(total="1000.00", issue_date=BASE, due_in_days=60)
        late = make_invoice(total="500.00", issue_date=BASE, due_in_days=5)
        _pay(late.id, "200")

        stats = receivables_service.get_receivables_stats(BASE + timedelta(days=10))

        assert stats == {
            "totalPending": "1000.00",
            "totalOverdue": "300.00",
            "totalPaid": "200.00",
            "pendingInvoicesCount": 1,
            "overdueInvoicesCount": 1,
        }

    def test_default_now_is_current_time(self, db_session, make_invoice):
        make_invoice(total="10.00", issue_date=utcnow(), due_in_days=30)
        assert receivables_service.get_aging_report().current == Decimal("10.00")
