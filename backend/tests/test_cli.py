# Overview: Tests for the Flask CLI sweep and ledger inspection commands.

from decimal import Decimal

from backoffice.models import InventoryItem


class TestCliCommands:
    def test_verify_ledger_passes(self, app, db_session, make_item):
        make_item(stock="5")

        result = app.test_cli_runner().invoke(args=["inventory", "verify-ledger"])

        assert result.exit_code == 0
        assert "consistent" in result.output

    def test_verify_ledger_reports_drift(self, app, db_session, make_item):
        item = make_item(product_name="Sand", stock="5")
        db_session.query(InventoryItem).filter_by(id=item.id).update({"current_stock": Decimal("9")})
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["inventory", "verify-ledger", "--item-id", str(item.id)])

        assert result.exit_code == 1
        assert "Sand" in result.output

    def test_sweeps(self, app, db_session, make_invoice):
        make_invoice(total="100.00", due_in_days=30)
        runner = app.test_cli_runner()

        expire = runner.invoke(args=["quotes", "expire"])
        overdue = runner.invoke(args=["receivables", "mark-overdue"])

        assert expire.exit_code == 0
        assert "Checked 0 quote(s)" in expire.output
        assert overdue.exit_code == 0
        assert "Marked 0 invoice(s) overdue." in overdue.output
