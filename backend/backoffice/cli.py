# Overview: Flask CLI command groups for bootstrap, sweeps, and ledger inspection.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent; use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Sweeps (same jobs the background scheduler runs):
# - python -m flask quotes expire
#   Expire sent/accepted quotes whose valid-until date has passed.
# - python -m flask receivables mark-overdue
#   Flag open invoices past their due date as overdue.
#
# Ledger inspection:
# - python -m flask inventory verify-ledger [--item-id 12]
#   Replay stock movements and report items whose balance disagrees.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import quote_service, receivables_service, stock_ledger_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('quotes')
def quotes_group():
    """Quote maintenance commands."""


@quotes_group.command('expire')
@with_appcontext
def expire_quotes_cli():
    """Expire sent/accepted quotes past their valid-until date."""
    sweeper = current_app.extensions.get("expiration_sweeper")
    result = sweeper.execute_once() if sweeper is not None else quote_service.expire_quotes()
    click.echo(
        f"Checked {result.checked} quote(s): {result.expired} past validity, "
        f"{result.successful} expired, {result.failed} failed."
    )
    if result.failed:
        raise click.exceptions.Exit(1)


@click.group('receivables')
def receivables_group():
    """Accounts-receivable maintenance commands."""


@receivables_group.command('mark-overdue')
@with_appcontext
def mark_overdue_cli():
    """Flag open invoices past their due date as overdue."""
    sweeper = current_app.extensions.get("overdue_sweeper")
    marked = sweeper.execute_once() if sweeper is not None else receivables_service.mark_overdue_invoices()
    click.echo(f"Marked {marked} invoice(s) overdue.")


@click.group('inventory')
def inventory_group():
    """Stock ledger inspection commands."""


@inventory_group.command('verify-ledger')
@click.option('--item-id', type=int, default=None, help='Check a single inventory item')
@with_appcontext
def verify_ledger_cli(item_id):
    """Replay stock movements from zero and compare with current stock."""
    discrepancies = stock_ledger_service.verify_stock_ledger(item_id)
    if not discrepancies:
        click.echo("PASS Stock ledger is consistent.")
        return

    click.echo(f"FAIL {len(discrepancies)} item(s) disagree with their movements:")
    for found in discrepancies:
        click.echo(
            f"  #{found.inventory_id} {found.product_name}: "
            f"current={found.current_stock} replayed={found.replayed_stock}"
        )
        for problem in found.problems:
            click.echo(f"    - {problem}")
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(quotes_group)
    app.cli.add_command(receivables_group)
    app.cli.add_command(inventory_group)
