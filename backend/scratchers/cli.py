# Overview: Flask CLI command groups for scratcher bootstrap and maintenance.

# backend/scratchers/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Scratcher bootstrap/repair:
# - python -m flask scratchers init-db
#   Create all tables (use 'flask db upgrade' for migrated databases).
# - python -m flask scratchers seed-products
#   Ensure one product per standard price; deactivate duplicate active prices.
# - python -m flask scratchers init-slots --store-id 1
#   Create any missing slots 1..SCRATCHER_MAX_SLOTS for a store.
# - python -m flask scratchers recalculate --shift-report-id 12
#   Re-run reconciliation for one shift.
# - python -m flask scratchers recalculate-flagged [--store-id 1]
#   Re-run every calculation flagged for a missing product.
#
# Store bootstrap (stores are normally owned by the portal):
# - python -m flask stores create --name "Main St" --code "S001"
# - python -m flask stores list

import click
from flask.cli import with_appcontext

from .errors import ScratcherError
from .extensions import db
from .models import ScratcherSlot, ShiftReport
from .services import product_service, reconciliation_service, slot_service, store_service
from .services.concurrency import commit_with_retry


@click.group('scratchers')
def scratchers_group():
    """Scratcher bootstrap and maintenance commands."""


@scratchers_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@scratchers_group.command('seed-products')
@with_appcontext
def seed_products():
    """Normalize the standard price catalog."""
    changed = product_service.normalize_catalog()
    commit_with_retry()
    if not changed:
        click.echo("PASS Catalog already normalized.")
        return
    for product in changed:
        state = "active" if product.is_active else "deactivated"
        click.echo(f"  ${product.price:>7} id={product.id} {state}")
    click.echo(f"PASS {len(changed)} product(s) created or updated.")


@scratchers_group.command('init-slots')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def init_slots(store_id):
    """Create missing slot numbers for a store."""
    before = db.session.query(ScratcherSlot).filter_by(store_id=store_id).count()
    try:
        slots = slot_service.initialize_slots(store_id)
        commit_with_retry()
    except ScratcherError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Store {store_id} has {len(slots)} slots ({len(slots) - before} created).")


@scratchers_group.command('recalculate')
@click.option('--shift-report-id', type=int, required=True, help='Shift report ID')
@with_appcontext
def recalculate(shift_report_id):
    """Re-run reconciliation for a shift."""
    report = db.session.get(ShiftReport, shift_report_id)
    if not report:
        click.echo(f"FAIL Shift report {shift_report_id} not found")
        raise SystemExit(1)

    calc = reconciliation_service.recalculate(report.id, report.store_id)
    commit_with_retry()

    click.echo(
        f"PASS Shift {report.id}: {calc.expected_total_tickets} tickets, "
        f"${calc.expected_total_cents / 100:.2f} expected, "
        f"variance ${calc.variance_cents / 100:.2f}"
    )
    for flag in calc.flags:
        click.echo(f"  flag: {flag}")


@scratchers_group.command('recalculate-flagged')
@click.option('--store-id', type=int, help='Limit to one store')
@with_appcontext
def recalculate_flagged(store_id):
    """Re-run calculations flagged for a missing product."""
    calcs = reconciliation_service.recalculate_flagged(store_id)
    commit_with_retry()
    click.echo(f"PASS Re-ran {len(calcs)} calculation(s).")


@click.group('stores')
def stores_group():
    """Local store bootstrap commands."""


@stores_group.command('list')
@with_appcontext
def list_stores():
    """List all stores."""
    stores = store_service.list_stores()

    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "="*64)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<12} {'Active':<8} {'Slots'}")
    click.echo("="*64)

    for store in stores:
        slot_count = db.session.query(ScratcherSlot).filter_by(store_id=store.id).count()
        active_str = "Yes" if store.is_active else "No"
        click.echo(f"{store.id:<5} {store.name:<30} {store.code or '-':<12} {active_str:<8} {slot_count}")

    click.echo("="*64 + "\n")


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', help='Short code (unique)')
@with_appcontext
def create_store_cli(name, code):
    """Create a store."""
    try:
        store = store_service.create_store(name, code)
        commit_with_retry()
    except ScratcherError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code or '-'})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(scratchers_group)
    app.cli.add_command(stores_group)
