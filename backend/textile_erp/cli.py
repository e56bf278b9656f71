# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/textile_erp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: main branch, main warehouse (DEFAULT_WAREHOUSE_ID) and a production center.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory inspection:
# - python -m flask inventory reconcile
#   Compare every stock position with the sum of its movement log.
# - python -m flask inventory stock --warehouse-id 1
#   Print current stock levels.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Warehouse, ProductionCenter
from .services import stock_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--branch-name', default='Head Office', help='Main branch name')
@click.option('--warehouse-name', default='Main Warehouse', help='Main warehouse name')
@click.option('--center-name', default='Main Weaving Center', help='Production center name')
@with_appcontext
def init_system(branch_name, warehouse_name, center_name):
    """
    Seed the reference rows the ledger needs.

    Creates (when missing):
    - Main branch (code MAIN)
    - Main warehouse with id DEFAULT_WAREHOUSE_ID (invoice stock source)
    - One production center (code PC-01)
    """
    click.echo("START Initializing reference data...")

    branch = db.session.query(Branch).filter_by(code="MAIN").first()
    if not branch:
        branch = Branch(code="MAIN", name=branch_name, is_active=True)
        db.session.add(branch)
        db.session.commit()
        click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    warehouse_id = current_app.config["DEFAULT_WAREHOUSE_ID"]
    warehouse = db.session.get(Warehouse, warehouse_id)
    if not warehouse:
        warehouse = Warehouse(id=warehouse_id, code="WH-MAIN", name=warehouse_name, branch_id=branch.id)
        db.session.add(warehouse)
        db.session.commit()
        click.echo(f"PASS Created warehouse: {warehouse.name} (ID: {warehouse.id})")
    else:
        click.echo(f"PASS Using existing warehouse: {warehouse.name} (ID: {warehouse.id})")

    center = db.session.query(ProductionCenter).filter_by(code="PC-01").first()
    if not center:
        center = ProductionCenter(code="PC-01", name=center_name, is_active=True)
        db.session.add(center)
        db.session.commit()
        click.echo(f"PASS Created production center: {center.name} (ID: {center.id})")
    else:
        click.echo(f"PASS Using existing production center: {center.name} (ID: {center.id})")

    click.echo("DONE Reference data ready")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)

    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset: all tables dropped and recreated")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('reconcile')
@with_appcontext
def reconcile():
    """Check that every position equals the sum of its stock transactions."""
    mismatches = stock_service.reconcile_positions()
    if not mismatches:
        click.echo("PASS All inventory positions reconcile with the movement log")
        return

    click.echo(f"FAIL {len(mismatches)} position(s) out of balance:")
    for m in mismatches:
        click.echo(
            f"   warehouse={m['warehouse_id']} product={m['product_id']} "
            f"ledger={m['ledger_quantity']} on_hand={m['quantity_on_hand']}"
        )
    raise SystemExit(1)


@inventory_group.command('stock')
@click.option('--warehouse-id', type=int, default=None, help='Filter by warehouse')
@with_appcontext
def show_stock(warehouse_id):
    """Print current stock levels."""
    rows = stock_service.list_stock(warehouse_id=warehouse_id)
    if not rows:
        click.echo("No stock positions")
        return
    for r in rows:
        click.echo(
            f"{r['warehouse_name']:<20} {r['product_code']:<12} {r['product_name']:<30} "
            f"{r['quantity_on_hand']:>12} {r['stock_status']}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
