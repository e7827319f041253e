# Overview: Flask CLI command groups for store bootstrap, stock inspection, costing and reports.

# backend/bakehouse/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Stock:
# - python -m flask stock init-db
#   Create the stored_collections table and an empty row per collection.
# - python -m flask stock show 3
#   Show one product's stock (dozen/pcs, or available packages) and recent movements.
# - python -m flask stock reduce 3 5 --reason damaged --notes "dropped tray"
#   Write off 5 pieces of product 3. Deleting the entry later does not restore stock.
#
# Costing:
# - python -m flask hpp compute 3 --overhead 2000 --margin 20 --tax 10
#   Compute and store the HPP row for product 3 (use --dry-run to preview only).
#
# Reports:
# - python -m flask report dashboard
# - python -m flask report low-stock

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import (
    HPP,
    INDIVIDUAL_DELIVERIES,
    PRODUCTIONS,
    PRODUCTS,
    RAW_MATERIALS,
    RECIPES,
    RETURNS,
    STOCK_MOVEMENTS,
    STOCK_REDUCTIONS,
    STORE_DELIVERIES,
    EntityType,
)
from .services.errors import StockError
from .services.reduction_service import REASON_DAMAGED, REASON_EXPIRED, REASON_LOST, REASON_OTHER

ALL_COLLECTIONS = (
    PRODUCTS, RAW_MATERIALS, RECIPES, STORE_DELIVERIES, INDIVIDUAL_DELIVERIES,
    RETURNS, PRODUCTIONS, STOCK_REDUCTIONS, HPP, STOCK_MOVEMENTS,
)


def _engine():
    from . import build_engine
    return build_engine(current_app)


def _fail(message: str):
    click.echo(f"FAIL {message}")
    raise SystemExit(1)


@click.group('stock')
def stock_group():
    """Stock store bootstrap and inspection commands."""


@stock_group.command('init-db')
@with_appcontext
def init_db():
    """
    Create the collection table and make sure every collection has a row.

    Idempotent: existing collections are left untouched.
    """
    from .services.collection_store import SqlCollectionStore

    db.create_all()
    store = SqlCollectionStore()
    existing = set(store.collection_names())
    created = [name for name in ALL_COLLECTIONS if name not in existing]
    for name in created:
        store.set_all(name, [])

    click.echo(f"PASS Database ready: {current_app.config['SQLALCHEMY_DATABASE_URI']}")
    if created:
        click.echo(f"PASS Created collections: {', '.join(created)}")
    else:
        click.echo("PASS All collections already present")


@stock_group.command('show')
@click.argument('product_id', type=int)
@click.option('--movements', 'movement_limit', default=10, show_default=True, help='Recent movements to list')
@with_appcontext
def show_stock(product_id, movement_limit):
    """
    Show current stock for one product.

    Example:
        flask stock show 3
    """
    engine = _engine()
    try:
        product = engine.ledger.require_product(product_id)
        if product.is_package:
            click.echo(f"{product.name} (package #{product.id})")
            click.echo(f"   Available packages: {engine.available_packages(product.id)}")
            for item in product.package_items:
                click.echo(f"   - component {item.product_id} x {item.quantity}")
        else:
            split = engine.stock_split(product.id)
            click.echo(f"{product.name} (#{product.id})")
            click.echo(f"   Stock: {split.dozen} dozen + {split.pcs} pcs ({engine.piece_stock(product.id)} pcs)")
            click.echo(f"   Minimum: {product.minimum_stock}")
    except StockError as e:
        _fail(str(e))

    movements = engine.movements_for(EntityType.PRODUCT, product_id, limit=movement_limit)
    if not movements:
        return
    click.echo("\n   Recent movements:")
    for m in movements:
        click.echo(
            f"   {m['occurred_at']}  {m['direction']:<6} {m['applied']:>6} "
            f"(requested {m['requested']})  {m['source_type'] or '-'} #{m['source_id'] or '-'}"
        )


@stock_group.command('reduce')
@click.argument('product_id', type=int)
@click.argument('amount', type=int)
@click.option(
    '--reason',
    type=click.Choice([REASON_DAMAGED, REASON_EXPIRED, REASON_LOST, REASON_OTHER]),
    default=REASON_OTHER,
    show_default=True,
)
@click.option('--notes', default='', help='Free-form note stored on the entry')
@with_appcontext
def reduce_stock(product_id, amount, reason, notes):
    """
    Write off stock of a product (one-way).

    Example:
        flask stock reduce 3 5 --reason expired
    """
    engine = _engine()
    try:
        entry = engine.record_reduction(product_id, amount, reason, notes)
    except StockError as e:
        _fail(str(e))
    except Exception:
        current_app.logger.exception("stock reduction failed for product %s", product_id)
        raise

    if entry is None:
        click.echo(f"SKIP Product {product_id} not found (compat mode); nothing written off")
        return
    click.echo(f"PASS Reduction #{entry.id}: {entry.amount} of product {entry.product_id} ({entry.reason})")


@click.group('hpp')
def hpp_group():
    """Cost-of-production (HPP) commands."""


@hpp_group.command('compute')
@click.argument('product_id', type=int)
@click.option('--overhead', type=float, default=0, show_default=True, help='Overhead cost per unit')
@click.option('--margin', type=float, default=0, show_default=True, help='Target margin %')
@click.option('--tax', type=float, default=0, show_default=True, help='Tax %')
@click.option('--dry-run', is_flag=True, help='Preview without storing')
@with_appcontext
def compute_hpp(product_id, overhead, margin, tax, dry_run):
    """
    Compute HPP for a product from its recipe.

    Example:
        flask hpp compute 3 --overhead 2000 --margin 20 --tax 10
    """
    engine = _engine()
    try:
        if dry_run:
            row = engine.preview_hpp(product_id, overhead, margin, tax).to_dict()
        else:
            row = engine.compute_and_store_hpp(product_id, overhead, margin, tax)
    except StockError as e:
        _fail(str(e))
    except Exception:
        current_app.logger.exception("HPP computation failed for product %s", product_id)
        raise

    click.echo(f"{'PREVIEW' if dry_run else 'PASS'} HPP for product {product_id}")
    click.echo(f"   Material cost:    {row['material_cost']:,.2f}")
    click.echo(f"   Total cost:       {row['total_cost']:,.2f}")
    click.echo(f"   Minimum price:    {row['minimum_selling_price']:,.2f}")
    click.echo(f"   Suggested price:  {row['suggested_selling_price']:,.2f}")
    click.echo(f"   Final price:      {row['final_selling_price']:,.2f}")
    if row.get("material_cost_flags"):
        click.echo(f"WARN Missing raw materials (costed at 0): {row['material_cost_flags']}")


@click.group('report')
def report_group():
    """Read-only stock and delivery reports."""


@report_group.command('dashboard')
@with_appcontext
def dashboard():
    """Delivery, revenue, return and low-stock figures."""
    stats = _engine().dashboard_stats()
    click.echo("\n" + "=" * 40)
    click.echo(f"Deliveries:          {stats['total_deliveries']}")
    click.echo(f"  pending:           {stats['pending_deliveries']}")
    click.echo(f"  completed:         {stats['completed_deliveries']}")
    click.echo(f"Revenue (completed): {stats['total_revenue']:,.2f}")
    click.echo(f"Returns:             {stats['total_returns']}")
    click.echo(f"Low-stock products:  {stats['low_stock_products']}")
    click.echo("=" * 40)


@report_group.command('low-stock')
@with_appcontext
def low_stock():
    """Single products and raw materials at or below their minimum."""
    engine = _engine()
    products = [r for r in engine.stock_overview() if r["low_stock"]]
    materials = engine.low_stock_materials()

    if not products and not materials:
        click.echo("No low-stock items.")
        return
    for row in products:
        click.echo(f"PRODUCT  #{row['id']:<5} {row['name']:<30} {row['stock']} pcs (min {row['minimum_stock']})")
    for row in materials:
        click.echo(
            f"MATERIAL #{row['id']:<5} {row['name']:<30} {row['stock_quantity']} {row['unit']} "
            f"(min {row['minimum_stock']})"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(stock_group)
    app.cli.add_command(hpp_group)
    app.cli.add_command(report_group)
