# Overview: Flask CLI command groups for bootstrap and inventory inspection.

# backend/storeadmin/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db [--drop --yes]
#   Create all tables (optionally dropping them first; deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo catalog, parties, confirmed stock-ins and a few orders.
#
# Inventory inspection:
# - python -m flask inventory reconcile
#   Compare every live stock counter with the ledger replay; exits 1 on drift.
# - python -m flask inventory as-of --date 2026-03-01 [--product-id 7]
#   Reconstructed quantity and value per product at a moment.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import StoreError
from .time_utils import parse_as_of


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@click.option('--drop', is_flag=True, help='Drop all tables first')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def init_db(drop, yes):
    """Create the schema for the configured database."""
    if drop:
        if not yes:
            click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)
        click.echo("DELETE  Dropping all tables...")
        db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@system_group.command('seed-demo')
@click.option('--user-id', type=int, default=1, show_default=True, help='Actor recorded on seeded documents')
@with_appcontext
def seed_demo(user_id):
    """
    Seed a small demo dataset so a fresh environment is immediately usable.

    Safe to rerun: catalog rows are matched by name/SKU and skipped when they
    exist; documents are only created on an empty ledger. Stock is received
    through confirmed stock-in orders, never written directly.
    """
    from .models import Category, Customer, Order, Product, StockInOrder, Supplier
    from .services import fulfillment_service
    from .services.catalog_service import create_product

    created_counts = {"categories": 0, "suppliers": 0, "customers": 0, "products": 0,
                      "stock_in_orders": 0, "orders": 0}

    categories = {}
    for name in ("Beverages", "Pantry", "Supplies"):
        category = db.session.query(Category).filter_by(name=name).first()
        if not category:
            category = Category(name=name)
            db.session.add(category)
            db.session.commit()
            created_counts["categories"] += 1
        categories[name] = category

    supplier = db.session.query(Supplier).filter_by(name="Alpha Wholesale").first()
    if not supplier:
        supplier = Supplier(name="Alpha Wholesale")
        db.session.add(supplier)
        db.session.commit()
        created_counts["suppliers"] += 1

    customer = db.session.query(Customer).filter_by(name="Demo Customer").first()
    if not customer:
        customer = Customer(name="Demo Customer", phone="555-0100")
        db.session.add(customer)
        db.session.commit()
        created_counts["customers"] += 1

    products_seed = [
        ("DEMO-COFFEE-12OZ", "Coffee Beans 12oz", "Beverages", "12.99", "8.99", 40),
        ("DEMO-TEA-BOX", "Black Tea Box", "Beverages", "8.99", "5.59", 25),
        ("DEMO-SUGAR-2LB", "Cane Sugar 2lb", "Pantry", "6.99", "4.49", 8),
        ("DEMO-CUP-16OZ-50", "Paper Cups 16oz (50)", "Supplies", "10.99", "6.50", 60),
    ]
    receipts = []
    for sku, name, category_name, price, cost, qty in products_seed:
        product = db.session.query(Product).filter_by(sku=sku).first()
        if not product:
            product = create_product({
                "sku": sku,
                "name": name,
                "category_id": categories[category_name].id,
                "price": price,
                "cost_price": cost,
                "description": "Seeded demo product",
            })
            created_counts["products"] += 1
        receipts.append({"product_id": product.id, "quantity": qty, "unit_cost": cost})

    if db.session.query(StockInOrder).count() == 0:
        doc = fulfillment_service.create_stock_in_order(
            created_by=user_id, supplier_id=supplier.id, items=receipts, note="Opening stock"
        )
        fulfillment_service.confirm_stock_in_order(doc.id, actor_id=user_id)
        created_counts["stock_in_orders"] += 1

    if db.session.query(Order).count() == 0:
        first, second = receipts[0]["product_id"], receipts[1]["product_id"]
        completed = fulfillment_service.create_order(
            created_by=user_id, customer_id=customer.id,
            items=[{"product_id": first, "quantity": 2}, {"product_id": second, "quantity": 1}],
        )
        fulfillment_service.update_order_status(
            completed.id, actor_id=user_id, order_status="confirmed", payment_status="paid"
        )
        fulfillment_service.update_order_status(completed.id, actor_id=user_id, order_status="completed")

        fulfillment_service.create_order(
            created_by=user_id, items=[{"product_id": first, "quantity": 1}], note="Walk-in draft"
        )
        created_counts["orders"] += 2

    for key, count in created_counts.items():
        click.echo(f"  {key}: {count} created")
    click.echo("PASS Demo data seeded.")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('reconcile')
@with_appcontext
def reconcile_cli():
    """Compare live stock counters with the ledger replay."""
    from .services.inventory_service import reconcile

    report = reconcile()
    click.echo(f"Checked {report['products_checked']} products at {report['checked_at']}")
    if report["consistent"]:
        click.echo("PASS Live stock matches the ledgers.")
        return

    for row in report["drift"]:
        click.echo(
            f"FAIL product {row['product_id']} ({row['sku']}): live {row['stock_quantity']}, "
            f"ledgers {row['computed_quantity']} (diff {row['difference']:+d})"
        )
    raise SystemExit(1)


@inventory_group.command('as-of')
@click.option('--date', 'as_of', default=None, help='ISO-8601 datetime or YYYY-MM-DD (end of day); defaults to now')
@click.option('--product-id', type=int, default=None)
@with_appcontext
def as_of_cli(as_of, product_id):
    """Reconstructed quantity and value per product at a moment."""
    from .services.inventory_service import get_stock_as_of

    try:
        moment = parse_as_of(as_of)
    except ValueError:
        raise click.BadParameter("must be an ISO-8601 date or datetime", param_hint="--date")

    try:
        rows = get_stock_as_of(as_of=moment, product_id=product_id)
    except StoreError as e:
        raise click.ClickException(e.message)

    for row in rows:
        click.echo(
            f"product {row['product_id']}: qty {row['computed_quantity']} value {row['computed_value']}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
