# Overview: Flask CLI command groups for bootstrap and audit-queue maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system seed-demo [--business "Demo Business"]
#   Idempotent demo data: business, outlet, warehouse, tiers, products, stock, customer.
#
# Audit log queue:
# - python -m flask audit drain --limit 500
#   Persist queued audit jobs to the audit_logs table.
# - python -m flask audit pending
#   Show the number of jobs waiting in the queue.

from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db, get_redis
from .models import (
    Business,
    Customer,
    Inventory,
    Outlet,
    PriceTier,
    Product,
    ProductPriceTier,
    StockMovement,
    Warehouse,
)
from .models.inventory import MOVEMENT_PURCHASE
from .services.audit_service import drain_audit_log_queue
from .services.pricing_service import clear_default_tiers


DEMO_TIERS = [
    # (code, name, description, is_default, discount percent applied to base price)
    ("RETAIL", "Retail", "Standard retail pricing", True, 0),
    ("WHOLESALE", "Wholesale", "Bulk buyers", False, 10),
    ("MEMBER", "Member", "Loyalty members", False, 5),
]

DEMO_PRODUCTS = [
    ("PROD-001", "Sample Product 1", 100000, 70000),
    ("PROD-002", "Sample Product 2", 250000, 180000),
    ("PROD-003", "Sample Product 3", 50000, 30000),
]

DEMO_OPENING_STOCK = Decimal("100")
DEMO_MINIMUM_STOCK = Decimal("10")


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed-demo')
@click.option('--business', 'business_name', default='Demo Business', help='Business name')
@click.option('--business-code', default='DEMO', help='Business code')
@with_appcontext
def seed_demo(business_name, business_code):
    """
    Seed one business with enough data to exercise pricing and inventory.

    Creates (skipping anything that already exists):
    - Business, "Main Outlet" and its "Main Warehouse"
    - Tiers: Retail (default), Wholesale (-10%), Member (-5%); creating
      Retail unsets any other default tier of the business
    - Three products with 100 units in stock (minimum 10)
    - Customer "John Doe" on the Member tier
    """
    click.echo("START Seeding demo data...")

    business = db.session.query(Business).filter_by(code=business_code).first()
    if not business:
        business = Business(name=business_name, code=business_code, is_active=True)
        db.session.add(business)
        db.session.flush()
        click.echo(f"PASS Created business: {business.name} (ID: {business.id})")
    else:
        click.echo(f"PASS Using existing business: {business.name} (ID: {business.id})")

    tiers = {}
    for code, name, description, is_default, _discount in DEMO_TIERS:
        tier = db.session.query(PriceTier).filter_by(business_id=business.id, code=code).first()
        if not tier:
            if is_default:
                clear_default_tiers(business.id)
            tier = PriceTier(
                business_id=business.id,
                code=code,
                name=name,
                description=description,
                is_default=is_default,
            )
            db.session.add(tier)
        tiers[code] = tier
    db.session.flush()
    click.echo(f"PASS Price tiers: {', '.join(sorted(tiers))}")

    outlet = db.session.query(Outlet).filter_by(business_id=business.id, code="MAIN").first()
    if not outlet:
        outlet = Outlet(
            business_id=business.id,
            code="MAIN",
            name="Main Outlet",
            default_price_tier_id=tiers["RETAIL"].id,
        )
        db.session.add(outlet)
        db.session.flush()

    warehouse = db.session.query(Warehouse).filter_by(outlet_id=outlet.id, code="WH-MAIN").first()
    if not warehouse:
        warehouse = Warehouse(outlet_id=outlet.id, code="WH-MAIN", name="Main Warehouse")
        db.session.add(warehouse)
        db.session.flush()
        outlet.default_warehouse_id = warehouse.id
    click.echo(f"PASS Outlet: {outlet.name} (ID: {outlet.id}), warehouse: {warehouse.name} (ID: {warehouse.id})")

    for sku, name, base_price_cents, cost_price_cents in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(business_id=business.id, sku=sku).first()
        if product:
            click.echo(f"WARN  Product '{sku}' already exists, skipping...")
            continue

        product = Product(
            business_id=business.id,
            sku=sku,
            name=name,
            base_price_cents=base_price_cents,
            cost_price_cents=cost_price_cents,
        )
        db.session.add(product)
        db.session.flush()

        db.session.add(Inventory(
            product_id=product.id,
            warehouse_id=warehouse.id,
            quantity_on_hand=DEMO_OPENING_STOCK,
            minimum_stock=DEMO_MINIMUM_STOCK,
        ))
        db.session.add(StockMovement(
            business_id=business.id,
            product_id=product.id,
            to_warehouse_id=warehouse.id,
            outlet_id=outlet.id,
            type=MOVEMENT_PURCHASE,
            quantity=DEMO_OPENING_STOCK,
            notes="Opening stock",
        ))

        for code, _name, _description, _is_default, discount in DEMO_TIERS:
            if not discount:
                continue
            db.session.add(ProductPriceTier(
                product_id=product.id,
                price_tier_id=tiers[code].id,
                outlet_id=None,
                price_cents=base_price_cents * (100 - discount) // 100,
            ))
        click.echo(f"PASS Created product: {sku} ({name})")

    customer = db.session.query(Customer).filter_by(business_id=business.id, name="John Doe").first()
    if not customer:
        db.session.add(Customer(
            business_id=business.id,
            name="John Doe",
            email="john.doe@example.com",
            phone="+10000000000",
            price_tier_id=tiers["MEMBER"].id,
        ))

    db.session.commit()
    click.echo("DONE Demo data ready")


@click.group('audit')
def audit_group():
    """Audit log queue maintenance."""


@audit_group.command('drain')
@click.option('--limit', default=100, show_default=True, type=click.IntRange(min=1), help='Maximum jobs to process')
@with_appcontext
def drain_audit(limit):
    """Persist queued audit jobs to the database."""
    stats = drain_audit_log_queue(limit=limit)
    click.echo(
        f"PASS Audit queue drained: processed={stats['processed']} "
        f"requeued={stats['requeued']} dropped={stats['dropped']}"
    )


@audit_group.command('pending')
@with_appcontext
def pending_audit():
    """Show how many audit jobs are waiting."""
    queue_name = current_app.config["AUDIT_LOG_QUEUE"]
    click.echo(f"{queue_name}: {get_redis().llen(queue_name)} pending")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(audit_group)
