# Overview: Flask CLI command groups for bootstrap, inspection, and till operations.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--allow-negative-stock]
#   Create tables, the store settings row and a default admin user (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username staff1 --password 1234 --role staff
#
# Products:
# - python -m flask products list [--low-stock]
# - python -m flask products create --sku 8901 --name "Rice 1kg" --price-cents 6500 --tax-rate-bps 500 --quantity 40
#
# Sales:
# - python -m flask sales checkout --buyer-id 1 --item 3:2 --item 5:0.750 --discount-cents 100 --cash-cents 5000
#   Run a checkout from the terminal (same engine as POST /api/checkout).

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import CheckoutError
from .models import User
from .money import format_cents
from .services import checkout_service, products_service, settings_service, user_service
from .services.user_service import UserError
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--allow-negative-stock', is_flag=True, help='Let sales drive stock below zero')
@click.option('--admin-password', default='1234', help='Password for the default admin user')
@with_appcontext
def init_system(allow_negative_stock, admin_password):
    """
    Initialize the till database.

    Creates:
    - All tables
    - Store settings row (negative stock off unless --allow-negative-stock)
    - User: admin (role admin) if no users exist yet

    SECURITY: Change the admin password in production!
    """
    click.echo("START Initializing till database...")
    db.create_all()

    settings_service.update_store_settings(allow_negative_stock=allow_negative_stock)
    click.echo(f"PASS Store settings: allow_negative_stock={allow_negative_stock}")

    if db.session.query(User).count() == 0:
        user = user_service.create_user("admin", admin_password, role="admin")
        click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role 'admin'")
    else:
        click.echo("WARN  Users already exist, skipping default admin")

    click.echo("DONE Till database initialized")


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
    click.echo("BUILD Creating tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """Till operator management."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = user_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Active'}")
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<10} {'Yes' if user.is_active else 'No'}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(['admin', 'manager', 'staff']), default='staff')
@with_appcontext
def create_user(username, password, role):
    """Create a till operator."""
    try:
        user = user_service.create_user(username, password, role=role)
    except UserError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@click.group('products')
def products_group():
    """Catalog inspection and bootstrap."""


@products_group.command('list')
@click.option('--low-stock', is_flag=True, help='Only products at or below their reorder level')
@with_appcontext
def list_products(low_stock):
    result = products_service.list_products(low_stock_only=low_stock)
    if not result["items"]:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<5} {'SKU':<16} {'Name':<30} {'Price':>10} {'On hand':>10}")
    for p in result["items"]:
        click.echo(
            f"{p['id']:<5} {p['sku']:<16} {p['name'][:30]:<30} "
            f"{format_cents(p['price_cents']):>10} {p['quantity_on_hand']:>10}"
        )


@products_group.command('create')
@click.option('--sku', required=True)
@click.option('--name', required=True)
@click.option('--price-cents', type=int, required=True)
@click.option('--cost-cents', type=int, default=0)
@click.option('--tax-rate-bps', type=int, default=0, help='Tax rate in basis points (1200 = 12%)')
@click.option('--quantity', default='0', help='Opening stock')
@click.option('--reorder-level', default='0')
@click.option('--unit', default='pcs')
@with_appcontext
def create_product(sku, name, price_cents, cost_cents, tax_rate_bps, quantity, reorder_level, unit):
    """Create a product with opening stock."""
    try:
        product = products_service.create_product({
            "sku": sku,
            "name": name,
            "price_cents": price_cents,
            "cost_cents": cost_cents,
            "tax_rate_bps": tax_rate_bps,
            "quantity_on_hand": quantity,
            "reorder_level": reorder_level,
            "unit": unit,
        })
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created product: {product.name} (ID: {product.id}, SKU: {product.sku})")


@click.group('sales')
def sales_group():
    """Till operations."""


def _parse_item(raw: str) -> dict:
    product_id, sep, quantity = raw.partition(":")
    if not sep or not product_id.strip().isdigit():
        raise click.BadParameter(f"expected PRODUCT_ID:QUANTITY, got {raw!r}", param_hint="--item")
    return {"product_id": int(product_id), "quantity": quantity.strip()}


@sales_group.command('checkout')
@click.option('--buyer-id', type=int, required=True, help='User recording the sale')
@click.option('--item', 'items', multiple=True, required=True, help='PRODUCT_ID:QUANTITY (repeatable)')
@click.option('--discount-cents', type=int, default=0)
@click.option('--cash-cents', type=int, default=0)
@click.option('--card-cents', type=int, default=0)
@click.option('--other-cents', type=int, default=0)
@with_appcontext
def checkout(buyer_id, items, discount_cents, cash_cents, card_cents, other_cents):
    """Record a sale."""
    try:
        result = checkout_service.checkout(
            buyer_id=buyer_id,
            items=[_parse_item(raw) for raw in items],
            discount_cents=discount_cents,
            payment_split={
                "cash_cents": cash_cents,
                "card_cents": card_cents,
                "other_cents": other_cents,
            },
        )
    except CheckoutError as e:
        raise click.ClickException(f"{e.kind}: {e.message}")

    click.echo(f"PASS Sale {result.sale_id} recorded")
    click.echo(f"   Subtotal: {format_cents(result.subtotal_cents)}")
    click.echo(f"   Discount: {format_cents(result.discount_cents)}")
    click.echo(f"   Tax:      {format_cents(result.tax_cents)}")
    click.echo(f"   Total:    {format_cents(result.total_cents)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(sales_group)
