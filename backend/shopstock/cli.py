# Overview: Flask CLI command groups for bootstrap and stock inspection.

# backend/shopstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, a default shop, an owner and a sales person.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock inspection:
# - python -m flask stock low-stock --shop-id 1 [--xlsx low_stock.xlsx]
#   Print the low-stock report, or write it to an Excel workbook.
# - python -m flask stock check-invariants
#   Audit identifier uniqueness, sold/status consistency and sale arithmetic.
#   Exits 1 when any violation is found.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Shop, User, Reason
from .context import StockContext
from .services import low_stock_service, audit_service, shop_access_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--shop', 'shop_name', default='Main Shop', help='Default shop name')
@with_appcontext
def init_system(shop_name):
    """
    Create tables and seed the minimum needed to take stock:
    - a retail shop
    - users: owner (role owner), sales (role sales_person), both assigned to the shop
    - a default defect reason
    """
    click.echo("START Initializing shopstock...")
    db.create_all()

    shop = db.session.query(Shop).filter_by(name=shop_name).first()
    if not shop:
        shop = Shop(name=shop_name, shop_type="retail_shop", is_active=True)
        db.session.add(shop)
        db.session.commit()
        click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")
    else:
        click.echo(f"PASS Using existing shop: {shop.name} (ID: {shop.id})")

    for username, role in (("owner", "owner"), ("sales", "sales_person")):
        user = db.session.query(User).filter_by(username=username).first()
        if not user:
            user = User(username=username, role=role, is_active=True)
            db.session.add(user)
            db.session.commit()
            click.echo(f"PASS Created user: {username} ({role}, ID: {user.id})")
        shop_access_service.assign_shop(user_id=user.id, shop_id=shop.id)

    if not db.session.query(Reason).first():
        db.session.add(Reason(text="Damaged", is_active=True))
        db.session.commit()
        click.echo("PASS Created default defect reason")

    click.echo("DONE System initialized")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


def _operator_context() -> StockContext:
    """CLI runs as an operator that can see every active shop."""
    shop_ids = {row.id for row in db.session.query(Shop.id).filter_by(is_active=True).all()}
    return StockContext(user_id=0, shop_ids=frozenset(shop_ids))


def _write_low_stock_xlsx(path: str, shop: Shop, rows: list[dict]) -> None:
    from openpyxl import Workbook

    wb = Workbook()
    sheet = wb.active
    sheet.title = "Low stock"
    sheet.append(["Shop", "Variant ID", "Variant", "Product", "Count", "Threshold"])
    for row in rows:
        sheet.append([
            shop.name,
            row["variant_id"],
            row["variant_name"],
            row["product_name"],
            row["count"],
            row["threshold"],
        ])
    wb.save(path)


@stock_group.command('low-stock')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@click.option('--xlsx', 'xlsx_path', type=click.Path(dir_okay=False, writable=True), help='Write report to this .xlsx file')
@with_appcontext
def low_stock(shop_id, xlsx_path):
    """Variants at or below their low-stock threshold."""
    shop = db.session.get(Shop, shop_id)
    if not shop or not shop.is_active:
        raise click.ClickException(f"Shop {shop_id} not found")

    rows = low_stock_service.get_low_stock(_operator_context(), shop_id)

    if xlsx_path:
        _write_low_stock_xlsx(xlsx_path, shop, rows)
        click.echo(f"PASS Wrote {len(rows)} rows to {xlsx_path}")
        return

    if not rows:
        click.echo(f"PASS No low-stock variants in {shop.name}")
        return

    click.echo(f"\nLOW STOCK - {shop.name}")
    click.echo("=" * 80)
    click.echo(f"{'Variant':<40} {'Product':<24} {'Count':>6} {'Min':>6}")
    click.echo("-" * 80)
    for row in rows:
        click.echo(
            f"{row['variant_name'][:40]:<40} {(row['product_name'] or '')[:24]:<24} "
            f"{row['count']:>6} {row['threshold']:>6}"
        )
    click.echo("=" * 80 + "\n")


@stock_group.command('check-invariants')
@with_appcontext
def check_invariants():
    """Audit stock invariants; exit 1 on any violation."""
    violations = audit_service.check_invariants()
    if not violations:
        click.echo("PASS All stock invariants hold")
        return

    for violation in violations:
        details = ", ".join(f"{k}={v}" for k, v in violation.items() if k != "check")
        click.echo(f"FAIL {violation['check']}: {details}")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
