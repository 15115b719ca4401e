# backend/simplepos/cli.py
# Commands Legend:
# - flask --app simplepos pos init-db
#   Create all tables (idempotent; use Flask-Migrate for schema changes).
# - flask --app simplepos pos seed
#   Insert the demo catalog (barcodes 123, 456, 789, 111, 222). Skips barcodes that already exist.
# - flask --app simplepos pos transactions [--status finalized|refunded] [--limit 20]
#   Print recent sales with their refund status.

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import ItemBarcode
from .services import catalog_service, transaction_service


DEMO_ITEMS = [
    {"name": "Coca Cola", "price": Decimal("2.99"), "tax_rate": Decimal("0.0875"), "quantity": 24,
     "cost": Decimal("1.50"), "pack_size": 1, "barcodes": ["123"]},
    {"name": "Chips", "price": Decimal("3.49"), "tax_rate": Decimal("0.0875"), "quantity": 12,
     "cost": Decimal("1.75"), "pack_size": 1, "barcodes": ["456"]},
    {"name": "Chocolate Bar", "price": Decimal("1.99"), "tax_rate": Decimal("0.0875"), "quantity": 36,
     "cost": Decimal("0.75"), "pack_size": 1, "barcodes": ["789"]},
    {"name": "Bottled Water", "price": Decimal("1.49"), "tax_rate": Decimal("0.0875"), "quantity": 48,
     "cost": Decimal("0.50"), "pack_size": 1, "barcodes": ["111"]},
    {"name": "Sandwich", "price": Decimal("5.99"), "tax_rate": Decimal("0.0875"), "quantity": 10,
     "cost": Decimal("2.50"), "pack_size": 1, "barcodes": ["222"]},
]


@click.group('pos')
def pos_group():
    """Database bootstrap and inspection commands."""


@pos_group.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables."""
    db.create_all()
    click.echo("Database tables created.")


@pos_group.command('seed')
@with_appcontext
def seed_command():
    """Insert the demo catalog."""
    created = 0
    for entry in DEMO_ITEMS:
        existing = db.session.query(ItemBarcode).filter(ItemBarcode.barcode.in_(entry["barcodes"])).first()
        if existing:
            click.echo(f"  skip {entry['name']} (barcode {existing.barcode} exists)")
            continue
        try:
            item = catalog_service.create_item(dict(entry))
        except PosError as e:
            raise click.ClickException(f"{entry['name']}: {e}")
        created += 1
        click.echo(f"  {item.name} -> {', '.join(entry['barcodes'])}")
    click.echo(f"Seeded {created} item(s).")


@pos_group.command('transactions')
@click.option('--status', type=click.Choice(['finalized', 'refunded']), default=None)
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def transactions_command(status, limit):
    """List recent sales."""
    try:
        rows = transaction_service.list_transactions(status=status, limit=limit)
    except PosError as e:
        raise click.ClickException(str(e))

    if not rows:
        click.echo("No transactions.")
        return
    for row in rows:
        click.echo(
            f"#{row['id']:<6} {row['status']:<10} total={row['total']:>9} "
            f"lines={len(row['lines']):<3} refund={row['refundStatus']}  {row['created_at']}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pos_group)
