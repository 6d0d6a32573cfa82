# Overview: Flask CLI command groups for bootstrap, catalog seeding, and maintenance.

# backend/dealerhub/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Admin accounts:
# - python -m flask admins create-super --username root --email root@example.com
#   Create the first super admin (prompts for password).
# - python -m flask admins list
#   List admins with role and active status.
#
# Catalog:
# - python -m flask catalog seed
#   Insert a small demo catalog (skips product codes that already exist).
#
# Maintenance:
# - python -m flask maintenance cleanup-otps
#   Delete expired OTP codes and clear expired password reset tokens once.
# - python -m flask maintenance run-sweeper [--interval 300] [--iterations N]
#   Repeat the cleanup on an interval (Ctrl+C to stop).

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import Admin, Product
from .services import admin_service, maintenance_service

DEMO_PRODUCTS = [
    {
        "product_code": "CH-101",
        "product_name": "Classic Armless Chair",
        "category": "Chair",
        "price_cents": 45000,
        "colors": ["Red", "Blue", "White"],
        "stock_quantity": 500,
    },
    {
        "product_code": "CH-3YW-201",
        "product_name": "Premium Arm Chair",
        "category": "3 Year Warranty Chair",
        "price_cents": 89000,
        "colors": ["Black", "Brown"],
        "stock_quantity": 200,
    },
    {
        "product_code": "TB-301",
        "product_name": "Square Dining Table",
        "category": "Table",
        "price_cents": 185000,
        "colors": ["White", "Beige"],
        "stock_quantity": 80,
    },
    {
        "product_code": "KD-401",
        "product_name": "Kids Study Set",
        "category": "Kids Chair & Table",
        "price_cents": 120000,
        "colors": ["Pink", "Green", "Yellow"],
        "stock_quantity": 120,
    },
    {
        "product_code": "ST-501",
        "product_name": "Garden Set (1 Table + 4 Chairs)",
        "category": "Set of Table & Chair",
        "price_cents": 520000,
        "colors": ["White", "Brown"],
        "stock_quantity": 40,
    },
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""
    pass


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

    click.echo("PASS Database reset complete. Run 'python -m flask admins create-super' next.")


@click.group('admins')
def admins_group():
    """Admin account commands."""
    pass


@admins_group.command('create-super')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_super_admin(username, email, password):
    """Create a super admin account."""
    try:
        admin = admin_service.bootstrap_super_admin(username=username, email=email, password=password)
    except DomainError as e:
        click.echo(f"FAIL Could not create super admin: {e}")
        return
    click.echo(f"PASS Created super admin '{admin.username}' (id={admin.id})")


@admins_group.command('list')
@with_appcontext
def list_admins():
    """List all admins."""
    admins = db.session.query(Admin).order_by(Admin.id).all()
    if not admins:
        click.echo("No admins found. Run 'python -m flask admins create-super'.")
        return
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<32} {'Role':<12} {'Active':<6}")
    click.echo("-" * 79)
    for a in admins:
        click.echo(f"{a.id:<5} {a.username:<20} {a.email:<32} {a.role:<12} {'yes' if a.is_active else 'no':<6}")


@click.group('catalog')
def catalog_group():
    """Catalog commands."""
    pass


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Insert the demo catalog. Existing product codes are skipped."""
    created = 0
    for item in DEMO_PRODUCTS:
        exists = db.session.query(Product.id).filter_by(product_code=item["product_code"]).first()
        if exists:
            click.echo(f"  SKIP {item['product_code']} already exists")
            continue
        db.session.add(Product(**item))
        created += 1
    db.session.commit()
    click.echo(f"PASS Seeded {created} products")


@click.group('maintenance')
def maintenance_group():
    """Maintenance and cleanup commands."""
    pass


@maintenance_group.command('cleanup-otps')
@with_appcontext
def cleanup_otps():
    """Delete expired OTPs and clear expired reset tokens."""
    result = maintenance_service.sweep()
    click.echo(
        f"PASS Deleted {result['otps_deleted']} expired OTP(s), "
        f"cleared {result['reset_tokens_cleared']} expired reset token(s)"
    )


@maintenance_group.command('run-sweeper')
@click.option('--interval', type=int, default=None, help='Seconds between sweeps (default OTP_CLEANUP_INTERVAL_SECONDS)')
@click.option('--iterations', type=int, default=None, help='Stop after N sweeps (default: run forever)')
@with_appcontext
def run_sweeper(interval, iterations):
    """Run the expiry sweep on an interval."""
    click.echo("Sweeper started (Ctrl+C to stop)")
    try:
        runs = maintenance_service.run_sweeper(interval_seconds=interval, iterations=iterations)
    except KeyboardInterrupt:
        click.echo("Sweeper stopped")
        return
    click.echo(f"PASS Completed {runs} sweep(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(admins_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(maintenance_group)
