# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pos_api/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables directly (dev convenience; production uses `flask db upgrade`).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: one branch, one user per role, a few stocked products.
#
# Users:
# - python -m flask users list [--branch-id 1] [--all]
# - python -m flask users create --email admin@pos.local --first-name Ada --last-name Admin --role admin
#   Prompts for the password.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30

from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext

from .config import current_settings
from .errors import PosError
from .extensions import db
from .models import Branch, Inventory, Product, User
from .permissions import Role
from .services import inventory_service, session_service, user_service


DEMO_PASSWORD = "Password123!"

DEMO_USERS = [
    ("owner@pos.local", "Olivia", "Owner", Role.OWNER.value, False),
    ("admin@pos.local", "Adrian", "Admin", Role.ADMIN.value, False),
    ("manager@pos.local", "Morgan", "Manager", Role.MANAGER.value, True),
    ("cashier@pos.local", "Casey", "Cashier", Role.CASHIER.value, True),
    ("auditor@pos.local", "Avery", "Auditor", Role.AUDITOR.value, False),
]

DEMO_PRODUCTS = [
    # sku, name, category, unit_price, cost_price, min_stock, opening stock
    ("COF-250", "Ground Coffee 250g", "Grocery", "89.90", "55.00", 5, 40),
    ("TEA-020", "Green Tea 20 bags", "Grocery", "45.50", "22.00", 5, 25),
    ("MUG-001", "Ceramic Mug", "Home", "120.00", "60.00", 2, 10),
    ("BAT-AA4", "AA Batteries 4-pack", "Electronics", "75.00", "38.00", 10, 8),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create every table that does not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed a demo branch, one account per role and a small stocked catalog.

    Safe to run repeatedly: existing rows (matched by code, email or SKU)
    are left alone. All demo passwords are "Password123!".
    """
    click.echo("START Seeding demo data...")
    settings = current_settings()

    branch = db.session.query(Branch).filter_by(code="MAIN").first()
    if branch is None:
        branch = Branch(name="Main Branch", code="MAIN", city="Mexico City")
        db.session.add(branch)
        db.session.commit()
        click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    for email, first_name, last_name, role, scoped in DEMO_USERS:
        if db.session.query(User.id).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            user_service.create_user(
                patch={
                    "email": email,
                    "first_name": first_name,
                    "last_name": last_name,
                    "role": role,
                    "branch_id": branch.id if scoped else None,
                },
                password=DEMO_PASSWORD,
                bcrypt_rounds=settings.bcrypt_rounds,
            )
            click.echo(f"PASS Created user: {email} with role '{role}'")
        except PosError as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{email}': {e.message}")

    for sku, name, category, price, cost, min_stock, opening in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(sku=sku).first()
        if product is None:
            product = Product(
                sku=sku,
                name=name,
                category=category,
                unit_price=Decimal(price),
                cost_price=Decimal(cost),
                min_stock=min_stock,
            )
            db.session.add(product)
            db.session.commit()
            click.echo(f"PASS Created product: {sku} {name}")

        if db.session.query(Inventory.id).filter_by(product_id=product.id, branch_id=branch.id).first():
            continue
        inventory_service.create_inventory(
            patch={
                "product_id": product.id,
                "branch_id": branch.id,
                "current_stock": opening,
                "average_cost": Decimal(cost),
                "min_stock": min_stock,
            },
        )
        click.echo(f"PASS Stocked {opening} x {sku} at {branch.code}")

    click.echo("\nDONE Demo data ready. Log in with any demo email and 'Password123!'.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--role', type=click.Choice(Role.values()), prompt=True, help='Role')
@click.option('--branch-id', type=int, default=None, help='Branch (required for manager and cashier)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(email, first_name, last_name, role, branch_id, password):
    """
    Create a staff account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = user_service.create_user(
            patch={
                "email": email,
                "first_name": first_name,
                "last_name": last_name,
                "role": role,
                "branch_id": branch_id,
            },
            password=password,
            bcrypt_rounds=current_settings().bcrypt_rounds,
        )
    except PosError as e:
        db.session.rollback()
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user {user.email} (ID: {user.id}, employee {user.employee_id}, role {user.role})")


@users_group.command('list')
@click.option('--branch-id', type=int, default=None, help='Only users of this branch')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive users')
@with_appcontext
def list_users_cli(branch_id, include_inactive):
    """List staff accounts with role and branch."""
    users, _ = user_service.list_users(
        branch_id=branch_id,
        include_inactive=include_inactive,
        per_page=100,
    )
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<24} {'Role':<9} {'Branch':<8} {'Active'}")
    click.echo("=" * 90)
    for u in users:
        branch = u.branch.code if u.branch else "-"
        active_str = "Yes" if u.is_active else "No"
        click.echo(f"{u.id:<5} {u.email:<32} {u.full_name:<24} {u.role:<9} {branch:<8} {active_str}")
    click.echo("=" * 90 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions(older_than_days):
    """Delete expired or revoked session tokens."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    current_app.logger.info("Deleted %s stale sessions", deleted)
    click.echo(f"PASS Deleted {deleted} stale session(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
