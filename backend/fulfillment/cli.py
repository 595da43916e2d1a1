# Overview: Flask CLI command groups for tenant bootstrap, inspection, and maintenance.

# backend/fulfillment/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "fulfillment:create_app".
# - Use: python -m flask <group> <command> [options]
#
# Tenant management:
# - python -m flask tenants create --email owner@shop.local --business-name "Shop" --password "secret123"
#   Sign up a tenant (owner user, default warehouse, settings, packaging presets).
# - python -m flask tenants list
#   List all tenants with warehouse, product and order counts.
#
# Maintenance:
# - python -m flask sessions cleanup
#   Delete session tokens past their purge time.

import click
from flask.cli import with_appcontext

from .errors import FulfillmentError
from .extensions import db
from .models import Order, Product, Tenant, Warehouse
from .services import auth_service, session_service


@click.group('tenants')
def tenants_group():
    """Tenant bootstrap and inspection commands."""


@tenants_group.command('create')
@click.option('--email', required=True, help='Owner login email')
@click.option('--business-name', required=True, help='Business name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
@with_appcontext
def create_tenant(email, business_name, password):
    """Create a tenant with its owner account."""
    try:
        tenant, user = auth_service.signup(db.session, email, password, business_name)
    except FulfillmentError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created tenant: {tenant.business_name} (ID: {tenant.id})")
    click.echo(f"PASS Owner user: {user.email} (ID: {user.id})")


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id.asc()).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Business':<30} {'Email':<30} {'Active':<8} {'WH':<4} {'Prod':<6} {'Orders'}")
    click.echo("="*90)

    for tenant in tenants:
        warehouse_count = db.session.query(Warehouse).filter_by(tenant_id=tenant.id).count()
        product_count = db.session.query(Product).filter_by(tenant_id=tenant.id).count()
        order_count = db.session.query(Order).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"

        click.echo(
            f"{tenant.id:<5} {tenant.business_name:<30} {tenant.email:<30} {active_str:<8} "
            f"{warehouse_count:<4} {product_count:<6} {order_count}"
        )

    click.echo("="*90 + "\n")


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions():
    """Delete session tokens past their purge time."""
    deleted = session_service.cleanup_expired_sessions(db.session)
    click.echo(f"PASS Deleted {deleted} expired session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(tenants_group)
    app.cli.add_command(sessions_group)
