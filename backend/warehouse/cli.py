# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/warehouse/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and one default user per role.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role delivery]
#   List all users with role and banned status.
# - python -m flask users create --name "Admin" --email admin@lgw.local --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users set-role driver@lgw.local delivery
#   Change a user's role and revoke their sessions.
#
# Deliveries:
# - python -m flask deliveries cleanup [--retention-days 7]
#   Archive missed terminal deliveries and purge ones past retention.
#   Intended for a daily cron entry.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired or revoked sessions older than the window.
# - python -m flask maintenance cleanup-rate-limits
#   Delete rate limit records whose window has passed.
#
# Locations:
# - python -m flask locations generate [--output path]
#   Regenerate the barangay list from the PSGC public API.

import json
import os

import click
import httpx
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import Role
from .services.auth_service import create_user, find_user_by_email, set_role, PasswordValidationError
from .services import delivery_service
from .services import rate_limit_service
from .services import session_service
from .services.location_service import generate_locations
from .validation import ConflictError, ValidationError


ROLE_CHOICES = [r.value for r in Role]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize LGW Warehouse: schema plus one default user per role.

    Creates:
    - admin@lgw.local (admin)
    - cashier@lgw.local (cashier)
    - driver@lgw.local (delivery)
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing LGW Warehouse...")
    db.create_all()

    default_password = "Password123!"
    default_users = [
        ("Administrator", "admin@lgw.local", Role.ADMIN.value),
        ("Cashier", "cashier@lgw.local", Role.CASHIER.value),
        ("Driver", "driver@lgw.local", Role.DELIVERY.value),
    ]

    for name, email, role in default_users:
        if find_user_by_email(email):
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(name, email, default_password, role=role, email_verified=True)
            click.echo(f"PASS Created user: {email} with role '{role}'")
        except (PasswordValidationError, ValidationError, ConflictError) as e:
            click.echo(f"FAIL Failed to create user '{email}': {str(e)}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for _, email, role in default_users:
        click.echo(f"   {role:<9} -> {email:<20} / {default_password}")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLE_CHOICES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a new user interactively.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(name, email, password, role=role, email_verified=True)
        click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {str(e)}")


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLE_CHOICES), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<24} {'Email':<32} {'Role':<10} {'Banned'}")
    click.echo("="*90)

    for user in users:
        banned_str = "Yes" if user.banned else "No"
        click.echo(f"{user.id:<5} {user.name:<24} {user.email:<32} {user.role:<10} {banned_str}")

    click.echo("="*90 + "\n")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(ROLE_CHOICES))
@with_appcontext
def set_role_cli(email, role):
    """Change a user's role. Their open sessions are revoked."""
    user = find_user_by_email(email)
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return

    set_role(user.id, role)
    revoked = session_service.revoke_all_user_sessions(user.id, reason="Role changed")
    click.echo(f"PASS {user.email} is now '{role}' ({revoked} sessions revoked)")


@click.group('deliveries')
def deliveries_group():
    """Delivery lifecycle maintenance."""


@deliveries_group.command('cleanup')
@click.option('--retention-days', type=int, default=None,
              help='Days a completed delivery stays active (default: DELIVERY_RETENTION_DAYS)')
@with_appcontext
def cleanup_deliveries_cli(retention_days):
    """Archive missed terminal deliveries, then purge those past retention."""
    if retention_days is None:
        retention_days = current_app.config["DELIVERY_RETENTION_DAYS"]
    result = delivery_service.cleanup_deliveries(retention_days=retention_days)
    click.echo(
        f"Archived {result['archivedCount']} and deleted {result['deletedCount']} "
        f"deliveries (retention {retention_days} days)."
    )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked sessions."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


@maintenance_group.command('cleanup-rate-limits')
@with_appcontext
def cleanup_rate_limits_cli():
    deleted = rate_limit_service.cleanup_expired()
    click.echo(f"Deleted {deleted} expired rate limit records.")


@click.group('locations')
def locations_group():
    """Barangay location list."""


@locations_group.command('generate')
@click.option('--output', type=click.Path(dir_okay=False), default=None,
              help='Target file (default: LOCATIONS_FILE)')
@with_appcontext
def generate_locations_cli(output):
    """Fetch every city and barangay of the province from the PSGC API."""
    output = output or current_app.config["LOCATIONS_FILE"]
    base_url = current_app.config["PSGC_BASE_URL"]
    province = current_app.config["PSGC_PROVINCE_CODE"]

    click.echo(f"FETCH Loading locations for province {province} from {base_url}...")
    try:
        with httpx.Client(timeout=current_app.config["HTTP_TIMEOUT_SECONDS"]) as client:
            payload = generate_locations(client, base_url, province, log=click.echo)
    except httpx.HTTPError as e:
        click.echo(f"FAIL Could not fetch locations: {str(e)}")
        raise SystemExit(1)

    os.makedirs(os.path.dirname(os.path.abspath(output)), exist_ok=True)
    with open(output, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)

    click.echo(f"PASS Wrote {payload['count']} locations to {output}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(deliveries_group)
    app.cli.add_command(maintenance_group)
    app.cli.add_command(locations_group)
