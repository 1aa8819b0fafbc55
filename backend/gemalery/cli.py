# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/gemalery/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: seeds the five sales channels and the default admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --email staff@gemalery.local --password "Password123!" --role staff
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from . import get_settings
from .extensions import db
from .models import Channel, User
from .models.auth import ROLE_ADMIN, ROLES
from .models.sales import CHANNEL_NAMES
from .services import auth_service
from .services.auth_service import create_user
from .validation import ConflictError, ValidationError


def seed_channels() -> int:
    """Insert any missing channel rows. Returns how many were created."""
    created = 0
    for key, name in CHANNEL_NAMES.items():
        if db.session.query(Channel).filter_by(key=key).first() is None:
            db.session.add(Channel(key=key, name=name))
            created += 1
    db.session.commit()
    return created


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the store: sales channels and the default admin user.

    SECURITY: Change the admin password immediately in production!
    """
    settings = get_settings()
    click.echo("START Initializing Gemalery...")

    created = seed_channels()
    click.echo(f"PASS Channels ready ({created} created)")

    admin = db.session.query(User).filter_by(email=settings.default_admin_email.lower()).first()
    if admin is None:
        admin = create_user(
            settings.default_admin_email,
            settings.default_admin_password,
            name="Administrator",
            role=ROLE_ADMIN,
            rounds=settings.bcrypt_rounds,
        )
        click.echo(f"PASS Created admin user: {admin.email}")
    else:
        click.echo(f"PASS Admin user exists: {admin.email}")

    click.echo("DONE Initialization complete.")


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
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, name, password, role):
    """Create a new user (minimum password length 8)."""
    try:
        user = create_user(email, password, name=name, role=role, rounds=get_settings().bcrypt_rounds)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = auth_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<10} {'Active'}")
    click.echo("=" * 70)
    for user in users:
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<10} {'yes' if user.is_active else 'no'}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
