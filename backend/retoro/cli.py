# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables and load the retailer directory (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Retailer directory:
# - python -m flask retailers seed
#   Insert the built-in retailers; existing names are skipped.
# - python -m flask retailers list [--custom]
#   List retailers with their return windows.
#
# User inspection:
# - python -m flask users list [--include-anonymous]
#   List registered accounts and how they sign in.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired sessions.
# - python -m flask maintenance cleanup-magic-links
#   Delete used and expired magic-link tokens.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import RetailerPolicy, User
from .services import identity_service, retailer_service, session_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables and seed the retailer directory."""
    click.echo("BUILD  Creating missing tables...")
    db.create_all()

    created = retailer_service.seed_default_retailers()
    click.echo(f"PASS Database ready ({created} retailers added).")


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

    click.echo("PASS Database reset complete. Run 'python -m flask retailers seed' to load retailers.")


@click.group('retailers')
def retailers_group():
    """Retailer directory commands."""


@retailers_group.command('seed')
@with_appcontext
def seed_retailers():
    """Load the built-in retailer directory."""
    created = retailer_service.seed_default_retailers()
    skipped = len(retailer_service.DEFAULT_RETAILERS) - created
    click.echo(f"PASS Seeded {created} retailers ({skipped} already present).")


@retailers_group.command('list')
@click.option('--custom', is_flag=True, help='Only user-created retailers')
@with_appcontext
def list_retailers(custom):
    query = db.session.query(RetailerPolicy)
    if custom:
        query = query.filter(RetailerPolicy.is_custom.is_(True))
    retailers = query.order_by(RetailerPolicy.name).all()

    if not retailers:
        click.echo("No retailers found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Name':<30} {'Window':<12} {'Free returns':<14} {'Custom'}")
    click.echo("="*80)

    for retailer in retailers:
        window = "unlimited" if retailer.return_window_days == 0 else f"{retailer.return_window_days} days"
        free_str = "Yes" if retailer.has_free_returns else "No"
        custom_str = "Yes" if retailer.is_custom else "No"
        click.echo(f"{retailer.name:<30} {window:<12} {free_str:<14} {custom_str}")

    click.echo("="*80 + "\n")


@click.group('users')
def users_group():
    """User inspection commands."""


@users_group.command('list')
@click.option('--include-anonymous', is_flag=True, help='Also list anonymous shadow users')
@with_appcontext
def list_users(include_anonymous):
    """List accounts with their sign-in methods."""
    users = db.session.query(User).order_by(User.created_at).all()
    if not include_anonymous:
        users = [u for u in users if not identity_service.is_anonymous_user(u)]

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<38} {'Email':<35} {'Verified':<10} {'Sign-in'}")
    click.echo("="*100)

    for user in users:
        methods = []
        if user.password_hash:
            methods.append("password")
        if user.apple_user_id:
            methods.append("apple")
        if user.google_user_id:
            methods.append("google")
        if identity_service.is_anonymous_user(user):
            methods.append("anonymous")
        methods_str = ", ".join(methods) if methods else "magic link"
        verified_str = "Yes" if user.email_verified else "No"

        click.echo(f"{user.id:<38} {user.email:<35} {verified_str:<10} {methods_str}")

    click.echo("="*100 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Periodic cleanup commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete expired sessions."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} expired sessions.")


@maintenance_group.command('cleanup-magic-links')
@with_appcontext
def cleanup_magic_links():
    """Delete used and expired magic-link tokens."""
    deleted = identity_service.cleanup_magic_links()
    click.echo(f"PASS Deleted {deleted} magic-link tokens.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(retailers_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
