# Overview: Flask CLI groups to bootstrap the marketplace database and manage accounts.

# backend/agriconnect/cli.py
# Usage, from the backend directory with FLASK_APP=wsgi.py:
#   flask <group> <command> [options]
#
#   flask system init-db          create missing tables (production uses `flask db upgrade`)
#   flask system reset-db --yes   drop and recreate every table, local databases only
#   flask users list [--role farmer]
#   flask users create --username admin --email admin@agri.cd --first-name Admin --last-name Root --role admin
#     (prompts for the password; admins can only be created here)

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import MarketplaceError
from .models import User
from .services import auth_service
from .validation import USER_ROLES


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate all tables (DEV/TEST only)."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(USER_ROLES), default='buyer', show_default=True, help='Role')
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def create_user_cli(username, email, first_name, last_name, password, role, phone):
    """Create a user of any role, including admin."""
    patch = {
        "username": username.strip(),
        "email": email.strip().lower(),
        "first_name": first_name.strip(),
        "last_name": last_name.strip(),
        "phone": phone,
        "role": role,
    }
    try:
        user = auth_service.create_user(patch=patch, password=password, allow_admin=True)
    except MarketplaceError as e:
        raise click.ClickException(e.message)
    click.echo(f"Created user id={user.id} email={user.email} role={user.role}")


@users_group.command('list')
@click.option('--role', type=click.Choice(USER_ROLES), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List users."""
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return
    for u in users:
        status = "active" if u.is_active else "inactive"
        click.echo(f"{u.id:>5}  {u.email:<32} {u.role:<7} {status}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
