# Overview: Flask CLI command groups for bootstrap, accounts and sync inspection.

# backend/possync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to possync (PowerShell: $env:FLASK_APP="possync").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask accounts set-company USER_ID "Acme Traders"
#   Set the company name whose first three letters prefix voucher numbers.
# - python -m flask accounts show USER_ID
#   Show the account and its voucher company code.
#
# Sync inspection:
# - python -m flask sync status USER_ID
#   Show per-entity push counts and last sync times.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Account
from .services import sync_metadata_service
from .services.voucher_service import company_code_for
from .time_utils import to_utc_z, utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left untouched)."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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

    click.echo("PASS Database reset complete.")


@click.group('accounts')
def accounts_group():
    """Account (company profile) commands."""


@accounts_group.command('set-company')
@click.argument('user_id')
@click.argument('company_name')
@with_appcontext
def set_company(user_id, company_name):
    """Set the company name of USER_ID."""
    account = db.session.get(Account, user_id)
    if account is None:
        account = Account(user_id=user_id)
        db.session.add(account)

    account.company_name = company_name.strip() or None
    account.updated_at = utcnow()
    db.session.commit()

    click.echo(f"PASS {user_id}: company '{account.company_name}' (voucher code {company_code_for(user_id)})")


@accounts_group.command('show')
@click.argument('user_id')
@with_appcontext
def show_account(user_id):
    """Show the account of USER_ID."""
    account = db.session.get(Account, user_id)
    if account is None:
        click.echo(f"No account for {user_id}; vouchers use code {company_code_for(user_id)}.")
        return

    click.echo(f"User:         {account.user_id}")
    click.echo(f"Company:      {account.company_name or '-'}")
    click.echo(f"Voucher code: {company_code_for(user_id)}")
    click.echo(f"Updated:      {to_utc_z(account.updated_at)}")


@click.group('sync')
def sync_group():
    """Sync inspection commands."""


@sync_group.command('status')
@click.argument('user_id')
@with_appcontext
def sync_status(user_id):
    """Show sync bookkeeping for USER_ID."""
    rows = sync_metadata_service.list_for_user(user_id)

    if not rows:
        click.echo("No pushes recorded.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Entity':<14} {'Pushes':<8} {'Last sync':<26} {'Last conflict'}")
    click.echo("="*80)

    for row in rows:
        last_conflict = to_utc_z(row.last_conflict_at) if row.last_conflict_at else "-"
        click.echo(f"{row.entity_type:<14} {row.sync_count:<8} {to_utc_z(row.last_sync_at):<26} {last_conflict}")

    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(sync_group)
