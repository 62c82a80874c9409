"""
Land Record Ledger CLI Tool

This module provides a command-line interface over a persistent ledger: seeding
from a JSON file, creating accounts and parcel records, listing records,
transferring parcels and verifying chain integrity.
"""

import json
import logging

import click

from landledger import __version__
from landledger.config.settings import settings
from landledger.core.exceptions import LedgerCompromisedError, LedgerError
from landledger.core.ledger import Ledger
from landledger.storage.sql_backend import SqlStorageBackend

EXIT_LEDGER_ERROR = 1
EXIT_LEDGER_COMPROMISED = 2


def echo_json(data):
    """Print data as JSON"""
    click.echo(json.dumps(data, indent=settings.CLI_OUTPUT_INDENT, default=str))


def get_ledger(ctx) -> Ledger:
    """Get or open the ledger for this invocation"""
    if ctx.obj.get('ledger') is None:
        backend = SqlStorageBackend(ctx.obj['database_url'])
        ctx.obj['ledger'] = Ledger(backend)
        ctx.call_on_close(ctx.obj['ledger'].close)
    return ctx.obj['ledger']


def fail(ctx, error: LedgerError):
    """Report a ledger error and exit with its code"""
    click.echo(f"Error: {error}", err=True)
    if isinstance(error, LedgerCompromisedError):
        click.echo("Sorry, the blockchain has been compromised", err=True)
        ctx.exit(EXIT_LEDGER_COMPROMISED)
    ctx.exit(EXIT_LEDGER_ERROR)


@click.group()
@click.option('--database-url', envvar='LANDLEDGER_DATABASE_URL', default=settings.DATABASE_URL,
              show_default=True, help='SQLAlchemy database URL')
@click.option('--log-level', default=settings.LOG_LEVEL, show_default=True, help='Logging level')
@click.version_option(__version__, prog_name='landledger')
@click.pass_context
def cli(ctx, database_url, log_level):
    """Land Record Ledger CLI - tamper-evident land ownership records"""
    logging.basicConfig(level=log_level.upper(), format=settings.LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj['database_url'] = database_url


@cli.command()
@click.argument('seed_file', type=click.File('r'))
@click.pass_context
def seed(ctx, seed_file):
    """Seed an empty ledger from a JSON file with "users" and "records" """
    try:
        data = json.load(seed_file)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint='SEED_FILE')
    if not isinstance(data, dict):
        raise click.BadParameter("Expected a JSON object", param_hint='SEED_FILE')

    ledger = get_ledger(ctx)
    try:
        result = ledger.seed(data.get("users", []), data.get("records", []))
    except LedgerError as e:
        fail(ctx, e)
        return

    click.echo("Database seeded successfully")
    echo_json({"account_ids": result.account_ids, "blocks": len(result.blocks)})


@cli.command('create-account')
@click.argument('name')
@click.argument('credit', type=int)
@click.pass_context
def create_account(ctx, name, credit):
    """Create an account with an initial credit balance"""
    try:
        account_id = get_ledger(ctx).create_account(name, credit)
    except LedgerError as e:
        fail(ctx, e)
        return
    click.echo("User added successfully")
    echo_json({"id": account_id})


@cli.command()
@click.pass_context
def accounts(ctx):
    """List all accounts"""
    try:
        found = get_ledger(ctx).list_accounts()
    except LedgerError as e:
        fail(ctx, e)
        return
    echo_json({"users": [account.to_dict() for account in found]})


@cli.command()
@click.argument('account_id')
@click.pass_context
def account(ctx, account_id):
    """Show one account"""
    try:
        found = get_ledger(ctx).get_account(account_id)
    except LedgerError as e:
        fail(ctx, e)
        return
    echo_json({"user": found.to_dict()})


@cli.command('add-record')
@click.argument('reference_number')
@click.argument('size')
@click.argument('price', type=int)
@click.pass_context
def add_record(ctx, reference_number, size, price):
    """Record a new land parcel"""
    try:
        block = get_ledger(ctx).create_parcel_record(reference_number, size, price)
    except LedgerError as e:
        fail(ctx, e)
        return
    click.echo("Record added successfully")
    echo_json(block.to_dict())


@cli.command()
@click.argument('reference_number', required=False)
@click.pass_context
def records(ctx, reference_number):
    """List land records, optionally for one reference number"""
    try:
        blocks = get_ledger(ctx).list_parcel_records(reference_number)
    except LedgerError as e:
        fail(ctx, e)
        return
    echo_json({"records": [block.to_dict() for block in blocks]})


@cli.command()
@click.argument('reference_number')
@click.pass_context
def owner(ctx, reference_number):
    """Show the current owner of a parcel"""
    try:
        owner_id, owner_name = get_ledger(ctx).current_owner(reference_number)
    except LedgerError as e:
        fail(ctx, e)
        return
    echo_json({"reference_number": reference_number, "owner_id": owner_id, "owner": owner_name})


@cli.command()
@click.argument('reference_number')
@click.argument('account_id')
@click.pass_context
def transfer(ctx, reference_number, account_id):
    """Transfer a parcel to an account"""
    try:
        receipt = get_ledger(ctx).transfer_parcel(reference_number, account_id)
    except LedgerError as e:
        fail(ctx, e)
        return
    click.echo(receipt.message)
    echo_json(receipt.to_dict())


@cli.command()
@click.pass_context
def verify(ctx):
    """Verify the integrity of the whole chain"""
    try:
        result = get_ledger(ctx).verify_chain()
    except LedgerError as e:
        fail(ctx, e)
        return
    echo_json(result.to_dict())
    if not result.valid:
        ctx.exit(EXIT_LEDGER_COMPROMISED)


if __name__ == '__main__':
    cli()
