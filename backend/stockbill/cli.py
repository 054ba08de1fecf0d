# Overview: Flask CLI command groups for bootstrap, sequence configuration, and reporting.

# backend/stockbill/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to stockbill (PowerShell: $env:FLASK_APP="stockbill").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--prefix FAC] [--pad 6] [--no-year]
#   Idempotent: creates tables and seeds the INVOICE document sequence.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Document sequences:
# - python -m flask sequences list
#   Show every configured sequence and its next number.
# - python -m flask sequences seed --type INVOICE --prefix FAC --pad 6 [--no-year] [--next 1]
#   Create or reconfigure a sequence (next number may only move forward).
#
# Reporting:
# - python -m flask invoices summary --date 2026-01-31
#   Totals of non-voided invoices for one day.
# - python -m flask products low-stock
#   Active products at or below their minimum stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import DocumentType
from .services import invoice_service, sequence_service, stock_service
from .validation import StockbillError
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--prefix', default='FAC', help='Invoice number prefix')
@click.option('--pad', 'pad_width', default=6, type=int, help='Zero-padding width of the counter')
@click.option('--year/--no-year', 'include_year', default=True, help='Embed the current year in numbers')
@with_appcontext
def init_system(prefix, pad_width, include_year):
    """Create tables and seed the INVOICE sequence if it is missing."""
    click.echo("START Initializing stockbill...")
    db.create_all()

    existing = [s for s in sequence_service.list_sequences() if s.document_type == DocumentType.INVOICE]
    if existing:
        seq = existing[0]
        click.echo(f"PASS Using existing INVOICE sequence (prefix {seq.prefix}, next {seq.next_number})")
        return

    seq = sequence_service.seed_sequence(
        DocumentType.INVOICE,
        prefix=prefix,
        include_year=include_year,
        pad_width=pad_width,
    )
    db.session.commit()
    sample = sequence_service.format_document_number(
        prefix=seq.prefix,
        number=seq.next_number,
        pad_width=seq.pad_width,
        include_year=seq.include_year,
        year=utcnow().year,
    )
    click.echo(f"PASS Seeded INVOICE sequence; first number will be {sample}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('sequences')
def sequences_group():
    """Document sequence configuration."""


@sequences_group.command('list')
@with_appcontext
def list_sequences():
    sequences = sequence_service.list_sequences()
    if not sequences:
        click.echo("No sequences configured. Run `flask system init`.")
        return
    for seq in sequences:
        click.echo(
            f"{seq.document_type.value:<10} prefix={seq.prefix} next={seq.next_number} "
            f"pad={seq.pad_width} year={'yes' if seq.include_year else 'no'}"
        )


@sequences_group.command('seed')
@click.option('--type', 'document_type', default='INVOICE', help='Document type')
@click.option('--prefix', required=True, help='Number prefix')
@click.option('--pad', 'pad_width', default=6, type=int)
@click.option('--year/--no-year', 'include_year', default=True)
@click.option('--next', 'next_number', default=None, type=int, help='Next number to allocate')
@with_appcontext
def seed_sequence(document_type, prefix, pad_width, include_year, next_number):
    try:
        seq = sequence_service.seed_sequence(
            document_type,
            prefix=prefix,
            include_year=include_year,
            pad_width=pad_width,
            next_number=next_number,
        )
        db.session.commit()
    except StockbillError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {seq.document_type.value} sequence: prefix={seq.prefix} next={seq.next_number}")


@click.group('invoices')
def invoices_group():
    """Invoice reporting."""


@invoices_group.command('summary')
@click.option(
    '--date', 'day', default=None,
    type=click.DateTime(formats=['%Y-%m-%d']),
    help='YYYY-MM-DD (default: today, UTC)',
)
@with_appcontext
def invoice_summary(day):
    target = day.date() if day else utcnow().date()
    summary = invoice_service.daily_summary(target)
    click.echo(f"Date:     {summary['date']}")
    click.echo(f"Invoices: {summary['invoice_count']}")
    click.echo(f"Subtotal: {summary['subtotal_cents']}")
    click.echo(f"Tax:      {summary['tax_cents']}")
    click.echo(f"Total:    {summary['total_cents']}")


@click.group('products')
def products_group():
    """Product inspection."""


@products_group.command('low-stock')
@with_appcontext
def low_stock():
    products = stock_service.list_low_stock()
    if not products:
        click.echo("No products at or below minimum stock.")
        return
    for p in products:
        click.echo(f"{p.code:<16} {p.name:<40} qty={p.quantity} min={p.min_stock}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sequences_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(products_group)
