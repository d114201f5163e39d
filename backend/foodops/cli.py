# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/foodops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and opens the first cutoff cycle.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Cutoff cycle:
# - python -m flask cutoff status
#   Show the open cycle and its phase.
# - python -m flask cutoff close [--by "name"] [--expected-cycle-id 3]
#   Close the open cycle now and open the next one.
# - python -m flask cutoff list --limit 20
#
# Document numbers:
# - python -m flask sequences next sale_order
#   Allocate (and consume) the next number of a domain.
# - python -m flask sequences list
#
# Inventory:
# - python -m flask inventory lots 12
#   Lot history of a product, newest lot first.
#
# Accounts:
# - python -m flask accounts verify --party-type customer --party-id 4
# - python -m flask accounts verify --all
#   Recompute balances from postings and compare with the account cache.

import click
from flask.cli import with_appcontext

from .errors import FoodOpsError
from .extensions import db
from .models import Account
from .services import cutoff_service, document_service, inventory_service, statement_service
from .services.document_service import DOMAIN_PREFIXES
from .models.parties import PARTY_TYPES


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the database and open the first cutoff cycle.

    Safe to run repeatedly.
    """
    click.echo("START Initializing foodops...")
    db.create_all()
    click.echo("PASS Tables ready")

    cycle = cutoff_service.get_current_cycle()
    click.echo(f"PASS Open cutoff cycle: #{cycle.sequence} ({cycle.phase}, ID: {cycle.id})")


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


@click.group('cutoff')
def cutoff_group():
    """Cutoff cycle commands."""


@cutoff_group.command('status')
@with_appcontext
def cutoff_status():
    """Show the open cycle."""
    status = cutoff_service.get_status()
    click.echo(f"Cycle ID:      {status['cycle_id']}")
    click.echo(f"Sequence:      {status['sequence']}")
    click.echo(f"Phase:         {status['phase']}")
    click.echo(f"Opened at:     {status['opened_at']}")
    click.echo(f"Last closed:   {status['last_closed_at'] or '-'} by {status['last_closed_by'] or '-'}")


@cutoff_group.command('close')
@click.option('--by', 'closed_by', default=None, help='Operator name recorded on the closed cycle')
@click.option('--expected-cycle-id', type=int, default=None, help='Only close if this cycle is still open')
@with_appcontext
def cutoff_close(closed_by, expected_cycle_id):
    """Close the open cycle and open the next one."""
    try:
        cycle = cutoff_service.close(expected_cycle_id=expected_cycle_id, closed_by=closed_by)
    except FoodOpsError as exc:
        click.echo(f"FAIL {exc.message}", err=True)
        raise SystemExit(1)
    click.echo(f"PASS Open cycle is now #{cycle.sequence} ({cycle.phase}, ID: {cycle.id})")


@cutoff_group.command('list')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def cutoff_list(limit):
    """List recent cycles, newest first."""
    cycles = cutoff_service.list_cycles(limit=limit)

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Seq':<6} {'Phase':<12} {'Status':<8} {'Opened':<22} {'Closed'}")
    click.echo("="*90)
    for c in cycles:
        d = c.to_dict()
        click.echo(f"{c.id:<5} {c.sequence:<6} {c.phase:<12} {c.status:<8} {d['opened_at']:<22} {d['closed_at'] or '-'}")
    click.echo("="*90 + "\n")


@click.group('sequences')
def sequences_group():
    """Daily document number sequences."""


@sequences_group.command('next')
@click.argument('domain', type=click.Choice(sorted(DOMAIN_PREFIXES)))
@with_appcontext
def sequences_next(domain):
    """Allocate the next number of DOMAIN. The number is consumed."""
    click.echo(document_service.next_document_number(domain))


@sequences_group.command('list')
@with_appcontext
def sequences_list():
    sequences = document_service.list_sequences()
    if not sequences:
        click.echo("No sequences allocated yet.")
        return
    for seq in sequences:
        d = seq.to_dict()
        click.echo(f"{d['domain']:<22} last={d['last_number']:<6} date={d['counter_date']}")


@click.group('inventory')
def inventory_group():
    """Lot inventory inspection."""


@inventory_group.command('lots')
@click.argument('product_id', type=int)
@with_appcontext
def inventory_lots(product_id):
    """Lot history of PRODUCT_ID, newest lot first."""
    try:
        product = inventory_service.get_product(product_id)
        lots = inventory_service.get_lot_history(product_id)
    except FoodOpsError as exc:
        click.echo(f"FAIL {exc.message}", err=True)
        raise SystemExit(1)

    click.echo(f"{product.name} (ID: {product.id}) stock={product.stock_quantity}")
    click.echo(f"{'Lot date':<12} {'Quantity':>10} {'Stock':>10} {'Price':>10}")
    for lot in lots:
        click.echo(f"{lot.lot_date.isoformat():<12} {lot.quantity:>10} {lot.stock:>10} {lot.price:>10}")


@click.group('accounts')
def accounts_group():
    """Account balance checks."""


@accounts_group.command('verify')
@click.option('--party-type', type=click.Choice(sorted(PARTY_TYPES)), default=None)
@click.option('--party-id', type=int, default=None)
@click.option('--all', 'check_all', is_flag=True, help='Verify every account')
@with_appcontext
def accounts_verify(party_type, party_id, check_all):
    """
    Recompute balances from postings and compare with the cached totals.

    Exits with status 1 if any account is out of sync.
    """
    if check_all:
        targets = [(a.party_type, a.party_id) for a in db.session.query(Account).order_by(Account.id).all()]
    elif party_type and party_id is not None:
        targets = [(party_type, party_id)]
    else:
        raise click.UsageError("Give --party-type and --party-id, or --all")

    mismatches = 0
    for p_type, p_id in targets:
        try:
            result = statement_service.verify_account(p_type, p_id)
        except FoodOpsError as exc:
            click.echo(f"FAIL {p_type} {p_id}: {exc.message}", err=True)
            mismatches += 1
            continue
        if result["in_sync"]:
            click.echo(f"PASS {p_type} {p_id}: balance {result['recorded']}")
        else:
            mismatches += 1
            click.echo(
                f"FAIL {p_type} {p_id}: recorded {result['recorded']}, "
                f"expected {result['expected']}"
            )

    if mismatches:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(cutoff_group)
    app.cli.add_command(sequences_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(accounts_group)
