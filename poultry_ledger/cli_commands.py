"""
Flask CLI commands for ledger maintenance.

Commands:
- flask init-db: Create all tables
- flask seed-demo: Load the demo catalog, agencies and orders
- flask aging-report: Print outstanding debt per age bucket
- flask link-customers: Link legacy orders to customer records by name
"""

import click

from poultry_ledger import database
from poultry_ledger.exceptions import LedgerError
from poultry_ledger.time_utils import utcnow
from poultry_ledger.utils.formatters import datetime_vn, money_vn


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first')
    def init_db_command(drop):
        """Create the database schema."""
        if drop:
            database.drop_all()
            click.echo(click.style('Dropped existing tables.', fg='yellow'))
        database.create_all()
        click.echo(click.style('✅ Database schema created.', fg='green'))

    @app.cli.command('seed-demo')
    def seed_demo():
        """Load demo data into an empty database."""
        from poultry_ledger.services.demo_data import seed_demo_data

        session = database.get_session()
        try:
            loaded = seed_demo_data(session)
        except LedgerError as e:
            click.echo(click.style(f'❌ Could not load demo data: {e.message}', fg='red'))
            raise SystemExit(1)

        if loaded:
            click.echo(click.style('✅ Demo data loaded.', fg='green'))
        else:
            click.echo('Catalog already has products; nothing to do.')

    @app.cli.command('aging-report')
    def aging_report():
        """Print the debt aging buckets."""
        from poultry_ledger.services.debt_service import aging_report as build_report, debt_statistics

        session = database.get_session()
        report = build_report(
            session,
            current_days=app.config.get('AGING_CURRENT_DAYS', 30),
            overdue_days=app.config.get('AGING_OVERDUE_DAYS', 60),
        )
        stats = debt_statistics(session, credit_days=app.config.get('AGING_CURRENT_DAYS', 30))
        symbol = app.config.get('CURRENCY_SYMBOL', '₫')

        click.echo(f'Debt aging as of {datetime_vn(utcnow())} UTC')
        for label, amount in report.buckets():
            click.echo(f'{label:>12}  {money_vn(amount, symbol)}')
        click.echo(f"{'Total':>12}  {money_vn(report.total, symbol)}")
        click.echo(f"Debtors: {stats['total_debtors']}  Overdue orders: {stats['overdue_orders']}")

    @app.cli.command('link-customers')
    def link_customers():
        """Fill customer_id on legacy orders by case-insensitive name match."""
        from poultry_ledger.services.customer_service import link_orders_to_customers

        try:
            linked = link_orders_to_customers(database.get_session())
        except LedgerError as e:
            click.echo(click.style(f'❌ Migration failed, nothing changed: {e.message}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style(f'✅ Linked {linked} order(s).', fg='green'))
