"""
Flask CLI commands for database management.

Commands:
- flask init-db: Create the products and transactions tables
- flask seed-products: Insert the placeholder catalog into an empty table
"""

import click
from sqlalchemy.exc import SQLAlchemyError
from storefront.database import create_all, get_session
from storefront.services.cache_service import get_cache
from storefront.services.catalog_service import seed_products, CACHE_MODULE, CACHE_KEY


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        try:
            create_all()
        except SQLAlchemyError as e:
            click.echo(click.style(f'Error creating tables: {e}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style('Tables created.', fg='green', bold=True))

    @app.cli.command('seed-products')
    def seed_products_command():
        """Seed the placeholder catalog if the products table is empty."""
        session = get_session()
        try:
            inserted = seed_products(session)
        except SQLAlchemyError as e:
            session.rollback()
            click.echo(click.style(f'Error seeding products: {e}', fg='red'))
            raise SystemExit(1)

        if inserted:
            get_cache().delete(CACHE_MODULE, CACHE_KEY)
            click.echo(click.style(f'Seeded {inserted} products.', fg='green', bold=True))
        else:
            click.echo('Products table already has data; nothing to do.')
