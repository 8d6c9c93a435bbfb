"""
Flask CLI commands for database setup.

Commands:
- flask init-db: Create all tables
- flask reset-db: Drop and recreate all tables
- flask seed-products: Load a few demo products
"""

from decimal import Decimal

import click

from pdv.database import create_all, drop_all, get_session
from pdv.models import Product

DEMO_PRODUCTS = (
    # code, name, unit, price, stock
    ('7891000100103', 'Café torrado 500g', 'UNID', '18.90', '40'),
    ('7891000053508', 'Açúcar refinado 1kg', 'UNID', '5.49', '60'),
    ('7896005800016', 'Arroz tipo 1 5kg', 'UNID', '27.90', '25'),
    ('7896006716014', 'Feijão carioca 1kg', 'UNID', '8.79', '30'),
    ('2000000000015', 'Fio elétrico 2,5mm', 'M', '3.20', '500'),
)


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        create_all()
        click.echo(click.style('Tabelas criadas.', fg='green'))

    @app.cli.command('reset-db')
    @click.confirmation_option(prompt='Isto apaga TODOS os dados. Continuar?')
    def reset_db_command():
        """Drop and recreate every table."""
        drop_all()
        create_all()
        click.echo(click.style('Banco de dados recriado.', fg='yellow'))

    @app.cli.command('seed-products')
    def seed_products_command():
        """Insert demo products (skips codes already present)."""
        db_session = get_session()
        created = 0
        try:
            for code, name, unit, price, stock in DEMO_PRODUCTS:
                if db_session.query(Product).filter_by(code=code).first():
                    continue
                db_session.add(Product(
                    code=code, name=name, unit=unit,
                    price=Decimal(price), stock=Decimal(stock), active=True
                ))
                created += 1
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

        click.echo(click.style(f'{created} produto(s) criado(s).', fg='green'))
