"""Management script for database and maintenance tasks"""

from flask.cli import FlaskGroup
from flask_migrate import upgrade

from storefront import create_app
from storefront.billing.shop_visibility import expire_lapsed
from storefront.extensions import create_tables, db
from storefront.ledger.store import LedgerStore

app = create_app()
cli = FlaskGroup(create_app=lambda: app)


@cli.command("init-db")
def init_db():
    """Initialize the database"""
    create_tables(app)
    print("Database initialized successfully")


@cli.command("drop-db")
def drop_db():
    """Drop all database tables"""
    confirmation = input("Are you sure you want to drop all tables? (yes/no): ").lower()

    if confirmation == "yes":
        with app.app_context():
            db.drop_all()
            print("Database dropped successfully")
    else:
        print("Operation cancelled.")


@cli.command("migrate-db")
def migrate_db():
    """Apply any pending database migrations"""
    with app.app_context():
        upgrade()
        print("Database migrations applied successfully")


@cli.command("expire-subscriptions")
def expire_subscriptions():
    """Hide shops whose subscription period has ended"""
    with app.app_context():
        count = expire_lapsed(LedgerStore())
        print(f"Expired {count} subscription(s)")


if __name__ == "__main__":
    cli()
