# storefront/extensions.py
"""
Flask extensions initialization module.
Handles initialization and configuration of the extensions the service uses.
"""

import logging
import sqlite3

from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

# Initialize extensions
db = SQLAlchemy()
cors = CORS()
migrate = Migrate()

logger = logging.getLogger(__name__)


# pysqlite defers BEGIN until the first DML statement, which breaks
# SAVEPOINT nesting. Hand transaction control to SQLAlchemy instead.
@event.listens_for(Engine, "connect")
def _sqlite_disable_implicit_begin(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.isolation_level = None


@event.listens_for(Engine, "begin")
def _sqlite_emit_begin(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN")


def init_extensions(app):
    """Initialize all Flask extensions."""

    # Initialize SQLAlchemy
    db.init_app(app)
    logger.info("SQLAlchemy initialized")

    # Initialize Flask-Migrate
    migrate.init_app(app, db)
    logger.info("Flask-Migrate initialized")

    init_cors(app)
    logger.info("CORS initialized")

    # Create tables only in development/testing or if configured
    if app.config.get("ENV") in ("development", "testing") or app.config.get("CREATE_TABLES_ON_START", False):
        create_tables(app)

    logger.info("All extensions initialized successfully")
    return app


def init_cors(app):
    """Initialize CORS for the storefront frontends."""
    cors_config = {
        "origins": app.config.get("CORS_ORIGINS") or [],
        "methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization", "X-Shop-Id", "X-Request-ID"],
        "supports_credentials": True,
        "max_age": 600,
    }
    cors.init_app(app, **cors_config)


def create_tables(app):
    """Create database tables for the registered models."""
    # Import models so their tables are registered on the metadata
    from storefront import models  # noqa: F401

    with app.app_context():
        db.create_all()
        logger.info("Database tables created")
