"""Schema lifecycle: apply Alembic migrations on startup, tear them down on shutdown."""
import io
import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

from .database import Database, DatabaseKind


log = logging.getLogger("basicapi.migrations")

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

# Revision that means "no migrations applied"
INITIAL_DATABASE = "base"
LATEST = "head"


def get_alembic_config(database: Database, output_buffer: Optional[io.StringIO] = None) -> Config:
    """Build an Alembic config pointing at the bundled migrations and the selected database."""
    cfg = Config(output_buffer=output_buffer)
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    db_url = database.options.url.render_as_string(hide_password=False)
    # ConfigParser interpolation treats '%' specially
    cfg.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    return cfg


def generate_script(database: Database, upgrade: bool) -> str:
    """Render migration SQL without touching the database (Alembic offline mode).

    Args:
        database: Selected database (only its dialect is used)
        upgrade: True for the create script, False for the delete script

    Returns:
        The SQL script text
    """
    buffer = io.StringIO()
    cfg = get_alembic_config(database, output_buffer=buffer)
    if upgrade:
        command.upgrade(cfg, LATEST, sql=True)
    else:
        command.downgrade(cfg, f"{LATEST}:{INITIAL_DATABASE}", sql=True)
    return buffer.getvalue()


def create_database_tables(database: Database, generate_sql_scripts: bool = False) -> None:
    """Upgrade the database to the latest revision."""
    if generate_sql_scripts:
        log.info("Create script:\n%s", generate_script(database, upgrade=True))

    cfg = get_alembic_config(database)
    log.info("Applying migrations for %s...", database.kind.value)
    with database.engine.begin() as connection:
        cfg.attributes["connection"] = connection
        command.upgrade(cfg, LATEST)
    log.info("Database migrations complete")


def drop_database(database: Database, generate_sql_scripts: bool = False) -> None:
    """Delete the SQLite database file so no .db file is left behind."""
    if generate_sql_scripts:
        log.info("Delete script:\n%s", generate_script(database, upgrade=False))

    # Pooled connections keep the file open
    database.dispose()

    path = database.options.sqlite_path
    if path is None:
        raise ValueError(f"drop_database requires a SQLite database, got {database.kind.value}")
    if path.exists():
        path.unlink()
        log.info("Deleted SQLite database %s", path)
    else:
        log.info("SQLite database %s already gone", path)


def drop_database_tables(database: Database, generate_sql_scripts: bool = False) -> None:
    """Roll back every migration, leaving the database itself in place."""
    if generate_sql_scripts:
        log.info("Delete script:\n%s", generate_script(database, upgrade=False))

    cfg = get_alembic_config(database)
    log.info("Rolling back migrations for %s...", database.kind.value)
    try:
        with database.engine.begin() as connection:
            cfg.attributes["connection"] = connection
            command.downgrade(cfg, INITIAL_DATABASE)
        log.info("Database migrations rolled back")
    finally:
        database.dispose()


def teardown_database(database: Database, generate_sql_scripts: bool = False) -> None:
    """Shutdown path, chosen by the backend selected at startup."""
    if database.kind is DatabaseKind.SQLITE:
        drop_database(database, generate_sql_scripts)
    else:
        drop_database_tables(database, generate_sql_scripts)
