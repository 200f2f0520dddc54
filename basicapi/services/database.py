"""Database backend selection and connection management."""
from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from ..config import ConfigurationError, Settings
from .connection_strings import ConnectionString, parse_connection_string


log = logging.getLogger("basicapi.database")

SQLITE_FILE_NAME = "BasicApi.db"
SQLSERVER_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

# Pool sizing and flags the app applies to the engine itself
POOL_KEYWORDS = frozenset({"pooling", "minimumpoolsize", "maximumpoolsize", "noresetonclose", "enlist"})

# Npgsql tuning knobs with no libpq counterpart
NPGSQL_ONLY_KEYWORDS = frozenset({
    "maxautoprepare", "autoprepareminusages", "multiplexing", "writecoalescingbufferthresholdbytes",
    "readbuffersize", "writebuffersize", "commandtimeout", "connectionidlelifetime", "connectionpruninginterval",
})

# Connection string keyword -> psycopg (libpq) parameter
POSTGRES_OPTION_NAMES = {
    "timeout": "connect_timeout",
    "applicationname": "application_name",
    "rootcertificate": "sslrootcert",
    "sslcertificate": "sslcert",
    "sslkey": "sslkey",
    "targetsessionattributes": "target_session_attrs",
    "keepalive": "keepalives_idle",
}

# Connection string keyword -> PyMySQL connect() argument
MYSQL_OPTION_NAMES = {
    "timeout": "connect_timeout",
    "characterset": "charset",
}


class DatabaseConfigurationError(ConfigurationError):
    """Raised when the configured database cannot be used."""
    pass


class DatabaseKind(str, Enum):
    SQLITE = "SQLite"
    POSTGRESQL = "PostgreSQL"
    SQLSERVER = "SQLServer"
    MYSQL = "MySQL"


class DatabaseOptions:
    """Selected backend: its kind, SQLAlchemy URL, pool settings and (SQLite only) the file path."""

    def __init__(self, kind: DatabaseKind, url: URL, sqlite_path: Optional[Path] = None,
                 pooling: bool = True, pool_size: Optional[int] = None):
        self.kind = kind
        self.url = url
        self.sqlite_path = sqlite_path
        self.pooling = pooling
        self.pool_size = pool_size

    @property
    def is_sqlite(self) -> bool:
        return self.kind is DatabaseKind.SQLITE

    def __repr__(self) -> str:
        return f"DatabaseOptions(kind={self.kind.value}, url={self.url.render_as_string(hide_password=True)})"


def _libpq_sslmode(value: str) -> str:
    """Npgsql spells SSL modes in PascalCase (VerifyFull); libpq wants verify-full."""
    lowered = value.strip().lower()
    return {"verifyca": "verify-ca", "verifyfull": "verify-full"}.get(lowered, lowered)


def _pool_settings(parsed: ConnectionString) -> dict:
    return {
        "pooling": parsed.get_flag("Pooling", default=True),
        "pool_size": parsed.get_int("Maximum Pool Size"),
    }


def _warn_ignored(parsed: ConnectionString, keywords: frozenset[str]) -> None:
    ignored = sorted(parsed.names[key] for key in parsed.keywords if key in keywords)
    if ignored:
        log.warning("Ignoring connection string keywords with no driver equivalent: %s", ", ".join(ignored))


def select_database(settings: Settings) -> DatabaseOptions:
    """Pick the database backend from Database/ConnectionString settings.

    Without a Database setting the app runs on a local SQLite file. Any explicit
    Database value requires a connection string.

    Raises:
        DatabaseConfigurationError: Unsupported type, missing connection string,
            or a PostgreSQL connection string with unsafe pooling flags
    """
    connection_string = settings.connection_string
    database_type = settings.database
    if not database_type:
        # Not running under a benchmark driver
        database_type = DatabaseKind.SQLITE.value
    elif not connection_string:
        raise DatabaseConfigurationError(f"Connection string must be specified for {database_type}.")

    key = database_type.upper()

    if key == "MYSQL":
        parsed = parse_connection_string(connection_string)
        query = parsed.options(MYSQL_OPTION_NAMES, POOL_KEYWORDS)
        options = DatabaseOptions(DatabaseKind.MYSQL, parsed.to_url("mysql+pymysql", query), **_pool_settings(parsed))

    elif key == "POSTGRESQL":
        parsed = parse_connection_string(connection_string)
        if not parsed.get_flag("No Reset On Close"):
            raise DatabaseConfigurationError("No Reset On Close=true must be specified for Npgsql.")
        if parsed.get_flag("Enlist"):
            raise DatabaseConfigurationError("Enlist=false must be specified for Npgsql.")
        _warn_ignored(parsed, NPGSQL_ONLY_KEYWORDS)
        query = parsed.options(POSTGRES_OPTION_NAMES, POOL_KEYWORDS | NPGSQL_ONLY_KEYWORDS)
        if "sslmode" in query:
            query["sslmode"] = _libpq_sslmode(query["sslmode"])
        options = DatabaseOptions(DatabaseKind.POSTGRESQL, parsed.to_url("postgresql+psycopg", query),
                                  **_pool_settings(parsed))

    elif key == "SQLITE":
        path = settings.content_root / SQLITE_FILE_NAME
        options = DatabaseOptions(
            DatabaseKind.SQLITE,
            URL.create("sqlite", database=str(path)),
            sqlite_path=path,
        )

    elif key == "SQLSERVER":
        parsed = parse_connection_string(connection_string)
        options = DatabaseOptions(DatabaseKind.SQLSERVER, parsed.to_odbc_url(SQLSERVER_ODBC_DRIVER, POOL_KEYWORDS),
                                  **_pool_settings(parsed))

    else:
        raise DatabaseConfigurationError(f"Application does not support database type {database_type}.")

    log.info("Selected database backend %s (%s)", options.kind.value,
             options.url.render_as_string(hide_password=True))
    return options


class Database:
    """Pooled engine plus the per-request session factory."""

    def __init__(self, options: DatabaseOptions):
        self.options = options
        connect_args = {}
        if options.is_sqlite:
            # Sync endpoints run on the threadpool
            connect_args["check_same_thread"] = False
        engine_args: dict = {"connect_args": connect_args, "pool_pre_ping": True}
        if not options.pooling:
            engine_args["poolclass"] = NullPool
        elif options.pool_size:
            engine_args["pool_size"] = options.pool_size
            engine_args["max_overflow"] = 0
        self.engine: Engine = create_engine(options.url, **engine_args)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    @property
    def kind(self) -> DatabaseKind:
        return self.options.kind

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session.

    The session is always closed when the request finishes.
    """
    db = request.app.state.database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
