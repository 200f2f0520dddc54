"""
Unit tests for database backend selection.

Tests cover:
- SQLite default when no Database is configured
- Required connection string for explicit backends
- Unsupported database types
- PostgreSQL pooling flag checks
- Driver options and pool settings carried from the connection string
"""
import logging

import pytest

from basicapi.config import build_settings
from basicapi.services.connection_strings import ConnectionStringError
from basicapi.services.database import (
    SQLITE_FILE_NAME,
    DatabaseConfigurationError,
    DatabaseKind,
    select_database,
)

PG_OK = "Host=db;Database=pets;Username=bench;Password=secret;No Reset On Close=true;Enlist=false"


def _settings(tmp_path, **values):
    values.setdefault("contentroot", str(tmp_path))
    return build_settings(values)


class TestSelectDatabase:

    def test_defaults_to_sqlite_in_content_root(self, tmp_path):
        options = select_database(_settings(tmp_path))
        assert options.kind is DatabaseKind.SQLITE
        assert options.is_sqlite
        assert options.sqlite_path == tmp_path.resolve() / SQLITE_FILE_NAME
        assert options.url.drivername == "sqlite"

    def test_connection_string_ignored_without_database(self, tmp_path):
        options = select_database(_settings(tmp_path, connectionstring="Host=elsewhere"))
        assert options.kind is DatabaseKind.SQLITE

    def test_explicit_database_requires_connection_string(self, tmp_path):
        with pytest.raises(DatabaseConfigurationError, match="Connection string must be specified for PostgreSQL."):
            select_database(_settings(tmp_path, database="PostgreSQL"))

    def test_explicit_sqlite_still_requires_connection_string(self, tmp_path):
        with pytest.raises(DatabaseConfigurationError):
            select_database(_settings(tmp_path, database="SQLite"))

    def test_explicit_sqlite_uses_content_root_file(self, tmp_path):
        options = select_database(_settings(tmp_path, database="sqlite", connectionstring="Data Source=ignored.db"))
        assert options.kind is DatabaseKind.SQLITE
        assert options.sqlite_path.name == SQLITE_FILE_NAME

    def test_unsupported_database(self, tmp_path):
        with pytest.raises(DatabaseConfigurationError, match="does not support database type Oracle"):
            select_database(_settings(tmp_path, database="Oracle", connectionstring="Host=db"))

    def test_postgresql(self, tmp_path):
        options = select_database(_settings(tmp_path, database="postgresql", connectionstring=PG_OK))
        assert options.kind is DatabaseKind.POSTGRESQL
        assert not options.is_sqlite
        assert options.sqlite_path is None
        assert options.url.drivername == "postgresql+psycopg"
        assert options.url.host == "db"
        assert options.url.database == "pets"
        assert options.url.username == "bench"

    def test_postgresql_requires_no_reset_on_close(self, tmp_path):
        with pytest.raises(DatabaseConfigurationError, match="No Reset On Close=true must be specified"):
            select_database(_settings(tmp_path, database="PostgreSQL", connectionstring="Host=db;Enlist=false"))

    def test_postgresql_rejects_no_reset_on_close_false(self, tmp_path):
        with pytest.raises(DatabaseConfigurationError, match="No Reset On Close"):
            select_database(_settings(
                tmp_path, database="PostgreSQL", connectionstring="Host=db;NoResetOnClose=false"
            ))

    def test_postgresql_rejects_enlist(self, tmp_path):
        with pytest.raises(DatabaseConfigurationError, match="Enlist=false must be specified"):
            select_database(_settings(
                tmp_path, database="PostgreSQL", connectionstring="Host=db;No Reset On Close=true;Enlist=true"
            ))

    def test_postgresql_enlist_defaults_to_false(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="PostgreSQL", connectionstring="Host=db;NoResetOnClose=true"
        ))
        assert options.kind is DatabaseKind.POSTGRESQL

    def test_postgresql_malformed_connection_string(self, tmp_path):
        with pytest.raises(ConnectionStringError):
            select_database(_settings(tmp_path, database="PostgreSQL", connectionstring="nonsense"))

    def test_mysql(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="MySQL", connectionstring="Server=db;Port=3306;Database=pets;Uid=root;Pwd=pw"
        ))
        assert options.kind is DatabaseKind.MYSQL
        assert options.url.drivername == "mysql+pymysql"
        assert options.url.port == 3306

    def test_sqlserver(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="SQLServer", connectionstring="Server=sql;Database=pets;User Id=sa;Password=pw"
        ))
        assert options.kind is DatabaseKind.SQLSERVER
        assert options.url.drivername == "mssql+pyodbc"
        assert "odbc_connect" in options.url.query


class TestDriverOptions:

    def test_postgresql_url_keeps_sslmode(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="PostgreSQL",
            connectionstring="postgresql://u:p@db/pets?sslmode=require&NoResetOnClose=true",
        ))
        assert dict(options.url.query) == {"sslmode": "require"}

    def test_postgresql_keywords_use_libpq_names(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="PostgreSQL",
            connectionstring=PG_OK + ";SSL Mode=VerifyFull;Timeout=15;Application Name=bench",
        ))
        assert dict(options.url.query) == {
            "sslmode": "verify-full",
            "connect_timeout": "15",
            "application_name": "bench",
        }

    def test_postgresql_pool_settings(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="PostgreSQL", connectionstring=PG_OK + ";Maximum Pool Size=64",
        ))
        assert options.pool_size == 64
        assert options.pooling is True
        assert dict(options.url.query) == {}

    def test_pooling_can_be_disabled(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="PostgreSQL", connectionstring=PG_OK + ";Pooling=false",
        ))
        assert options.pooling is False

    def test_npgsql_tuning_keywords_are_logged(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="basicapi.database"):
            options = select_database(_settings(
                tmp_path, database="PostgreSQL", connectionstring=PG_OK + ";Max Auto Prepare=4;Multiplexing=true",
            ))
        assert dict(options.url.query) == {}
        assert any("Max Auto Prepare, Multiplexing" in r.getMessage() for r in caplog.records)

    def test_mysql_options(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="MySQL",
            connectionstring="Server=db;Database=pets;Uid=root;Pwd=pw;Connection Timeout=5;Character Set=utf8mb4;Pooling=true",
        ))
        assert dict(options.url.query) == {"connect_timeout": "5", "charset": "utf8mb4"}

    def test_sqlserver_options(self, tmp_path):
        options = select_database(_settings(
            tmp_path, database="SQLServer",
            connectionstring="Server=sql;Database=pets;Application Name=bench;Max Pool Size=10",
        ))
        odbc = options.url.query["odbc_connect"]
        assert "Application Name=bench" in odbc
        assert "Max Pool Size" not in odbc
        assert options.pool_size == 10
