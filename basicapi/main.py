"""Application factory: wires configuration, database, auth and routes."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from .config import Settings
from .routers import pets, token
from .services.database import Database, select_database
from .services.migrations import create_database_tables, teardown_database
from .services.policies import configure_auth


log = logging.getLogger("basicapi.main")


def create_app(settings: Settings) -> FastAPI:
    """Build the app for the given settings.

    Backend selection and certificate loading happen here, so configuration
    errors surface before the server starts listening.

    Raises:
        ConfigurationError: Unsupported database, bad connection string or unreadable certificate
    """
    database = Database(select_database(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup; drop them (or the SQLite file) on shutdown."""
        try:
            create_database_tables(database, settings.generate_sql_scripts)
        except Exception as e:
            log.error("Database migration failed: %s", e)
            database.dispose()
            raise
        try:
            yield
        finally:
            teardown_database(database, settings.generate_sql_scripts)

    app = FastAPI(title="BasicApi", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    configure_auth(app, settings)

    @app.middleware("http")
    async def log_unhandled_exceptions(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            log.exception("Unhandled exception for %s %s", request.method, request.url.path)
            raise

    app.include_router(token.router)
    app.include_router(pets.router)

    @app.get("/health")
    def health():
        """Minimal liveness endpoint."""
        return {"status": "ok"}

    return app
