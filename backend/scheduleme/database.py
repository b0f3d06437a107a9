"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default, any SQLAlchemy
URL such as Postgres in deployments) and provides small helpers used by
the application, scripts and tests.
"""

import logging
import uuid
from sqlalchemy import inspect
from sqlmodel import SQLModel, create_engine, Session, select
from .config import settings
from . import models

logger = logging.getLogger("scheduleme.db")

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=_connect_args)

DEFAULT_ADMIN_ID = "admin-1"

# columns added after the first release; older database files lack them
_LATE_COLUMNS = {
    "schools": {
        "address": "address TEXT NOT NULL DEFAULT ''",
        "sort_order": "sort_order INTEGER DEFAULT 0",
    },
}


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Besides `create_all` this brings older database files up to date and
    makes sure the default administrator account exists.
    """
    SQLModel.metadata.create_all(engine)
    _ensure_late_columns()
    _ensure_default_admin()


def _ensure_late_columns():
    """Add columns missing from tables created by an earlier schema.

    The check is idempotent: only columns absent from the live table are
    altered in.
    """
    inspector = inspect(engine)
    with engine.connect() as conn:
        for table, columns in _LATE_COLUMNS.items():
            existing = {c["name"] for c in inspector.get_columns(table)}
            for name, ddl in columns.items():
                if name in existing:
                    continue
                logger.info("adding column %s.%s", table, name)
                conn.exec_driver_sql(f"ALTER TABLE {table} ADD COLUMN {ddl}")
        conn.commit()


def _ensure_default_admin():
    """Seed the default admin account configured in settings."""
    from .services import PWD_CTX

    with Session(engine) as session:
        stmt = select(models.AppUser).where(models.AppUser.email == settings.DEFAULT_ADMIN_EMAIL)
        if session.exec(stmt).first():
            return
        admin_id = DEFAULT_ADMIN_ID if session.get(models.AppUser, DEFAULT_ADMIN_ID) is None else uuid.uuid4().hex
        admin = models.AppUser(
            id=admin_id,
            email=settings.DEFAULT_ADMIN_EMAIL,
            role=models.Role.ADMIN.value,
            password_hash=PWD_CTX.hash(settings.DEFAULT_ADMIN_PASSWORD) if settings.DEFAULT_ADMIN_PASSWORD else None,
        )
        session.add(admin)
        session.commit()
        logger.info("seeded default admin %s", settings.DEFAULT_ADMIN_EMAIL)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
