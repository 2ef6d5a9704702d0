"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect
from sqlmodel import SQLModel, create_engine, Session

from tradejournal.config import settings

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)


def _run_migrations(target=None):
    """Run lightweight schema migrations for columns added after first release."""
    from sqlalchemy import text

    target = target or engine
    inspector = inspect(target)

    if "profile" not in inspector.get_table_names():
        return

    columns = {col["name"] for col in inspector.get_columns("profile")}
    if "last_report_message_id" not in columns:
        logger.info("Migrating: adding profile.last_report_message_id")
        with target.connect() as conn:
            conn.execute(
                text("ALTER TABLE profile ADD COLUMN last_report_message_id INTEGER")
            )
            conn.commit()


def create_db_and_tables(target=None):
    """Create all tables. Called on startup."""
    import tradejournal.models  # noqa: F401  (populate metadata)

    target = target or engine
    SQLModel.metadata.create_all(target)
    _run_migrations(target)


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
