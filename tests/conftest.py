import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from tradejournal.config import Settings
from tradejournal.database import create_db_and_tables


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def config():
    return Settings(
        telegram_bot_token="test-token",
        admin_chat_id="",
        scheduler_enabled=False,
    )
