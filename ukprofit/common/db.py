"""Engine and session factory for the `written_requests` store.

Postgres in deployment; SQLite files for local runs and tests, which need
cross-thread access and a busy timeout for the racing conditional updates.
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from ukprofit.common.config import settings

SQLITE_BUSY_TIMEOUT_SECONDS = 30


class Base(DeclarativeBase):
    pass


def create_db_engine(dsn: str) -> Engine:
    if dsn.startswith("sqlite"):
        return create_engine(
            dsn,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
        )
    return create_engine(dsn, pool_pre_ping=True)


def make_session_factory(bind: Engine) -> sessionmaker:
    # Store methods hand rows back after their session closes.
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = create_db_engine(settings.postgres_dsn)
SessionLocal = make_session_factory(engine)
