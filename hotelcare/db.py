from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from hotelcare.config import settings


def configure_sqlite_engine(engine: Engine) -> Engine:
    """Let pysqlite honour SAVEPOINT so per-item usage inserts can roll back on their own."""

    @event.listens_for(engine, 'connect')
    def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def _emit_begin(conn):
        conn.exec_driver_sql('BEGIN')

    return engine


def _build_engine() -> Engine:
    url = settings.database_url_normalized
    if url.startswith('sqlite'):
        return configure_sqlite_engine(create_engine(url, connect_args={'check_same_thread': False}))
    return create_engine(url, pool_pre_ping=True)


engine = _build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
